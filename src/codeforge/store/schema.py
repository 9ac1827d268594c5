"""SQL DDL for the SQLite record store.

Four tables: codebases, repositories, analyses, findings. Nested values
(metadata, settings, config, results, summary) are stored as JSON text.
Every statement is IF NOT EXISTS, so applying the schema is idempotent.
"""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS codebases (
    id              TEXT PRIMARY KEY,
    tenant_id       TEXT NOT NULL,
    name            TEXT NOT NULL,
    description     TEXT,
    status          TEXT NOT NULL,
    metadata        TEXT NOT NULL DEFAULT '{}',
    settings        TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS repositories (
    id              TEXT PRIMARY KEY,
    codebase_id     TEXT NOT NULL REFERENCES codebases(id),
    name            TEXT NOT NULL,
    description     TEXT,
    provider        TEXT NOT NULL,
    remote_url      TEXT NOT NULL,
    branch          TEXT,
    status          TEXT NOT NULL,
    credentials     TEXT,
    metadata        TEXT NOT NULL DEFAULT '{}',
    analysis_config TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_repositories_codebase ON repositories(codebase_id);

CREATE TABLE IF NOT EXISTS analyses (
    id              TEXT PRIMARY KEY,
    codebase_id     TEXT NOT NULL REFERENCES codebases(id),
    type            TEXT NOT NULL,
    status          TEXT NOT NULL,
    config          TEXT NOT NULL DEFAULT '{}',
    started_at      TEXT,
    completed_at    TEXT,
    results         TEXT,
    summary         TEXT,
    error_message   TEXT,
    triggered_by    TEXT,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_analyses_codebase ON analyses(codebase_id, created_at);

CREATE TABLE IF NOT EXISTS findings (
    id              TEXT PRIMARY KEY,
    repository_id   TEXT NOT NULL,
    analysis_id     TEXT NOT NULL,
    title           TEXT NOT NULL,
    description     TEXT NOT NULL,
    severity        TEXT NOT NULL,
    severity_rank   INTEGER NOT NULL,
    category        TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'open',
    file_path       TEXT,
    line_start      INTEGER,
    line_end        INTEGER,
    suggested_fix   TEXT,
    tags            TEXT NOT NULL DEFAULT '[]',
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_findings_repository ON findings(repository_id, status);
CREATE INDEX IF NOT EXISTS idx_findings_analysis ON findings(analysis_id);
"""
