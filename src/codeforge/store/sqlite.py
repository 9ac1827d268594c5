"""SQLite record stores on a single aiosqlite connection.

Usage:
    db = Database(".codeforge/codeforge.db")
    await db.connect()
    stores = create_sqlite_stores(db)
    ...
    await db.close()
"""

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from codeforge.errors import RecordNotFoundError
from codeforge.models import (
    Analysis,
    AnalysisConfig,
    AnalysisResults,
    AnalysisStatus,
    AnalysisSummary,
    AnalysisType,
    Codebase,
    CodebaseMetadata,
    CodebaseSettings,
    CodebaseStatus,
    Finding,
    FindingCategory,
    FindingSeverity,
    FindingStatus,
    Repository,
    RepositoryAnalysisConfig,
    RepositoryCredentials,
    RepositoryMetadata,
    RepositoryProvider,
    RepositoryStatus,
    SuggestedFix,
    empty_severity_counts,
)
from codeforge.models.codebase import isoformat_or_none, parse_datetime
from codeforge.store.base import AnalysisStore, CodebaseStore, FindingStore, RepositoryStore, Stores
from codeforge.store.schema import SCHEMA_SQL

logger = logging.getLogger(__name__)

_SEVERITY_RANK = {severity: rank for rank, severity in enumerate(FindingSeverity)}


class Database:
    """aiosqlite connection lifetime manager.

    Args:
        db_path: SQLite file path, or ":memory:" for an in-memory database
    """

    def __init__(self, db_path: str = ".codeforge/codeforge.db") -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the connection, enable WAL and create the schema."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")
        await self._create_schema()
        logger.debug("Database connected: %s", self._db_path)

    async def close(self) -> None:
        """Close the connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.debug("Database closed: %s", self._db_path)

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def connection(self) -> aiosqlite.Connection:
        """Active connection. AssertionError when not connected."""
        assert self._conn is not None, "Database not connected. Call connect() first."
        return self._conn

    async def _create_schema(self) -> None:
        assert self._conn is not None
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()


def _dump(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def _load(value: str | None) -> Any:
    return None if value is None else json.loads(value)


async def _fetch_one(db: Database, sql: str, params: tuple) -> aiosqlite.Row | None:
    async with db.connection.execute(sql, params) as cursor:
        return await cursor.fetchone()


async def _fetch_all(db: Database, sql: str, params: tuple) -> list[aiosqlite.Row]:
    async with db.connection.execute(sql, params) as cursor:
        return list(await cursor.fetchall())


async def _execute(db: Database, sql: str, params: tuple) -> int:
    cursor = await db.connection.execute(sql, params)
    await db.connection.commit()
    return cursor.rowcount


# =============================================================================
# Codebase
# =============================================================================


def _codebase_params(codebase: Codebase) -> tuple:
    return (
        codebase.tenant_id,
        codebase.name,
        codebase.description,
        codebase.status.value,
        json.dumps(codebase.metadata.to_dict()),
        json.dumps(codebase.settings.to_dict()),
        codebase.id,
    )


def _row_to_codebase(row: aiosqlite.Row) -> Codebase:
    return Codebase(
        id=row["id"],
        tenant_id=row["tenant_id"],
        name=row["name"],
        description=row["description"],
        status=CodebaseStatus(row["status"]),
        metadata=CodebaseMetadata.from_dict(_load(row["metadata"])),
        settings=CodebaseSettings.from_dict(_load(row["settings"])),
        created_at=parse_datetime(row["created_at"]),
    )


class SQLiteCodebaseStore(CodebaseStore):
    def __init__(self, db: Database) -> None:
        super().__init__()
        self._db = db

    async def create(self, codebase: Codebase) -> Codebase:
        await _execute(
            self._db,
            """INSERT INTO codebases
               (tenant_id, name, description, status, metadata, settings, id, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (*_codebase_params(codebase), codebase.created_at.isoformat()),
        )
        return codebase

    async def get(self, codebase_id: str) -> Codebase:
        row = await _fetch_one(self._db, "SELECT * FROM codebases WHERE id = ?", (codebase_id,))
        if row is None:
            raise RecordNotFoundError("Codebase", codebase_id)
        return _row_to_codebase(row)

    async def save(self, codebase: Codebase) -> None:
        updated = await _execute(
            self._db,
            """UPDATE codebases
               SET tenant_id = ?, name = ?, description = ?, status = ?, metadata = ?, settings = ?
               WHERE id = ?""",
            _codebase_params(codebase),
        )
        if updated == 0:
            raise RecordNotFoundError("Codebase", codebase.id)

    async def list_all(self, tenant_id: str | None = None) -> list[Codebase]:
        if tenant_id is None:
            rows = await _fetch_all(self._db, "SELECT * FROM codebases ORDER BY created_at", ())
        else:
            rows = await _fetch_all(
                self._db,
                "SELECT * FROM codebases WHERE tenant_id = ? ORDER BY created_at",
                (tenant_id,),
            )
        return [_row_to_codebase(row) for row in rows]


# =============================================================================
# Repository
# =============================================================================


def _repository_params(repository: Repository) -> tuple:
    return (
        repository.codebase_id,
        repository.name,
        repository.description,
        repository.provider.value,
        repository.remote_url,
        repository.branch,
        repository.status.value,
        _dump(repository.credentials.to_dict() if repository.credentials else None),
        json.dumps(repository.metadata.to_dict()),
        json.dumps(repository.analysis_config.to_dict()),
        repository.id,
    )


def _row_to_repository(row: aiosqlite.Row) -> Repository:
    credentials_data = _load(row["credentials"])
    credentials = None
    if credentials_data:
        credentials = RepositoryCredentials(
            type=credentials_data["type"],
            encrypted_value=credentials_data["encryptedValue"],
        )
    return Repository(
        id=row["id"],
        codebase_id=row["codebase_id"],
        name=row["name"],
        description=row["description"],
        provider=RepositoryProvider(row["provider"]),
        remote_url=row["remote_url"],
        branch=row["branch"],
        status=RepositoryStatus(row["status"]),
        credentials=credentials,
        metadata=RepositoryMetadata.from_dict(_load(row["metadata"])),
        analysis_config=RepositoryAnalysisConfig.from_dict(_load(row["analysis_config"])),
        created_at=parse_datetime(row["created_at"]),
    )


class SQLiteRepositoryStore(RepositoryStore):
    def __init__(self, db: Database) -> None:
        super().__init__()
        self._db = db

    async def create(self, repository: Repository) -> Repository:
        await _execute(
            self._db,
            """INSERT INTO repositories
               (codebase_id, name, description, provider, remote_url, branch, status,
                credentials, metadata, analysis_config, id, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (*_repository_params(repository), repository.created_at.isoformat()),
        )
        return repository

    async def get(self, repository_id: str) -> Repository:
        row = await _fetch_one(
            self._db, "SELECT * FROM repositories WHERE id = ?", (repository_id,)
        )
        if row is None:
            raise RecordNotFoundError("Repository", repository_id)
        return _row_to_repository(row)

    async def save(self, repository: Repository) -> None:
        updated = await _execute(
            self._db,
            """UPDATE repositories
               SET codebase_id = ?, name = ?, description = ?, provider = ?, remote_url = ?,
                   branch = ?, status = ?, credentials = ?, metadata = ?, analysis_config = ?
               WHERE id = ?""",
            _repository_params(repository),
        )
        if updated == 0:
            raise RecordNotFoundError("Repository", repository.id)

    async def list_by_codebase(self, codebase_id: str) -> list[Repository]:
        rows = await _fetch_all(
            self._db,
            "SELECT * FROM repositories WHERE codebase_id = ? ORDER BY created_at, rowid",
            (codebase_id,),
        )
        return [_row_to_repository(row) for row in rows]

    async def find_by_remote_url(self, codebase_id: str, remote_url: str) -> Repository | None:
        row = await _fetch_one(
            self._db,
            "SELECT * FROM repositories WHERE codebase_id = ? AND remote_url = ?",
            (codebase_id, remote_url),
        )
        return _row_to_repository(row) if row else None

    async def delete(self, repository_id: str) -> None:
        deleted = await _execute(
            self._db, "DELETE FROM repositories WHERE id = ?", (repository_id,)
        )
        if deleted == 0:
            raise RecordNotFoundError("Repository", repository_id)


# =============================================================================
# Analysis
# =============================================================================


def _analysis_params(analysis: Analysis) -> tuple:
    return (
        analysis.codebase_id,
        analysis.type.value,
        analysis.status.value,
        json.dumps(analysis.config.to_dict()),
        isoformat_or_none(analysis.started_at),
        isoformat_or_none(analysis.completed_at),
        _dump(analysis.results.to_dict() if analysis.results else None),
        _dump(analysis.summary.to_dict() if analysis.summary else None),
        analysis.error_message,
        analysis.triggered_by,
        analysis.id,
    )


def _row_to_analysis(row: aiosqlite.Row) -> Analysis:
    results = _load(row["results"])
    summary = _load(row["summary"])
    return Analysis(
        id=row["id"],
        codebase_id=row["codebase_id"],
        type=AnalysisType(row["type"]),
        status=AnalysisStatus(row["status"]),
        config=AnalysisConfig.from_dict(_load(row["config"])),
        started_at=parse_datetime(row["started_at"]),
        completed_at=parse_datetime(row["completed_at"]),
        results=AnalysisResults.from_dict(results) if results else None,
        summary=AnalysisSummary.from_dict(summary) if summary else None,
        error_message=row["error_message"],
        triggered_by=row["triggered_by"],
        created_at=parse_datetime(row["created_at"]),
    )


class SQLiteAnalysisStore(AnalysisStore):
    def __init__(self, db: Database) -> None:
        super().__init__()
        self._db = db

    async def create(self, analysis: Analysis) -> Analysis:
        if analysis.status != AnalysisStatus.QUEUED:
            raise ValueError(f"New analyses must be queued (got {analysis.status.value})")
        await _execute(
            self._db,
            """INSERT INTO analyses
               (codebase_id, type, status, config, started_at, completed_at, results, summary,
                error_message, triggered_by, id, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (*_analysis_params(analysis), analysis.created_at.isoformat()),
        )
        return analysis

    async def get(self, analysis_id: str) -> Analysis:
        row = await _fetch_one(self._db, "SELECT * FROM analyses WHERE id = ?", (analysis_id,))
        if row is None:
            raise RecordNotFoundError("Analysis", analysis_id)
        return _row_to_analysis(row)

    async def save(self, analysis: Analysis) -> None:
        updated = await _execute(
            self._db,
            """UPDATE analyses
               SET codebase_id = ?, type = ?, status = ?, config = ?, started_at = ?,
                   completed_at = ?, results = ?, summary = ?, error_message = ?,
                   triggered_by = ?
               WHERE id = ?""",
            _analysis_params(analysis),
        )
        if updated == 0:
            raise RecordNotFoundError("Analysis", analysis.id)

    async def list_by_codebase(self, codebase_id: str) -> list[Analysis]:
        rows = await _fetch_all(
            self._db,
            "SELECT * FROM analyses WHERE codebase_id = ? ORDER BY created_at DESC, rowid DESC",
            (codebase_id,),
        )
        return [_row_to_analysis(row) for row in rows]


# =============================================================================
# Finding
# =============================================================================


def _finding_params(finding: Finding) -> tuple:
    return (
        finding.repository_id,
        finding.analysis_id,
        finding.title,
        finding.description,
        finding.severity.value,
        _SEVERITY_RANK[finding.severity],
        finding.category.value,
        finding.status.value,
        finding.file_path,
        finding.line_start,
        finding.line_end,
        _dump(finding.suggested_fix.to_dict() if finding.suggested_fix else None),
        json.dumps(finding.tags),
        finding.id,
    )


def _row_to_finding(row: aiosqlite.Row) -> Finding:
    return Finding(
        id=row["id"],
        repository_id=row["repository_id"],
        analysis_id=row["analysis_id"],
        title=row["title"],
        description=row["description"],
        severity=FindingSeverity(row["severity"]),
        category=FindingCategory(row["category"]),
        status=FindingStatus(row["status"]),
        file_path=row["file_path"],
        line_start=row["line_start"],
        line_end=row["line_end"],
        suggested_fix=SuggestedFix.from_value(_load(row["suggested_fix"])),
        tags=list(_load(row["tags"]) or []),
        created_at=parse_datetime(row["created_at"]),
    )


class SQLiteFindingStore(FindingStore):
    def __init__(self, db: Database) -> None:
        super().__init__()
        self._db = db

    async def create_batch(self, findings: list[Finding]) -> None:
        if not findings:
            return
        conn = self._db.connection
        try:
            await conn.executemany(
                """INSERT INTO findings
                   (repository_id, analysis_id, title, description, severity, severity_rank,
                    category, status, file_path, line_start, line_end, suggested_fix, tags,
                    id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [(*_finding_params(f), f.created_at.isoformat()) for f in findings],
            )
        except aiosqlite.Error:
            await conn.rollback()
            raise
        await conn.commit()

    async def get(self, finding_id: str) -> Finding:
        row = await _fetch_one(self._db, "SELECT * FROM findings WHERE id = ?", (finding_id,))
        if row is None:
            raise RecordNotFoundError("Finding", finding_id)
        return _row_to_finding(row)

    async def save(self, finding: Finding) -> None:
        updated = await _execute(
            self._db,
            """UPDATE findings
               SET repository_id = ?, analysis_id = ?, title = ?, description = ?,
                   severity = ?, severity_rank = ?, category = ?, status = ?, file_path = ?,
                   line_start = ?, line_end = ?, suggested_fix = ?, tags = ?
               WHERE id = ?""",
            _finding_params(finding),
        )
        if updated == 0:
            raise RecordNotFoundError("Finding", finding.id)

    async def list_by_analysis(self, analysis_id: str) -> list[Finding]:
        rows = await _fetch_all(
            self._db,
            """SELECT * FROM findings WHERE analysis_id = ?
               ORDER BY severity_rank, created_at, rowid""",
            (analysis_id,),
        )
        return [_row_to_finding(row) for row in rows]

    async def list_by_repository(
        self, repository_id: str, status: FindingStatus | None = None
    ) -> list[Finding]:
        sql = "SELECT * FROM findings WHERE repository_id = ?"
        params: tuple = (repository_id,)
        if status is not None:
            sql += " AND status = ?"
            params = (repository_id, status.value)
        rows = await _fetch_all(self._db, sql + " ORDER BY severity_rank, created_at, rowid", params)
        return [_row_to_finding(row) for row in rows]

    async def stats_by_severity(self, repository_id: str) -> dict[str, int]:
        rows = await _fetch_all(
            self._db,
            """SELECT severity, COUNT(*) AS count FROM findings
               WHERE repository_id = ? AND status = ?
               GROUP BY severity""",
            (repository_id, FindingStatus.OPEN.value),
        )
        counts = empty_severity_counts()
        for row in rows:
            counts[row["severity"]] = row["count"]
        return counts

    async def stats_by_category(self, repository_id: str) -> dict[str, int]:
        rows = await _fetch_all(
            self._db,
            """SELECT category, COUNT(*) AS count FROM findings
               WHERE repository_id = ? AND status = ?
               GROUP BY category ORDER BY category""",
            (repository_id, FindingStatus.OPEN.value),
        )
        return {row["category"]: row["count"] for row in rows}


def create_sqlite_stores(db: Database) -> Stores:
    """Create the four stores on a connected Database."""
    return Stores(
        codebases=SQLiteCodebaseStore(db),
        repositories=SQLiteRepositoryStore(db),
        analyses=SQLiteAnalysisStore(db),
        findings=SQLiteFindingStore(db),
    )
