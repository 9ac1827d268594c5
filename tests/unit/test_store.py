"""Unit tests for the record stores.

Every test runs against both the in-memory and the SQLite backend.
"""

import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from codeforge.errors import RecordNotFoundError
from codeforge.models import (
    Analysis,
    AnalysisResults,
    AnalysisStatus,
    AnalysisSummary,
    AnalysisType,
    Codebase,
    CodebaseStatus,
    Finding,
    FindingCategory,
    FindingSeverity,
    FindingStatus,
    InvalidTransitionError,
    Repository,
    RepositoryCredentials,
    RepositoryMetadata,
    RepositoryStatus,
    SuggestedFix,
)
from codeforge.store import Stores, create_memory_stores, create_sqlite_stores


@pytest.fixture(params=["memory", "sqlite"])
async def any_stores(request: pytest.FixtureRequest, database) -> Stores:
    """Return stores for each backend."""
    if request.param == "memory":
        return create_memory_stores()
    return create_sqlite_stores(database)


async def make_codebase(stores: Stores, **kwargs) -> Codebase:
    codebase = Codebase(name=kwargs.pop("name", "portfolio"), **kwargs)
    await stores.codebases.create(codebase)
    return codebase


async def make_repository(stores: Stores, codebase_id: str, url: str) -> Repository:
    repository = Repository.from_url(codebase_id, url)
    await stores.repositories.create(repository)
    return repository


def make_finding(
    repository_id: str,
    analysis_id: str,
    severity: FindingSeverity,
    title: str = "Issue",
    category: FindingCategory = FindingCategory.SECURITY,
) -> Finding:
    return Finding(
        title=title,
        description="Details",
        severity=severity,
        category=category,
        repository_id=repository_id,
        analysis_id=analysis_id,
    )


class TestCodebaseStore:
    """Tests for codebase persistence and status transitions."""

    async def test_create_and_get(self, any_stores: Stores) -> None:
        """Test round-tripping a codebase with metadata and settings."""
        codebase = await make_codebase(any_stores, description="Main products")
        codebase.settings.exclude_patterns = ["docs/*"]
        await any_stores.codebases.save(codebase)

        loaded = await any_stores.codebases.get(codebase.id)

        assert loaded.name == "portfolio"
        assert loaded.description == "Main products"
        assert loaded.status == CodebaseStatus.PENDING
        assert loaded.settings.exclude_patterns == ["docs/*"]

    async def test_get_missing(self, any_stores: Stores) -> None:
        """Test that unknown ids raise RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError, match="Codebase with ID nope not found"):
            await any_stores.codebases.get("nope")

    async def test_list_by_tenant(self, any_stores: Stores) -> None:
        """Test tenant filtering."""
        await make_codebase(any_stores, name="a", tenant_id="acme")
        await make_codebase(any_stores, name="b", tenant_id="globex")

        acme = await any_stores.codebases.list_all(tenant_id="acme")
        everything = await any_stores.codebases.list_all()

        assert [c.name for c in acme] == ["a"]
        assert len(everything) == 2

    async def test_status_transitions(self, any_stores: Stores) -> None:
        """Test allowed and forbidden codebase moves."""
        codebase = await make_codebase(any_stores)

        await any_stores.codebases.update_status(codebase.id, CodebaseStatus.ANALYZING)
        with pytest.raises(InvalidTransitionError):
            await any_stores.codebases.update_status(codebase.id, CodebaseStatus.INGESTING)
        updated = await any_stores.codebases.update_status(codebase.id, CodebaseStatus.READY)

        assert updated.status == CodebaseStatus.READY
        assert (await any_stores.codebases.get(codebase.id)).status == CodebaseStatus.READY

    async def test_error_reachable_from_anywhere(self, any_stores: Stores) -> None:
        """Test that error can be entered from any state."""
        codebase = await make_codebase(any_stores)

        updated = await any_stores.codebases.update_status(codebase.id, CodebaseStatus.ERROR)

        assert updated.status == CodebaseStatus.ERROR


class TestRepositoryStore:
    """Tests for repository persistence."""

    async def test_round_trip_with_credentials(self, any_stores: Stores) -> None:
        """Test that credentials and metadata survive storage."""
        codebase = await make_codebase(any_stores)
        repository = Repository.from_url(codebase.id, "https://github.com/acme/api.git")
        repository.credentials = RepositoryCredentials(type="token", encrypted_value="dG9rZW4=")
        await any_stores.repositories.create(repository)
        await any_stores.repositories.update_metadata(
            repository.id,
            RepositoryMetadata(total_files=3, total_lines=40, language_histogram={"python": 100}),
        )

        loaded = await any_stores.repositories.get(repository.id)

        assert loaded.name == "api"
        assert loaded.credentials is not None
        assert loaded.credentials.encrypted_value == "dG9rZW4="
        assert loaded.metadata.total_lines == 40
        assert loaded.metadata.language_histogram == {"python": 100}

    async def test_find_by_remote_url(self, any_stores: Stores) -> None:
        """Test lookup of a connected repository by URL within a codebase."""
        codebase = await make_codebase(any_stores)
        repository = await make_repository(any_stores, codebase.id, "https://gitlab.com/a/b.git")

        found = await any_stores.repositories.find_by_remote_url(
            codebase.id, "https://gitlab.com/a/b.git"
        )
        missing = await any_stores.repositories.find_by_remote_url(codebase.id, "https://x/y")

        assert found is not None and found.id == repository.id
        assert missing is None

    async def test_status_transitions(self, any_stores: Stores) -> None:
        """Test that ready is only reachable through cloning."""
        codebase = await make_codebase(any_stores)
        repository = await make_repository(any_stores, codebase.id, "https://github.com/a/b")

        with pytest.raises(InvalidTransitionError):
            await any_stores.repositories.update_status(repository.id, RepositoryStatus.READY)
        await any_stores.repositories.update_status(repository.id, RepositoryStatus.CLONING)
        await any_stores.repositories.update_status(repository.id, RepositoryStatus.ERROR)
        await any_stores.repositories.update_status(repository.id, RepositoryStatus.CLONING)
        updated = await any_stores.repositories.update_status(
            repository.id, RepositoryStatus.READY
        )

        assert updated.status == RepositoryStatus.READY

    async def test_delete(self, any_stores: Stores) -> None:
        """Test deletion and deleting twice."""
        codebase = await make_codebase(any_stores)
        repository = await make_repository(any_stores, codebase.id, "https://github.com/a/b")

        await any_stores.repositories.delete(repository.id)

        assert await any_stores.repositories.list_by_codebase(codebase.id) == []
        with pytest.raises(RecordNotFoundError):
            await any_stores.repositories.delete(repository.id)


class TestAnalysisStore:
    """Tests for analysis lifecycle persistence."""

    async def test_lifecycle_to_completed(self, any_stores: Stores) -> None:
        """Test queued -> running -> completed with results and summary."""
        codebase = await make_codebase(any_stores)
        analysis = Analysis(codebase_id=codebase.id, type=AnalysisType.SECURITY)
        await any_stores.analyses.create(analysis)

        started = await any_stores.analyses.start(analysis.id)
        results = AnalysisResults(files_analyzed=4, security_score=85)
        summary = AnalysisSummary(
            overview="ok", key_findings=["a"], recommendations=["b"], estimated_effort="1-2 days"
        )
        await any_stores.analyses.complete(analysis.id, results, summary)
        loaded = await any_stores.analyses.get(analysis.id)

        assert started.status == AnalysisStatus.RUNNING
        assert started.started_at is not None
        assert loaded.status == AnalysisStatus.COMPLETED
        assert loaded.type == AnalysisType.SECURITY
        assert loaded.results == results
        assert loaded.summary == summary
        assert loaded.completed_at is not None

    async def test_fail_clears_results(self, any_stores: Stores) -> None:
        """Test that a failed analysis carries only an error message."""
        codebase = await make_codebase(any_stores)
        analysis = Analysis(codebase_id=codebase.id)
        await any_stores.analyses.create(analysis)
        await any_stores.analyses.start(analysis.id)

        failed = await any_stores.analyses.fail(analysis.id, "boom")

        assert failed.status == AnalysisStatus.FAILED
        assert failed.error_message == "boom"
        assert failed.results is None
        assert failed.summary is None

    async def test_terminal_states_are_final(self, any_stores: Stores) -> None:
        """Test that nothing leaves a terminal status."""
        codebase = await make_codebase(any_stores)
        analysis = Analysis(codebase_id=codebase.id)
        await any_stores.analyses.create(analysis)
        await any_stores.analyses.cancel(analysis.id)

        with pytest.raises(InvalidTransitionError):
            await any_stores.analyses.start(analysis.id)
        with pytest.raises(InvalidTransitionError):
            await any_stores.analyses.fail(analysis.id, "late")

    async def test_create_requires_queued(self, any_stores: Stores) -> None:
        """Test that new analyses must start queued."""
        codebase = await make_codebase(any_stores)

        with pytest.raises(ValueError, match="must be queued"):
            await any_stores.analyses.create(
                Analysis(codebase_id=codebase.id, status=AnalysisStatus.RUNNING)
            )

    async def test_latest_completed(self, any_stores: Stores) -> None:
        """Test selecting the newest completed analysis of a type."""
        codebase = await make_codebase(any_stores)
        ids = []
        base = datetime(2026, 1, 1, tzinfo=UTC)
        types = (AnalysisType.FULL, AnalysisType.SECURITY, AnalysisType.FULL)
        for offset, analysis_type in enumerate(types):
            analysis = Analysis(
                codebase_id=codebase.id,
                type=analysis_type,
                created_at=base + timedelta(hours=offset),
            )
            await any_stores.analyses.create(analysis)
            await any_stores.analyses.start(analysis.id)
            await any_stores.analyses.complete(
                analysis.id, AnalysisResults(), AnalysisSummary(overview="x")
            )
            ids.append(analysis.id)

        latest = await any_stores.analyses.latest_completed(codebase.id)
        latest_security = await any_stores.analyses.latest_completed(
            codebase.id, AnalysisType.SECURITY
        )

        assert latest is not None and latest.id == ids[2]
        assert latest_security is not None and latest_security.id == ids[1]


class TestFindingStore:
    """Tests for finding persistence and aggregates."""

    async def test_ordered_by_severity(self, any_stores: Stores) -> None:
        """Test that listings are most severe first."""
        findings = [
            make_finding("r1", "a1", FindingSeverity.LOW, "low"),
            make_finding("r1", "a1", FindingSeverity.CRITICAL, "critical"),
            make_finding("r1", "a1", FindingSeverity.MEDIUM, "medium"),
        ]
        await any_stores.findings.create_batch(findings)

        listed = await any_stores.findings.list_by_analysis("a1")

        assert [f.title for f in listed] == ["critical", "medium", "low"]

    async def test_round_trip_fields(self, any_stores: Stores) -> None:
        """Test that optional fields are preserved."""
        finding = make_finding("r1", "a1", FindingSeverity.HIGH)
        finding.file_path = "src/app.py"
        finding.line_start = 3
        finding.line_end = 9
        finding.suggested_fix = SuggestedFix(description="Validate input")
        finding.tags = ["owasp"]
        await any_stores.findings.create_batch([finding])

        loaded = await any_stores.findings.get(finding.id)

        assert loaded.file_path == "src/app.py"
        assert loaded.line_start == 3
        assert loaded.line_end == 9
        assert loaded.suggested_fix == SuggestedFix(description="Validate input")
        assert loaded.tags == ["owasp"]
        assert loaded.status == FindingStatus.OPEN

    async def test_stats_count_open_only(self, any_stores: Stores) -> None:
        """Test that triaged findings drop out of the aggregates."""
        open_one = make_finding("r1", "a1", FindingSeverity.HIGH)
        resolved = make_finding("r1", "a1", FindingSeverity.HIGH)
        other = make_finding("r1", "a1", FindingSeverity.LOW, category=FindingCategory.DEAD_CODE)
        await any_stores.findings.create_batch([open_one, resolved, other])
        await any_stores.findings.update_status(resolved.id, FindingStatus.RESOLVED)

        by_severity = await any_stores.findings.stats_by_severity("r1")
        by_category = await any_stores.findings.stats_by_category("r1")
        open_only = await any_stores.findings.list_by_repository("r1", FindingStatus.OPEN)

        assert by_severity == {"critical": 0, "high": 1, "medium": 0, "low": 1, "info": 0}
        assert by_category == {"dead_code": 1, "security": 1}
        assert len(open_only) == 2
        assert len(await any_stores.findings.list_by_repository("r1")) == 3

    async def test_empty_batch(self, any_stores: Stores) -> None:
        """Test that an empty batch is a no-op."""
        await any_stores.findings.create_batch([])

        assert await any_stores.findings.list_by_analysis("a1") == []


class TestSQLiteBatchAtomicity:
    """Tests specific to the SQLite finding store."""

    async def test_duplicate_id_rolls_back_whole_batch(self, sqlite_stores: Stores) -> None:
        """Test that a failing batch inserts nothing."""
        first = make_finding("r1", "a1", FindingSeverity.HIGH, "first")
        duplicate = make_finding("r1", "a1", FindingSeverity.LOW, "duplicate")
        duplicate.id = first.id

        with pytest.raises(sqlite3.IntegrityError):
            await sqlite_stores.findings.create_batch([first, duplicate])

        assert await sqlite_stores.findings.list_by_analysis("a1") == []
