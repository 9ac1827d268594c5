"""Unit tests for repository ingestion."""

import base64

import pytest

from codeforge.errors import RecordNotFoundError
from codeforge.ingestion import IngestionService
from codeforge.models import (
    CodebaseStatus,
    InvalidTransitionError,
    RepositoryProvider,
    RepositoryStatus,
)
from codeforge.store import Stores
from tests.fixtures import FakeAcquirer, seed_codebase, source_file


@pytest.fixture
def service(acquirer: FakeAcquirer, stores: Stores) -> IngestionService:
    return IngestionService(acquirer, stores, max_file_size=1000)


class TestConnectRepository:
    """Tests for codebase creation and repository registration."""

    async def test_create_codebase(self, service: IngestionService, stores: Stores) -> None:
        """Test that new codebases start pending."""
        codebase = await service.create_codebase("portfolio", tenant_id="acme")

        stored = await stores.codebases.get(codebase.id)
        assert stored.status == CodebaseStatus.PENDING
        assert stored.tenant_id == "acme"

    async def test_connect_infers_provider_and_stores_token(
        self, service: IngestionService, stores: Stores
    ) -> None:
        """Test that tokens are stored base64 encoded."""
        codebase = await service.create_codebase("portfolio")

        repository = await service.connect_repository(
            codebase.id, "https://gitlab.com/acme/api.git", token="glpat-secret"
        )

        stored = await stores.repositories.get(repository.id)
        assert stored.provider == RepositoryProvider.GITLAB
        assert stored.credentials is not None
        assert stored.credentials.type == "token"
        assert base64.b64decode(stored.credentials.encrypted_value) == b"glpat-secret"

    async def test_connect_same_url_returns_existing(self, service: IngestionService) -> None:
        """Test that a URL is connected only once per codebase."""
        codebase = await service.create_codebase("portfolio")

        first = await service.connect_repository(codebase.id, "https://github.com/acme/api")
        second = await service.connect_repository(codebase.id, "https://github.com/acme/api")

        assert first.id == second.id

    async def test_connect_to_missing_codebase(self, service: IngestionService) -> None:
        """Test that the codebase must exist."""
        with pytest.raises(RecordNotFoundError):
            await service.connect_repository("missing", "https://github.com/acme/api")


class TestIngest:
    """Tests for acquiring and inventorying a repository."""

    async def test_ingest_records_metadata(
        self, service: IngestionService, acquirer: FakeAcquirer, stores: Stores
    ) -> None:
        """Test a successful ingestion of one repository."""
        acquirer.files["api"] = [
            source_file("app.py", "a\nb\nc"),
            source_file("web.ts", "x", language="typescript"),
            source_file("huge.py", "x" * 2000),
        ]
        codebase, (repository,) = await seed_codebase(stores, ["api"])

        result = await service.ingest(codebase.id, repository.id)

        assert result.success is True
        assert result.files_count == 2
        assert result.lines_count == 4
        assert result.languages == {"python": 75, "typescript": 25}
        stored = await stores.repositories.get(repository.id)
        assert stored.status == RepositoryStatus.READY
        assert stored.metadata.last_commit == "api-head"
        assert acquirer.released == ["api"]

    async def test_ingest_refreshes_codebase_totals(
        self, service: IngestionService, acquirer: FakeAcquirer, stores: Stores
    ) -> None:
        """Test that codebase totals sum the ready repositories."""
        acquirer.files["api"] = [source_file("a.py", "1\n2\n3")]
        acquirer.files["web"] = [source_file("w.ts", "1", language="typescript")]
        codebase, (api, web) = await seed_codebase(stores, ["api", "web"])

        await service.ingest(codebase.id, api.id)
        await service.ingest(codebase.id, web.id)

        stored = await stores.codebases.get(codebase.id)
        assert stored.status == CodebaseStatus.READY
        assert stored.metadata.total_files == 2
        assert stored.metadata.total_lines == 4
        assert stored.metadata.language_histogram == {"python": 75, "typescript": 25}
        assert stored.metadata.last_ingestion_at is not None

    async def test_ingest_failure_marks_error(
        self, service: IngestionService, acquirer: FakeAcquirer, stores: Stores
    ) -> None:
        """Test that a failed acquisition leaves both records in error."""
        acquirer.fail_acquire.add("api")
        codebase, (repository,) = await seed_codebase(stores, ["api"])

        result = await service.ingest(codebase.id, repository.id)

        assert result.success is False
        assert "Repository not found" in (result.error or "")
        assert (await stores.repositories.get(repository.id)).status == RepositoryStatus.ERROR
        assert (await stores.codebases.get(codebase.id)).status == CodebaseStatus.ERROR
        assert acquirer.released == []

    async def test_scan_failure_still_releases(
        self, service: IngestionService, acquirer: FakeAcquirer, stores: Stores
    ) -> None:
        """Test that the checkout is released when the scan fails."""
        acquirer.fail_scan.add("api")
        codebase, (repository,) = await seed_codebase(stores, ["api"])

        result = await service.ingest(codebase.id, repository.id)

        assert result.success is False
        assert acquirer.released == ["api"]

    async def test_rejected_while_analyzing_leaves_repository_alone(
        self, service: IngestionService, acquirer: FakeAcquirer, stores: Stores
    ) -> None:
        """Test that ingesting into an analyzing codebase touches neither record."""
        codebase, (repository,) = await seed_codebase(
            stores, ["api"], status=CodebaseStatus.ANALYZING
        )

        with pytest.raises(InvalidTransitionError):
            await service.ingest(codebase.id, repository.id)

        assert (await stores.repositories.get(repository.id)).status == RepositoryStatus.PENDING
        assert (await stores.codebases.get(codebase.id)).status == CodebaseStatus.ANALYZING
        assert acquirer.acquired == []
