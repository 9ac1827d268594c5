"""Repository ingestion: connect repositories and take an initial inventory.

Ingestion acquires and scans a single repository outside of any Analysis,
records its file/line metadata, and refreshes the Codebase totals.
"""

import logging
from dataclasses import dataclass, field

from codeforge.acquisition import RepositoryAcquirer, encode_credential
from codeforge.errors import AcquisitionError
from codeforge.models import (
    Codebase,
    CodebaseStatus,
    Repository,
    RepositoryCredentials,
    RepositoryMetadata,
    RepositoryProvider,
    RepositoryStatus,
)
from codeforge.models.repository import DEFAULT_MAX_FILE_SIZE
from codeforge.store import Stores
from codeforge.store.base import utc_now
from codeforge.utils.rounding import percentage_histogram

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Outcome of ingesting one repository."""

    success: bool
    repository_id: str
    files_count: int = 0
    lines_count: int = 0
    languages: dict[str, int] = field(default_factory=dict)
    error: str | None = None


class IngestionService:
    """Create codebases, connect repositories and ingest them."""

    def __init__(
        self,
        acquirer: RepositoryAcquirer,
        stores: Stores,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        self.acquirer = acquirer
        self.stores = stores
        self.max_file_size = max_file_size

    async def create_codebase(
        self,
        name: str,
        tenant_id: str = "default",
        description: str | None = None,
    ) -> Codebase:
        """Create a Codebase in ``pending`` status."""
        codebase = Codebase(name=name, tenant_id=tenant_id, description=description)
        await self.stores.codebases.create(codebase)
        logger.info("Created codebase %s (%s)", codebase.name, codebase.id)
        return codebase

    async def connect_repository(
        self,
        codebase_id: str,
        remote_url: str,
        branch: str | None = None,
        provider: RepositoryProvider | None = None,
        name: str | None = None,
        token: str | None = None,
    ) -> Repository:
        """Register a repository with a codebase.

        An existing repository with the same remote URL in the same codebase
        is returned instead of creating a duplicate.

        Args:
            codebase_id: Owning codebase
            remote_url: Clone URL or local path
            branch: Branch to acquire
            provider: Provider override (inferred from the URL otherwise)
            name: Display name override
            token: Access token, stored base64 encoded

        Returns:
            The new or existing Repository

        Raises:
            RecordNotFoundError: If the codebase does not exist
        """
        await self.stores.codebases.get(codebase_id)

        existing = await self.stores.repositories.find_by_remote_url(codebase_id, remote_url)
        if existing is not None:
            logger.info("Repository %s already connected (%s)", remote_url, existing.id)
            return existing

        repository = Repository.from_url(
            codebase_id, remote_url, provider=provider, branch=branch, name=name
        )
        if token:
            repository.credentials = RepositoryCredentials(
                type="token", encrypted_value=encode_credential(token)
            )
        await self.stores.repositories.create(repository)
        logger.info("Connected repository %s to codebase %s", repository.name, codebase_id)
        return repository

    async def ingest(self, codebase_id: str, repository_id: str) -> IngestionResult:
        """Acquire and scan one repository, updating both records.

        Repository goes ``cloning -> ready|error`` and Codebase goes
        ``ingesting -> ready|error``. The checkout is always released.

        Raises:
            RecordNotFoundError: If the codebase or repository does not exist
            InvalidTransitionError: If the codebase is being analyzed
        """
        codebase = await self.stores.codebases.get(codebase_id)
        repository = await self.stores.repositories.get(repository_id)
        # Codebase first: a rejected transition must leave the repository as it was
        await self.stores.codebases.update_status(codebase_id, CodebaseStatus.INGESTING)
        await self.stores.repositories.update_status(repository_id, RepositoryStatus.CLONING)

        try:
            async with self.acquirer.checkout(repository) as acquired:
                scan = await self.acquirer.scan(
                    acquired.local_path,
                    repository.max_file_size(self.max_file_size),
                    codebase.settings.exclude_patterns
                    + repository.analysis_config.exclude_patterns,
                )
        except (AcquisitionError, OSError) as e:
            logger.error("Ingestion failed for %s: %s", repository.remote_url, e)
            await self.stores.repositories.update_status(repository_id, RepositoryStatus.ERROR)
            await self.stores.codebases.update_status(codebase_id, CodebaseStatus.ERROR)
            return IngestionResult(success=False, repository_id=repository_id, error=str(e))

        await self.stores.repositories.update_status(repository_id, RepositoryStatus.READY)
        await self.stores.repositories.update_metadata(
            repository_id,
            RepositoryMetadata(
                total_files=scan.total_files,
                total_lines=scan.total_lines,
                language_histogram=scan.language_histogram,
                last_commit=acquired.commit_hash,
                last_commit_date=acquired.commit_date,
            ),
        )
        await self.stores.codebases.update_status(codebase_id, CodebaseStatus.READY)
        await self._refresh_codebase_totals(codebase_id)

        logger.info(
            "Ingested %s: %d files, %d lines", repository.name, scan.total_files, scan.total_lines
        )
        return IngestionResult(
            success=True,
            repository_id=repository_id,
            files_count=scan.total_files,
            lines_count=scan.total_lines,
            languages=scan.language_histogram,
        )

    async def _refresh_codebase_totals(self, codebase_id: str) -> None:
        """Sum file and line counts over the codebase's ready repositories."""
        repositories = await self.stores.repositories.list_by_codebase(codebase_id)
        total_files = 0
        total_lines = 0
        lines_by_language: dict[str, float] = {}
        for repository in repositories:
            if repository.status != RepositoryStatus.READY:
                continue
            metadata = repository.metadata
            total_files += metadata.total_files
            total_lines += metadata.total_lines
            for language, share in metadata.language_histogram.items():
                lines_by_language[language] = (
                    lines_by_language.get(language, 0.0) + share * metadata.total_lines / 100
                )

        codebase = await self.stores.codebases.get(codebase_id)
        codebase.metadata.total_files = total_files
        codebase.metadata.total_lines = total_lines
        codebase.metadata.language_histogram = percentage_histogram(lines_by_language)
        codebase.metadata.last_ingestion_at = utc_now()
        await self.stores.codebases.update_metadata(codebase_id, codebase.metadata)
