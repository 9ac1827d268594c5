"""Record store interfaces.

Backends implement plain CRUD (``create``/``get``/``save`` and list
queries). Status changes are implemented once here: they load the record,
validate the move against the state machine in ``models.status`` and save,
all under a per-store lock so concurrent writers cannot interleave a
read-modify-write.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime

from codeforge.models import (
    Analysis,
    AnalysisResults,
    AnalysisStatus,
    AnalysisSummary,
    AnalysisType,
    Codebase,
    CodebaseMetadata,
    CodebaseStatus,
    Finding,
    FindingStatus,
    Repository,
    RepositoryMetadata,
    RepositoryStatus,
    check_transition,
)


def utc_now() -> datetime:
    return datetime.now(UTC)


class _LockedStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()


# =============================================================================
# Codebase
# =============================================================================


class CodebaseStore(_LockedStore, ABC):
    """Persists Codebase status and metadata."""

    @abstractmethod
    async def create(self, codebase: Codebase) -> Codebase:
        """Insert a new Codebase."""

    @abstractmethod
    async def get(self, codebase_id: str) -> Codebase:
        """Load a Codebase.

        Raises:
            RecordNotFoundError: If the id does not exist
        """

    @abstractmethod
    async def save(self, codebase: Codebase) -> None:
        """Overwrite a stored Codebase."""

    @abstractmethod
    async def list_all(self, tenant_id: str | None = None) -> list[Codebase]:
        """List codebases, oldest first, optionally for one tenant."""

    async def update_status(self, codebase_id: str, status: CodebaseStatus) -> Codebase:
        """Move a Codebase to ``status``.

        Raises:
            InvalidTransitionError: If the state machine forbids the move
        """
        async with self._lock:
            codebase = await self.get(codebase_id)
            check_transition("Codebase", codebase.status, status)
            codebase.status = status
            await self.save(codebase)
            return codebase

    async def update_metadata(self, codebase_id: str, metadata: CodebaseMetadata) -> Codebase:
        """Replace a Codebase's metadata."""
        async with self._lock:
            codebase = await self.get(codebase_id)
            codebase.metadata = metadata
            await self.save(codebase)
            return codebase


# =============================================================================
# Repository
# =============================================================================


class RepositoryStore(_LockedStore, ABC):
    """Persists Repository status and metadata."""

    @abstractmethod
    async def create(self, repository: Repository) -> Repository:
        """Insert a new Repository."""

    @abstractmethod
    async def get(self, repository_id: str) -> Repository:
        """Load a Repository.

        Raises:
            RecordNotFoundError: If the id does not exist
        """

    @abstractmethod
    async def save(self, repository: Repository) -> None:
        """Overwrite a stored Repository."""

    @abstractmethod
    async def list_by_codebase(self, codebase_id: str) -> list[Repository]:
        """List a codebase's repositories in creation order."""

    @abstractmethod
    async def delete(self, repository_id: str) -> None:
        """Delete a Repository.

        Raises:
            RecordNotFoundError: If the id does not exist
        """

    async def find_by_remote_url(self, codebase_id: str, remote_url: str) -> Repository | None:
        """Find a codebase's repository by remote URL."""
        for repository in await self.list_by_codebase(codebase_id):
            if repository.remote_url == remote_url:
                return repository
        return None

    async def update_status(self, repository_id: str, status: RepositoryStatus) -> Repository:
        """Move a Repository to ``status``.

        Raises:
            InvalidTransitionError: If the state machine forbids the move
        """
        async with self._lock:
            repository = await self.get(repository_id)
            check_transition("Repository", repository.status, status)
            repository.status = status
            await self.save(repository)
            return repository

    async def update_metadata(
        self, repository_id: str, metadata: RepositoryMetadata
    ) -> Repository:
        """Replace a Repository's metadata."""
        async with self._lock:
            repository = await self.get(repository_id)
            repository.metadata = metadata
            await self.save(repository)
            return repository


# =============================================================================
# Analysis
# =============================================================================


class AnalysisStore(_LockedStore, ABC):
    """Persists Analysis run state, results and summary."""

    @abstractmethod
    async def create(self, analysis: Analysis) -> Analysis:
        """Insert a new Analysis. Its status must be ``queued``."""

    @abstractmethod
    async def get(self, analysis_id: str) -> Analysis:
        """Load an Analysis.

        Raises:
            RecordNotFoundError: If the id does not exist
        """

    @abstractmethod
    async def save(self, analysis: Analysis) -> None:
        """Overwrite a stored Analysis."""

    @abstractmethod
    async def list_by_codebase(self, codebase_id: str) -> list[Analysis]:
        """List a codebase's analyses, newest first."""

    async def latest_completed(
        self, codebase_id: str, analysis_type: AnalysisType | None = None
    ) -> Analysis | None:
        """Return the newest completed Analysis, optionally of one type."""
        for analysis in await self.list_by_codebase(codebase_id):
            if analysis.status != AnalysisStatus.COMPLETED:
                continue
            if analysis_type is None or analysis.type == analysis_type:
                return analysis
        return None

    async def _transition(self, analysis_id: str, status: AnalysisStatus, **changes) -> Analysis:
        async with self._lock:
            analysis = await self.get(analysis_id)
            check_transition("Analysis", analysis.status, status)
            analysis.status = status
            for name, value in changes.items():
                setattr(analysis, name, value)
            await self.save(analysis)
            return analysis

    async def start(self, analysis_id: str) -> Analysis:
        """queued -> running, recording started_at."""
        return await self._transition(
            analysis_id, AnalysisStatus.RUNNING, started_at=utc_now()
        )

    async def complete(
        self, analysis_id: str, results: AnalysisResults, summary: AnalysisSummary
    ) -> Analysis:
        """running -> completed with results and summary."""
        return await self._transition(
            analysis_id,
            AnalysisStatus.COMPLETED,
            completed_at=utc_now(),
            results=results,
            summary=summary,
        )

    async def fail(self, analysis_id: str, error_message: str) -> Analysis:
        """-> failed with an error message and no results."""
        return await self._transition(
            analysis_id,
            AnalysisStatus.FAILED,
            completed_at=utc_now(),
            error_message=error_message,
            results=None,
            summary=None,
        )

    async def cancel(self, analysis_id: str) -> Analysis:
        """-> cancelled, recording completed_at."""
        return await self._transition(
            analysis_id, AnalysisStatus.CANCELLED, completed_at=utc_now()
        )


# =============================================================================
# Finding
# =============================================================================


class FindingStore(_LockedStore, ABC):
    """Persists findings and answers aggregate queries.

    Aggregates count only findings whose status is ``open``.
    """

    @abstractmethod
    async def create_batch(self, findings: list[Finding]) -> None:
        """Insert findings atomically."""

    @abstractmethod
    async def get(self, finding_id: str) -> Finding:
        """Load a Finding.

        Raises:
            RecordNotFoundError: If the id does not exist
        """

    @abstractmethod
    async def save(self, finding: Finding) -> None:
        """Overwrite a stored Finding."""

    @abstractmethod
    async def list_by_analysis(self, analysis_id: str) -> list[Finding]:
        """List an analysis's findings, most severe first."""

    @abstractmethod
    async def list_by_repository(
        self, repository_id: str, status: FindingStatus | None = None
    ) -> list[Finding]:
        """List a repository's findings, most severe first."""

    @abstractmethod
    async def stats_by_severity(self, repository_id: str) -> dict[str, int]:
        """Open findings per severity; every severity is present."""

    @abstractmethod
    async def stats_by_category(self, repository_id: str) -> dict[str, int]:
        """Open findings per category; only categories that occur."""

    async def update_status(self, finding_id: str, status: FindingStatus) -> Finding:
        """Change a finding's triage status (user action)."""
        async with self._lock:
            finding = await self.get(finding_id)
            finding.status = status
            await self.save(finding)
            return finding


@dataclass
class Stores:
    """The four record stores the pipeline writes to."""

    codebases: CodebaseStore
    repositories: RepositoryStore
    analyses: AnalysisStore
    findings: FindingStore
