"""In-memory record stores.

Records are deep-copied on the way in and out, so callers never share
mutable state with the store, matching the behavior of a database backend.
"""

import copy

from codeforge.errors import RecordNotFoundError
from codeforge.models import (
    Analysis,
    AnalysisStatus,
    Codebase,
    Finding,
    FindingSeverity,
    FindingStatus,
    Repository,
    empty_severity_counts,
)
from codeforge.store.base import AnalysisStore, CodebaseStore, FindingStore, RepositoryStore, Stores

_SEVERITY_RANK = {severity: rank for rank, severity in enumerate(FindingSeverity)}


def _severity_order(finding: Finding) -> tuple[int, str]:
    return _SEVERITY_RANK[finding.severity], finding.created_at.isoformat()


class InMemoryCodebaseStore(CodebaseStore):
    def __init__(self) -> None:
        super().__init__()
        self._records: dict[str, Codebase] = {}

    async def create(self, codebase: Codebase) -> Codebase:
        self._records[codebase.id] = copy.deepcopy(codebase)
        return copy.deepcopy(codebase)

    async def get(self, codebase_id: str) -> Codebase:
        if codebase_id not in self._records:
            raise RecordNotFoundError("Codebase", codebase_id)
        return copy.deepcopy(self._records[codebase_id])

    async def save(self, codebase: Codebase) -> None:
        if codebase.id not in self._records:
            raise RecordNotFoundError("Codebase", codebase.id)
        self._records[codebase.id] = copy.deepcopy(codebase)

    async def list_all(self, tenant_id: str | None = None) -> list[Codebase]:
        return [
            copy.deepcopy(codebase)
            for codebase in self._records.values()
            if tenant_id is None or codebase.tenant_id == tenant_id
        ]


class InMemoryRepositoryStore(RepositoryStore):
    def __init__(self) -> None:
        super().__init__()
        self._records: dict[str, Repository] = {}

    async def create(self, repository: Repository) -> Repository:
        self._records[repository.id] = copy.deepcopy(repository)
        return copy.deepcopy(repository)

    async def get(self, repository_id: str) -> Repository:
        if repository_id not in self._records:
            raise RecordNotFoundError("Repository", repository_id)
        return copy.deepcopy(self._records[repository_id])

    async def save(self, repository: Repository) -> None:
        if repository.id not in self._records:
            raise RecordNotFoundError("Repository", repository.id)
        self._records[repository.id] = copy.deepcopy(repository)

    async def list_by_codebase(self, codebase_id: str) -> list[Repository]:
        return [
            copy.deepcopy(repository)
            for repository in self._records.values()
            if repository.codebase_id == codebase_id
        ]

    async def delete(self, repository_id: str) -> None:
        if self._records.pop(repository_id, None) is None:
            raise RecordNotFoundError("Repository", repository_id)


class InMemoryAnalysisStore(AnalysisStore):
    def __init__(self) -> None:
        super().__init__()
        self._records: dict[str, Analysis] = {}

    async def create(self, analysis: Analysis) -> Analysis:
        if analysis.status != AnalysisStatus.QUEUED:
            raise ValueError(f"New analyses must be queued (got {analysis.status.value})")
        self._records[analysis.id] = copy.deepcopy(analysis)
        return copy.deepcopy(analysis)

    async def get(self, analysis_id: str) -> Analysis:
        if analysis_id not in self._records:
            raise RecordNotFoundError("Analysis", analysis_id)
        return copy.deepcopy(self._records[analysis_id])

    async def save(self, analysis: Analysis) -> None:
        if analysis.id not in self._records:
            raise RecordNotFoundError("Analysis", analysis.id)
        self._records[analysis.id] = copy.deepcopy(analysis)

    async def list_by_codebase(self, codebase_id: str) -> list[Analysis]:
        analyses = [
            copy.deepcopy(analysis)
            for analysis in self._records.values()
            if analysis.codebase_id == codebase_id
        ]
        return sorted(analyses, key=lambda a: a.created_at, reverse=True)


class InMemoryFindingStore(FindingStore):
    def __init__(self) -> None:
        super().__init__()
        self._records: dict[str, Finding] = {}

    async def create_batch(self, findings: list[Finding]) -> None:
        for finding in findings:
            self._records[finding.id] = copy.deepcopy(finding)

    async def get(self, finding_id: str) -> Finding:
        if finding_id not in self._records:
            raise RecordNotFoundError("Finding", finding_id)
        return copy.deepcopy(self._records[finding_id])

    async def save(self, finding: Finding) -> None:
        if finding.id not in self._records:
            raise RecordNotFoundError("Finding", finding.id)
        self._records[finding.id] = copy.deepcopy(finding)

    async def list_by_analysis(self, analysis_id: str) -> list[Finding]:
        findings = [f for f in self._records.values() if f.analysis_id == analysis_id]
        return [copy.deepcopy(f) for f in sorted(findings, key=_severity_order)]

    async def list_by_repository(
        self, repository_id: str, status: FindingStatus | None = None
    ) -> list[Finding]:
        findings = [
            f
            for f in self._records.values()
            if f.repository_id == repository_id and (status is None or f.status == status)
        ]
        return [copy.deepcopy(f) for f in sorted(findings, key=_severity_order)]

    async def stats_by_severity(self, repository_id: str) -> dict[str, int]:
        counts = empty_severity_counts()
        for finding in self._open(repository_id):
            counts[finding.severity.value] += 1
        return counts

    async def stats_by_category(self, repository_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for finding in self._open(repository_id):
            counts[finding.category.value] = counts.get(finding.category.value, 0) + 1
        return counts

    def _open(self, repository_id: str) -> list[Finding]:
        return [
            f
            for f in self._records.values()
            if f.repository_id == repository_id and f.status == FindingStatus.OPEN
        ]


def create_memory_stores() -> Stores:
    """Create an empty set of in-memory stores."""
    return Stores(
        codebases=InMemoryCodebaseStore(),
        repositories=InMemoryRepositoryStore(),
        analyses=InMemoryAnalysisStore(),
        findings=InMemoryFindingStore(),
    )
