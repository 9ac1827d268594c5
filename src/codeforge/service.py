"""Analysis trigger API.

Creates queued Analysis records and runs them in the background, cancels
runs, and answers per-codebase statistics. ``build_orchestrator`` wires the
git acquirer, the LiteLLM reviewer and the coordinator from configuration.
"""

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

from codeforge.acquisition import GitAcquirer, RepositoryAcquirer
from codeforge.config import CodeforgeConfig
from codeforge.coordinator import AiAnalysisCoordinator
from codeforge.errors import AnalysisInProgressError
from codeforge.llm import LiteLLMReviewer, ModelReviewer, create_client
from codeforge.models import (
    Analysis,
    AnalysisConfig,
    AnalysisType,
    CodebaseStatus,
    empty_severity_counts,
)
from codeforge.orchestrator import AnalysisOrchestrator, ProgressCallback
from codeforge.store import Stores

logger = logging.getLogger(__name__)


@dataclass
class CodebaseStatistics:
    """Counts across one codebase.

    Attributes:
        repository_count: Repositories in the codebase
        analysis_count: Analyses ever created for the codebase
        total_findings: Open findings across all repositories
        findings_by_severity: Open findings per severity
    """

    repository_count: int = 0
    analysis_count: int = 0
    total_findings: int = 0
    findings_by_severity: dict[str, int] = field(default_factory=empty_severity_counts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "repositoryCount": self.repository_count,
            "analysisCount": self.analysis_count,
            "totalFindings": self.total_findings,
            "findingsBySeverity": dict(self.findings_by_severity),
        }


async def codebase_statistics(stores: Stores, codebase_id: str) -> CodebaseStatistics:
    """Count repositories, analyses and open findings of one codebase.

    Raises:
        RecordNotFoundError: If the codebase does not exist
    """
    await stores.codebases.get(codebase_id)
    repositories = await stores.repositories.list_by_codebase(codebase_id)
    analyses = await stores.analyses.list_by_codebase(codebase_id)

    stats = CodebaseStatistics(
        repository_count=len(repositories),
        analysis_count=len(analyses),
    )
    for repository in repositories:
        by_severity = await stores.findings.stats_by_severity(repository.id)
        for severity, count in by_severity.items():
            stats.findings_by_severity[severity] += count
            stats.total_findings += count
    return stats


def build_orchestrator(
    config: CodeforgeConfig,
    stores: Stores,
    acquirer: RepositoryAcquirer | None = None,
    reviewer: ModelReviewer | None = None,
) -> AnalysisOrchestrator:
    """Wire an orchestrator from configuration.

    Args:
        config: Loaded configuration
        stores: Record stores
        acquirer: Override for the git acquirer
        reviewer: Override for the LiteLLM reviewer

    Returns:
        Ready-to-use AnalysisOrchestrator

    Raises:
        ValueError: If no reviewer is given and the LLM is disabled
    """
    if reviewer is None:
        reviewer = LiteLLMReviewer(create_client(config.llm))
    coordinator = AiAnalysisCoordinator(
        reviewer,
        batch_size=config.analysis.batch_size,
        max_chars_per_file=config.analysis.max_chars_per_file,
        summary_max_tokens=config.llm.summary_max_tokens,
    )
    return AnalysisOrchestrator(
        acquirer=acquirer or GitAcquirer(config.git),
        coordinator=coordinator,
        stores=stores,
        settings=config.analysis,
    )


class AnalysisService:
    """Trigger, run and cancel Analyses.

    Background runs are kept referenced until they finish so they are not
    garbage-collected mid-flight.
    """

    def __init__(self, orchestrator: AnalysisOrchestrator, stores: Stores) -> None:
        self.orchestrator = orchestrator
        self.stores = stores
        self._tasks: dict[str, asyncio.Task[Analysis]] = {}
        self._create_lock = asyncio.Lock()

    async def create(
        self,
        codebase_id: str,
        analysis_type: AnalysisType = AnalysisType.FULL,
        config: AnalysisConfig | None = None,
        triggered_by: str | None = None,
    ) -> Analysis:
        """Create a queued Analysis for a codebase.

        At most one Analysis per codebase is queued or running at a time.

        Raises:
            RecordNotFoundError: If the codebase does not exist
            AnalysisInProgressError: If the codebase is analyzing or already
                has a queued or running Analysis
        """
        async with self._create_lock:
            codebase = await self.stores.codebases.get(codebase_id)
            if codebase.status == CodebaseStatus.ANALYZING:
                raise AnalysisInProgressError(codebase_id)
            existing = await self.stores.analyses.list_by_codebase(codebase_id)
            if any(not other.status.is_terminal for other in existing):
                raise AnalysisInProgressError(codebase_id)

            if config is None:
                config = AnalysisConfig(depth=codebase.settings.analysis_depth)
            analysis = Analysis(
                codebase_id=codebase_id,
                type=analysis_type,
                config=config,
                triggered_by=triggered_by,
            )
            await self.stores.analyses.create(analysis)
        logger.info(
            "Queued %s analysis %s for codebase %s", analysis_type.value, analysis.id, codebase_id
        )
        return analysis

    async def trigger(
        self,
        codebase_id: str,
        analysis_type: AnalysisType = AnalysisType.FULL,
        config: AnalysisConfig | None = None,
        triggered_by: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Analysis:
        """Create a queued Analysis and start running it in the background.

        Returns:
            The queued Analysis (the run continues after this returns)
        """
        analysis = await self.create(codebase_id, analysis_type, config, triggered_by)
        self._spawn(analysis.id, self.orchestrator.run_analysis(analysis.id, on_progress))
        return analysis

    async def run(
        self,
        codebase_id: str,
        analysis_type: AnalysisType = AnalysisType.FULL,
        config: AnalysisConfig | None = None,
        triggered_by: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Analysis:
        """Create an Analysis and wait for the run to finish."""
        analysis = await self.create(codebase_id, analysis_type, config, triggered_by)
        return await self.orchestrator.run_analysis(analysis.id, on_progress)

    async def wait(self, analysis_id: str) -> Analysis:
        """Wait for a background run; returns the stored Analysis."""
        task = self._tasks.get(analysis_id)
        if task is not None:
            return await task
        return await self.stores.analyses.get(analysis_id)

    async def cancel(self, analysis_id: str) -> Analysis:
        """Cancel a queued or running Analysis.

        A running Analysis stops before its next repository or batch.

        Raises:
            InvalidTransitionError: If the Analysis already terminated
        """
        analysis = await self.stores.analyses.cancel(analysis_id)
        logger.info("Cancel requested for analysis %s", analysis_id)
        return analysis

    async def statistics(self, codebase_id: str) -> CodebaseStatistics:
        """Aggregate repository, analysis and open-finding counts for a codebase."""
        return await codebase_statistics(self.stores, codebase_id)

    def _spawn(self, analysis_id: str, coro: Coroutine[Any, Any, Analysis]) -> None:
        task = asyncio.create_task(coro)
        self._tasks[analysis_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(analysis_id, None))
