"""Analysis orchestrator: drives one Analysis run end to end.

For each target repository the run goes acquire -> scan -> review ->
persist findings -> release, then averages scores over the repositories
that were acquired, writes results and summary, and returns the Codebase to
``ready``. Per-repository acquisition and scan failures mark that
repository ``error`` and the run continues; anything else fails the run.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from codeforge.acquisition import RepositoryAcquirer
from codeforge.config import AnalysisSettings
from codeforge.coordinator import AiAnalysisCoordinator, CodeReview
from codeforge.errors import (
    AcquisitionError,
    AllRepositoriesFailedError,
    AnalysisCancelledError,
    NoTargetsError,
)
from codeforge.models import (
    Analysis,
    AnalysisResults,
    AnalysisStatus,
    CodebaseStatus,
    InvalidTransitionError,
    ProgressEvent,
    Repository,
    RepositoryMetadata,
    RepositoryStatus,
    empty_severity_counts,
)
from codeforge.scoring import build_summary, count_by_category, count_by_severity
from codeforge.store import Stores
from codeforge.store.base import utc_now
from codeforge.utils.rounding import round_half_up

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Awaitable[None] | None]

PROGRESS_START = 5
PROGRESS_REPOSITORIES_START = 10
PROGRESS_REPOSITORIES_SPAN = 80
PROGRESS_REVIEW_OFFSET = 5
PROGRESS_FINALIZING = 95
PROGRESS_COMPLETE = 100


class ProgressReporter:
    """Emit progress events for one run, never letting the percentage drop.

    A failing callback is logged and otherwise ignored; progress delivery
    never affects the outcome of a run.
    """

    def __init__(self, analysis_id: str, callback: ProgressCallback | None = None) -> None:
        self.analysis_id = analysis_id
        self.callback = callback
        self.progress = 0
        self.events: list[ProgressEvent] = []

    async def emit(
        self,
        progress: int,
        current_step: str,
        status: AnalysisStatus = AnalysisStatus.RUNNING,
        message: str | None = None,
    ) -> ProgressEvent:
        self.progress = max(self.progress, min(progress, PROGRESS_COMPLETE))
        event = ProgressEvent(
            analysis_id=self.analysis_id,
            status=status,
            progress=self.progress,
            current_step=current_step,
            message=message,
        )
        self.events.append(event)
        logger.debug(
            "Progress %d%% %s", event.progress, current_step,
            extra={"analysis_id": self.analysis_id},
        )

        if self.callback is not None:
            try:
                result = self.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("Progress callback failed: %s", e)
        return event


@dataclass
class RunAccumulator:
    """Running totals across the repositories of one run."""

    files_analyzed: int = 0
    findings_count: int = 0
    findings_by_severity: dict[str, int] = field(default_factory=empty_severity_counts)
    findings_by_category: dict[str, int] = field(default_factory=dict)
    security_sum: float = 0.0
    maintainability_sum: float = 0.0
    tech_debt_sum: float = 0.0
    acquired: int = 0

    def add_files(self, count: int) -> None:
        self.files_analyzed += count

    def add_review(self, review: CodeReview) -> None:
        self.findings_count += len(review.findings)
        for severity, count in count_by_severity(review.findings).items():
            self.findings_by_severity[severity] += count
        for category, count in count_by_category(review.findings).items():
            self.findings_by_category[category] = self.findings_by_category.get(category, 0) + count
        self.security_sum += review.scores.security
        self.maintainability_sum += review.scores.maintainability
        self.tech_debt_sum += review.scores.tech_debt

    def to_results(self) -> AnalysisResults:
        """Average scores over acquired repositories.

        Raises:
            ZeroDivisionError: If no repository was acquired
        """
        return AnalysisResults(
            files_analyzed=self.files_analyzed,
            findings_count=self.findings_count,
            findings_by_severity=dict(self.findings_by_severity),
            findings_by_category=dict(self.findings_by_category),
            security_score=round_half_up(self.security_sum / self.acquired),
            maintainability_score=round_half_up(self.maintainability_sum / self.acquired),
            tech_debt_score=round_half_up(self.tech_debt_sum / self.acquired),
        )


class AnalysisOrchestrator:
    """Run Analyses against their Codebase's repositories.

    The orchestrator is the sole writer of Codebase, Repository and
    Analysis status while a run is in flight.

    Usage:
        orchestrator = AnalysisOrchestrator(acquirer, coordinator, stores)
        await orchestrator.run_analysis(analysis_id, on_progress=print)
    """

    def __init__(
        self,
        acquirer: RepositoryAcquirer,
        coordinator: AiAnalysisCoordinator,
        stores: Stores,
        settings: AnalysisSettings | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            acquirer: Clones and scans repositories
            coordinator: Reviews scanned files
            stores: Codebase, Repository, Analysis and Finding stores
            settings: Concurrency and default scan limits
        """
        self.acquirer = acquirer
        self.coordinator = coordinator
        self.stores = stores
        self.settings = settings or AnalysisSettings()

    async def run_analysis(
        self,
        analysis_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> Analysis:
        """Execute one queued Analysis.

        Never raises for run failures: those end the Analysis ``failed``
        with an error message and the Codebase back in ``ready``. An
        Analysis that is no longer ``queued`` is returned untouched.

        Args:
            analysis_id: Analysis to run (status ``queued``)
            on_progress: Called with every ProgressEvent (sync or async)

        Returns:
            The Analysis as stored after the run
        """
        reporter = ProgressReporter(analysis_id, on_progress)
        analysis = await self.stores.analyses.get(analysis_id)
        codebase_id = analysis.codebase_id
        log_extra = {"analysis_id": analysis_id}
        codebase_claimed = False

        if analysis.status == AnalysisStatus.CANCELLED:
            logger.info("Analysis was cancelled before it started", extra=log_extra)
            await reporter.emit(0, "Analysis cancelled", status=AnalysisStatus.CANCELLED)
            return analysis

        if analysis.status != AnalysisStatus.QUEUED:
            logger.warning(
                "Not running analysis %s: status is %s, expected queued",
                analysis_id,
                analysis.status.value,
                extra=log_extra,
            )
            return analysis

        try:
            try:
                analysis = await self.stores.analyses.start(analysis_id)
            except InvalidTransitionError as e:
                # Another caller started it between the status check and here
                logger.warning("Not running analysis %s: %s", analysis_id, e, extra=log_extra)
                return await self.stores.analyses.get(analysis_id)
            await self.stores.codebases.update_status(codebase_id, CodebaseStatus.ANALYZING)
            codebase_claimed = True
            await reporter.emit(PROGRESS_START, "Starting analysis")
            logger.info(
                "Starting %s analysis of codebase %s", analysis.type.value, codebase_id,
                extra=log_extra,
            )

            targets = await self._resolve_targets(analysis)
            codebase = await self.stores.codebases.get(codebase_id)
            accumulator = await self._process_repositories(
                analysis, targets, reporter, codebase.settings.exclude_patterns
            )

            if accumulator.acquired == 0:
                raise AllRepositoriesFailedError(len(targets))

            await reporter.emit(PROGRESS_FINALIZING, "Finalizing results")
            results = accumulator.to_results()
            summary = build_summary(
                results.findings_count,
                results.findings_by_severity,
                results.findings_by_category,
                security_score=results.security_score,
                maintainability_score=results.maintainability_score,
            )

            await self._raise_if_cancelled(analysis_id)
            analysis = await self.stores.analyses.complete(analysis_id, results, summary)
            await self._release_codebase(codebase_id, analysis_completed=True)
            await reporter.emit(
                PROGRESS_COMPLETE, "Analysis complete", status=AnalysisStatus.COMPLETED
            )
            logger.info(
                "Analysis complete: %d findings across %d of %d repositories",
                results.findings_count,
                accumulator.acquired,
                len(targets),
                extra=log_extra,
            )
            return analysis

        except AnalysisCancelledError:
            logger.info("Analysis cancelled", extra=log_extra)
            if codebase_claimed:
                await self._release_codebase(codebase_id)
            await reporter.emit(
                reporter.progress, "Analysis cancelled", status=AnalysisStatus.CANCELLED
            )
            return await self.stores.analyses.get(analysis_id)

        except Exception as e:
            logger.error("Analysis failed: %s", e, extra=log_extra)
            analysis = await self._mark_failed(analysis_id, str(e) or type(e).__name__)
            if codebase_claimed:
                await self._release_codebase(codebase_id)
            step = (
                "Analysis cancelled"
                if analysis.status == AnalysisStatus.CANCELLED
                else "Analysis failed"
            )
            await reporter.emit(reporter.progress, step, status=analysis.status, message=str(e))
            return analysis

    # -------------------------------------------------------------------------
    # Targets and repository processing
    # -------------------------------------------------------------------------

    async def _resolve_targets(self, analysis: Analysis) -> list[Repository]:
        """Intersect configured targets with the codebase's repositories.

        Raises:
            NoTargetsError: If nothing is left to analyze
        """
        repositories = await self.stores.repositories.list_by_codebase(analysis.codebase_id)
        wanted = analysis.config.target_repositories
        if wanted:
            by_id = {repository.id: repository for repository in repositories}
            targets = [by_id[repo_id] for repo_id in wanted if repo_id in by_id]
            missing = [repo_id for repo_id in wanted if repo_id not in by_id]
            if missing:
                logger.warning(
                    "Ignoring target repositories not in codebase %s: %s",
                    analysis.codebase_id,
                    ", ".join(missing),
                )
        else:
            targets = repositories

        if not targets:
            raise NoTargetsError(analysis.codebase_id)
        return targets

    async def _process_repositories(
        self,
        analysis: Analysis,
        targets: list[Repository],
        reporter: ProgressReporter,
        exclude_patterns: list[str] | None = None,
    ) -> RunAccumulator:
        accumulator = RunAccumulator()
        total = len(targets)

        if self.settings.max_concurrent_repositories <= 1 or total == 1:
            for index, repository in enumerate(targets):
                await self._raise_if_cancelled(analysis.id)
                await self._process_repository(
                    analysis, repository, index, total, reporter, accumulator,
                    exclude_patterns,
                )
            return accumulator

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_repositories)
        lock = asyncio.Lock()

        async def worker(index: int, repository: Repository) -> None:
            async with semaphore:
                await self._raise_if_cancelled(analysis.id)
                await self._process_repository(
                    analysis,
                    repository,
                    index,
                    total,
                    reporter,
                    accumulator,
                    exclude_patterns,
                    lock,
                )

        tasks = [
            asyncio.create_task(worker(index, repository))
            for index, repository in enumerate(targets)
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return accumulator

    async def _process_repository(
        self,
        analysis: Analysis,
        repository: Repository,
        index: int,
        total: int,
        reporter: ProgressReporter,
        accumulator: RunAccumulator,
        exclude_patterns: list[str] | None = None,
        lock: asyncio.Lock | None = None,
    ) -> None:
        """Acquire, scan, review and persist one repository.

        Acquisition and scan failures leave the repository in ``error`` and
        return without touching the accumulator.
        """
        lock = lock or asyncio.Lock()
        base_progress = PROGRESS_REPOSITORIES_START + (index * PROGRESS_REPOSITORIES_SPAN) // total
        await reporter.emit(base_progress, f"Analyzing repository: {repository.name}")

        await self.stores.repositories.update_status(repository.id, RepositoryStatus.CLONING)
        acquired_ok = False
        try:
            async with self.acquirer.checkout(repository) as acquired:
                acquired_ok = True
                try:
                    scan = await self.acquirer.scan(
                        acquired.local_path,
                        repository.max_file_size(self.settings.max_file_size),
                        (exclude_patterns or [])
                        + repository.analysis_config.exclude_patterns,
                    )
                except (AcquisitionError, OSError) as e:
                    logger.error("Failed to scan repository %s: %s", repository.name, e)
                    await self.stores.repositories.update_status(
                        repository.id, RepositoryStatus.ERROR
                    )
                    return

                await self.stores.repositories.update_status(
                    repository.id, RepositoryStatus.READY
                )
                await self.stores.repositories.update_metadata(
                    repository.id,
                    RepositoryMetadata(
                        total_files=scan.total_files,
                        total_lines=scan.total_lines,
                        language_histogram=scan.language_histogram,
                        last_commit=acquired.commit_hash,
                        last_commit_date=acquired.commit_date,
                    ),
                )
                async with lock:
                    accumulator.acquired += 1
                    accumulator.add_files(scan.total_files)

                await reporter.emit(
                    base_progress + PROGRESS_REVIEW_OFFSET, f"AI analyzing: {repository.name}"
                )
                review = await self.coordinator.analyze_code(
                    scan.files,
                    analysis.type,
                    repository.id,
                    analysis.id,
                    should_cancel=lambda: self._is_cancelled(analysis.id),
                )
                if review.cancelled:
                    raise AnalysisCancelledError(analysis.id)

                await self.stores.findings.create_batch(review.findings)
                async with lock:
                    accumulator.add_review(review)
        except (AcquisitionError, OSError) as e:
            if acquired_ok:
                raise
            logger.error("Failed to acquire repository %s: %s", repository.name, e)
            await self.stores.repositories.update_status(repository.id, RepositoryStatus.ERROR)

    # -------------------------------------------------------------------------
    # Status helpers
    # -------------------------------------------------------------------------

    async def _is_cancelled(self, analysis_id: str) -> bool:
        analysis = await self.stores.analyses.get(analysis_id)
        return analysis.status == AnalysisStatus.CANCELLED

    async def _raise_if_cancelled(self, analysis_id: str) -> None:
        if await self._is_cancelled(analysis_id):
            raise AnalysisCancelledError(analysis_id)

    async def _mark_failed(self, analysis_id: str, message: str) -> Analysis:
        """Fail the Analysis unless it already reached a terminal state."""
        analysis = await self.stores.analyses.get(analysis_id)
        if analysis.status.is_terminal:
            logger.warning(
                "Analysis %s already %s; not marking failed", analysis_id, analysis.status.value
            )
            return analysis
        return await self.stores.analyses.fail(analysis_id, message)

    async def _release_codebase(self, codebase_id: str, analysis_completed: bool = False) -> None:
        """Return the Codebase to ``ready`` after the Analysis terminated."""
        await self.stores.codebases.update_status(codebase_id, CodebaseStatus.READY)
        if analysis_completed:
            codebase = await self.stores.codebases.get(codebase_id)
            codebase.metadata.last_analysis_at = utc_now()
            await self.stores.codebases.update_metadata(codebase_id, codebase.metadata)
