"""Error taxonomy for the analysis pipeline.

Recoverable errors (acquisition, scan, reviewer) are absorbed where they
originate. Run-fatal errors propagate to the orchestrator's outermost handler,
which marks the Analysis failed and restores the Codebase to ready.
"""


class PipelineError(Exception):
    """Base class for all analysis pipeline errors."""


class NoTargetsError(PipelineError):
    """Raised when an Analysis resolves zero target repositories."""

    def __init__(self, codebase_id: str) -> None:
        self.codebase_id = codebase_id
        super().__init__(f"No repositories to analyze for codebase {codebase_id}")


class AllRepositoriesFailedError(PipelineError):
    """Raised when every target repository failed acquisition or scanning."""

    def __init__(self, attempted: int) -> None:
        self.attempted = attempted
        super().__init__(
            f"All {attempted} target repositories failed acquisition; nothing was analyzed"
        )


class AcquisitionError(PipelineError):
    """Raised when a repository cannot be cloned, updated or scanned."""

    def __init__(self, repository_id: str, message: str) -> None:
        self.repository_id = repository_id
        self.message = message
        super().__init__(f"Acquisition failed for repository {repository_id}: {message}")


class RecordNotFoundError(PipelineError):
    """Raised by record stores when an id does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} with ID {record_id} not found")


class AnalysisCancelledError(PipelineError):
    """Raised inside a run once a cancel request has been observed."""

    def __init__(self, analysis_id: str) -> None:
        self.analysis_id = analysis_id
        super().__init__(f"Analysis {analysis_id} was cancelled")


class AnalysisInProgressError(PipelineError):
    """Raised when triggering an Analysis while another one is queued or running."""

    def __init__(self, codebase_id: str) -> None:
        self.codebase_id = codebase_id
        super().__init__(f"Codebase {codebase_id} already has an analysis in progress")
