"""Status enumerations and lifecycle state machines.

Each entity has a closed set of statuses and an explicit table of allowed
transitions. Stores call ``check_transition`` before persisting a status
change so an illegal move never reaches the database.
"""

from enum import Enum

from codeforge.errors import PipelineError


class CodebaseStatus(Enum):
    """Lifecycle status of a Codebase."""

    PENDING = "pending"
    INGESTING = "ingesting"
    ANALYZING = "analyzing"
    READY = "ready"
    ERROR = "error"


class RepositoryStatus(Enum):
    """Outcome of the most recent acquisition attempt of a Repository."""

    PENDING = "pending"
    CLONING = "cloning"
    READY = "ready"
    ERROR = "error"
    STALE = "stale"  # declared externally, never produced by the pipeline


class AnalysisStatus(Enum):
    """Status of one Analysis run."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return True for states that never transition further."""
        return self in TERMINAL_ANALYSIS_STATUSES


TERMINAL_ANALYSIS_STATUSES = frozenset(
    {AnalysisStatus.COMPLETED, AnalysisStatus.FAILED, AnalysisStatus.CANCELLED}
)

# `error` is reachable from every Codebase state
CODEBASE_TRANSITIONS: dict[CodebaseStatus, frozenset[CodebaseStatus]] = {
    CodebaseStatus.PENDING: frozenset({CodebaseStatus.INGESTING, CodebaseStatus.ANALYZING}),
    CodebaseStatus.INGESTING: frozenset({CodebaseStatus.READY, CodebaseStatus.ANALYZING}),
    CodebaseStatus.ANALYZING: frozenset({CodebaseStatus.READY}),
    CodebaseStatus.READY: frozenset({CodebaseStatus.ANALYZING, CodebaseStatus.INGESTING}),
    CodebaseStatus.ERROR: frozenset(
        {CodebaseStatus.READY, CodebaseStatus.ANALYZING, CodebaseStatus.INGESTING}
    ),
}

# `cloning` is reachable from every Repository state
REPOSITORY_TRANSITIONS: dict[RepositoryStatus, frozenset[RepositoryStatus]] = {
    RepositoryStatus.PENDING: frozenset(),
    RepositoryStatus.CLONING: frozenset({RepositoryStatus.READY, RepositoryStatus.ERROR}),
    RepositoryStatus.READY: frozenset({RepositoryStatus.STALE}),
    RepositoryStatus.ERROR: frozenset(),
    RepositoryStatus.STALE: frozenset(),
}

ANALYSIS_TRANSITIONS: dict[AnalysisStatus, frozenset[AnalysisStatus]] = {
    AnalysisStatus.QUEUED: frozenset(
        {AnalysisStatus.RUNNING, AnalysisStatus.FAILED, AnalysisStatus.CANCELLED}
    ),
    AnalysisStatus.RUNNING: frozenset(TERMINAL_ANALYSIS_STATUSES),
    AnalysisStatus.COMPLETED: frozenset(),
    AnalysisStatus.FAILED: frozenset(),
    AnalysisStatus.CANCELLED: frozenset(),
}


class InvalidTransitionError(PipelineError):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, entity: str, current: Enum, target: Enum) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid {entity} status transition: {current.value} -> {target.value}"
        )


def can_transition(current: Enum, target: Enum) -> bool:
    """Check whether ``current -> target`` is allowed.

    Re-asserting the current status is always allowed for Codebase and
    Repository (idempotent writes), never for a terminal Analysis.

    Args:
        current: Current status
        target: Requested status

    Returns:
        True if the transition is permitted
    """
    if isinstance(current, CodebaseStatus) and isinstance(target, CodebaseStatus):
        if target in (current, CodebaseStatus.ERROR):
            return True
        return target in CODEBASE_TRANSITIONS[current]

    if isinstance(current, RepositoryStatus) and isinstance(target, RepositoryStatus):
        if target in (current, RepositoryStatus.CLONING):
            return True
        return target in REPOSITORY_TRANSITIONS[current]

    if isinstance(current, AnalysisStatus) and isinstance(target, AnalysisStatus):
        return target in ANALYSIS_TRANSITIONS[current]

    return False


def check_transition(entity: str, current: Enum, target: Enum) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(entity, current, target)
