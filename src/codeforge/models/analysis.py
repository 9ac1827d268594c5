"""Analysis run entities.

This module contains entities related to one execution of the pipeline:
- AnalysisType: Focus of the run (full, security, dead code, ...)
- AnalysisConfig: Depth, target repositories and playbook references
- AnalysisResults: Aggregated counts and averaged scores
- AnalysisSummary: Human-readable overview, key findings, recommendations
- Analysis: The execution record itself
- ProgressEvent: One progress notification emitted during a run
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from codeforge.models.codebase import VALID_ANALYSIS_DEPTHS, isoformat_or_none
from codeforge.models.finding import FindingSeverity
from codeforge.models.status import AnalysisStatus


class AnalysisType(Enum):
    """Focus of an Analysis run."""

    FULL = "full"
    INCREMENTAL = "incremental"
    SECURITY = "security"
    DEPENDENCIES = "dependencies"
    DEAD_CODE = "dead_code"
    ARCHITECTURE = "architecture"


def empty_severity_counts() -> dict[str, int]:
    """Return a zero count for every severity, in severity order."""
    return {severity.value: 0 for severity in FindingSeverity}


@dataclass
class AnalysisConfig:
    """Run configuration supplied by the trigger.

    Attributes:
        depth: shallow, standard or deep
        target_repositories: Repository ids to analyze (empty means all)
        playbooks: Referenced playbook ids (catalog only, never executed)
    """

    depth: str = "standard"
    target_repositories: list[str] = field(default_factory=list)
    playbooks: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate depth."""
        if self.depth not in VALID_ANALYSIS_DEPTHS:
            raise ValueError(
                f"Invalid analysis depth: {self.depth}. Valid: {sorted(VALID_ANALYSIS_DEPTHS)}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "depth": self.depth,
            "targetRepositories": list(self.target_repositories),
            "playbooks": list(self.playbooks),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AnalysisConfig":
        """Create config from its serialized form."""
        data = data or {}
        return cls(
            depth=data.get("depth", "standard"),
            target_repositories=list(data.get("targetRepositories") or []),
            playbooks=list(data.get("playbooks") or []),
        )


@dataclass
class AnalysisResults:
    """Aggregated results of a completed run.

    Invariant: ``findings_count == sum(findings_by_severity.values())``.
    """

    files_analyzed: int = 0
    findings_count: int = 0
    findings_by_severity: dict[str, int] = field(default_factory=empty_severity_counts)
    findings_by_category: dict[str, int] = field(default_factory=dict)
    tech_debt_score: int = 100
    security_score: int = 100
    maintainability_score: int = 100

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "filesAnalyzed": self.files_analyzed,
            "findingsCount": self.findings_count,
            "findingsBySeverity": dict(self.findings_by_severity),
            "findingsByCategory": dict(self.findings_by_category),
            "techDebtScore": self.tech_debt_score,
            "securityScore": self.security_score,
            "maintainabilityScore": self.maintainability_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResults":
        """Create results from their serialized form."""
        return cls(
            files_analyzed=int(data.get("filesAnalyzed", 0)),
            findings_count=int(data.get("findingsCount", 0)),
            findings_by_severity=dict(data.get("findingsBySeverity") or empty_severity_counts()),
            findings_by_category=dict(data.get("findingsByCategory") or {}),
            tech_debt_score=int(data.get("techDebtScore", 100)),
            security_score=int(data.get("securityScore", 100)),
            maintainability_score=int(data.get("maintainabilityScore", 100)),
        )


@dataclass
class AnalysisSummary:
    """Human-readable summary of a run or of one repository review."""

    overview: str
    key_findings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    estimated_effort: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "overview": self.overview,
            "keyFindings": list(self.key_findings),
            "recommendations": list(self.recommendations),
            "estimatedEffort": self.estimated_effort,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisSummary":
        """Create a summary from its serialized form."""
        return cls(
            overview=str(data.get("overview", "")),
            key_findings=[str(item) for item in data.get("keyFindings") or []],
            recommendations=[str(item) for item in data.get("recommendations") or []],
            estimated_effort=str(data.get("estimatedEffort", "")),
        )


@dataclass
class Analysis:
    """One execution record of the pipeline against a Codebase.

    ``results``/``summary`` are set only when status is ``completed`` and
    ``error_message`` only when status is ``failed``.
    """

    codebase_id: str
    type: AnalysisType = AnalysisType.FULL
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: AnalysisStatus = AnalysisStatus.QUEUED
    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    results: AnalysisResults | None = None
    summary: AnalysisSummary | None = None
    error_message: str | None = None
    triggered_by: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "codebaseId": self.codebase_id,
            "type": self.type.value,
            "status": self.status.value,
            "config": self.config.to_dict(),
            "startedAt": isoformat_or_none(self.started_at),
            "completedAt": isoformat_or_none(self.completed_at),
            "results": self.results.to_dict() if self.results else None,
            "summary": self.summary.to_dict() if self.summary else None,
            "errorMessage": self.error_message,
            "triggeredBy": self.triggered_by,
            "createdAt": self.created_at.isoformat(),
        }

    @property
    def duration_seconds(self) -> float | None:
        """Wall-clock duration of a finished run."""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification for an Analysis run.

    Attributes:
        analysis_id: Run the event belongs to
        status: Analysis status at emission time
        progress: Percentage 0-100, non-decreasing within a run
        current_step: Short description of the current step
        message: Optional detail (error text on failure)
    """

    analysis_id: str
    status: AnalysisStatus
    progress: int
    current_step: str
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "analysisId": self.analysis_id,
            "status": self.status.value,
            "progress": self.progress,
            "currentStep": self.current_step,
            "message": self.message,
        }
