"""Finding entity: one detected issue with severity, category and location."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class FindingSeverity(Enum):
    """Closed severity scale, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class FindingCategory(Enum):
    """Closed set of finding categories."""

    SECURITY = "security"
    TECHNICAL_DEBT = "technical_debt"
    DEAD_CODE = "dead_code"
    DEPENDENCY = "dependency"
    ARCHITECTURE = "architecture"
    PERFORMANCE = "performance"
    MAINTAINABILITY = "maintainability"
    CONSOLIDATION = "consolidation"
    COMPLIANCE = "compliance"


class FindingStatus(Enum):
    """Triage status. Set to ``open`` at creation; only users change it."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    IGNORED = "ignored"
    FALSE_POSITIVE = "false_positive"


@dataclass
class SuggestedFix:
    """Remediation suggestion attached to a finding.

    Attributes:
        description: How to fix the issue
        diff: Optional patch text
        playbook: Optional playbook id (not executed by this system)
    """

    description: str
    diff: str | None = None
    playbook: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"description": self.description, "diff": self.diff, "playbook": self.playbook}

    @classmethod
    def from_value(cls, value: Any) -> "SuggestedFix | None":
        """Build from a reviewer value: a dict, a plain string, or nothing."""
        if isinstance(value, str):
            return cls(description=value) if value.strip() else None
        if isinstance(value, dict):
            description = value.get("description")
            if not description:
                return None
            return cls(
                description=str(description),
                diff=value.get("diff"),
                playbook=value.get("playbook"),
            )
        return None


@dataclass
class Finding:
    """One issue instance produced by a review batch.

    Findings are immutable once created except for ``status``.

    Attributes:
        title: Short title
        description: Detailed explanation
        severity: Canonical severity
        category: Canonical category
        repository_id: Owning Repository
        analysis_id: Analysis run that produced it
        file_path: File where the issue was found
        line_start: First line (approximate, from the reviewer)
        line_end: Last line (approximate, from the reviewer)
        suggested_fix: Remediation suggestion
        tags: Free-form labels
        status: Triage status
        id: Unique identifier
        created_at: Creation timestamp (UTC)
    """

    title: str
    description: str
    severity: FindingSeverity
    category: FindingCategory
    repository_id: str
    analysis_id: str
    file_path: str | None = None
    line_start: int | None = None
    line_end: int | None = None
    suggested_fix: SuggestedFix | None = None
    tags: list[str] = field(default_factory=list)
    status: FindingStatus = FindingStatus.OPEN
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "category": self.category.value,
            "status": self.status.value,
            "filePath": self.file_path,
            "lineStart": self.line_start,
            "lineEnd": self.line_end,
            "suggestedFix": self.suggested_fix.to_dict() if self.suggested_fix else None,
            "tags": list(self.tags),
            "repositoryId": self.repository_id,
            "analysisId": self.analysis_id,
            "createdAt": self.created_at.isoformat(),
        }
