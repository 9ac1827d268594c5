"""Codebase entity: a tenant-owned grouping of repositories analyzed together."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from codeforge.models.status import CodebaseStatus

VALID_ANALYSIS_DEPTHS = frozenset({"shallow", "standard", "deep"})


def isoformat_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class CodebaseMetadata:
    """Aggregated metadata maintained by ingestion and analysis runs.

    Attributes:
        total_files: Files counted at the last ingestion
        total_lines: Lines counted at the last ingestion
        language_histogram: Language name -> percentage share of lines
        last_ingestion_at: Completion time of the last successful ingestion
        last_analysis_at: Completion time of the last completed Analysis
    """

    total_files: int = 0
    total_lines: int = 0
    language_histogram: dict[str, int] = field(default_factory=dict)
    last_ingestion_at: datetime | None = None
    last_analysis_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "totalFiles": self.total_files,
            "totalLines": self.total_lines,
            "languageHistogram": dict(self.language_histogram),
            "lastIngestionAt": isoformat_or_none(self.last_ingestion_at),
            "lastAnalysisAt": isoformat_or_none(self.last_analysis_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CodebaseMetadata":
        """Create metadata from its serialized form."""
        data = data or {}
        return cls(
            total_files=int(data.get("totalFiles", 0)),
            total_lines=int(data.get("totalLines", 0)),
            language_histogram=dict(data.get("languageHistogram") or {}),
            last_ingestion_at=parse_datetime(data.get("lastIngestionAt")),
            last_analysis_at=parse_datetime(data.get("lastAnalysisAt")),
        )


@dataclass
class CodebaseSettings:
    """User-controlled analysis settings for a Codebase."""

    auto_analyze: bool = False
    analysis_depth: str = "standard"
    exclude_patterns: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate analysis depth."""
        if self.analysis_depth not in VALID_ANALYSIS_DEPTHS:
            raise ValueError(
                f"Invalid analysis depth: {self.analysis_depth}. "
                f"Valid: {sorted(VALID_ANALYSIS_DEPTHS)}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "autoAnalyze": self.auto_analyze,
            "analysisDepth": self.analysis_depth,
            "excludePatterns": list(self.exclude_patterns),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CodebaseSettings":
        """Create settings from their serialized form."""
        data = data or {}
        return cls(
            auto_analyze=bool(data.get("autoAnalyze", False)),
            analysis_depth=data.get("analysisDepth", "standard"),
            exclude_patterns=list(data.get("excludePatterns") or []),
        )


@dataclass
class Codebase:
    """A logical product or portfolio unit owned by a tenant.

    Attributes:
        name: Display name
        tenant_id: Owning tenant
        id: Unique identifier
        description: Optional free text
        status: Lifecycle status (see models.status)
        metadata: Aggregated file/line counts and timestamps
        settings: Analysis settings
        created_at: Creation timestamp (UTC)
    """

    name: str
    tenant_id: str = "default"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: str | None = None
    status: CodebaseStatus = CodebaseStatus.PENDING
    metadata: CodebaseMetadata = field(default_factory=CodebaseMetadata)
    settings: CodebaseSettings = field(default_factory=CodebaseSettings)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "tenantId": self.tenant_id,
            "description": self.description,
            "status": self.status.value,
            "metadata": self.metadata.to_dict(),
            "settings": self.settings.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }
