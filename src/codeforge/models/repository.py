"""Repository entity: one version-control source scoped to a Codebase.

A Repository records where its source lives (provider, remote URL, branch),
the outcome of its most recent acquisition (status) and the metadata
gathered by the last successful scan.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from codeforge.models.codebase import isoformat_or_none, parse_datetime
from codeforge.models.status import RepositoryStatus

DEFAULT_MAX_FILE_SIZE = 100_000


class RepositoryProvider(Enum):
    """Source-control provider of a Repository."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    AZURE_DEVOPS = "azure_devops"
    SVN = "svn"
    TFS = "tfs"
    PERFORCE = "perforce"
    LOCAL = "local"


@dataclass
class RepositoryCredentials:
    """Access credentials for a remote repository.

    Attributes:
        type: Credential kind (token, ssh, basic)
        encrypted_value: Base64-encoded secret; ``user:password`` for basic
    """

    type: str
    encrypted_value: str

    def __post_init__(self) -> None:
        """Validate credential type."""
        if self.type not in {"token", "ssh", "basic"}:
            raise ValueError(f"Invalid credential type: {self.type}")

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for serialization."""
        return {"type": self.type, "encryptedValue": self.encrypted_value}


@dataclass
class RepositoryMetadata:
    """Metadata persisted from acquisition and scanning."""

    total_files: int = 0
    total_lines: int = 0
    language_histogram: dict[str, int] = field(default_factory=dict)
    last_commit: str | None = None
    last_commit_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "totalFiles": self.total_files,
            "totalLines": self.total_lines,
            "languageHistogram": dict(self.language_histogram),
            "lastCommit": self.last_commit,
            "lastCommitDate": isoformat_or_none(self.last_commit_date),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RepositoryMetadata":
        """Create metadata from its serialized form."""
        data = data or {}
        return cls(
            total_files=int(data.get("totalFiles", 0)),
            total_lines=int(data.get("totalLines", 0)),
            language_histogram=dict(data.get("languageHistogram") or {}),
            last_commit=data.get("lastCommit"),
            last_commit_date=parse_datetime(data.get("lastCommitDate")),
        )


@dataclass
class RepositoryAnalysisConfig:
    """Per-repository scan settings."""

    exclude_patterns: list[str] = field(default_factory=list)
    include_paths: list[str] = field(default_factory=list)
    max_file_size: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "excludePatterns": list(self.exclude_patterns),
            "includePaths": list(self.include_paths),
            "maxFileSize": self.max_file_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RepositoryAnalysisConfig":
        """Create config from its serialized form."""
        data = data or {}
        return cls(
            exclude_patterns=list(data.get("excludePatterns") or []),
            include_paths=list(data.get("includePaths") or []),
            max_file_size=data.get("maxFileSize"),
        )


@dataclass
class Repository:
    """One version-controlled source tree within a Codebase.

    Attributes:
        codebase_id: Owning Codebase
        name: Display name (defaults to the last URL/path segment)
        provider: Source-control provider
        remote_url: Clone URL, or a filesystem path for local repositories
        branch: Branch to acquire (None means the configured default)
        id: Unique identifier
        status: Outcome of the most recent acquisition
        credentials: Optional access credentials
        metadata: Data gathered by the last successful acquisition and scan
        analysis_config: Scan settings (max file size, exclusions)
        created_at: Creation timestamp (UTC)
    """

    codebase_id: str
    name: str
    provider: RepositoryProvider
    remote_url: str
    branch: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: str | None = None
    status: RepositoryStatus = RepositoryStatus.PENDING
    credentials: RepositoryCredentials | None = None
    metadata: RepositoryMetadata = field(default_factory=RepositoryMetadata)
    analysis_config: RepositoryAnalysisConfig = field(default_factory=RepositoryAnalysisConfig)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_local(self) -> bool:
        """Check if the repository is scanned in place rather than cloned."""
        return self.provider == RepositoryProvider.LOCAL

    def max_file_size(self, default: int = DEFAULT_MAX_FILE_SIZE) -> int:
        """Return the configured scan size limit, falling back to ``default``."""
        return self.analysis_config.max_file_size or default

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "codebaseId": self.codebase_id,
            "name": self.name,
            "description": self.description,
            "provider": self.provider.value,
            "remoteUrl": self.remote_url,
            "branch": self.branch,
            "status": self.status.value,
            "metadata": self.metadata.to_dict(),
            "analysisConfig": self.analysis_config.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_url(
        cls,
        codebase_id: str,
        remote_url: str,
        provider: RepositoryProvider | None = None,
        branch: str | None = None,
        name: str | None = None,
    ) -> "Repository":
        """Create a Repository from a clone URL or local path.

        The provider is inferred from the URL host when not given; anything
        that is not an http(s), ssh or git URL is treated as a local path.

        Args:
            codebase_id: Owning Codebase
            remote_url: Clone URL or filesystem path
            provider: Explicit provider override
            branch: Branch to acquire
            name: Display name override

        Returns:
            Repository instance in ``pending`` status
        """
        if provider is None:
            provider = infer_provider(remote_url)

        if name is None:
            tail = remote_url.rstrip("/").rsplit("/", 1)[-1]
            name = tail.removesuffix(".git") or remote_url

        return cls(
            codebase_id=codebase_id,
            name=name,
            provider=provider,
            remote_url=remote_url,
            branch=branch,
        )


def infer_provider(remote_url: str) -> RepositoryProvider:
    """Infer the provider from a remote URL."""
    lowered = remote_url.lower()
    if not lowered.startswith(("http://", "https://", "ssh://", "git@", "git://")):
        return RepositoryProvider.LOCAL
    if "github.com" in lowered:
        return RepositoryProvider.GITHUB
    if "gitlab" in lowered:
        return RepositoryProvider.GITLAB
    if "bitbucket" in lowered:
        return RepositoryProvider.BITBUCKET
    if "dev.azure.com" in lowered or "visualstudio.com" in lowered:
        return RepositoryProvider.AZURE_DEVOPS
    # Self-hosted hosts take GitHub-style oauth2 token auth
    return RepositoryProvider.GITHUB
