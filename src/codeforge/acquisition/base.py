"""Abstract repository acquirer.

An acquirer makes a repository's source available locally, lists its source
files, and releases whatever local resources acquisition produced. The
orchestrator only ever talks to this interface, so git, an archive download
or a test double are interchangeable.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from codeforge.models import Repository
from codeforge.utils.rounding import percentage_histogram


@dataclass(frozen=True)
class SourceFile:
    """One scanned source file.

    Attributes:
        path: POSIX path relative to the repository root
        content: Decoded file text
        language: Detected language
        size: Size in bytes on disk
    """

    path: str
    content: str
    language: str
    size: int

    @property
    def line_count(self) -> int:
        """Number of lines, counting a trailing partial line."""
        return len(self.content.split("\n"))


@dataclass
class AcquiredRepository:
    """Result of a successful acquisition.

    Attributes:
        local_path: Directory holding the checked-out source
        commit_hash: HEAD commit at acquisition time
        commit_date: HEAD commit timestamp
        owned: Whether ``local_path`` was created by the acquirer and must be
            removed on release (False for in-place local repositories)
    """

    local_path: Path
    commit_hash: str | None = None
    commit_date: datetime | None = None
    owned: bool = True


@dataclass
class ScanResult:
    """File listing produced by scanning an acquired repository."""

    files: list[SourceFile] = field(default_factory=list)
    lines_by_language: dict[str, int] = field(default_factory=dict)

    @property
    def total_files(self) -> int:
        """Number of scanned source files."""
        return len(self.files)

    @property
    def total_lines(self) -> int:
        """Total lines across scanned files."""
        return sum(self.lines_by_language.values())

    @property
    def language_histogram(self) -> dict[str, int]:
        """Language -> rounded percentage share of total lines."""
        return percentage_histogram(self.lines_by_language)

    def add(self, source_file: SourceFile) -> None:
        """Append a file and account for its lines."""
        self.files.append(source_file)
        self.lines_by_language[source_file.language] = (
            self.lines_by_language.get(source_file.language, 0) + source_file.line_count
        )


class RepositoryAcquirer(ABC):
    """Interface for making repository source available to the pipeline."""

    @abstractmethod
    async def acquire(self, repository: Repository) -> AcquiredRepository:
        """Clone or update a repository.

        Raises:
            AcquisitionError: If the source cannot be made available
        """

    @abstractmethod
    async def scan(
        self,
        local_path: Path,
        max_file_size: int,
        exclude_patterns: list[str] | None = None,
    ) -> ScanResult:
        """List source files under ``local_path`` no larger than ``max_file_size``.

        Raises:
            AcquisitionError: If the directory cannot be read
        """

    @abstractmethod
    async def release(self, acquired: AcquiredRepository) -> None:
        """Release local resources. Must not raise."""

    @asynccontextmanager
    async def checkout(self, repository: Repository) -> AsyncIterator[AcquiredRepository]:
        """Acquire a repository for the duration of a ``async with`` block.

        Release runs even when the body raises. Nothing is released when
        acquisition itself fails.
        """
        acquired = await self.acquire(repository)
        try:
            yield acquired
        finally:
            await self.release(acquired)
