"""Record stores for codebases, repositories, analyses and findings."""

from codeforge.store.base import (
    AnalysisStore,
    CodebaseStore,
    FindingStore,
    RepositoryStore,
    Stores,
)
from codeforge.store.memory import (
    InMemoryAnalysisStore,
    InMemoryCodebaseStore,
    InMemoryFindingStore,
    InMemoryRepositoryStore,
    create_memory_stores,
)
from codeforge.store.sqlite import Database, create_sqlite_stores

__all__ = [
    "AnalysisStore",
    "CodebaseStore",
    "Database",
    "FindingStore",
    "InMemoryAnalysisStore",
    "InMemoryCodebaseStore",
    "InMemoryFindingStore",
    "InMemoryRepositoryStore",
    "RepositoryStore",
    "Stores",
    "create_memory_stores",
    "create_sqlite_stores",
]
