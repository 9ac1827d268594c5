"""Shared pytest fixtures for CodeForge tests.

This module provides common fixtures used across unit and integration
tests. Fixtures are organized by category:
- Store fixtures: Fresh in-memory and SQLite record stores
- Pipeline fixtures: Fake acquirer, scripted reviewer and wired components
- Configuration fixtures: Config dictionaries for various scenarios
"""

import logging
from pathlib import Path
from typing import Any

import pytest

from codeforge.config import AnalysisSettings
from codeforge.coordinator import AiAnalysisCoordinator
from codeforge.orchestrator import AnalysisOrchestrator
from codeforge.store import Database, Stores, create_memory_stores, create_sqlite_stores
from tests.fixtures import FakeAcquirer, ScriptedReviewer


@pytest.fixture(autouse=True)
def reset_codeforge_logger():
    """Undo logging setup done by a test (CLI callback, setup_logging)."""
    yield
    logger = logging.getLogger("codeforge")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def stores() -> Stores:
    """Return an empty set of in-memory stores."""
    return create_memory_stores()


@pytest.fixture
async def database():
    """Yield a connected in-memory SQLite database."""
    db = Database(":memory:")
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def sqlite_stores(database: Database) -> Stores:
    """Return stores backed by the in-memory SQLite database."""
    return create_sqlite_stores(database)


# =============================================================================
# Pipeline Fixtures
# =============================================================================


@pytest.fixture
def acquirer() -> FakeAcquirer:
    """Return a fake acquirer with no scripted files."""
    return FakeAcquirer()


@pytest.fixture
def reviewer() -> ScriptedReviewer:
    """Return a reviewer that reports nothing."""
    return ScriptedReviewer()


@pytest.fixture
def coordinator(reviewer: ScriptedReviewer) -> AiAnalysisCoordinator:
    """Return a coordinator over the scripted reviewer."""
    return AiAnalysisCoordinator(reviewer, batch_size=10)


@pytest.fixture
def orchestrator(
    acquirer: FakeAcquirer,
    coordinator: AiAnalysisCoordinator,
    stores: Stores,
) -> AnalysisOrchestrator:
    """Return a sequential orchestrator over the fakes and in-memory stores."""
    return AnalysisOrchestrator(acquirer, coordinator, stores, AnalysisSettings())


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def full_config() -> dict[str, Any]:
    """Return a configuration dictionary with every section set."""
    return {
        "llm": {
            "provider": "ollama",
            "model": "llama3.2",
            "api_base": "http://localhost:11434",
            "max_tokens": 2048,
            "summary_max_tokens": 512,
        },
        "analysis": {
            "batch_size": 5,
            "max_chars_per_file": 2000,
            "max_file_size": 50000,
            "max_concurrent_repositories": 2,
        },
        "git": {
            "work_dir": "/tmp/codeforge-test-repos",
            "clone_timeout": 60,
            "default_branch": "develop",
        },
        "storage": {"database": ":memory:"},
        "logging": {"mode": "json", "level": "debug"},
    }


@pytest.fixture
def temp_config_dir(tmp_path: Path) -> Path:
    """Create a temporary .codeforge configuration directory."""
    config_dir = tmp_path / ".codeforge"
    config_dir.mkdir()
    return config_dir
