"""CodeForge data models.

This module exports the entities the analysis pipeline reads and writes:
- Codebase: Tenant-owned grouping of repositories
- Repository: One version-control source within a Codebase
- Analysis: One execution record of the pipeline
- Finding: One detected issue
- ProgressEvent: Progress notification for a running Analysis
- Status enums and the lifecycle state machines
"""

from codeforge.models.analysis import (
    Analysis,
    AnalysisConfig,
    AnalysisResults,
    AnalysisSummary,
    AnalysisType,
    ProgressEvent,
    empty_severity_counts,
)
from codeforge.models.codebase import Codebase, CodebaseMetadata, CodebaseSettings
from codeforge.models.finding import (
    Finding,
    FindingCategory,
    FindingSeverity,
    FindingStatus,
    SuggestedFix,
)
from codeforge.models.llm_config import LLMConfig
from codeforge.models.repository import (
    Repository,
    RepositoryAnalysisConfig,
    RepositoryCredentials,
    RepositoryMetadata,
    RepositoryProvider,
)
from codeforge.models.status import (
    AnalysisStatus,
    CodebaseStatus,
    InvalidTransitionError,
    RepositoryStatus,
    can_transition,
    check_transition,
)

__all__ = [
    "Analysis",
    "AnalysisConfig",
    "AnalysisResults",
    "AnalysisStatus",
    "AnalysisSummary",
    "AnalysisType",
    "Codebase",
    "CodebaseMetadata",
    "CodebaseSettings",
    "CodebaseStatus",
    "Finding",
    "FindingCategory",
    "FindingSeverity",
    "FindingStatus",
    "InvalidTransitionError",
    "LLMConfig",
    "ProgressEvent",
    "Repository",
    "RepositoryAnalysisConfig",
    "RepositoryCredentials",
    "RepositoryMetadata",
    "RepositoryProvider",
    "RepositoryStatus",
    "SuggestedFix",
    "can_transition",
    "check_transition",
    "empty_severity_counts",
]
