"""Prompt templates for code review batches and review summaries.

Each batch prompt combines a focus block chosen by analysis type, a fixed
output contract, and the file excerpts. File content is cut at
``max_chars_per_file`` characters before submission: issues that only occur
past the cut are never seen by the reviewer.
"""

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING

from codeforge.models import AnalysisType, FindingCategory, FindingSeverity

if TYPE_CHECKING:
    from codeforge.acquisition import SourceFile
    from codeforge.models import Finding

DEFAULT_MAX_CHARS_PER_FILE = 5000

REVIEWER_SYSTEM_PROMPT = (
    "You are a senior software engineer performing a code analysis. "
    "You answer with JSON only, exactly in the shape requested."
)

# =============================================================================
# Focus blocks per analysis type
# =============================================================================

_COMPREHENSIVE_FOCUS = """Perform a comprehensive analysis covering:
- Security vulnerabilities
- Code quality issues
- Performance problems
- Maintainability concerns
- Best practice violations
- Technical debt"""

FOCUS_INSTRUCTIONS: dict[AnalysisType, str] = {
    AnalysisType.SECURITY: """Focus on security vulnerabilities:
- SQL injection, XSS, CSRF vulnerabilities
- Hardcoded secrets, API keys, passwords
- Insecure authentication/authorization
- Missing input validation
- Insecure dependencies (check import statements)
- Sensitive data exposure""",
    AnalysisType.DEAD_CODE: """Focus on dead code detection:
- Unused functions and methods
- Unreachable code blocks
- Unused imports and variables
- Commented-out code blocks
- Deprecated API usage""",
    AnalysisType.DEPENDENCIES: """Focus on dependency issues:
- Outdated package imports
- Potentially vulnerable dependencies
- Unnecessary dependencies
- Dependency conflicts
- Missing type definitions""",
    AnalysisType.ARCHITECTURE: """Focus on architectural issues:
- Circular dependencies
- God classes/functions (too much responsibility)
- Missing abstractions
- Tight coupling between modules
- Violation of SOLID principles
- Missing error handling patterns""",
    AnalysisType.FULL: _COMPREHENSIVE_FOCUS,
    AnalysisType.INCREMENTAL: _COMPREHENSIVE_FOCUS,
}


def get_focus_instructions(analysis_type: AnalysisType) -> str:
    """Get the focus block for an analysis type (comprehensive by default)."""
    return FOCUS_INSTRUCTIONS.get(analysis_type, _COMPREHENSIVE_FOCUS)


def _quoted(values: Sequence[str]) -> str:
    return ", ".join(f'"{value}"' for value in values)


OUTPUT_CONTRACT = f"""For each finding, provide a JSON object with these fields:
- title: Brief title of the issue
- description: Detailed explanation
- severity: One of {_quoted([s.value for s in FindingSeverity])}
- category: One of {_quoted([c.value for c in FindingCategory])}
- filePath: The file path where the issue was found
- lineStart: Starting line number (approximate)
- lineEnd: Ending line number (approximate)
- suggestedFix: Object with "description" field explaining how to fix it

Return your findings as a JSON array. Only return the JSON array, no other text.
If there are no issues, return []."""


# =============================================================================
# Prompt builders
# =============================================================================


def format_file_excerpt(source_file: "SourceFile", max_chars: int) -> str:
    """Render one file as a headed, fenced block cut to ``max_chars``."""
    excerpt = source_file.content[:max_chars]
    return (
        f"### File: {source_file.path} ({source_file.language})\n"
        f"```{source_file.language}\n{excerpt}\n```"
    )


def build_batch_prompt(
    files: Sequence["SourceFile"],
    analysis_type: AnalysisType,
    max_chars_per_file: int = DEFAULT_MAX_CHARS_PER_FILE,
) -> str:
    """Build the review prompt for one batch of files.

    Args:
        files: Files in the batch
        analysis_type: Focus of the run
        max_chars_per_file: Per-file character budget (longer files are cut)

    Returns:
        Prompt text
    """
    file_contents = "\n\n".join(
        format_file_excerpt(source_file, max_chars_per_file) for source_file in files
    )

    return (
        "Analyze the following code files and identify issues.\n\n"
        f"{get_focus_instructions(analysis_type)}\n\n"
        f"{OUTPUT_CONTRACT}\n\n"
        f"{file_contents}"
    )


def build_summary_prompt(
    findings: Sequence["Finding"],
    severity_counts: dict[str, int],
    category_counts: dict[str, int],
    top_n: int = 5,
) -> str:
    """Build the executive-summary prompt for one repository review.

    Args:
        findings: All findings of the review, most important first
        severity_counts: Severity -> count
        category_counts: Category -> count
        top_n: Number of findings quoted in the prompt

    Returns:
        Prompt text asking for a single JSON object
    """
    severity_lines = "\n".join(
        f"- {severity_counts.get(severity.value, 0)} {severity.value} severity issues"
        for severity in FindingSeverity
    )
    top_findings = "\n".join(
        f"- {finding.title}: {finding.description[:100]}" for finding in findings[:top_n]
    )

    return f"""Based on a code analysis that found:
{severity_lines}

Categories: {json.dumps(category_counts, sort_keys=True)}

Top findings:
{top_findings or "- (none)"}

Generate a brief executive summary as JSON with these fields:
- overview: 2-3 sentence overview
- keyFindings: Array of 3-5 key findings (strings)
- recommendations: Array of 3-5 prioritized recommendations (strings)
- estimatedEffort: Estimated remediation effort (e.g., "2-3 weeks")

Return only the JSON object."""
