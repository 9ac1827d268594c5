"""Finding classification, deduction scoring and deterministic summaries.

Scores start at 100 and every finding deducts points by severity weight:

- techDebt: half the weight, for every finding
- security: twice the weight, for ``security`` findings
- maintainability: the full weight, for ``maintainability`` and
  ``architecture`` findings

All scores are clamped to [0, 100].
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from codeforge.models import (
    AnalysisSummary,
    Finding,
    FindingCategory,
    FindingSeverity,
    empty_severity_counts,
)

SEVERITY_WEIGHTS: dict[FindingSeverity, int] = {
    FindingSeverity.CRITICAL: 15,
    FindingSeverity.HIGH: 10,
    FindingSeverity.MEDIUM: 5,
    FindingSeverity.LOW: 2,
    FindingSeverity.INFO: 1,
}

SECURITY_MULTIPLIER = 2.0
MAINTAINABILITY_MULTIPLIER = 1.0
TECH_DEBT_MULTIPLIER = 0.5

MAINTAINABILITY_CATEGORIES = frozenset(
    {FindingCategory.MAINTAINABILITY, FindingCategory.ARCHITECTURE}
)

SCORE_ATTENTION_THRESHOLD = 70
MAX_SUMMARY_ITEMS = 5

_SEVERITY_BY_TOKEN = {severity.value: severity for severity in FindingSeverity}
_CATEGORY_BY_TOKEN = {category.value: category for category in FindingCategory}


# =============================================================================
# Token mapping
# =============================================================================


def map_severity(token: Any) -> FindingSeverity:
    """Map a free-text severity onto the closed scale (unknown -> info)."""
    if isinstance(token, FindingSeverity):
        return token
    if not isinstance(token, str):
        return FindingSeverity.INFO
    return _SEVERITY_BY_TOKEN.get(token.strip().lower(), FindingSeverity.INFO)


def map_category(token: Any) -> FindingCategory:
    """Map a free-text category onto the closed set (unknown -> technical_debt)."""
    if isinstance(token, FindingCategory):
        return token
    if not isinstance(token, str):
        return FindingCategory.TECHNICAL_DEBT
    return _CATEGORY_BY_TOKEN.get(token.strip().lower(), FindingCategory.TECHNICAL_DEBT)


def severity_weight(severity: FindingSeverity) -> int:
    """Return the deduction weight of a severity."""
    return SEVERITY_WEIGHTS.get(severity, 1)


# =============================================================================
# Scoring
# =============================================================================


@dataclass
class Scorecard:
    """Health scores of one repository review, each in [0, 100].

    Scores stay unrounded per repository; rounding happens once, after
    averaging across repositories.
    """

    security: float = 100.0
    maintainability: float = 100.0
    tech_debt: float = 100.0

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary for serialization."""
        return {
            "security": self.security,
            "maintainability": self.maintainability,
            "techDebt": self.tech_debt,
        }


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def calculate_scores(findings: Iterable[Finding]) -> Scorecard:
    """Compute deduction-based scores for a set of findings.

    An empty set scores 100 on every axis.
    """
    security = 100.0
    maintainability = 100.0
    tech_debt = 100.0

    for finding in findings:
        weight = severity_weight(finding.severity)
        tech_debt -= weight * TECH_DEBT_MULTIPLIER
        if finding.category == FindingCategory.SECURITY:
            security -= weight * SECURITY_MULTIPLIER
        elif finding.category in MAINTAINABILITY_CATEGORIES:
            maintainability -= weight * MAINTAINABILITY_MULTIPLIER

    return Scorecard(
        security=_clamp(security),
        maintainability=_clamp(maintainability),
        tech_debt=_clamp(tech_debt),
    )


# =============================================================================
# Counting
# =============================================================================


def count_by_severity(findings: Iterable[Finding]) -> dict[str, int]:
    """Count findings per severity; every severity is present."""
    counts = empty_severity_counts()
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts


def count_by_category(findings: Iterable[Finding]) -> dict[str, int]:
    """Count findings per category; only categories that occur are present."""
    return dict(Counter(finding.category.value for finding in findings))


# =============================================================================
# Deterministic summary
# =============================================================================


def estimate_effort(total_findings: int, critical_count: int) -> str:
    """Estimate remediation effort from the finding volume.

    Args:
        total_findings: Number of findings
        critical_count: Number of critical findings

    Returns:
        Effort bucket label
    """
    if total_findings > 100 or critical_count > 10:
        return "2-4 weeks"
    if total_findings > 50 or critical_count > 5:
        return "1-2 weeks"
    if total_findings > 20:
        return "3-5 days"
    return "1-2 days"


def build_summary(
    total_findings: int,
    severity_counts: dict[str, int],
    category_counts: dict[str, int],
    security_score: int,
    maintainability_score: int,
) -> AnalysisSummary:
    """Build the executive summary from aggregated counts and scores.

    Key findings and recommendations are appended in a fixed priority
    order and capped at five entries each.

    Args:
        total_findings: Total number of findings
        severity_counts: Severity value -> count
        category_counts: Category value -> count
        security_score: Averaged security score
        maintainability_score: Averaged maintainability score

    Returns:
        AnalysisSummary with overview, key findings, recommendations, effort
    """
    critical = severity_counts.get(FindingSeverity.CRITICAL.value, 0)
    high = severity_counts.get(FindingSeverity.HIGH.value, 0)
    security = category_counts.get(FindingCategory.SECURITY.value, 0)
    tech_debt = category_counts.get(FindingCategory.TECHNICAL_DEBT.value, 0)
    dead_code = category_counts.get(FindingCategory.DEAD_CODE.value, 0)
    dependency = category_counts.get(FindingCategory.DEPENDENCY.value, 0)

    if critical > 0:
        overview = (
            f"Found {critical} critical and {high} high severity issues "
            "requiring immediate attention. "
        )
    elif high > 0:
        overview = f"Found {high} high severity issues that should be addressed soon. "
    else:
        overview = "No critical issues found. "
    overview += f"Total of {total_findings} findings across all categories."

    key_findings: list[str] = []
    if critical > 0:
        key_findings.append(f"{critical} critical security/code issues")
    if security > 0:
        key_findings.append(f"{security} security vulnerabilities detected")
    if tech_debt > 0:
        key_findings.append(f"{tech_debt} technical debt items")
    if dead_code > 0:
        key_findings.append(f"{dead_code} dead code instances")
    if security_score < SCORE_ATTENTION_THRESHOLD:
        key_findings.append(f"Security score of {security_score}/100 needs improvement")

    recommendations: list[str] = []
    if critical > 0:
        recommendations.append("Address all critical issues immediately")
    if security > 0:
        recommendations.append("Review and fix security vulnerabilities")
    if dependency > 0:
        recommendations.append("Update vulnerable dependencies")
    if dead_code > 0:
        recommendations.append("Remove dead code to reduce maintenance burden")
    if maintainability_score < SCORE_ATTENTION_THRESHOLD:
        recommendations.append("Refactor to improve code maintainability")

    return AnalysisSummary(
        overview=overview,
        key_findings=key_findings[:MAX_SUMMARY_ITEMS],
        recommendations=recommendations[:MAX_SUMMARY_ITEMS],
        estimated_effort=estimate_effort(total_findings, critical),
    )
