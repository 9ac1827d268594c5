"""Markdown report renderer for completed Analyses.

Renders an Analysis, its codebase, repositories and findings through the
package's Jinja2 templates.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from jinja2 import Environment, PackageLoader, TemplateNotFound, select_autoescape

from codeforge.models import Analysis, AnalysisStatus, Codebase, Finding, FindingCategory, Repository

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "ANALYSIS.md.j2"


def format_datetime(dt: datetime | str | None) -> str:
    """Format a datetime for display in reports.

    Args:
        dt: Datetime object or ISO string

    Returns:
        Formatted date string, "N/A" when missing
    """
    if dt is None:
        return "N/A"

    if isinstance(dt, str):
        try:
            dt = datetime.fromisoformat(dt)
        except ValueError:
            return dt

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def table_cell(value: Any) -> str:
    """Make a value safe for a single markdown table cell."""
    if value is None:
        return ""
    return " ".join(str(value).split()).replace("|", "\\|")


def format_location(finding: Finding) -> str:
    """``path:start-end`` for a finding, or an empty string."""
    if not finding.file_path:
        return ""
    if finding.line_start is None:
        return finding.file_path
    if finding.line_end is None or finding.line_end == finding.line_start:
        return f"{finding.file_path}:{finding.line_start}"
    return f"{finding.file_path}:{finding.line_start}-{finding.line_end}"


class ReportRenderer:
    """Render completed Analyses to markdown.

    Usage:
        renderer = ReportRenderer()
        markdown = renderer.render(analysis, codebase, repositories, findings)
    """

    def __init__(self, top_findings: int = 10) -> None:
        """Initialize the renderer.

        Args:
            top_findings: Number of findings listed in detail
        """
        self.top_findings = top_findings
        self._env = Environment(
            loader=PackageLoader("codeforge", "templates"),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._env.filters["format_datetime"] = format_datetime
        self._env.filters["table_cell"] = table_cell
        self._env.filters["location"] = format_location

    def render(
        self,
        analysis: Analysis,
        codebase: Codebase,
        repositories: list[Repository],
        findings: list[Finding],
        template_name: str = DEFAULT_TEMPLATE,
    ) -> str:
        """Render a completed Analysis.

        Args:
            analysis: Completed Analysis
            codebase: Its Codebase
            repositories: The codebase's repositories
            findings: Findings of the Analysis, most severe first
            template_name: Template file to use

        Returns:
            Rendered markdown

        Raises:
            ValueError: If the Analysis is not completed or the template fails
        """
        if analysis.status != AnalysisStatus.COMPLETED or analysis.results is None:
            raise ValueError(
                f"Analysis {analysis.id} is {analysis.status.value}; only completed analyses "
                "can be rendered"
            )

        try:
            template = self._env.get_template(template_name)
        except TemplateNotFound as e:
            logger.error("Failed to load template %s: %s", template_name, e)
            raise ValueError(f"Template not found: {template_name}") from e

        context = self._build_context(analysis, codebase, repositories, findings)
        rendered = template.render(**context)
        logger.info("Rendered report for analysis %s (%d characters)", analysis.id, len(rendered))
        return rendered

    def _build_context(
        self,
        analysis: Analysis,
        codebase: Codebase,
        repositories: list[Repository],
        findings: list[Finding],
    ) -> dict[str, Any]:
        repository_names = {repository.id: repository.name for repository in repositories}
        results = analysis.results
        assert results is not None

        categories = [
            (category.value, results.findings_by_category.get(category.value, 0))
            for category in FindingCategory
            if results.findings_by_category.get(category.value, 0) > 0
        ]

        return {
            "analysis": analysis,
            "codebase": codebase,
            "results": results,
            "summary": analysis.summary,
            "repositories": repositories,
            "repository_names": repository_names,
            "severities": list(results.findings_by_severity.items()),
            "categories": categories,
            "top_findings": findings[: self.top_findings],
            "remaining_findings": max(0, len(findings) - self.top_findings),
        }
