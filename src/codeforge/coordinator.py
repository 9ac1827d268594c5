"""AI analysis coordinator: turns source files into findings, scores and a summary.

Files are reviewed in fixed-size batches, one reviewer call at a time. Each
file is cut to ``max_chars_per_file`` characters before submission, so the
review of a long file only covers its beginning; findings past the cut are
never reported. A failed or unparseable batch contributes zero findings and
the review moves on to the next batch.
"""

import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from codeforge.acquisition import SourceFile
from codeforge.llm import ModelReviewer, build_batch_prompt, build_summary_prompt, parse_reviewer_json
from codeforge.llm.prompts import DEFAULT_MAX_CHARS_PER_FILE
from codeforge.models import AnalysisSummary, AnalysisType, Finding, SuggestedFix
from codeforge.scoring import (
    Scorecard,
    build_summary,
    calculate_scores,
    count_by_category,
    count_by_severity,
    map_category,
    map_severity,
)
from codeforge.utils.rounding import percentage_histogram, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10

CancelCheck = Callable[[], Awaitable[bool]]


@dataclass
class CodeReview:
    """Outcome of reviewing one repository's files.

    Attributes:
        findings: Findings in reviewer order, not yet persisted
        summary: Reviewer-written summary, or the deterministic fallback
        scores: Unrounded deduction scores of these findings
        language_histogram: Language -> percentage share of reviewed lines
        files_analyzed: Files submitted to the reviewer
        failed_batches: Batches whose call or parse failed
        cancelled: True if a cancel was observed before every batch ran
    """

    findings: list[Finding] = field(default_factory=list)
    summary: AnalysisSummary | None = None
    scores: Scorecard = field(default_factory=Scorecard)
    language_histogram: dict[str, int] = field(default_factory=dict)
    files_analyzed: int = 0
    failed_batches: int = 0
    cancelled: bool = False


class AiAnalysisCoordinator:
    """Batch files through a ModelReviewer and aggregate the results.

    ``analyze_code`` never raises: reviewer and parse failures are logged and
    recorded per batch, and the returned CodeReview is always well formed.

    Usage:
        coordinator = AiAnalysisCoordinator(reviewer)
        review = await coordinator.analyze_code(files, AnalysisType.FULL, repo_id, analysis_id)
    """

    def __init__(
        self,
        reviewer: ModelReviewer,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_chars_per_file: int = DEFAULT_MAX_CHARS_PER_FILE,
        summary_max_tokens: int | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            reviewer: Reviewer that answers prompts with free text
            batch_size: Files per reviewer call
            max_chars_per_file: Characters of each file included in a prompt
            summary_max_tokens: Token budget of the summary call
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive (got {batch_size})")
        self.reviewer = reviewer
        self.batch_size = batch_size
        self.max_chars_per_file = max_chars_per_file
        self.summary_max_tokens = summary_max_tokens

    async def analyze_code(
        self,
        files: Sequence[SourceFile],
        analysis_type: AnalysisType,
        repository_id: str,
        analysis_id: str,
        should_cancel: CancelCheck | None = None,
    ) -> CodeReview:
        """Review files and return findings, scores, summary and histogram.

        Args:
            files: Scanned source files
            analysis_type: Focus of the run
            repository_id: Repository the findings belong to
            analysis_id: Analysis the findings belong to
            should_cancel: Checked between batches; True stops the review

        Returns:
            CodeReview for the batches that ran
        """
        review = CodeReview()
        batches = [
            list(files[i : i + self.batch_size]) for i in range(0, len(files), self.batch_size)
        ]

        for index, batch in enumerate(batches, start=1):
            if should_cancel is not None and index > 1 and await should_cancel():
                logger.info(
                    "Review of repository %s cancelled after %d of %d batches",
                    repository_id,
                    index - 1,
                    len(batches),
                )
                review.cancelled = True
                break

            logger.debug(
                "Reviewing batch %d/%d (%d files) of repository %s",
                index,
                len(batches),
                len(batch),
                repository_id,
            )
            batch_findings = await self._review_batch(
                batch, analysis_type, repository_id, analysis_id
            )
            review.files_analyzed += len(batch)
            if batch_findings is None:
                review.failed_batches += 1
            else:
                review.findings.extend(batch_findings)

        reviewed_files = files[: review.files_analyzed]
        review.language_histogram = language_histogram(reviewed_files)
        review.scores = calculate_scores(review.findings)
        if not review.cancelled:
            review.summary = await self._summarize(review.findings, review.scores)

        logger.info(
            "Reviewed %d files of repository %s: %d findings, %d failed batches",
            review.files_analyzed,
            repository_id,
            len(review.findings),
            review.failed_batches,
        )
        return review

    async def _review_batch(
        self,
        batch: list[SourceFile],
        analysis_type: AnalysisType,
        repository_id: str,
        analysis_id: str,
    ) -> list[Finding] | None:
        """Review one batch. Returns None when the call or the parse failed."""
        prompt = build_batch_prompt(batch, analysis_type, self.max_chars_per_file)
        try:
            response = await self.reviewer.review(prompt)
        except Exception as e:
            logger.warning(
                "Reviewer call failed for repository %s (%d files): %s",
                repository_id,
                len(batch),
                e,
            )
            return None

        items = parse_reviewer_json(response, expected=list)
        if items is None:
            logger.warning(
                "Reviewer response for repository %s contained no JSON array", repository_id
            )
            return None

        findings = []
        for item in items:
            if not isinstance(item, dict):
                logger.debug("Skipping non-object finding entry: %r", item)
                continue
            findings.append(finding_from_item(item, repository_id, analysis_id))
        return findings

    async def _summarize(self, findings: list[Finding], scores: Scorecard) -> AnalysisSummary:
        """Ask the reviewer for a summary, falling back to the templated one."""
        severity_counts = count_by_severity(findings)
        category_counts = count_by_category(findings)

        prompt = build_summary_prompt(findings, severity_counts, category_counts)
        try:
            response = await self.reviewer.review(prompt, max_tokens=self.summary_max_tokens)
            summary = summary_from_object(parse_reviewer_json(response, expected=dict))
        except Exception as e:
            logger.warning("Summary generation failed, using templated summary: %s", e)
            summary = None

        if summary is None:
            summary = build_summary(
                len(findings),
                severity_counts,
                category_counts,
                security_score=round_half_up(scores.security),
                maintainability_score=round_half_up(scores.maintainability),
            )
        return summary


# =============================================================================
# Response interpretation
# =============================================================================


def _as_line(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def finding_from_item(item: dict[str, Any], repository_id: str, analysis_id: str) -> Finding:
    """Build a Finding from one reviewer JSON object.

    Severity and category are mapped case-insensitively onto the closed
    enumerations; missing titles become ``"Untitled Finding"``.
    """
    file_path = item.get("filePath")
    tags = item.get("tags")
    return Finding(
        title=str(item.get("title") or "Untitled Finding"),
        description=str(item.get("description") or ""),
        severity=map_severity(item.get("severity")),
        category=map_category(item.get("category")),
        repository_id=repository_id,
        analysis_id=analysis_id,
        file_path=str(file_path) if file_path else None,
        line_start=_as_line(item.get("lineStart")),
        line_end=_as_line(item.get("lineEnd")),
        suggested_fix=SuggestedFix.from_value(item.get("suggestedFix")),
        tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
    )


def summary_from_object(data: Any) -> AnalysisSummary | None:
    """Build a summary from a reviewer JSON object, or None if unusable."""
    if not isinstance(data, dict):
        return None
    overview = data.get("overview")
    if not isinstance(overview, str) or not overview.strip():
        return None
    data = {
        **data,
        "keyFindings": data.get("keyFindings") if isinstance(data.get("keyFindings"), list) else [],
        "recommendations": (
            data.get("recommendations") if isinstance(data.get("recommendations"), list) else []
        ),
    }
    summary = AnalysisSummary.from_dict(data)
    summary.key_findings = summary.key_findings[:5]
    summary.recommendations = summary.recommendations[:5]
    return summary


def language_histogram(files: Sequence[SourceFile]) -> dict[str, int]:
    """Language -> rounded percentage share of lines across ``files``."""
    lines: Counter[str] = Counter()
    for source_file in files:
        lines[source_file.language] += source_file.line_count
    return percentage_histogram(dict(lines))
