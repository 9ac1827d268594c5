"""Unit tests for the AI analysis coordinator."""

import json

import pytest

from codeforge.coordinator import (
    AiAnalysisCoordinator,
    finding_from_item,
    language_histogram,
    summary_from_object,
)
from codeforge.llm import LLMError
from codeforge.models import AnalysisType, FindingCategory, FindingSeverity
from tests.fixtures import ScriptedReviewer, finding_item, source_file


def many_files(count: int) -> list:
    return [source_file(f"src/module_{i:02d}.py") for i in range(count)]


class TestFindingFromItem:
    """Tests for interpreting one reviewer object."""

    def test_full_item(self) -> None:
        """Test that every field of a complete object is carried over."""
        item = {
            "title": "SQL injection",
            "description": "User input reaches the query",
            "severity": "CRITICAL",
            "category": "Security",
            "filePath": "src/db.py",
            "lineStart": 10,
            "lineEnd": "14",
            "suggestedFix": {"description": "Use bound parameters"},
            "tags": ["owasp", 1],
        }

        finding = finding_from_item(item, "repo-1", "analysis-1")

        assert finding.title == "SQL injection"
        assert finding.severity == FindingSeverity.CRITICAL
        assert finding.category == FindingCategory.SECURITY
        assert finding.file_path == "src/db.py"
        assert finding.line_start == 10
        assert finding.line_end == 14
        assert finding.suggested_fix is not None
        assert finding.suggested_fix.description == "Use bound parameters"
        assert finding.tags == ["owasp", "1"]
        assert finding.repository_id == "repo-1"
        assert finding.analysis_id == "analysis-1"

    def test_missing_fields_get_defaults(self) -> None:
        """Test the defaults for a nearly empty object."""
        finding = finding_from_item({}, "repo-1", "analysis-1")

        assert finding.title == "Untitled Finding"
        assert finding.description == ""
        assert finding.severity == FindingSeverity.INFO
        assert finding.category == FindingCategory.TECHNICAL_DEBT
        assert finding.file_path is None
        assert finding.line_start is None
        assert finding.suggested_fix is None
        assert finding.tags == []

    def test_string_fix_and_bad_lines(self) -> None:
        """Test a plain-string fix and non-numeric line values."""
        finding = finding_from_item(
            {"title": "x", "suggestedFix": "Delete it", "lineStart": "ten", "lineEnd": True},
            "r",
            "a",
        )

        assert finding.suggested_fix is not None
        assert finding.suggested_fix.description == "Delete it"
        assert finding.line_start is None
        assert finding.line_end is None


class TestSummaryFromObject:
    """Tests for interpreting the reviewer's summary object."""

    def test_valid_object(self) -> None:
        """Test a well-formed summary with lists capped at five."""
        summary = summary_from_object(
            {
                "overview": "Mostly healthy.",
                "keyFindings": [f"k{i}" for i in range(7)],
                "recommendations": ["r1"],
                "estimatedEffort": "2-3 days",
            }
        )

        assert summary is not None
        assert summary.overview == "Mostly healthy."
        assert summary.key_findings == ["k0", "k1", "k2", "k3", "k4"]
        assert summary.recommendations == ["r1"]
        assert summary.estimated_effort == "2-3 days"

    def test_non_list_fields_become_empty(self) -> None:
        """Test that string-valued list fields are dropped, not split."""
        summary = summary_from_object({"overview": "ok", "keyFindings": "one big string"})

        assert summary is not None
        assert summary.key_findings == []

    @pytest.mark.parametrize("data", [None, [], {"overview": ""}, {"keyFindings": ["a"]}])
    def test_unusable_objects(self, data: object) -> None:
        """Test that objects without an overview are rejected."""
        assert summary_from_object(data) is None


class TestLanguageHistogram:
    """Tests for the reviewed-lines histogram."""

    def test_shares_by_lines(self) -> None:
        """Test that shares are weighted by line count."""
        files = [
            source_file("a.py", "1\n2\n3"),
            source_file("b.ts", "1", language="typescript"),
        ]

        assert language_histogram(files) == {"python": 75, "typescript": 25}

    def test_empty(self) -> None:
        """Test that no files give an empty histogram."""
        assert language_histogram([]) == {}


class TestAnalyzeCode:
    """Tests for batch review and aggregation."""

    async def test_batches_of_ten(self) -> None:
        """Test that 25 files are reviewed in three batches, in order."""
        reviewer = ScriptedReviewer()
        coordinator = AiAnalysisCoordinator(reviewer, batch_size=10)

        review = await coordinator.analyze_code(many_files(25), AnalysisType.FULL, "r", "a")

        assert len(reviewer.batch_prompts) == 3
        assert reviewer.batch_prompts[0].count("### File: ") == 10
        assert reviewer.batch_prompts[2].count("### File: ") == 5
        assert "src/module_20.py" in reviewer.batch_prompts[2]
        assert review.files_analyzed == 25
        assert review.failed_batches == 0

    async def test_no_files_still_summarizes(self) -> None:
        """Test that an empty repository yields perfect scores and a summary."""
        reviewer = ScriptedReviewer()
        coordinator = AiAnalysisCoordinator(reviewer)

        review = await coordinator.analyze_code([], AnalysisType.FULL, "r", "a")

        assert reviewer.batch_prompts == []
        assert review.findings == []
        assert review.scores.security == 100
        assert review.summary is not None
        assert review.summary.overview.startswith("No critical issues found.")

    async def test_findings_are_collected_and_scored(self) -> None:
        """Test that findings from every batch are aggregated."""
        reviewer = ScriptedReviewer(
            findings_by_path={
                "src/module_00.py": [finding_item("Secret", "critical", "security")],
                "src/module_12.py": [finding_item("God class", "low", "architecture")],
            }
        )
        coordinator = AiAnalysisCoordinator(reviewer, batch_size=10)

        review = await coordinator.analyze_code(many_files(15), AnalysisType.FULL, "r", "a")

        assert [f.title for f in review.findings] == ["Secret", "God class"]
        assert review.scores.security == 70
        assert review.scores.maintainability == 98
        assert review.scores.tech_debt == 91.5
        assert review.language_histogram == {"python": 100}

    async def test_failed_batch_is_skipped(self) -> None:
        """Test that a raising batch contributes nothing and the rest continue."""
        reviewer = ScriptedReviewer(
            findings_by_path={"src/module_10.py": [finding_item("Later batch")]},
            fail_paths={"src/module_00.py"},
        )
        coordinator = AiAnalysisCoordinator(reviewer, batch_size=10)

        review = await coordinator.analyze_code(many_files(20), AnalysisType.FULL, "r", "a")

        assert review.failed_batches == 1
        assert [f.title for f in review.findings] == ["Later batch"]
        assert review.files_analyzed == 20

    async def test_unparseable_batch_is_skipped(self) -> None:
        """Test that prose without an array counts as a failed batch."""
        reviewer = ScriptedReviewer(
            raw_by_path={"src/module_00.py": "Sorry, I cannot help with that."}
        )
        coordinator = AiAnalysisCoordinator(reviewer)

        review = await coordinator.analyze_code(many_files(3), AnalysisType.FULL, "r", "a")

        assert review.failed_batches == 1
        assert review.findings == []

    async def test_non_object_entries_are_ignored(self) -> None:
        """Test that strings inside the array are skipped."""
        raw = json.dumps(["not a finding", finding_item("Real")])
        reviewer = ScriptedReviewer(raw_by_path={"src/module_00.py": raw})
        coordinator = AiAnalysisCoordinator(reviewer)

        review = await coordinator.analyze_code(many_files(1), AnalysisType.FULL, "r", "a")

        assert [f.title for f in review.findings] == ["Real"]

    async def test_reviewer_summary_is_used(self) -> None:
        """Test that a valid summary object from the reviewer is kept."""
        reviewer = ScriptedReviewer(
            summary_response=json.dumps(
                {
                    "overview": "Reviewer overview.",
                    "keyFindings": ["k"],
                    "recommendations": ["r"],
                    "estimatedEffort": "1 day",
                }
            )
        )
        coordinator = AiAnalysisCoordinator(reviewer, summary_max_tokens=512)

        review = await coordinator.analyze_code(many_files(2), AnalysisType.FULL, "r", "a")

        assert review.summary is not None
        assert review.summary.overview == "Reviewer overview."
        assert reviewer.max_tokens[-1] == 512

    async def test_summary_failure_falls_back(self) -> None:
        """Test the templated summary when the summary call raises."""
        reviewer = ScriptedReviewer(
            findings_by_path={"src/module_00.py": [finding_item("Leak", "critical", "security")]},
            summary_response=LLMError("Rate limit exceeded for claude"),
        )
        coordinator = AiAnalysisCoordinator(reviewer)

        review = await coordinator.analyze_code(many_files(1), AnalysisType.FULL, "r", "a")

        assert review.summary is not None
        assert review.summary.overview.startswith("Found 1 critical and 0 high severity issues")

    async def test_cancel_checked_between_batches(self) -> None:
        """Test that a cancel observed after batch one stops the review."""
        reviewer = ScriptedReviewer()
        coordinator = AiAnalysisCoordinator(reviewer, batch_size=10)
        checks = []

        async def should_cancel() -> bool:
            checks.append(True)
            return True

        review = await coordinator.analyze_code(
            many_files(30), AnalysisType.FULL, "r", "a", should_cancel=should_cancel
        )

        assert review.cancelled is True
        assert len(reviewer.batch_prompts) == 1
        assert len(checks) == 1
        assert review.files_analyzed == 10
        assert review.summary is None
        assert reviewer.summary_prompts == []

    async def test_cancel_never_checked_for_single_batch(self) -> None:
        """Test that the first batch always runs."""
        reviewer = ScriptedReviewer()
        coordinator = AiAnalysisCoordinator(reviewer)

        async def should_cancel() -> bool:
            raise AssertionError("should not be called")

        review = await coordinator.analyze_code(
            many_files(4), AnalysisType.FULL, "r", "a", should_cancel=should_cancel
        )

        assert review.cancelled is False

    def test_rejects_non_positive_batch_size(self) -> None:
        """Test batch size validation."""
        with pytest.raises(ValueError, match="batch_size must be positive"):
            AiAnalysisCoordinator(ScriptedReviewer(), batch_size=0)
