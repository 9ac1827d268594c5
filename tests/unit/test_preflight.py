"""Unit tests for preflight checks."""

import importlib.metadata
import subprocess
from unittest.mock import AsyncMock, MagicMock, patch

from codeforge.config import CodeforgeConfig
from codeforge.models import LLMConfig
from codeforge.utils.preflight import PreflightChecker, PreflightResult, ToolCheck


class TestPreflightResult:
    """Tests for result accumulation."""

    def test_required_failure(self) -> None:
        """Test that a missing required dependency fails the result."""
        result = PreflightResult()

        result.add_check(ToolCheck(name="git", available=False, message="Install git"))

        assert result.success is False
        assert result.errors == ["Required dependency unavailable: git: Install git"]

    def test_optional_failure_warns(self) -> None:
        """Test that a missing optional dependency only warns."""
        result = PreflightResult()

        result.add_check(ToolCheck(name="extra", available=False, required=False))

        assert result.success is True
        assert result.warnings == ["Optional dependency unavailable: extra"]

    def test_to_dict(self) -> None:
        """Test JSON serialization."""
        result = PreflightResult()
        result.add_check(ToolCheck(name="git", available=True, version="git version 2.43.0"))

        data = result.to_dict()

        assert data["success"] is True
        assert data["checks"][0]["version"] == "git version 2.43.0"


class TestGitCheck:
    """Tests for check_git."""

    def test_git_missing(self) -> None:
        """Test check_git when git is not on PATH."""
        with patch("shutil.which", return_value=None):
            check = PreflightChecker().check_git()

        assert check.available is False
        assert "git-scm.com" in check.message

    def test_git_available(self) -> None:
        """Test check_git reporting the version."""
        completed = MagicMock(returncode=0, stdout="git version 2.43.0\n")

        with (
            patch("shutil.which", return_value="/usr/bin/git"),
            patch("subprocess.run", return_value=completed),
        ):
            check = PreflightChecker().check_git()

        assert check.available is True
        assert check.path == "/usr/bin/git"
        assert check.version == "git version 2.43.0"

    def test_git_version_timeout(self) -> None:
        """Test that a hanging git still counts as available."""
        with (
            patch("shutil.which", return_value="/usr/bin/git"),
            patch("subprocess.run", side_effect=subprocess.TimeoutExpired("git", 10)),
        ):
            check = PreflightChecker().check_git()

        assert check.available is True
        assert check.version is None


class TestLiteLLMCheck:
    """Tests for check_litellm."""

    def test_litellm_installed(self) -> None:
        """Test the reported version."""
        with patch("importlib.metadata.version", return_value="1.50.0"):
            check = PreflightChecker().check_litellm()

        assert check.available is True
        assert check.version == "1.50.0"

    def test_litellm_missing(self) -> None:
        """Test the install hint when the package is missing."""
        with patch(
            "importlib.metadata.version",
            side_effect=importlib.metadata.PackageNotFoundError("litellm"),
        ):
            check = PreflightChecker().check_litellm()

        assert check.available is False
        assert "pip install litellm" in check.message


class TestLLMConfigCheck:
    """Tests for check_llm_config."""

    def test_disabled(self) -> None:
        """Test that a disabled LLM fails the check."""
        check = PreflightChecker().check_llm_config(LLMConfig(enabled=False))

        assert check.available is False
        assert "llm.enabled" in check.message

    def test_missing_key(self) -> None:
        """Test that a hosted provider without a key fails."""
        config = LLMConfig(provider="claude", enabled=False)
        config.enabled = True

        check = PreflightChecker().check_llm_config(config)

        assert check.available is False
        assert "${ANTHROPIC_API_KEY}" in check.message

    def test_ollama(self) -> None:
        """Test a local model configuration."""
        check = PreflightChecker().check_llm_config(LLMConfig(provider="ollama", model="llama3.2"))

        assert check.available is True
        assert check.name == "llm:ollama"
        assert check.path == "http://localhost:11434"
        assert "ollama/llama3.2" in check.message


class TestCheckAll:
    """Tests for the combined run."""

    async def test_default_config_fails_on_llm(self) -> None:
        """Test that the default config (LLM disabled) is not ready."""
        checker = PreflightChecker()

        with patch.object(checker, "check_git", return_value=ToolCheck("git", True)):
            result = await checker.check_all(CodeforgeConfig())

        assert result.success is False
        assert [c.name for c in result.checks] == ["git", "litellm", "llm:claude"]

    async def test_live_check_runs_when_configured(self) -> None:
        """Test that --live adds the connectivity check."""
        config = CodeforgeConfig(llm=LLMConfig(provider="ollama", model="llama3.2"))
        checker = PreflightChecker()

        with (
            patch.object(checker, "check_git", return_value=ToolCheck("git", True)),
            patch(
                "codeforge.utils.preflight.LLMClient.check_available",
                new_callable=AsyncMock,
                return_value=False,
            ),
        ):
            result = await checker.check_all(config, live=True)

        assert result.checks[-1].name == "llm:ollama:live"
        assert result.checks[-1].available is False
        assert result.success is False
