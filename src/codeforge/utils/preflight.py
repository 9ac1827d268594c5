"""Preflight validation.

External dependencies are validated before an analysis starts, not during
processing: a missing git binary or an unusable LLM configuration stops the
command with a clear message instead of failing every repository.
"""

import importlib.metadata
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any

from codeforge.config import CodeforgeConfig
from codeforge.llm import LLMClient
from codeforge.models import LLMConfig

CREDENTIAL_ENV_VARS = {"claude": "ANTHROPIC_API_KEY", "gemini": "GOOGLE_API_KEY"}


@dataclass
class ToolCheck:
    """Result of checking a single dependency.

    Attributes:
        name: Dependency name
        available: Whether it is usable
        version: Version if known
        required: Whether it is required for this run
        path: Executable path or endpoint
        message: Human-readable context
    """

    name: str
    available: bool
    version: str | None = None
    required: bool = True
    path: str | None = None
    message: str = ""


@dataclass
class PreflightResult:
    """Result of preflight validation."""

    success: bool = True
    checks: list[ToolCheck] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_check(self, check: ToolCheck) -> None:
        """Add a check result."""
        self.checks.append(check)

        if not check.available:
            detail = f": {check.message}" if check.message else ""
            if check.required:
                self.success = False
                self.errors.append(f"Required dependency unavailable: {check.name}{detail}")
            else:
                self.warnings.append(f"Optional dependency unavailable: {check.name}{detail}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "checks": [
                {
                    "name": c.name,
                    "available": c.available,
                    "version": c.version,
                    "required": c.required,
                    "path": c.path,
                    "message": c.message,
                }
                for c in self.checks
            ],
            "errors": self.errors,
            "warnings": self.warnings,
        }


class PreflightChecker:
    """Validates external dependencies before analysis.

    Usage:
        checker = PreflightChecker()
        result = await checker.check_all(config)
        if not result.success:
            raise typer.Exit(1)
    """

    def __init__(self, timeout: int = 10, git_binary: str = "git") -> None:
        self.timeout = timeout
        self.git_binary = git_binary

    def check_git(self, required: bool = True) -> ToolCheck:
        """Check that git is on PATH and report its version."""
        path = shutil.which(self.git_binary)
        if path is None:
            return ToolCheck(
                name="git",
                available=False,
                required=required,
                message="Install from: https://git-scm.com",
            )

        version = None
        try:
            result = subprocess.run(
                [path, "--version"], capture_output=True, text=True, timeout=self.timeout
            )
            if result.returncode == 0:
                version = result.stdout.strip() or None
        except (subprocess.TimeoutExpired, OSError):
            version = None

        return ToolCheck(
            name="git",
            available=True,
            version=version,
            required=required,
            path=path,
            message="Repository acquisition",
        )

    def check_litellm(self) -> ToolCheck:
        """Report the installed LiteLLM version."""
        try:
            version = importlib.metadata.version("litellm")
        except importlib.metadata.PackageNotFoundError:
            return ToolCheck(
                name="litellm",
                available=False,
                message="Install with: pip install litellm",
            )
        return ToolCheck(
            name="litellm",
            available=True,
            version=version,
            message="Unified LLM interface",
        )

    def check_llm_config(self, config: LLMConfig) -> ToolCheck:
        """Check that the reviewer model is enabled and has credentials."""
        name = f"llm:{config.provider}"
        if not config.enabled:
            return ToolCheck(
                name=name,
                available=False,
                message="LLM is disabled; set llm.enabled: true in the config file",
            )
        if config.provider in CREDENTIAL_ENV_VARS and not config.api_key:
            env_var = CREDENTIAL_ENV_VARS[config.provider]
            return ToolCheck(
                name=name,
                available=False,
                message=f"API key required. Set llm.api_key or ${{{env_var}}}",
            )
        return ToolCheck(
            name=name,
            available=True,
            path=config.api_base,
            message=f"Model {config.get_litellm_model_name()}",
        )

    async def check_llm_connectivity(self, config: LLMConfig) -> ToolCheck:
        """Make a minimal completion call to verify the provider answers."""
        name = f"llm:{config.provider}:live"
        client = LLMClient(config)
        if await client.check_available():
            return ToolCheck(
                name=name,
                available=True,
                message=f"{config.get_litellm_model_name()} responded",
            )
        return ToolCheck(
            name=name,
            available=False,
            message=f"{config.get_litellm_model_name()} did not respond",
        )

    async def check_all(self, config: CodeforgeConfig, live: bool = False) -> PreflightResult:
        """Run every check.

        Args:
            config: Loaded configuration
            live: Also call the LLM provider

        Returns:
            PreflightResult (``success`` is False if anything required failed)
        """
        result = PreflightResult()
        result.add_check(self.check_git())
        result.add_check(self.check_litellm())

        llm_check = self.check_llm_config(config.llm)
        result.add_check(llm_check)
        if live and llm_check.available:
            result.add_check(await self.check_llm_connectivity(config.llm))

        return result
