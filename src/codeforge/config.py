"""CodeForge configuration system.

Configuration is YAML-based with minimal CLI overrides (--config, --db, --ci).
Supports environment variable substitution (${VAR}) in config files.

Configuration file discovery (in priority order):
1. CLI --config argument
2. ./.codeforge/config.yaml
3. ./codeforge.yaml
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from codeforge.models.llm_config import LLMConfig

# =============================================================================
# Configuration Dataclasses
# =============================================================================

VALID_LOG_MODES = frozenset({"human", "verbose", "json"})


@dataclass
class AnalysisSettings:
    """Pipeline tuning.

    Attributes:
        batch_size: Files per reviewer call
        max_chars_per_file: Characters of each file sent to the reviewer;
            longer files are truncated, so findings past the cut are missed
        max_file_size: Scan size limit in bytes when a repository has none
        max_concurrent_repositories: Repositories processed at once
            (1 = strictly sequential)
    """

    batch_size: int = 10
    max_chars_per_file: int = 5000
    max_file_size: int = 100_000
    max_concurrent_repositories: int = 1

    def __post_init__(self) -> None:
        """Validate that every limit is a positive integer."""
        for name in (
            "batch_size",
            "max_chars_per_file",
            "max_file_size",
            "max_concurrent_repositories",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"analysis.{name} must be a positive integer (got {value!r})")


@dataclass
class GitSettings:
    """Git acquisition settings.

    Attributes:
        work_dir: Directory that receives clones (one subdirectory per repository)
        clone_timeout: Timeout for clone/fetch in seconds
        default_branch: Branch used when a repository names none
    """

    work_dir: str = "/tmp/codeforge-repos"
    clone_timeout: int = 300
    default_branch: str = "main"


@dataclass
class StorageSettings:
    """Record store settings.

    Attributes:
        database: SQLite file path, or ":memory:"
    """

    database: str = ".codeforge/codeforge.db"


@dataclass
class LoggingSettings:
    """Logging output settings."""

    mode: str = "human"
    level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate mode and level."""
        if self.mode not in VALID_LOG_MODES:
            raise ValueError(f"Invalid log mode: {self.mode}. Valid: {sorted(VALID_LOG_MODES)}")
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ValueError(f"Invalid log level: {self.level}")
        self.level = self.level.upper()


@dataclass
class CodeforgeConfig:
    """Top-level CodeForge configuration.

    Attributes:
        llm: Reviewer model settings
        analysis: Pipeline tuning
        git: Git acquisition settings
        storage: Record store settings
        logging: Logging output settings
    """

    llm: LLMConfig = field(default_factory=lambda: LLMConfig(enabled=False))
    analysis: AnalysisSettings = field(default_factory=AnalysisSettings)
    git: GitSettings = field(default_factory=GitSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    # Set by load_config
    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path


# =============================================================================
# Environment Variable Substitution
# =============================================================================

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Supports ${VAR} syntax. Example: ${ANTHROPIC_API_KEY} -> value of
    ANTHROPIC_API_KEY.

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with environment variables substituted

    Raises:
        ValueError: If a referenced variable is not set
    """
    if isinstance(value, str):

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return _ENV_VAR_PATTERN.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


# =============================================================================
# Config File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find configuration file in standard locations.

    Args:
        start_path: Starting directory for search (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    start_path = (start_path or Path.cwd()).resolve()

    candidates = [
        start_path / ".codeforge" / "config.yaml",
        start_path / "codeforge.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


# =============================================================================
# Config Loading
# =============================================================================


def load_config_from_dict(data: dict[str, Any]) -> CodeforgeConfig:
    """Load configuration from a dictionary.

    Args:
        data: Configuration dictionary

    Returns:
        CodeforgeConfig instance
    """
    data = substitute_env_vars(data)

    config = CodeforgeConfig()

    if "llm" in data:
        config.llm = LLMConfig.from_dict(data["llm"] or {})

    if "analysis" in data:
        analysis_data = data["analysis"] or {}
        defaults = AnalysisSettings()
        config.analysis = AnalysisSettings(
            batch_size=analysis_data.get("batch_size", defaults.batch_size),
            max_chars_per_file=analysis_data.get(
                "max_chars_per_file", defaults.max_chars_per_file
            ),
            max_file_size=analysis_data.get("max_file_size", defaults.max_file_size),
            max_concurrent_repositories=analysis_data.get(
                "max_concurrent_repositories", defaults.max_concurrent_repositories
            ),
        )

    if "git" in data:
        git_data = data["git"] or {}
        config.git = GitSettings(
            work_dir=str(git_data.get("work_dir", config.git.work_dir)),
            clone_timeout=int(git_data.get("clone_timeout", config.git.clone_timeout)),
            default_branch=str(git_data.get("default_branch", config.git.default_branch)),
        )

    if "storage" in data:
        storage_data = data["storage"] or {}
        config.storage = StorageSettings(
            database=str(storage_data.get("database", config.storage.database)),
        )

    if "logging" in data:
        logging_data = data["logging"] or {}
        config.logging = LoggingSettings(
            mode=logging_data.get("mode", "human"),
            level=logging_data.get("level", "INFO"),
        )

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
) -> CodeforgeConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified

    Returns:
        CodeforgeConfig instance (defaults when no file is found)

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path: Path | None = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is None:
        return CodeforgeConfig()

    with open(found_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    config = load_config_from_dict(data)
    config._config_path = found_path
    return config


def create_default_config(provider: str = "claude", model: str | None = None) -> str:
    """Create default configuration YAML content.

    Args:
        provider: Reviewer provider to preconfigure
        model: Model identifier (provider default when None)

    Returns:
        YAML string with default configuration and comments
    """
    default_models = {
        "claude": "claude-sonnet-4-20250514",
        "gemini": "gemini-1.5-pro",
        "ollama": "llama3.2",
        "bedrock": "anthropic.claude-3-sonnet-20240229-v1:0",
    }
    key_vars = {"claude": "ANTHROPIC_API_KEY", "gemini": "GOOGLE_API_KEY"}
    model = model or default_models.get(provider, "claude-sonnet-4-20250514")

    if provider in key_vars:
        credential_line = f'  api_key: "${{{key_vars[provider]}}}"'
    elif provider == "ollama":
        credential_line = '  api_base: "http://localhost:11434"'
    else:
        credential_line = "  # AWS credentials loaded from environment or ~/.aws/credentials"

    return f"""# CodeForge Configuration

# Reviewer model (LiteLLM provider routing)
llm:
  provider: "{provider}"   # claude, gemini, ollama, bedrock
  model: "{model}"
{credential_line}
  temperature: 0         # MUST be 0 for repeatable reviews
  max_tokens: 4096
  summary_max_tokens: 1024

# Pipeline tuning
analysis:
  batch_size: 10               # files per reviewer call
  max_chars_per_file: 5000     # longer files are truncated before review
  max_file_size: 100000        # bytes; larger files are not scanned
  max_concurrent_repositories: 1

# Git acquisition
git:
  work_dir: "/tmp/codeforge-repos"
  clone_timeout: 300
  default_branch: "main"

# Record store
storage:
  database: ".codeforge/codeforge.db"

# Logging: human, verbose, json
logging:
  mode: "human"
  level: "INFO"
"""
