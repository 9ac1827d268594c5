"""Reviewer model configuration.

Defines which LLM provider reviews source code. Supports Claude, Gemini,
Ollama and Bedrock through LiteLLM.
"""

from dataclasses import dataclass, field
from typing import Any

VALID_PROVIDERS = frozenset({"claude", "gemini", "ollama", "bedrock"})

DEFAULT_OLLAMA_BASE = "http://localhost:11434"

# LiteLLM routes on a provider prefix
_LITELLM_PREFIXES = {
    "claude": "anthropic",
    "gemini": "gemini",
    "ollama": "ollama",
    "bedrock": "bedrock",
}


@dataclass
class LLMConfig:
    """Configuration for the reviewer model.

    Attributes:
        provider: LLM provider (claude, gemini, ollama, bedrock)
        model: Model identifier (e.g., "claude-sonnet-4-20250514")
        api_key: API key (not required for Ollama or Bedrock)
        api_base: API base URL (defaults to the local server for Ollama)
        temperature: Sampling temperature, fixed at 0 so reviews are repeatable
        max_tokens: Response budget for finding batches
        summary_max_tokens: Response budget for the summary call
        timeout: Request timeout in seconds
        enabled: Whether model review is enabled
    """

    provider: str = "claude"
    model: str = "claude-sonnet-4-20250514"
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = field(default=0.0)
    max_tokens: int = field(default=4096)
    summary_max_tokens: int = field(default=1024)
    timeout: int = field(default=120)
    enabled: bool = field(default=True)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.provider = self.provider.lower().strip()

        if self.provider not in VALID_PROVIDERS:
            raise ValueError(
                f"Invalid provider '{self.provider}'. "
                f"Must be one of: {sorted(VALID_PROVIDERS)}"
            )

        if not self.model or not self.model.strip():
            raise ValueError("Model identifier cannot be empty")
        self.model = self.model.strip()

        if self.temperature != 0.0:
            raise ValueError(
                f"Temperature must be 0 for repeatable reviews. Got: {self.temperature}"
            )

        for name in ("max_tokens", "summary_max_tokens", "timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive. Got: {getattr(self, name)}")

        if self.provider == "ollama" and not self.api_base:
            self.api_base = DEFAULT_OLLAMA_BASE
        elif self.provider in {"claude", "gemini"} and self.enabled and not self.api_key:
            raise ValueError(f"api_key is required for {self.provider} provider")

    @property
    def is_local(self) -> bool:
        """Return True if source code never leaves the machine."""
        return self.provider == "ollama"

    def get_litellm_model_name(self) -> str:
        """Get the model name in LiteLLM ``provider/model`` format."""
        return f"{_LITELLM_PREFIXES[self.provider]}/{self.model}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, masking the API key."""
        return {
            "provider": self.provider,
            "model": self.model,
            "api_key": "***" if self.api_key else None,
            "api_base": self.api_base,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "summary_max_tokens": self.summary_max_tokens,
            "timeout": self.timeout,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LLMConfig":
        """Create LLMConfig from a configuration mapping.

        Args:
            data: Mapping with configuration values

        Returns:
            LLMConfig instance
        """
        return cls(
            provider=str(data.get("provider", "claude")),
            model=str(data.get("model", "claude-sonnet-4-20250514")),
            api_key=data.get("api_key") or None,
            api_base=data.get("api_base") or None,
            temperature=float(data.get("temperature", 0.0)),
            max_tokens=int(data.get("max_tokens", 4096)),
            summary_max_tokens=int(data.get("summary_max_tokens", 1024)),
            timeout=int(data.get("timeout", 120)),
            enabled=bool(data.get("enabled", True)),
        )
