"""Unified async LLM client wrapper using LiteLLM.

Provides a consistent interface for multiple LLM providers.
Temperature is fixed at 0 so repeated reviews of the same code agree.
"""

import logging
from dataclasses import dataclass
from typing import Any

import litellm

from codeforge.models.llm_config import LLMConfig

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM completion.

    Attributes:
        content: Generated text content
        model: Model that generated the response
        usage: Token usage statistics
        finish_reason: Reason for completion (stop, length, etc.)
    """

    content: str
    model: str
    usage: dict[str, int]
    finish_reason: str | None = None

    @property
    def truncated(self) -> bool:
        """True when the model stopped on the token budget."""
        return self.finish_reason == "length"


class LLMError(Exception):
    """Exception raised for LLM-related errors."""

    pass


class LLMClient:
    """Async LLM client using LiteLLM.

    Supports multiple providers through a single interface:
    - Claude (Anthropic)
    - Gemini (Google)
    - Ollama (local)
    - Bedrock (AWS)
    """

    def __init__(self, config: LLMConfig) -> None:
        """Initialize LLM client with configuration.

        Args:
            config: LLM configuration with provider, model, and credentials
        """
        self.config = config

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion from the LLM.

        Args:
            prompt: User prompt for the LLM
            system_prompt: Optional system prompt
            max_tokens: Override max_tokens from config

        Returns:
            LLMResponse with generated content

        Raises:
            LLMError: If the completion fails
        """
        messages: list[dict[str, str]] = []

        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        messages.append({"role": "user", "content": prompt})

        completion_kwargs: dict[str, Any] = {
            "model": self.config.get_litellm_model_name(),
            "messages": messages,
            "temperature": 0,
            "max_tokens": max_tokens or self.config.max_tokens,
            "timeout": self.config.timeout,
        }
        if self.config.api_key:
            completion_kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            completion_kwargs["api_base"] = self.config.api_base

        try:
            response = await litellm.acompletion(**completion_kwargs)
        except litellm.exceptions.AuthenticationError as e:
            raise LLMError(f"Authentication failed for {self.config.provider}: {e}") from e
        except litellm.exceptions.RateLimitError as e:
            raise LLMError(f"Rate limit exceeded for {self.config.provider}: {e}") from e
        except litellm.exceptions.APIConnectionError as e:
            raise LLMError(f"Connection failed to {self.config.provider}: {e}") from e
        except Exception as e:
            raise LLMError(f"LLM completion failed: {e}") from e

        choice = response.choices[0]
        content = choice.message.content or ""

        usage: dict[str, int] = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }

        result = LLMResponse(
            content=content,
            model=response.model or self.config.model,
            usage=usage,
            finish_reason=choice.finish_reason,
        )
        if result.truncated:
            logger.warning(
                "Response from %s hit the %d token limit; output may be cut off",
                result.model,
                completion_kwargs["max_tokens"],
            )
        return result

    async def check_available(self) -> bool:
        """Check if the LLM provider is reachable with a minimal call."""
        try:
            await self.complete("Say 'ok'", max_tokens=10)
            return True
        except LLMError:
            return False


def create_client(config: LLMConfig) -> LLMClient:
    """Create an LLM client from configuration.

    Args:
        config: LLM configuration

    Returns:
        Configured LLMClient instance

    Raises:
        ValueError: If LLM is disabled in config
    """
    if not config.enabled:
        raise ValueError("LLM is disabled in configuration")

    return LLMClient(config)
