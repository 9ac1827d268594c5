"""Model reviewer: the free-text interface the coordinator submits code to."""

import logging
from abc import ABC, abstractmethod

from codeforge.llm.client import LLMClient
from codeforge.llm.prompts import REVIEWER_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class ModelReviewer(ABC):
    """Reviews a prompt and answers with free text.

    The answer is expected, not guaranteed, to embed JSON; callers parse it
    with ``parse_reviewer_json``.
    """

    @abstractmethod
    async def review(self, prompt: str, max_tokens: int | None = None) -> str:
        """Submit a prompt and return the raw response text.

        Raises:
            LLMError: If the call fails
        """


class LiteLLMReviewer(ModelReviewer):
    """ModelReviewer backed by an LLMClient."""

    def __init__(self, client: LLMClient, system_prompt: str = REVIEWER_SYSTEM_PROMPT) -> None:
        self.client = client
        self.system_prompt = system_prompt

    async def review(self, prompt: str, max_tokens: int | None = None) -> str:
        response = await self.client.complete(
            prompt=prompt,
            system_prompt=self.system_prompt,
            max_tokens=max_tokens,
        )
        logger.debug(
            "Review call: %d prompt chars, %d tokens used",
            len(prompt),
            response.usage.get("total_tokens", 0),
        )
        return response.content
