"""LLM integration for CodeForge.

Provides the async LiteLLM client, the ModelReviewer interface the
coordinator submits code to, prompt builders and defensive response parsing.
Temperature is fixed at 0 for repeatable reviews.
"""

from codeforge.llm.client import LLMClient, LLMError, LLMResponse, create_client
from codeforge.llm.parsing import parse_reviewer_json
from codeforge.llm.prompts import (
    FOCUS_INSTRUCTIONS,
    OUTPUT_CONTRACT,
    REVIEWER_SYSTEM_PROMPT,
    build_batch_prompt,
    build_summary_prompt,
    get_focus_instructions,
)
from codeforge.llm.reviewer import LiteLLMReviewer, ModelReviewer

__all__ = [
    "FOCUS_INSTRUCTIONS",
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "LiteLLMReviewer",
    "ModelReviewer",
    "OUTPUT_CONTRACT",
    "REVIEWER_SYSTEM_PROMPT",
    "build_batch_prompt",
    "build_summary_prompt",
    "create_client",
    "get_focus_instructions",
    "parse_reviewer_json",
]
