"""Defensive JSON extraction from free-text reviewer responses.

The reviewer is a language model, not a structured API: the JSON it returns
may be wrapped in prose or a markdown fence, or be missing. Everything that
interprets reviewer text goes through ``parse_reviewer_json``.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n(.*?)```", re.DOTALL | re.IGNORECASE)
_OPENERS = {list: "[", dict: "{"}


def parse_reviewer_json(text: str | None, expected: type = list) -> Any | None:
    """Extract the first JSON value of the expected type from reviewer text.

    Tries, in order: the whole text, each fenced code block, then every
    position where a value of the expected type could start (decoding from
    there and ignoring trailing prose).

    Args:
        text: Raw reviewer response
        expected: ``list`` for findings arrays, ``dict`` for summary objects

    Returns:
        The decoded value, or None when no value of the expected type exists
    """
    if expected not in _OPENERS:
        raise ValueError(f"Unsupported expected type: {expected!r}")
    if not text:
        return None

    candidates = [text.strip()]
    candidates.extend(match.group(1).strip() for match in _FENCED_BLOCK.finditer(text))

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, expected):
            return value

    decoder = json.JSONDecoder()
    opener = _OPENERS[expected]
    start = text.find(opener)
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, expected):
            return value
        start = text.find(opener, start + 1)

    logger.debug("No JSON %s found in reviewer response (%d chars)", expected.__name__, len(text))
    return None
