"""Rounding helpers shared by scanning, scoring and aggregation."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives.

    ``round()`` uses banker's rounding (``round(0.5) == 0``); scores and
    percentages round 91.5 to 92 instead.
    """
    return int(math.floor(value + 0.5))


def percentage_histogram(counts: dict[str, int] | dict[str, float]) -> dict[str, int]:
    """Convert per-key counts into rounded percentage shares.

    Args:
        counts: Key -> count (e.g., language -> lines)

    Returns:
        Key -> percentage of the total, rounded; empty when the total is 0
    """
    total = sum(counts.values())
    if total <= 0:
        return {}
    return {key: round_half_up(count / total * 100) for key, count in counts.items()}
