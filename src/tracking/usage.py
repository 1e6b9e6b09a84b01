# src/tracking/usage.py - v1
"""Token usage aggregation across the calls of one logical request."""

from __future__ import annotations

from imagecomposer.core.models import GenerationUsage


def aggregate_usage(usages: list[GenerationUsage | None]) -> GenerationUsage | None:
    """Sum token counts across calls.

    A single usage is returned unchanged, keeping its per-modality breakdown.
    Two or more collapse the breakdown to None: there is no meaningful merge.

    Args:
        usages: Usage of each successful call (None entries are skipped).

    Returns:
        Aggregated usage, or None if no call reported usage.
    """
    present = [u for u in usages if u is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return GenerationUsage(
        prompt_token_count=sum(u.prompt_token_count for u in present),
        candidates_token_count=sum(u.candidates_token_count for u in present),
        total_token_count=sum(u.total_token_count for u in present),
        modality_breakdown=None,
    )
