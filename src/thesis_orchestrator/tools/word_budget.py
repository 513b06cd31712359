"""Word-budget balancing across a parsed plan."""

from __future__ import annotations

import logging

from ..models import Section

logger = logging.getLogger(__name__)


def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    if not text:
        return 0
    return len(text.split())


def plan_total(plan: list[Section]) -> int:
    return sum(s.target_word_count for s in plan)


def _justify(new: int, old: int) -> str | None:
    if new > old:
        return f"expand by {new - old} words"
    if new < old:
        return f"condense by {old - new} words"
    return None


def adjust_word_count(plan: list[Section], global_target: int) -> list[Section]:
    """Rescale leaf targets so the plan sums to exactly *global_target*.

    Every leaf is scaled by the same factor and rounded; the signed rounding
    remainder lands on the largest leaf (first one on ties).
    Structural sections stay at 0. A plan that sums to 0 cannot be scaled and
    is returned unchanged. The input list is not modified.
    """
    balanced = [s.model_copy() for s in plan]
    for s in balanced:
        if s.original_word_count is None:
            s.original_word_count = s.target_word_count

    current_total = plan_total(balanced)
    if current_total == global_target:
        return balanced
    if current_total == 0:
        logger.warning("Plan has no leaf word budget; cannot scale to %d", global_target)
        return balanced

    scaling = global_target / current_total
    for s in balanced:
        if s.target_word_count <= 0:
            continue
        old = s.target_word_count
        s.target_word_count = round(old * scaling)
        s.justification = _justify(s.target_word_count, old)

    remainder = global_target - plan_total(balanced)
    if remainder:
        _absorb_remainder(balanced, plan, remainder)

    final_total = plan_total(balanced)
    if final_total != global_target:
        logger.warning("Balanced total %d differs from target %d", final_total, global_target)
    return balanced


def _absorb_remainder(balanced: list[Section], original: list[Section], remainder: int) -> None:
    """Put the rounding remainder on the largest leaf, clamped to 1 word.

    Whatever the clamp refuses spills onto the next-largest leaves. Only a
    target smaller than the number of leaves forces leaves down to 0.
    """
    leaves = [i for i, s in enumerate(original) if s.target_word_count > 0]
    leaves.sort(key=lambda i: (-balanced[i].target_word_count, i))

    for floor in (1, 0):
        for i in leaves:
            if remainder == 0:
                return
            section = balanced[i]
            new = max(floor, section.target_word_count + remainder)
            remainder -= new - section.target_word_count
            section.target_word_count = new
            section.justification = _justify(new, original[i].target_word_count)
