"""Correction span bookkeeping: validation, rendering and application.

Every function here is a pure transformation over a string and a list of
corrections.  Inputs are never mutated; spans that are out of bounds or
overlap a span already accepted are dropped (and logged) instead of raising,
so a stale correction set can never corrupt the text.
"""

import logging
from collections.abc import Iterable, Sequence

from textfix.models.correction import ApplyResult, Correction, Segment

logger = logging.getLogger(__name__)


def is_within_bounds(text_length: int, correction: Correction) -> bool:
    """True when ``0 <= start < end <= text_length``."""
    return 0 <= correction.start_index < correction.end_index <= text_length


def sanitize_corrections(text: str, corrections: Iterable[Correction]) -> list[Correction]:
    """Drop out-of-bounds and overlapping corrections.

    Among overlapping corrections the one starting first wins (the earlier
    one in input order on a tie).  The result is sorted by start index and
    is pairwise disjoint.
    """
    kept: list[Correction] = []
    for c in sorted(corrections, key=lambda c: c.start_index):
        if not is_within_bounds(len(text), c):
            logger.debug(
                "Dropping out-of-bounds correction %r -> %r at %d-%d (text length %d)",
                c.original, c.suggestion, c.start_index, c.end_index, len(text),
            )
            continue
        if kept and c.start_index < kept[-1].end_index:
            logger.debug(
                "Dropping correction %r at %d-%d overlapping %d-%d",
                c.original, c.start_index, c.end_index,
                kept[-1].start_index, kept[-1].end_index,
            )
            continue
        kept.append(c)
    return kept


def render(text: str, corrections: Iterable[Correction]) -> list[Segment]:
    """Split *text* into plain and highlighted segments.

    Spans are carved right to left so a slice never disturbs the suffix
    already produced.  Concatenating the segment contents gives back *text*.
    """
    segments: list[Segment] = []
    boundary = len(text)

    for c in sorted(corrections, key=lambda c: c.start_index, reverse=True):
        if not is_within_bounds(len(text), c):
            logger.debug("Render skipped stale span %d-%d", c.start_index, c.end_index)
            continue
        if c.end_index > boundary:
            logger.debug(
                "Render skipped span %d-%d overlapping span at %d",
                c.start_index, c.end_index, boundary,
            )
            continue
        if c.end_index < boundary:
            segments.append(Segment(kind="plain", content=text[c.end_index:boundary]))
        segments.append(
            Segment(
                kind="highlighted",
                content=text[c.start_index:c.end_index],
                correction=c,
            )
        )
        boundary = c.start_index

    if boundary > 0:
        segments.append(Segment(kind="plain", content=text[:boundary]))

    segments.reverse()
    return segments


def find_correction(
    corrections: Iterable[Correction], start: int, end: int,
) -> Correction | None:
    """Map a clicked span back to its correction by exact offsets."""
    for c in corrections:
        if c.start_index == start and c.end_index == end:
            return c
    return None


def apply_correction(
    text: str, chosen: Correction, pending: Sequence[Correction],
) -> ApplyResult:
    """Replace *chosen*'s span with its suggestion and shift the survivors.

    Survivors starting at or after the end of the replaced span move by the
    length delta; those before it are untouched; those overlapping it are
    stale and dropped.  Applying a correction that is no longer pending is a
    no-op.
    """
    if find_correction(pending, chosen.start_index, chosen.end_index) is None:
        logger.debug("Correction %d-%d not pending, nothing to apply", *chosen.key)
        return ApplyResult(new_text=text, remaining=list(pending))

    others = [c for c in pending if c.key != chosen.key]

    if not is_within_bounds(len(text), chosen):
        logger.warning(
            "Correction %d-%d is stale for text of length %d, discarded",
            chosen.start_index, chosen.end_index, len(text),
        )
        return ApplyResult(new_text=text, remaining=others)

    new_text = text[:chosen.start_index] + chosen.suggestion + text[chosen.end_index:]
    delta = len(chosen.suggestion) - (chosen.end_index - chosen.start_index)

    remaining: list[Correction] = []
    for c in others:
        if c.start_index >= chosen.end_index:
            remaining.append(c.shifted(delta) if delta else c)
        elif c.end_index <= chosen.start_index:
            remaining.append(c)
        else:
            logger.warning(
                "Dropping correction %d-%d overlapping applied span %d-%d",
                c.start_index, c.end_index, chosen.start_index, chosen.end_index,
            )

    return ApplyResult(new_text=new_text, remaining=remaining)


def apply_all(corrected_text: str, pending: Sequence[Correction]) -> ApplyResult:
    """Substitute the provider's fully corrected text and clear the set.

    The corrected text already reflects every correction at once, so no
    offset arithmetic happens here.
    """
    if pending:
        logger.info("Applying all %d corrections", len(pending))
    return ApplyResult(new_text=corrected_text, remaining=[])
