"""Editing session: the single owner of a text buffer and its correction set.

Every mutation bumps ``revision``.  A provider result is only accepted if no
mutation happened while it was being computed, so corrections computed
against stale text are never shown.

The HTTP API is stateless and leaves this bookkeeping to its client; an
embedding application that keeps the buffer server-side (an editor
plugin, a desktop shell) drives an ``EditingSession`` directly with
``get_corrections`` as its provider.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from textfix.core.errors import ProviderError
from textfix.core.spans import (
    apply_all,
    apply_correction,
    find_correction,
    is_within_bounds,
    render,
    sanitize_corrections,
)
from textfix.models.correction import Correction, CorrectionResult, ProviderErrorInfo, Segment

logger = logging.getLogger(__name__)

CorrectionProvider = Callable[[str], Awaitable[CorrectionResult]]


class EditingSession:
    """Serial owner of one buffer/correction-set pair."""

    def __init__(self, provider: CorrectionProvider, text: str = "") -> None:
        self._provider = provider
        self.text = text
        self.corrections: list[Correction] = []
        # None until an analysis of the current text completes
        self.corrected_text: str | None = None
        self.revision = 0
        self.last_error: ProviderErrorInfo | None = None
        self._inflight: tuple[int, asyncio.Future[CorrectionResult]] | None = None

    # -- buffer -------------------------------------------------------------

    def edit(self, new_text: str) -> None:
        """Replace the buffer with user-edited text."""
        if new_text == self.text:
            return
        self.text = new_text
        self.revision += 1
        self.corrected_text = None
        # Keep only spans that still cover the text they were computed for
        self.corrections = [
            c for c in sanitize_corrections(new_text, self.corrections)
            if new_text[c.start_index:c.end_index] == c.original
        ]

    def segments(self) -> list[Segment]:
        return render(self.text, self.corrections)

    def correction_at(self, start: int, end: int) -> Correction | None:
        return find_correction(self.corrections, start, end)

    # -- provider -----------------------------------------------------------

    async def analyze(self) -> bool:
        """Fetch corrections for the current text.

        Concurrent calls for the same revision share one provider call, and
        cancelling one caller does not cancel it for the others.  Returns
        False when the result was discarded because the buffer changed
        meanwhile, or when the provider failed.
        """
        revision = self.revision
        if self._inflight is not None and self._inflight[0] == revision:
            future = self._inflight[1]
        else:
            future = asyncio.ensure_future(self._provider(self.text))
            self._inflight = (revision, future)
            future.add_done_callback(self._clear_inflight)

        try:
            result = await asyncio.shield(future)
        except ProviderError as exc:
            logger.warning("Analysis of revision %d failed: %s", revision, exc)
            if revision == self.revision:
                self.last_error = ProviderErrorInfo(
                    code=exc.code, message=str(exc), retryable=exc.retryable,
                )
            return False

        if revision != self.revision:
            logger.info(
                "Discarding corrections computed for revision %d (now at %d)",
                revision, self.revision,
            )
            return False

        self.corrections = sanitize_corrections(self.text, result.corrections)
        self.corrected_text = result.corrected_text
        self.last_error = result.error
        return True

    def _clear_inflight(self, future: asyncio.Future[CorrectionResult]) -> None:
        if self._inflight is not None and self._inflight[1] is future:
            self._inflight = None

    # -- applying -----------------------------------------------------------

    def apply(self, chosen: Correction) -> bool:
        """Apply one pending correction; False if it is no longer pending."""
        if find_correction(self.corrections, chosen.start_index, chosen.end_index) is None:
            return False
        if not is_within_bounds(len(self.text), chosen):
            # Stale span: forget it, the buffer is untouched
            self.corrections = [c for c in self.corrections if c.key != chosen.key]
            return False
        result = apply_correction(self.text, chosen, self.corrections)
        self.text = result.new_text
        self.corrections = result.remaining
        self.revision += 1
        return True

    def apply_all(self) -> bool:
        """Replace the buffer with the provider's fully corrected text."""
        if self.corrected_text is None:
            logger.info("No corrected text for the current buffer; analyze first")
            return False
        if self.text == self.corrected_text and not self.corrections:
            return False
        result = apply_all(self.corrected_text, self.corrections)
        self.text = result.new_text
        self.corrections = result.remaining
        self.revision += 1
        return True
