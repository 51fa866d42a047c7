"""Paragraph-aligned chunking of long inputs and merging of chunk results.

Chunks always concatenate back to the exact input, so a chunk's offset is
the total length of the chunks before it and per-chunk indices can be moved
into document coordinates by simple addition.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from textfix.core.spans import sanitize_corrections
from textfix.models.correction import Correction, CorrectionResult, ProviderErrorInfo

logger = logging.getLogger(__name__)

ChunkProvider = Callable[[str], Awaitable[CorrectionResult]]

# A blank line plus any whitespace that follows it
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class Chunk:
    text: str
    offset: int


def _split_keeping_separators(text: str, pattern: re.Pattern[str]) -> list[str]:
    """Split *text* after each match; separators stay with the left piece."""
    pieces: list[str] = []
    start = 0
    for match in pattern.finditer(text):
        if match.end() > start:
            pieces.append(text[start:match.end()])
            start = match.end()
    if start < len(text):
        pieces.append(text[start:])
    return pieces


def _pack(pieces: list[str], max_chars: int) -> list[str]:
    """Greedily join consecutive pieces while they fit under *max_chars*."""
    packed: list[str] = []
    current = ""
    for piece in pieces:
        if current and len(current) + len(piece) > max_chars:
            packed.append(current)
            current = ""
        current += piece
    if current:
        packed.append(current)
    return packed


def split_into_chunks(text: str, max_chars: int) -> list[Chunk]:
    """Split *text* on blank-line boundaries into chunks of at most *max_chars*.

    A paragraph longer than *max_chars* is split on sentence boundaries; a
    single sentence longer than that becomes a chunk of its own.
    """
    if len(text) <= max_chars:
        return [Chunk(text=text, offset=0)]

    pieces: list[str] = []
    for para in _split_keeping_separators(text, _PARAGRAPH_BREAK):
        if len(para) > max_chars:
            pieces.extend(_split_keeping_separators(para, _SENTENCE_BREAK))
        else:
            pieces.append(para)

    chunks: list[Chunk] = []
    offset = 0
    for body in _pack(pieces, max_chars):
        chunks.append(Chunk(text=body, offset=offset))
        offset += len(body)
    return chunks


def _keep_edges(original: str, corrected: str) -> str:
    """Restore the chunk's leading/trailing whitespace the model may strip."""
    if not original.strip():
        return original
    lead = original[: len(original) - len(original.lstrip())]
    trail = original[len(original.rstrip()):]
    return lead + corrected.strip() + trail


def merge_chunk_results(
    text: str,
    chunks: Sequence[Chunk],
    results: Sequence[CorrectionResult],
) -> CorrectionResult:
    """Merge per-chunk results into one result for the whole document."""
    if len(chunks) != len(results):
        raise ValueError(f"Got {len(results)} results for {len(chunks)} chunks")

    corrected_parts: list[str] = []
    merged: list[Correction] = []
    for chunk, result in zip(chunks, results):
        corrected_parts.append(_keep_edges(chunk.text, result.corrected_text))
        for c in sanitize_corrections(chunk.text, result.corrections):
            merged.append(c.shifted(chunk.offset))

    sources = {r.source for r in results}
    if "fallback" in sources:
        source = "fallback"
    elif "provider" in sources:
        source = "provider"
    else:
        source = "none"
    error: ProviderErrorInfo | None = next((r.error for r in results if r.error), None)

    return CorrectionResult(
        original_text=text,
        corrected_text="".join(corrected_parts),
        corrections=sanitize_corrections(text, merged),
        source=source,
        error=error,
    )


async def correct_chunked(
    text: str,
    provide_chunk: ChunkProvider,
    max_chars: int,
    max_concurrency: int = 3,
) -> CorrectionResult:
    """Run *provide_chunk* over each chunk of *text* and merge the results.

    At most *max_concurrency* chunks are in flight at once.  The first chunk
    failure cancels the remaining chunk calls and propagates.
    """
    chunks = split_into_chunks(text, max_chars)
    if len(chunks) > 1:
        logger.info("Split %d chars into %d chunk(s)", len(text), len(chunks))

    sem = asyncio.Semaphore(max_concurrency)

    async def _run(chunk: Chunk) -> CorrectionResult:
        async with sem:
            logger.debug("Chunk offset=%d len=%d", chunk.offset, len(chunk.text))
            return await provide_chunk(chunk.text)

    tasks = [asyncio.create_task(_run(c)) for c in chunks]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        # Wait for the cancellations so no chunk call outlives the failure
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return merge_chunk_results(text, chunks, results)
