"""Pattern-based fallback corrections from a fixed table of common typos.

Used only when the LLM provider is unavailable.  The table holds
misspellings that are never valid words, so a match is always safe to flag.
"""

import logging
import re

from textfix.core.spans import apply_correction
from textfix.models.correction import Correction, CorrectionResult

logger = logging.getLogger(__name__)

COMMON_TYPOS: dict[str, str] = {
    "teh": "the",
    "taht": "that",
    "siad": "said",
    "thier": "their",
    "recieve": "receive",
    "freind": "friend",
    "seperate": "separate",
    "definately": "definitely",
    "occured": "occurred",
    "accomodate": "accommodate",
    "acheive": "achieve",
    "adress": "address",
    "becuase": "because",
    "beleive": "believe",
    "comming": "coming",
    "enviroment": "environment",
    "goverment": "government",
    "independant": "independent",
    "neccessary": "necessary",
    "occurence": "occurrence",
    "publically": "publicly",
    "untill": "until",
    "wich": "which",
    "alot": "a lot",
}

_TYPO_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(map(re.escape, COMMON_TYPOS), key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)


def _match_case(src: str, repl: str) -> str:
    if src.isupper() and len(src) > 1:
        return repl.upper()
    if src[0].isupper():
        return repl[0].upper() + repl[1:]
    return repl


def fallback_corrections(text: str) -> CorrectionResult:
    """Flag every well-known typo in *text*.

    ``corrected_text`` is *text* with all of the returned corrections applied.
    """
    corrections: list[Correction] = []
    for match in _TYPO_PATTERN.finditer(text):
        word = match.group(0)
        corrections.append(
            Correction(
                original=word,
                suggestion=_match_case(word, COMMON_TYPOS[word.lower()]),
                start_index=match.start(),
                end_index=match.end(),
                explanation=f'"{word}" is a common misspelling.',
            )
        )

    corrected = text
    pending = list(corrections)
    # Right to left keeps the remaining offsets valid without shifting
    for c in reversed(corrections):
        result = apply_correction(corrected, c, pending)
        corrected, pending = result.new_text, result.remaining

    logger.debug("Fallback found %d typo(s)", len(corrections))
    return CorrectionResult(
        original_text=text,
        corrected_text=corrected,
        corrections=corrections,
        source="fallback",
    )
