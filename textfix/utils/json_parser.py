"""Shared utility for parsing JSON from LLM responses."""

import json
import logging
import re

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_json_object_from_llm_response(content: str) -> dict | None:
    """Parse a JSON object from an LLM reply, handling multiple formats.

    Handles three formats:
    1. Direct JSON: {"key": "value"}
    2. Markdown fence: ```json\\n{...}\\n```
    3. Embedded JSON: text before {"key": "value"} text after

    Returns None when no JSON object can be recovered.
    """
    candidates = [content.strip()]

    match = _FENCE.search(content)
    if match:
        candidates.append(match.group(1))

    # Outermost braces, in case the model wrapped the object in prose
    match = _OBJECT.search(content)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    logger.warning("Could not parse JSON object from LLM response: %s", content[:200])
    return None
