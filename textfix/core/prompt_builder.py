"""Prompt construction for correction calls."""

import json

_RESPONSE_EXAMPLE = {
    "correctedText": "I have an apple.",
    "corrections": [
        {
            "original": "has",
            "suggestion": "have",
            "startIndex": 2,
            "endIndex": 5,
            "explanation": "Subject-verb agreement: 'I' takes 'have'.",
        },
        {
            "original": "a apple",
            "suggestion": "an apple",
            "startIndex": 6,
            "endIndex": 13,
            "explanation": "Use 'an' before a vowel sound.",
        },
    ],
}


def build_system_prompt() -> str:
    """Instructions shared by every chunk."""
    parts = [
        "You are a grammar and spelling correction assistant.",
        "Analyze the text you are given and respond with a JSON object containing:",
        "1. correctedText: the full text with all errors fixed. Keep every other",
        "   character, including whitespace and line breaks, exactly as it was.",
        "2. corrections: an array of objects with these properties:",
        "   - original: the incorrect word or phrase, copied exactly from the text",
        "   - suggestion: the corrected word or phrase",
        "   - startIndex: the 0-based character index where the error starts",
        "   - endIndex: the character index just past the end of the error",
        "   - explanation: a brief explanation of the error",
        "",
        "Corrections must not overlap. Only include actual mistakes, not",
        "stylistic suggestions. Return ONLY the JSON object, no additional text.",
        "",
        "Example for the text \"I has a apple.\":",
        json.dumps(_RESPONSE_EXAMPLE, ensure_ascii=False),
    ]
    return "\n".join(parts)


def build_user_message(text: str) -> str:
    """Wrap the text to analyze; JSON-quoted so indices are unambiguous."""
    return "Text to analyze (JSON string):\n" + json.dumps(text, ensure_ascii=False)
