"""Language detection (deterministic, no inference provider)."""

from __future__ import annotations

import re

from langdetect import detect_langs, LangDetectException
from langdetect import DetectorFactory

DetectorFactory.seed = 0

_GERMAN_MARKERS = re.compile(r"[äöüÄÖÜß]")
_GERMAN_MARKER_BOOST = 0.05


def detect_language(text: str) -> tuple[str, float]:
    """
    Detect the dominant language of *text*.

    Returns:
        (iso_code, confidence)  e.g. ("de", 0.99).
        Falls back to ("de", 0.0) on failure, since the pipeline is German.
    """
    if not text or not text.strip():
        return "de", 0.0

    try:
        results = detect_langs(text)
    except LangDetectException:
        return "de", 0.0

    if not results:
        return "de", 0.0

    top = results[0]
    lang = str(top.lang)
    prob = float(top.prob)

    # Short German lines are sometimes read as Dutch or Danish; umlauts settle it.
    if lang != "de" and _GERMAN_MARKERS.search(text):
        for candidate in results:
            if str(candidate.lang) == "de":
                return "de", round(min(1.0, float(candidate.prob) + _GERMAN_MARKER_BOOST), 4)

    return lang, round(prob, 4)


def is_german(code: str) -> bool:
    return code == "de"


def language_name(code: str) -> str:
    """Human-readable language name for common codes."""
    names = {
        "de": "German",
        "en": "English",
        "nl": "Dutch",
        "da": "Danish",
        "sv": "Swedish",
        "fr": "French",
        "it": "Italian",
        "es": "Spanish",
    }
    return names.get(code, code.upper())
