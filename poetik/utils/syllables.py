"""Heuristic German syllable estimation.

Counts vowel groups as syllable nuclei and discounts diphthongs by half a
nucleus each. This is an approximation, not a hyphenation dictionary.
"""

from __future__ import annotations

import re

_VOWEL_GROUP = re.compile(r"[aeiouäöüy]+")
_DIPHTHONGS = ("au", "äu", "ei", "eu", "ai", "ie")


def estimate_syllables(text: str) -> int:
    """Estimate syllables of a word; multi-word input sums per word.

    Returns 0 for empty input and at least 1 for any non-empty word.
    """
    if not text:
        return 0

    words = text.split()
    if len(words) > 1:
        return sum(estimate_syllables(w) for w in words)
    if not words:
        return 0

    lower = words[0].lower()
    groups = _VOWEL_GROUP.findall(lower)
    if not groups:
        return 1

    count = float(len(groups))
    for diphthong in _DIPHTHONGS:
        count -= lower.count(diphthong) * 0.5

    # half-up rounding, not banker's rounding
    return max(1, int(count + 0.5))
