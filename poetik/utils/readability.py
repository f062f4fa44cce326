"""Readability metrics for German text.

Flesch Reading Ease uses the Amstad constants for German; the Wiener
Sachtextformel is the first (prose) variant. Interpretation bands are plain
lookup tables.
"""

from __future__ import annotations

from typing import Sequence

from poetik.models import ReadabilityMetrics, Sentence, TextStatistics, Token
from poetik.utils.syllables import estimate_syllables

WIENER_DISPLAY_RANGE = (0.0, 20.0)

# (lower bound, band key, label); first match wins, scanned top-down
FLESCH_BANDS: tuple[tuple[float, str, str], ...] = (
    (80.0, "very_easy", "very easy"),
    (60.0, "easy", "easy"),
    (40.0, "medium", "medium"),
    (20.0, "hard", "hard"),
    (float("-inf"), "very_hard", "very hard"),
)

# (upper bound exclusive, band key, label)
WIENER_BANDS: tuple[tuple[float, str, str], ...] = (
    (4.0, "primary", "primary school level"),
    (10.0, "middle", "middle school level"),
    (15.0, "upper", "upper school level"),
    (float("inf"), "academic", "academic level"),
)

FUNCTION_WORDS = frozenset({
    # articles
    "der", "die", "das", "ein", "eine", "einen", "einem", "eines",
    # pronouns
    "ich", "du", "er", "sie", "es", "wir", "ihr", "mich", "dich", "sich",
    # prepositions
    "in", "an", "auf", "von", "zu", "mit", "bei", "nach", "vor", "über", "unter",
    # conjunctions
    "und", "oder", "aber", "denn", "weil", "dass", "wenn", "als",
    # auxiliaries
    "sein", "haben", "werden", "ist", "war", "hat", "hatte", "bin", "sind",
})


def _words(tokens: Sequence[Token]) -> list[Token]:
    return [t for t in tokens if t.is_word]


def flesch_band(score: float) -> tuple[str, str]:
    for bound, key, label in FLESCH_BANDS:
        if score >= bound:
            return key, label
    return FLESCH_BANDS[-1][1], FLESCH_BANDS[-1][2]


def wiener_band(index: float) -> tuple[str, str]:
    lo, hi = WIENER_DISPLAY_RANGE
    clamped = min(max(index, lo), hi)
    for bound, key, label in WIENER_BANDS:
        if clamped < bound:
            return key, label
    return WIENER_BANDS[-1][1], WIENER_BANDS[-1][2]


def interpret(flesch: float, wiener: float) -> str:
    """Combined label, e.g. ``"easy (middle school level)"``."""
    return f"{flesch_band(flesch)[1]} ({wiener_band(wiener)[1]})"


def is_content_word(word: str) -> bool:
    return word.lower() not in FUNCTION_WORDS and len(word) > 2


def lexical_density(tokens: Sequence[Token]) -> float:
    """Percentage of content words among word tokens."""
    words = _words(tokens)
    if not words:
        return 0.0
    content = sum(1 for w in words if is_content_word(w.text))
    return round(content / len(words) * 100, 2)


def score(tokens: Sequence[Token], sentences: Sequence[Sentence]) -> ReadabilityMetrics:
    """Compute Flesch (Amstad) and Wiener Sachtextformel metrics.

    Denominators are floored at 1, so single-word and empty inputs are
    safe. Flesch is clamped to [0, 100]; the Wiener index is reported raw.
    """
    words = _words(tokens)
    word_count = len(words)
    sentence_count = len(sentences)

    syllables = [estimate_syllables(w.text) for w in words]
    syllable_count = sum(syllables)

    asl = word_count / max(sentence_count, 1)
    asw = syllable_count / max(word_count, 1)

    flesch = 180 - asl - 58.5 * asw
    flesch = min(max(flesch, 0.0), 100.0)

    denom = max(word_count, 1)
    ms = sum(1 for s in syllables if s >= 3) / denom * 100
    iw = sum(1 for w in words if len(w.text) > 6) / denom * 100
    es = sum(1 for s in syllables if s == 1) / denom * 100
    wiener = 0.1935 * ms + 0.1672 * asl + 0.1297 * iw - 0.0327 * es - 0.875

    ease_key, _ = flesch_band(flesch)
    wiener_key, _ = wiener_band(wiener)

    return ReadabilityMetrics(
        word_count=word_count,
        sentence_count=sentence_count,
        syllable_count=syllable_count,
        avg_words_per_sentence=round(asl, 3),
        avg_syllables_per_word=round(asw, 3),
        flesch_reading_ease=round(flesch, 3),
        wiener_index=round(wiener, 3),
        lexical_density=lexical_density(tokens),
        ease_band=ease_key,
        wiener_band=wiener_key,
        interpretation=interpret(flesch, wiener),
    )


def calculate_statistics(
    tokens: Sequence[Token],
    sentences: Sequence[Sentence],
) -> TextStatistics:
    words = _words(tokens)
    unique = {w.text.lower() for w in words}
    n = len(words)
    return TextStatistics(
        word_count=n,
        unique_words=len(unique),
        sentence_count=len(sentences),
        avg_word_length=round(sum(w.length for w in words) / n, 2) if n else 0.0,
        avg_words_per_sentence=round(n / len(sentences), 2) if sentences else 0.0,
        punctuation_count=len(tokens) - n,
        type_token_ratio=round(len(unique) / n, 3) if n else 0.0,
    )
