"""Rule-based (no inference) analysis: segmentation, style, readability."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from poetik.config import PipelineConfig
from poetik.errors import InvariantViolation
from poetik.models import (
    ReadabilityMetrics,
    Sentence,
    SyntaxAnalysis,
    TextStatistics,
    Token,
    Verse,
)
from poetik.utils import readability, style
from poetik.utils.segmentation import detect_verses, segment_sentences, tokenize

logger = logging.getLogger("poetik")


@dataclass
class Segmentation:
    tokens: list[Token] = field(default_factory=list)
    sentences: list[Sentence] = field(default_factory=list)
    verses: list[Verse] = field(default_factory=list)


def segment(text: str) -> Segmentation:
    """Tokens, sentences and verses of already validated text."""
    tokens = tokenize(text)
    for i, t in enumerate(tokens):
        if t.position != i or text[t.char_offset:t.char_offset + len(t.text)] != t.text:
            raise InvariantViolation("tokenize", f"token {i} does not match its offset", t.text)

    result = Segmentation(
        tokens=tokens,
        sentences=segment_sentences(text),
        verses=detect_verses(text),
    )
    logger.info(
        "Segmentation: %d tokens, %d sentences, %d verses",
        len(result.tokens), len(result.sentences), len(result.verses),
    )
    return result


def analyze_syntax(
    tokens: Sequence[Token],
    sentences: Sequence[Sentence],
    verses: Sequence[Verse],
    config: PipelineConfig,
) -> SyntaxAnalysis:
    th = config.thresholds
    proc = config.processing

    rhyme = None
    if verses:
        rhyme = style.analyze_rhyme_scheme(
            verses,
            threshold=th.rhyme_similarity,
            ending_length=proc.rhyme_ending_length,
        )
        if len(rhyme.pattern) != len(verses):
            raise InvariantViolation(
                "rhyme_scheme",
                f"pattern has {len(rhyme.pattern)} letters for {len(verses)} verses",
            )

    result = SyntaxAnalysis(
        sentence_structure=style.analyze_sentence_structure(sentences),
        rhyme_scheme=rhyme,
        alliterations=style.detect_alliterations(tokens),
        repetitions=style.find_repetitions(tokens, min_length=proc.repetition_min_length),
        parallelism=style.detect_parallelism(sentences, threshold=th.parallelism),
        punctuation=style.analyze_punctuation(tokens),
    )
    logger.info(
        "Syntax: rhyme=%s, %d repetitions, %d parallel pairs, %d alliterations",
        rhyme.scheme if rhyme else "-", len(result.repetitions),
        len(result.parallelism), len(result.alliterations),
    )
    return result


def analyze_readability(
    tokens: Sequence[Token],
    sentences: Sequence[Sentence],
) -> tuple[ReadabilityMetrics, TextStatistics]:
    metrics = readability.score(tokens, sentences)
    stats = readability.calculate_statistics(tokens, sentences)
    logger.info(
        "Readability: Flesch %.1f (%s), Wiener %.2f",
        metrics.flesch_reading_ease, metrics.ease_band, metrics.wiener_index,
    )
    return metrics, stats
