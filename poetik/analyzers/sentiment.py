"""Sentiment stage: whole text, per sentence, per word in context."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import numpy as np

from poetik.collaborators import Collaborators, chunked_gather, classify_sentiment
from poetik.config import PipelineConfig
from poetik.models import (
    EmotionalPeak,
    InferenceOutcome,
    Sentence,
    SentenceSentiment,
    SentimentAnalysis,
    SentimentConsistency,
    SentimentLabel,
    SentimentShift,
    SentimentStatistics,
    SentimentTrend,
    Token,
)

logger = logging.getLogger("poetik")

NEUTRAL_BAND = 0.2
PEAK_SCORE = 0.75
PEAK_CONFIDENCE = 0.7
TREND_MIN_POINTS = 5
TREND_STABLE_SLOPE = 0.01
SHIFT_MIN_POINTS = 3
SHIFT_JUMP = 0.5


def context_text(tokens: Sequence[Token], index: int, window: int) -> str:
    """Token texts within *window* tokens either side of ``tokens[index]``."""
    start = max(0, index - window)
    end = min(len(tokens), index + window + 1)
    return " ".join(t.text for t in tokens[start:end])


def _scored(tokens: Sequence[Token]) -> list[Token]:
    return [
        t for t in tokens
        if t.is_word and t.sentiment is not None and t.sentiment.is_ok
    ]


def _label_of(outcome: InferenceOutcome) -> SentimentLabel:
    try:
        return SentimentLabel(outcome.label)
    except ValueError:
        return SentimentLabel.neutral


# ── Aggregates ───────────────────────────────────────────────────────────

def sentiment_statistics(tokens: Sequence[Token]) -> SentimentStatistics:
    """Counts, averages and overall label over scored word tokens.

    The overall label comes from the mean score with a neutral band of
    ±0.2; the dominant label is the most frequent one.
    """
    scored = _scored(tokens)
    if not scored:
        return SentimentStatistics(
            distribution={"positive": 0.0, "negative": 0.0, "neutral": 0.0},
        )

    counts = {label: 0 for label in SentimentLabel}
    for t in scored:
        counts[_label_of(t.sentiment)] += 1

    scores = [t.sentiment.score or 0.0 for t in scored]
    total = len(scored)
    average = sum(scores) / total
    avg_conf = sum(t.sentiment.confidence or 0.0 for t in scored) / total

    dominant = SentimentLabel.neutral
    top = max(counts.values())
    if counts[SentimentLabel.positive] == top and top > 0:
        dominant = SentimentLabel.positive
    elif counts[SentimentLabel.negative] == top and top > 0:
        dominant = SentimentLabel.negative

    if abs(average) < NEUTRAL_BAND:
        overall = SentimentLabel.neutral
    elif average > 0:
        overall = SentimentLabel.positive
    else:
        overall = SentimentLabel.negative

    return SentimentStatistics(
        overall=overall,
        dominant=dominant,
        positive_count=counts[SentimentLabel.positive],
        negative_count=counts[SentimentLabel.negative],
        neutral_count=counts[SentimentLabel.neutral],
        average_score=round(average, 3),
        average_confidence=round(avg_conf, 3),
        distribution={
            label.value: round(counts[label] / total * 100, 1) for label in SentimentLabel
        },
        emotional_range=round(max(scores) - min(scores), 3),
    )


def find_emotional_peaks(tokens: Sequence[Token]) -> list[EmotionalPeak]:
    peaks = []
    for t in _scored(tokens):
        score = t.sentiment.score or 0.0
        confidence = t.sentiment.confidence or 0.0
        if abs(score) > PEAK_SCORE and confidence > PEAK_CONFIDENCE:
            peaks.append(EmotionalPeak(
                position=t.position,
                word=t.text,
                label=t.sentiment.label or SentimentLabel.neutral.value,
                score=score,
                confidence=confidence,
            ))
    peaks.sort(key=lambda p: abs(p.score), reverse=True)
    return peaks


def sentiment_trend(tokens: Sequence[Token]) -> SentimentTrend:
    """Least-squares slope of word scores over their order."""
    scored = _scored(tokens)
    if len(scored) < TREND_MIN_POINTS:
        return SentimentTrend()

    y = np.asarray([t.sentiment.score or 0.0 for t in scored], dtype=float)
    x = np.arange(len(y), dtype=float)
    slope = float(np.polyfit(x, y, 1)[0])

    if abs(slope) < TREND_STABLE_SLOPE:
        trend, direction = "stable", "neutral"
    elif slope > 0:
        trend, direction = "improving", "positive"
    else:
        trend, direction = "declining", "negative"

    return SentimentTrend(
        trend=trend,
        slope=round(slope, 4),
        direction=direction,
        confidence=round(min(abs(slope) * 10, 1.0), 3),
    )


def sentiment_shifts(tokens: Sequence[Token]) -> list[SentimentShift]:
    scored = _scored(tokens)
    if len(scored) < SHIFT_MIN_POINTS:
        return []

    shifts = []
    for prev, curr in zip(scored, scored[1:]):
        diff = (curr.sentiment.score or 0.0) - (prev.sentiment.score or 0.0)
        if abs(diff) > SHIFT_JUMP:
            shifts.append(SentimentShift(
                position=curr.position,
                word=curr.text,
                from_label=prev.sentiment.label or "",
                to_label=curr.sentiment.label or "",
                magnitude=round(abs(diff), 3),
                direction="positive" if diff > 0 else "negative",
            ))
    return shifts


def sentiment_consistency(tokens: Sequence[Token]) -> SentimentConsistency:
    scored = _scored(tokens)
    if len(scored) < 2:
        return SentimentConsistency()

    scores = np.asarray([t.sentiment.score or 0.0 for t in scored], dtype=float)
    variance = float(np.var(scores))
    std = float(np.sqrt(variance))
    consistency = max(0.0, 1 - std)

    if consistency > 0.8:
        interpretation = "very consistent"
    elif consistency > 0.6:
        interpretation = "consistent"
    elif consistency > 0.4:
        interpretation = "moderately variable"
    else:
        interpretation = "highly variable"

    return SentimentConsistency(
        consistency=round(consistency, 3),
        variance=round(variance, 3),
        standard_deviation=round(std, 3),
        is_consistent=consistency > 0.7,
        interpretation=interpretation,
    )


# ── Stage ────────────────────────────────────────────────────────────────

async def score_words(
    tokens: Sequence[Token],
    collaborators: Collaborators,
    config: PipelineConfig,
    cancel_check: Optional[Callable[[], bool]] = None,
) -> list[Token]:
    """Attach a context-window sentiment outcome to every word token."""
    window = config.processing.context_window
    indices = [i for i, t in enumerate(tokens) if t.is_word]

    async def one(i: int) -> InferenceOutcome:
        return await classify_sentiment(collaborators.sentiment, context_text(tokens, i, window))

    outcomes = await chunked_gather(
        indices, one,
        chunk_size=config.processing.batch_size,
        cancel_check=cancel_check,
        stage="word_sentiment",
    )
    by_index = dict(zip(indices, outcomes))
    return [
        t.model_copy(update={"sentiment": by_index[i]}) if i in by_index else t
        for i, t in enumerate(tokens)
    ]


async def run_sentiment_analysis(
    text: str,
    tokens: Sequence[Token],
    sentences: Sequence[Sentence],
    collaborators: Collaborators,
    config: PipelineConfig,
    cancel_check: Optional[Callable[[], bool]] = None,
    include_sentences: bool = True,
) -> tuple[Optional[SentimentAnalysis], list[Token]]:
    """
    Run the sentiment passes.

    Returns:
        (analysis or None when no classifier is available, tokens with
        word-level sentiment attached)
    """
    if collaborators.sentiment is None:
        logger.info("Sentiment classifier unavailable; skipping sentiment")
        return None, list(tokens)

    logger.info("Running sentiment analysis...")
    overall = await classify_sentiment(collaborators.sentiment, text)

    sentence_results: list[SentenceSentiment] = []
    if include_sentences:
        outcomes = await chunked_gather(
            list(sentences),
            lambda s: classify_sentiment(collaborators.sentiment, s.text),
            chunk_size=config.processing.batch_size,
            cancel_check=cancel_check,
            stage="sentence_sentiment",
        )
        sentence_results = [
            SentenceSentiment(sentence_index=s.index, text=s.text, sentiment=o)
            for s, o in zip(sentences, outcomes)
        ]

    scored_tokens = await score_words(tokens, collaborators, config, cancel_check)

    failed = sum(
        1 for t in scored_tokens
        if t.sentiment is not None and not t.sentiment.is_ok
    )
    if failed:
        logger.warning("%d word sentiment calls failed", failed)

    analysis = SentimentAnalysis(
        overall=overall,
        sentences=sentence_results,
        statistics=sentiment_statistics(scored_tokens),
        peaks=find_emotional_peaks(scored_tokens),
        trend=sentiment_trend(scored_tokens),
        shifts=sentiment_shifts(scored_tokens),
        consistency=sentiment_consistency(scored_tokens),
    )
    logger.info(
        "Sentiment complete: overall=%s, %d sentences, %d peaks, %d shifts",
        overall.label or overall.status.value, len(sentence_results),
        len(analysis.peaks), len(analysis.shifts),
    )
    return analysis, scored_tokens
