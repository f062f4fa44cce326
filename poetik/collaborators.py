"""Interfaces to external inference providers and result normalisation.

Providers return loosely shaped data: a dict, a list holding one dict, or
a list of lists. Everything is normalised here, so the analyzers only ever
see ``InferenceOutcome``, ``Entity`` and plain float vectors.
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from poetik.errors import AnalysisCancelled, CollaboratorError, CollaboratorUnavailable
from poetik.models import Entity, InferenceOutcome, ModelsUsed, SentimentLabel

logger = logging.getLogger("poetik")

T = TypeVar("T")
R = TypeVar("R")


# ── Interfaces ───────────────────────────────────────────────────────────

class SentimentClassifier(ABC):
    """Text classifier returning ``{"label": str, "score": float}``."""

    @abstractmethod
    async def classify(self, text: str) -> Any:
        raise NotImplementedError


class EntityRecognizer(ABC):
    """Token classifier returning a list of ``{word, entity_group, score, start, end}``."""

    @abstractmethod
    async def recognize(self, text: str) -> Any:
        raise NotImplementedError


class PosTagger(ABC):
    """Same output shape as :class:`EntityRecognizer`, with POS labels."""

    @abstractmethod
    async def tag(self, text: str) -> Any:
        raise NotImplementedError


class MorphologyTagger(ABC):
    """Same output shape as :class:`EntityRecognizer`; labels are UD feature
    strings such as ``Case=Nom|Gender=Masc|Number=Sing``."""

    @abstractmethod
    async def analyze(self, text: str) -> Any:
        raise NotImplementedError


class EmbeddingProvider(ABC):
    """Fixed-dimension, unit-length text embeddings."""

    @abstractmethod
    async def embed(self, text: str) -> Sequence[float]:
        raise NotImplementedError


@dataclass
class Collaborators:
    """Optional providers; ``None`` means unavailable."""

    sentiment: Optional[SentimentClassifier] = None
    ner: Optional[EntityRecognizer] = None
    pos: Optional[PosTagger] = None
    embeddings: Optional[EmbeddingProvider] = None
    morphology: Optional[MorphologyTagger] = None
    client: Any = None

    def availability(self) -> ModelsUsed:
        return ModelsUsed(
            sentiment=self.sentiment is not None,
            ner=self.ner is not None,
            pos=self.pos is not None,
            embeddings=self.embeddings is not None,
            morphology=self.morphology is not None,
        )

    def call_log(self) -> list[dict]:
        """Per-attempt timings recorded by the shared inference client."""
        if self.client is None:
            return []
        return self.client.call_log


# ── Label normalisation ──────────────────────────────────────────────────

STAR_SCORES: dict[int, tuple[SentimentLabel, float]] = {
    5: (SentimentLabel.positive, 0.9),
    4: (SentimentLabel.positive, 0.6),
    3: (SentimentLabel.neutral, 0.0),
    2: (SentimentLabel.negative, -0.6),
    1: (SentimentLabel.negative, -0.9),
}

POSITIVE_LABELS = ("positive", "positiv", "pos", "good", "great")
NEGATIVE_LABELS = ("negative", "negativ", "neg", "bad", "poor")

_STARS = re.compile(r"([1-5])\s*stars?")
_BIO_PREFIX = re.compile(r"^[BI]-")

ENTITY_TYPES = {
    "PER": "PER",
    "PERSON": "PER",
    "LOC": "LOC",
    "LOCATION": "LOC",
    "ORG": "ORG",
    "ORGANIZATION": "ORG",
    "ORGANISATION": "ORG",
    "MISC": "MISC",
    "MISCELLANEOUS": "MISC",
    "DATE": "DATE",
    "TIME": "TIME",
    "MONEY": "MONEY",
    "PERCENT": "PERCENT",
}

UNIVERSAL_POS = frozenset({
    "NOUN", "VERB", "ADJ", "ADV", "PRON", "DET", "ADP", "CCONJ", "SCONJ",
    "NUM", "AUX", "PART", "INTJ", "PUNCT", "X",
})

POS_ALIASES = {"PROPN": "NOUN", "CONJ": "CCONJ", "SYM": "X"}


def _first_prediction(raw: Any) -> Optional[dict]:
    """Unwrap ``[{...}]`` / ``[[{...}]]`` / objects with attributes to a dict."""
    while isinstance(raw, (list, tuple)):
        if not raw:
            return None
        raw = raw[0]
    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw
    label = getattr(raw, "label", None)
    if label is None:
        return None
    return {"label": label, "score": getattr(raw, "score", None)}


def normalize_sentiment(raw: Any) -> InferenceOutcome:
    """Map a raw classifier prediction onto the three-way taxonomy.

    Star ratings get fixed scores. Keyword labels keep the model score as
    magnitude (negated for negative). An empty or unlabelled prediction is
    an error outcome; any other unrecognised label is neutral 0.
    """
    pred = _first_prediction(raw)
    if not pred or not pred.get("label"):
        return InferenceOutcome.error("empty or unlabelled prediction")

    raw_label = str(pred["label"])
    label = raw_label.lower()
    try:
        model_score = float(pred.get("score") or 0.0)
    except (TypeError, ValueError):
        model_score = 0.0

    stars = _STARS.search(label)
    if stars:
        mapped, score = STAR_SCORES[int(stars.group(1))]
        return InferenceOutcome.ok(mapped.value, score, confidence=model_score, raw_label=raw_label)

    if any(k in label for k in POSITIVE_LABELS):
        return InferenceOutcome.ok(
            SentimentLabel.positive.value, abs(model_score),
            confidence=model_score, raw_label=raw_label,
        )
    if any(k in label for k in NEGATIVE_LABELS):
        return InferenceOutcome.ok(
            SentimentLabel.negative.value, -abs(model_score),
            confidence=model_score, raw_label=raw_label,
        )
    return InferenceOutcome.ok(
        SentimentLabel.neutral.value, 0.0, confidence=model_score, raw_label=raw_label,
    )


def normalize_entity_type(label: Optional[str]) -> Optional[str]:
    """Strip BIO prefixes and map long labels to PER/LOC/ORG/MISC/..."""
    if not label:
        return None
    clean = _BIO_PREFIX.sub("", label)
    return ENTITY_TYPES.get(clean.upper(), clean)


def extract_pos_tag(label: Optional[str]) -> str:
    """Universal POS tag for a model label; unknown labels become ``X``."""
    if not label:
        return "X"
    clean = _BIO_PREFIX.sub("", label).upper()
    clean = POS_ALIASES.get(clean, clean)
    return clean if clean in UNIVERSAL_POS else "X"


def parse_morphology(label: Optional[str]) -> dict[str, str]:
    """UD feature string to a dict: ``Case=Nom|Number=Sing`` -> ``{"Case": "Nom", ...}``.

    Parts without ``key=value`` form are skipped.
    """
    if not label or "=" not in label:
        return {}
    features: dict[str, str] = {}
    for part in _BIO_PREFIX.sub("", str(label)).split("|"):
        key, sep, value = part.partition("=")
        if sep and key.strip() and value.strip():
            features[key.strip()] = value.strip()
    return features


def coerce_entities(raw: Any) -> list[Entity]:
    """Normalise a token-classification result into ``Entity`` objects.

    ``##`` subword markers are removed from words. Items without a word or
    label are dropped.
    """
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get("entities", [raw])

    entities = []
    for item in raw:
        if isinstance(item, (list, tuple)):
            entities.extend(coerce_entities(item))
            continue
        if not isinstance(item, dict):
            continue
        word = str(item.get("word", "")).strip()
        if word.startswith("##"):
            word = word[2:].strip()
        label = item.get("entity_group") or item.get("entity") or item.get("label")
        if not word or not label:
            continue
        try:
            score = float(item.get("score") or 0.0)
        except (TypeError, ValueError):
            score = 0.0
        entities.append(Entity(
            word=word,
            label=str(label),
            score=score,
            start=item.get("start"),
            end=item.get("end"),
        ))
    return entities


# ── Guarded calls ────────────────────────────────────────────────────────

async def call_collaborator(task: str, provider: Any, method: str, text: str) -> Any:
    """Invoke ``provider.method(text)`` with uniform error types.

    Raises ``CollaboratorUnavailable`` for a missing provider and wraps any
    other failure in ``CollaboratorError``.
    """
    if provider is None:
        raise CollaboratorUnavailable(task)
    try:
        return await getattr(provider, method)(text)
    except (CollaboratorUnavailable, CollaboratorError, AnalysisCancelled):
        raise
    except Exception as e:
        raise CollaboratorError(task, str(e) or type(e).__name__) from e


async def classify_sentiment(
    classifier: Optional[SentimentClassifier],
    text: str,
) -> InferenceOutcome:
    """Sentiment for one text; failures become ``unavailable``/``error`` outcomes."""
    try:
        raw = await call_collaborator("sentiment", classifier, "classify", text)
    except CollaboratorUnavailable as e:
        return InferenceOutcome.unavailable(str(e))
    except CollaboratorError as e:
        logger.warning("Sentiment call failed for %r: %s", text[:40], e.reason)
        return InferenceOutcome.error(e.reason)
    return normalize_sentiment(raw)


async def embed_text(
    provider: Optional[EmbeddingProvider],
    text: str,
) -> Optional[list[float]]:
    """Embedding for one text, or None when the call fails."""
    try:
        vector = await call_collaborator("embeddings", provider, "embed", text)
    except CollaboratorError as e:
        logger.warning("Embedding call failed for %r: %s", text[:40], e.reason)
        return None
    if vector is None:
        return None
    return [float(x) for x in vector]


async def chunked_gather(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    chunk_size: int = 16,
    cancel_check: Optional[Callable[[], bool]] = None,
    stage: str = "",
) -> list[R]:
    """Run *fn* over *items*, at most *chunk_size* calls in flight.

    Calls inside a chunk run concurrently. *cancel_check* is consulted
    before each chunk; a true result raises ``AnalysisCancelled`` and no
    further chunks start.
    """
    size = max(1, chunk_size)
    results: list[R] = []
    for start in range(0, len(items), size):
        if cancel_check is not None and cancel_check():
            raise AnalysisCancelled(stage)
        chunk = items[start:start + size]
        results.extend(await asyncio.gather(*(fn(item) for item in chunk)))
    return results
