"""Token stage: entity and POS annotation, frequencies, compounds, diversity."""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from dataclasses import dataclass, field
from typing import Sequence

from poetik.collaborators import (
    Collaborators,
    call_collaborator,
    coerce_entities,
    extract_pos_tag,
    normalize_entity_type,
    parse_morphology,
)
from poetik.config import PipelineConfig
from poetik.errors import CollaboratorError, InvariantViolation
from poetik.models import (
    CompoundWord,
    DistributionEntry,
    Entity,
    FrequencyAnalysis,
    RareWord,
    Token,
    TokenAnalysis,
    TokenDiversity,
    WordFrequency,
)
from poetik.utils.pos_rules import SYMBOL_SCORE, SYMBOL_TAG, tag_pos

logger = logging.getLogger("poetik")

CONTENT_TAGS = frozenset({"NOUN", "VERB", "ADJ", "ADV"})
RARE_WORD_TAGS = frozenset({"NOUN", "VERB", "ADJ"})
COMPOUND_MIN_LENGTH = 12
RARE_WORD_MIN_LENGTH = 5


def check_positions(tokens: Sequence[Token], stage: str) -> None:
    """Positions must equal list indices; anything else is a segmentation bug."""
    for i, t in enumerate(tokens):
        if t.position != i:
            raise InvariantViolation(stage, f"token at index {i} has position {t.position}", t.text)


# ── Annotation ───────────────────────────────────────────────────────────

def apply_entities(
    tokens: Sequence[Token],
    entities: Sequence[Entity],
    min_score: float = 0.75,
) -> list[Token]:
    """Tag tokens whose lowercased text equals an entity word exactly.

    Entities below *min_score* are ignored. Partial matches never count.
    """
    accepted: dict[str, Entity] = {}
    for ent in entities:
        if ent.score < min_score:
            continue
        key = ent.word.lower()
        if key not in accepted or ent.score > accepted[key].score:
            accepted[key] = ent

    out = []
    for t in tokens:
        ent = None if not t.is_word else accepted.get(t.text.lower())
        if ent is None:
            out.append(t)
            continue
        out.append(t.model_copy(update={
            "entity_type": normalize_entity_type(ent.label),
            "entity_score": round(ent.score, 3),
        }))
    return out


def apply_morphology(tokens: Sequence[Token], predictions: Sequence[Entity]) -> list[Token]:
    """Attach UD features to every word token whose lowercased text equals a
    prediction word. The highest-scoring prediction per word wins."""
    best: dict[str, Entity] = {}
    for pred in predictions:
        key = pred.word.lower()
        if key not in best or pred.score > best[key].score:
            best[key] = pred

    out = []
    for t in tokens:
        pred = best.get(t.text.lower()) if t.is_word else None
        features = parse_morphology(pred.label) if pred is not None else {}
        if not features:
            out.append(t)
            continue
        out.append(t.model_copy(update={
            "morphology": features,
            "morphology_score": round(pred.score, 3),
        }))
    return out


def apply_ml_pos(tokens: Sequence[Token], predictions: Sequence[Entity]) -> list[Token]:
    """Assign model POS tags, matching predictions to word tokens in order.

    Each prediction claims the next unclaimed word token with the same
    lowercased text. Punctuation is PUNCT; unmatched words become ``X``.
    """
    tags: dict[int, tuple[str, float]] = {}
    words = [t for t in tokens if t.is_word]
    cursor = 0
    for pred in predictions:
        target = pred.word.lower()
        for k in range(cursor, len(words)):
            if words[k].text.lower() == target:
                tags[words[k].position] = (extract_pos_tag(pred.label), round(pred.score, 3))
                cursor = k + 1
                break

    out = []
    for t in tokens:
        if t.is_punctuation:
            tag, score = "PUNCT", 1.0
        elif t.is_symbol:
            tag, score = SYMBOL_TAG, SYMBOL_SCORE
        else:
            tag, score = tags.get(t.position, ("X", 0.0))
        out.append(t.model_copy(update={"pos_tag": tag, "pos_score": score}))
    return out


@dataclass
class TokenAnnotation:
    tokens: list[Token]
    pos_source: str = "rules"
    ner_used: bool = False
    morphology_used: bool = False
    warnings: list[str] = field(default_factory=list)


async def annotate_tokens(
    text: str,
    tokens: Sequence[Token],
    collaborators: Collaborators,
    config: PipelineConfig,
    use_models: bool = True,
) -> TokenAnnotation:
    """Add entity, morphology and POS annotations.

    The model tagger overrides the rule tagger when it succeeds; on any
    failure, or with *use_models* off, the rule tagger is the only source.
    """
    warnings: list[str] = []
    annotated = list(tokens)
    ner_used = False
    morphology_used = False

    if use_models and collaborators.ner is not None:
        try:
            raw = await call_collaborator("ner", collaborators.ner, "recognize", text)
            entities = coerce_entities(raw)
            annotated = apply_entities(annotated, entities, config.thresholds.ner_min_score)
            ner_used = True
            logger.info("NER: %d entities returned", len(entities))
        except CollaboratorError as e:
            logger.warning("NER failed: %s", e.reason)
            warnings.append(f"ner: {e.reason}")

    if use_models and collaborators.morphology is not None:
        try:
            raw = await call_collaborator("morphology", collaborators.morphology, "analyze", text)
            annotated = apply_morphology(annotated, coerce_entities(raw))
            morphology_used = True
        except CollaboratorError as e:
            logger.warning("Morphology failed: %s", e.reason)
            warnings.append(f"morphology: {e.reason}")

    pos_source = "rules"
    if use_models and collaborators.pos is not None:
        try:
            raw = await call_collaborator("pos", collaborators.pos, "tag", text)
            annotated = apply_ml_pos(annotated, coerce_entities(raw))
            pos_source = "ml"
        except CollaboratorError as e:
            logger.warning("POS model failed, using rule tagger: %s", e.reason)
            warnings.append(f"pos: {e.reason}")

    if pos_source == "rules":
        annotated = tag_pos(annotated)

    check_positions(annotated, "token_annotation")
    return TokenAnnotation(
        tokens=annotated,
        pos_source=pos_source,
        ner_used=ner_used,
        morphology_used=morphology_used,
        warnings=warnings,
    )


# ── Statistics ───────────────────────────────────────────────────────────

def analyze_word_frequencies(tokens: Sequence[Token]) -> FrequencyAnalysis:
    words = [t for t in tokens if t.is_word]
    if not words:
        return FrequencyAnalysis()

    entries: dict[str, WordFrequency] = {}
    for t in words:
        key = t.text.lower()
        entry = entries.get(key)
        if entry is None:
            entry = WordFrequency(
                word=t.text,
                pos_tag=t.pos_tag,
                entity_type=t.entity_type,
                first_occurrence=t.position,
            )
            entries[key] = entry
        entry.count += 1
        entry.positions.append(t.position)

    ranked = sorted(entries.values(), key=lambda e: e.count, reverse=True)
    counts = [e.count for e in ranked]
    return FrequencyAnalysis(
        frequencies=ranked,
        total_words=len(words),
        unique_words=len(ranked),
        lexical_diversity=round(len(ranked) / len(words), 3),
        hapax_legomena=sum(1 for c in counts if c == 1),
        mean_frequency=round(len(words) / len(ranked), 3),
        median_frequency=float(statistics.median(counts)),
    )


def find_compound_words(tokens: Sequence[Token]) -> list[CompoundWord]:
    """Long single words and adjacent NOUN NOUN pairs."""
    compounds = [
        CompoundWord(word=t.text, position=t.position, type="long_word", pos_tag=t.pos_tag)
        for t in tokens
        if t.is_word and len(t.text) >= COMPOUND_MIN_LENGTH
    ]
    for cur, nxt in zip(tokens, tokens[1:]):
        if cur.pos_tag == "NOUN" and nxt.pos_tag == "NOUN" and nxt.is_word:
            compounds.append(CompoundWord(
                word=f"{cur.text} {nxt.text}",
                position=cur.position,
                type="noun_compound",
                components=[cur.text, nxt.text],
                pos_tag="NOUN",
            ))
    return compounds


def find_rare_words(frequencies: FrequencyAnalysis) -> list[RareWord]:
    """Hapax content words of five or more characters."""
    return [
        RareWord(
            word=f.word,
            position=f.first_occurrence,
            pos_tag=f.pos_tag,
            entity_type=f.entity_type,
        )
        for f in frequencies.frequencies
        if f.count == 1 and len(f.word) >= RARE_WORD_MIN_LENGTH and f.pos_tag in RARE_WORD_TAGS
    ]


def _distribution(counter: Counter, total: int) -> list[DistributionEntry]:
    return [
        DistributionEntry(tag=tag, count=count, percentage=round(count / total * 100, 1))
        for tag, count in counter.most_common()
    ]


def analyze_token_diversity(tokens: Sequence[Token]) -> TokenDiversity:
    words = [t for t in tokens if t.is_word]
    if not words:
        return TokenDiversity()

    total = len(words)
    pos = Counter(t.pos_tag for t in words if t.pos_tag)
    ents = Counter(t.entity_type for t in words if t.entity_type)
    return TokenDiversity(
        pos_distribution=_distribution(pos, total),
        entity_distribution=_distribution(ents, total),
        content_word_ratio=round(sum(1 for t in words if t.pos_tag in CONTENT_TAGS) / total, 3),
        named_entity_ratio=round(sum(1 for t in words if t.entity_type) / total, 3),
    )


def build_token_analysis(tokens: Sequence[Token]) -> TokenAnalysis:
    frequencies = analyze_word_frequencies(tokens)
    return TokenAnalysis(
        frequencies=frequencies,
        compounds=find_compound_words(tokens),
        rare_words=find_rare_words(frequencies),
        diversity=analyze_token_diversity(tokens),
    )
