"""Semantic stage: embeddings, semantic fields, key phrases, cohesion, drift."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from poetik.analyzers.tokens import CONTENT_TAGS
from poetik.collaborators import Collaborators, chunked_gather, embed_text
from poetik.config import PipelineConfig
from poetik.models import KeyPhrase, SemanticAnalysis, Token, WordEmbedding
from poetik.utils.semantic import (
    cosine_similarity,
    identify_semantic_fields,
    pairwise_similarities,
    semantic_diversity,
    text_cohesion,
    thematic_development,
)

logger = logging.getLogger("poetik")

KEY_CONTENT_WORDS = 8
KEY_OTHER_WORDS = 2
MAX_MULTI_WORD = 5
MAX_KEY_PHRASES = 15


async def embed_words(
    tokens: Sequence[Token],
    collaborators: Collaborators,
    config: PipelineConfig,
    cancel_check: Optional[Callable[[], bool]] = None,
) -> list[WordEmbedding]:
    """Embed word tokens of at least ``min_word_length`` characters.

    Words whose call fails are left out.
    """
    candidates = [
        t for t in tokens
        if t.is_word and len(t.text) >= config.processing.min_word_length
    ]
    vectors = await chunked_gather(
        candidates,
        lambda t: embed_text(collaborators.embeddings, t.text),
        chunk_size=config.processing.batch_size,
        cancel_check=cancel_check,
        stage="word_embeddings",
    )
    return [
        WordEmbedding(
            word=t.text,
            position=t.position,
            embedding=v,
            pos_tag=t.pos_tag,
            entity_type=t.entity_type,
        )
        for t, v in zip(candidates, vectors)
        if v is not None
    ]


def extract_key_phrases(
    embeddings: Sequence[WordEmbedding],
    text_vector: Optional[Sequence[float]],
    tokens: Sequence[Token],
) -> list[KeyPhrase]:
    """Words closest to the whole-text embedding, content words first.

    Two adjacent key words also form a multi-word phrase scored with their
    mean importance.
    """
    if not embeddings or not text_vector:
        return []

    ranked = sorted(
        ((cosine_similarity(e.embedding, text_vector), e) for e in embeddings),
        key=lambda pair: pair[0],
        reverse=True,
    )
    content = [(s, e) for s, e in ranked if e.pos_tag in CONTENT_TAGS][:KEY_CONTENT_WORDS]
    other = [(s, e) for s, e in ranked if e.pos_tag not in CONTENT_TAGS][:KEY_OTHER_WORDS]

    singles = [
        KeyPhrase(
            phrase=e.word,
            type="content_word" if e.pos_tag in CONTENT_TAGS else "function_word",
            importance=round(s, 3),
            position=e.position,
            pos_tag=e.pos_tag,
        )
        for s, e in content + other
    ]

    by_position = {k.position: k for k in singles}
    multi: list[KeyPhrase] = []
    for cur, nxt in zip(tokens, tokens[1:]):
        if not (cur.is_word and nxt.is_word):
            continue
        a = by_position.get(cur.position)
        b = by_position.get(nxt.position)
        if a is None or b is None:
            continue
        multi.append(KeyPhrase(
            phrase=f"{cur.text} {nxt.text}",
            type="multi_word",
            importance=round((a.importance + b.importance) / 2, 3),
            position=cur.position,
            pos_tag=f"{cur.pos_tag}+{nxt.pos_tag}",
        ))
        if len(multi) >= MAX_MULTI_WORD:
            break

    phrases = singles + multi
    phrases.sort(key=lambda k: k.importance, reverse=True)
    return phrases[:MAX_KEY_PHRASES]


async def run_semantic_analysis(
    text: str,
    tokens: Sequence[Token],
    collaborators: Collaborators,
    config: PipelineConfig,
    cancel_check: Optional[Callable[[], bool]] = None,
) -> Optional[SemanticAnalysis]:
    """Semantic analysis, or None when no embedding provider is available."""
    if collaborators.embeddings is None:
        logger.info("Embedding provider unavailable; skipping semantics")
        return None

    logger.info("Running semantic analysis...")
    th = config.thresholds
    proc = config.processing

    text_vector = await embed_text(collaborators.embeddings, text)
    embeddings = await embed_words(tokens, collaborators, config, cancel_check)

    result = SemanticAnalysis(
        embedded_words=len(embeddings),
        text_embedding_dim=len(text_vector) if text_vector else 0,
        similarities=pairwise_similarities(embeddings, th.similarity_medium, th.similarity_high),
        semantic_fields=identify_semantic_fields(
            embeddings,
            threshold=th.similarity_medium,
            max_fields=proc.max_semantic_fields,
        ),
        key_phrases=extract_key_phrases(embeddings, text_vector, tokens),
        cohesion=text_cohesion(embeddings),
        thematic_development=thematic_development(
            embeddings,
            window=proc.semantic_window,
            shift_threshold=th.thematic_shift,
        ),
        diversity=semantic_diversity(embeddings),
    )
    logger.info(
        "Semantics complete: %d embedded words, %d fields, %d key phrases",
        result.embedded_words, len(result.semantic_fields), len(result.key_phrases),
    )
    return result
