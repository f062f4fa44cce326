"""Vector math over word embeddings: similarity, semantic fields, drift.

Embeddings come from an external provider and are expected to be unit
length. Nothing here calls a provider; the functions are pure.
"""

from __future__ import annotations

from collections import deque
from typing import Optional, Sequence

import numpy as np

from poetik.models import (
    Cohesion,
    SemanticDiversity,
    SemanticField,
    SimilarityPair,
    ThematicDevelopment,
    ThematicSegment,
    ThematicShift,
    WordEmbedding,
)

_EPS = 1e-8


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*.

    Returns 0.0 for vectors of different dimension or with zero norm.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    na = np.linalg.norm(va)
    nb = np.linalg.norm(vb)
    if na < _EPS or nb < _EPS:
        return 0.0
    sim = float(np.dot(va, vb) / (na * nb))
    return max(-1.0, min(1.0, sim))


def centroid(vectors: Sequence[Sequence[float]]) -> Optional[np.ndarray]:
    """Mean vector, or None for an empty input."""
    if not vectors:
        return None
    return np.mean(np.asarray(vectors, dtype=float), axis=0)


def categorize_similarity(sim: float, medium: float = 0.5, high: float = 0.8) -> str:
    if sim >= high:
        return "very_similar"
    if sim >= medium:
        return "similar"
    return "somewhat_similar"


def pairwise_similarities(
    embeddings: Sequence[WordEmbedding],
    medium: float = 0.5,
    high: float = 0.8,
) -> list[SimilarityPair]:
    """All word pairs whose similarity exceeds *medium*, most similar first."""
    pairs = []
    for i in range(len(embeddings)):
        for j in range(i + 1, len(embeddings)):
            a, b = embeddings[i], embeddings[j]
            sim = cosine_similarity(a.embedding, b.embedding)
            if sim > medium:
                pairs.append(SimilarityPair(
                    word_i=a.word,
                    word_j=b.word,
                    similarity=round(sim, 3),
                    position_i=a.position,
                    position_j=b.position,
                    category=categorize_similarity(sim, medium, high),
                ))
    pairs.sort(key=lambda p: p.similarity, reverse=True)
    return pairs


def cluster_coherence(vectors: Sequence[Sequence[float]]) -> float:
    """Mean pairwise cosine similarity inside a group; 1.0 below two members."""
    if len(vectors) < 2:
        return 1.0
    total = 0.0
    count = 0
    for i in range(len(vectors)):
        for j in range(i + 1, len(vectors)):
            total += cosine_similarity(vectors[i], vectors[j])
            count += 1
    return round(total / count, 3)


def identify_semantic_fields(
    embeddings: Sequence[WordEmbedding],
    threshold: float = 0.5,
    max_fields: int = 10,
    representatives: int = 3,
) -> list[SemanticField]:
    """Connected components of the similarity graph over distinct words.

    An edge joins two words whose similarity exceeds *threshold*. Singleton
    components are dropped; fields come back largest first.
    """
    if len(embeddings) < 3:
        return []

    vectors: dict[str, Sequence[float]] = {}
    for emb in embeddings:
        vectors.setdefault(emb.word, emb.embedding)
    words = list(vectors)

    graph: dict[str, set[str]] = {w: set() for w in words}
    for i in range(len(words)):
        for j in range(i + 1, len(words)):
            if cosine_similarity(vectors[words[i]], vectors[words[j]]) > threshold:
                graph[words[i]].add(words[j])
                graph[words[j]].add(words[i])

    visited: set[str] = set()
    fields: list[SemanticField] = []
    for start in words:
        if start in visited:
            continue
        component: list[str] = []
        queue = deque([start])
        visited.add(start)
        while queue:
            current = queue.popleft()
            component.append(current)
            for neighbor in graph[current]:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        if len(component) < 2:
            continue

        members = [vectors[w] for w in component]
        center = centroid(members)
        ranked = sorted(
            component,
            key=lambda w: cosine_similarity(vectors[w], center),
            reverse=True,
        )
        fields.append(SemanticField(
            words=component,
            representatives=ranked[:representatives],
            coherence=cluster_coherence(members),
        ))

    fields.sort(key=lambda f: f.size, reverse=True)
    return fields[:max_fields]


def text_cohesion(embeddings: Sequence[WordEmbedding]) -> Cohesion:
    """0.6 * neighbour similarity + 0.4 * closeness to the centroid."""
    if len(embeddings) < 2:
        return Cohesion(score=0.0, interpretation="too few words")

    vectors = [e.embedding for e in embeddings]
    sequential = float(np.mean([
        cosine_similarity(vectors[i], vectors[i + 1])
        for i in range(len(vectors) - 1)
    ]))
    center = centroid(vectors)
    distance = float(np.mean([1 - cosine_similarity(v, center) for v in vectors]))
    central = 1 - distance
    score = sequential * 0.6 + central * 0.4

    if score > 0.7:
        interpretation = "very cohesive"
    elif score > 0.5:
        interpretation = "cohesive"
    elif score > 0.3:
        interpretation = "moderately cohesive"
    else:
        interpretation = "weakly cohesive"

    return Cohesion(
        score=round(score, 3),
        sequential=round(sequential, 3),
        central=round(central, 3),
        interpretation=interpretation,
    )


def thematic_development(
    embeddings: Sequence[WordEmbedding],
    window: int = 5,
    shift_threshold: float = 0.5,
) -> ThematicDevelopment:
    """Compare centroids of consecutive non-overlapping windows.

    A centroid similarity below *shift_threshold* is a thematic shift of
    magnitude ``1 - similarity``. Needs at least two full windows.
    """
    if window < 1 or len(embeddings) < window * 2:
        return ThematicDevelopment(interpretation="text too short for development analysis")

    segments: list[ThematicSegment] = []
    centers = []
    for start in range(0, len(embeddings) - window + 1, window):
        chunk = embeddings[start:start + window]
        vectors = [e.embedding for e in chunk]
        centers.append(centroid(vectors))
        segments.append(ThematicSegment(
            start_position=chunk[0].position,
            end_position=chunk[-1].position,
            words=[e.word for e in chunk],
            coherence=cluster_coherence(vectors),
        ))

    shifts: list[ThematicShift] = []
    for i in range(len(segments) - 1):
        sim = cosine_similarity(centers[i], centers[i + 1])
        if sim < shift_threshold:
            magnitude = 1 - sim
            shifts.append(ThematicShift(
                position=segments[i].end_position,
                from_segment=i,
                to_segment=i + 1,
                magnitude=round(magnitude, 3),
                from_words=segments[i].words[-3:],
                to_words=segments[i + 1].words[:3],
                type="major" if magnitude > 0.7 else "minor",
            ))

    avg_shift = float(np.mean([s.magnitude for s in shifts])) if shifts else 0.0
    consistency = 1 - avg_shift

    if consistency > 0.7:
        interpretation = "thematically consistent"
    elif consistency > 0.5:
        interpretation = "moderate thematic development"
    else:
        interpretation = "strong thematic changes"

    return ThematicDevelopment(
        segments=segments,
        shifts=shifts,
        consistency=round(consistency, 3),
        interpretation=interpretation,
        has_progressive_narrative=bool(shifts) and all(s.type == "minor" for s in shifts),
    )


def semantic_diversity(embeddings: Sequence[WordEmbedding]) -> SemanticDiversity:
    """Mean pairwise cosine distance."""
    if len(embeddings) < 2:
        return SemanticDiversity(diversity=0.0, interpretation="too little data")

    total = 0.0
    comparisons = 0
    for i in range(len(embeddings)):
        for j in range(i + 1, len(embeddings)):
            total += 1 - cosine_similarity(embeddings[i].embedding, embeddings[j].embedding)
            comparisons += 1
    avg = total / comparisons

    if avg > 0.6:
        interpretation = "very diverse"
    elif avg > 0.4:
        interpretation = "diverse"
    elif avg > 0.2:
        interpretation = "moderately diverse"
    else:
        interpretation = "focused"

    return SemanticDiversity(
        diversity=round(avg, 3),
        interpretation=interpretation,
        comparisons=comparisons,
    )
