"""Rhyme, repetition and other stylistic pattern detection."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Sequence

from poetik.models import (
    Alliteration,
    ParallelPair,
    PunctuationPattern,
    PunctuationStyle,
    Repetition,
    RhymePair,
    RhymeScheme,
    RhymeSchemeType,
    Sentence,
    SentenceStructure,
    SentenceType,
    Token,
    Verse,
)
from poetik.utils.readability import FUNCTION_WORDS
from poetik.utils.segmentation import SENTENCE_TERMINALS, extract_words, tokenize

KNOWN_SCHEMES: dict[str, RhymeSchemeType] = {
    "AABB": RhymeSchemeType.paired_rhyme,
    "ABAB": RhymeSchemeType.cross_rhyme,
    "ABBA": RhymeSchemeType.enclosed_rhyme,
    "AAAA": RhymeSchemeType.monorhyme,
}

PUNCTUATION_NAMES = {
    ".": "period",
    ",": "comma",
    "!": "exclamation",
    "?": "question",
}


# ── Rhyme ────────────────────────────────────────────────────────────────

def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit costs for insert, delete and substitute."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            cur.append(min(
                prev[j] + 1,
                cur[j - 1] + 1,
                prev[j - 1] + (ca != cb),
            ))
        prev = cur
    return prev[-1]


def ending_similarity(a: str, b: str) -> float:
    """Normalised Levenshtein similarity, ``1 - distance / max_length``."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def verse_ending(verse: Verse, length: int = 3) -> str:
    """Lowercased last *length* characters of the verse's last word."""
    words = extract_words(verse.text)
    if not words:
        return ""
    return words[-1].lower()[-length:]


def scheme_letter(index: int) -> str:
    """A..Z, then AA, AB, ... for long poems."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def classify_scheme(pattern: Sequence[str]) -> RhymeSchemeType:
    if len(pattern) < 4:
        return RhymeSchemeType.free_scheme
    return KNOWN_SCHEMES.get("".join(pattern[:4]), RhymeSchemeType.free_scheme)


def analyze_rhyme_scheme(
    verses: Sequence[Verse],
    threshold: float = 0.7,
    ending_length: int = 3,
) -> RhymeScheme:
    """Assign rhyme letters to verses in a single greedy pass.

    Each unlabeled verse opens a new letter and claims every later
    unlabeled verse whose ending similarity exceeds *threshold*. A labeled
    verse is never revisited.
    """
    endings = [verse_ending(v, ending_length) for v in verses]
    pattern: list[str | None] = [None] * len(verses)
    pairs: list[RhymePair] = []
    next_letter = 0

    for i in range(len(verses)):
        if pattern[i] is not None:
            continue
        letter = scheme_letter(next_letter)
        next_letter += 1
        pattern[i] = letter
        if not endings[i]:
            continue

        for j in range(i + 1, len(verses)):
            if pattern[j] is not None or not endings[j]:
                continue
            sim = ending_similarity(endings[i], endings[j])
            if sim > threshold:
                pattern[j] = letter
                pairs.append(RhymePair(verse_i=i, verse_j=j, similarity=round(sim, 3)))

    letters = [p for p in pattern if p is not None]
    return RhymeScheme(
        pattern=letters,
        pairs=pairs,
        endings=endings,
        scheme_label=classify_scheme(letters),
    )


# ── Repetition ───────────────────────────────────────────────────────────

def _is_terminal(token: Token) -> bool:
    return token.is_punctuation and token.text in SENTENCE_TERMINALS


def _is_anaphora(positions: list[int], tokens: Sequence[Token]) -> bool:
    hits = 0
    for pos in positions:
        before = tokens[max(0, pos - 3):pos]
        if pos < 3 or any(_is_terminal(t) for t in before):
            hits += 1
    return hits >= 2


def _is_epiphora(positions: list[int], tokens: Sequence[Token]) -> bool:
    hits = 0
    for pos in positions:
        if pos + 1 < len(tokens) and _is_terminal(tokens[pos + 1]):
            hits += 1
    return hits >= 2


def find_repetitions(tokens: Sequence[Token], min_length: int = 4) -> list[Repetition]:
    """Group word tokens by lowercased text; keep those seen more than once.

    Positions index *tokens* directly, so the list must be the full token
    sequence including punctuation.
    """
    groups: dict[str, list[int]] = defaultdict(list)
    for token in tokens:
        if not token.is_word or len(token.text) < min_length:
            continue
        groups[token.text.lower()].append(token.position)

    repetitions = [
        Repetition(
            word=word,
            count=len(positions),
            positions=positions,
            is_anaphora=_is_anaphora(positions, tokens),
            is_epiphora=_is_epiphora(positions, tokens),
        )
        for word, positions in groups.items()
        if len(positions) > 1
    ]
    repetitions.sort(key=lambda r: r.count, reverse=True)
    return repetitions


# ── Parallelism ──────────────────────────────────────────────────────────

def structural_similarity(a: str, b: str) -> float:
    """``0.3 * length similarity + 0.7 * Jaccard`` over lowercased words."""
    words_a = a.lower().split()
    words_b = b.lower().split()
    longest = max(len(words_a), len(words_b), 1)
    length_sim = 1 - abs(len(words_a) - len(words_b)) / longest

    set_a, set_b = set(words_a), set(words_b)
    union = set_a | set_b
    jaccard = len(set_a & set_b) / len(union) if union else 0.0

    return 0.3 * length_sim + 0.7 * jaccard


def _preview(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def detect_parallelism(sentences: Sequence[Sentence], threshold: float = 0.6) -> list[ParallelPair]:
    pairs = []
    for i in range(len(sentences) - 1):
        for j in range(i + 1, len(sentences)):
            sim = structural_similarity(sentences[i].text, sentences[j].text)
            if sim > threshold:
                pairs.append(ParallelPair(
                    sentence_i=i,
                    sentence_j=j,
                    similarity=round(sim, 3),
                    text_i=_preview(sentences[i].text),
                    text_j=_preview(sentences[j].text),
                ))
    return pairs


# ── Punctuation ──────────────────────────────────────────────────────────

def analyze_punctuation(tokens: Sequence[Token]) -> PunctuationPattern:
    marks = [t.text for t in tokens if t.is_punctuation]
    total = len(marks)
    counts = Counter(marks)

    if total == 0:
        return PunctuationPattern(
            total=0,
            counts={},
            distribution={name: 0.0 for name in PUNCTUATION_NAMES.values()},
            style=PunctuationStyle.neutral,
        )

    distribution = {
        name: round(counts.get(mark, 0) / total * 100, 1)
        for mark, name in PUNCTUATION_NAMES.items()
    }

    if counts.get("!", 0) / total > 0.3:
        style = PunctuationStyle.expressive
    elif counts.get("?", 0) / total > 0.3:
        style = PunctuationStyle.questioning
    elif counts.get(",", 0) / total > 0.5:
        style = PunctuationStyle.complex
    else:
        style = PunctuationStyle.neutral

    return PunctuationPattern(
        total=total,
        counts=dict(counts),
        distribution=distribution,
        style=style,
    )


# ── Alliteration ─────────────────────────────────────────────────────────

def detect_alliterations(tokens: Sequence[Token], min_run: int = 2) -> list[Alliteration]:
    """Runs of adjacent words sharing an initial letter.

    Function words are skipped without breaking a run; punctuation ends it.
    """
    found: list[Alliteration] = []
    run: list[Token] = []

    def close() -> None:
        if len(run) >= min_run:
            found.append(Alliteration(
                letter=run[0].text[0].lower(),
                words=[t.text for t in run],
                positions=[t.position for t in run],
            ))

    for token in tokens:
        if not token.is_word:
            close()
            run = []
            continue
        if token.text.lower() in FUNCTION_WORDS or not token.text[0].isalpha():
            continue
        if run and token.text[0].lower() != run[0].text[0].lower():
            close()
            run = []
        run.append(token)

    close()
    return found


# ── Sentence structure ───────────────────────────────────────────────────

def sentence_complexity(tokens: Sequence[Token]) -> int:
    """0-100 from length, word length, commas and capitalised words."""
    words = [t for t in tokens if t.is_word]
    if not words:
        return 0
    word_count = len(words)
    avg_len = sum(t.length for t in words) / word_count
    commas = sum(1 for t in tokens if t.text == ",")
    capitalized = sum(1 for t in words if t.text[0].isupper())

    score = (
        min(word_count / 20, 1) * 30
        + min(avg_len / 10, 1) * 30
        + min(commas / 3, 1) * 20
        + min(capitalized / word_count, 1) * 20
    )
    return int(round(score))


def sentence_type(text: str) -> SentenceType:
    stripped = text.strip()
    if stripped.endswith("?"):
        return SentenceType.question
    if stripped.endswith("!"):
        return SentenceType.exclamation
    if "," in stripped:
        return SentenceType.complex
    return SentenceType.statement


def analyze_sentence_structure(sentences: Sequence[Sentence]) -> list[SentenceStructure]:
    structures = []
    for sentence in sentences:
        tokens = tokenize(sentence.text)
        words = [t for t in tokens if t.is_word]
        avg = sum(t.length for t in words) / len(words) if words else 0.0
        structures.append(SentenceStructure(
            index=sentence.index,
            text=sentence.text,
            token_count=len(tokens),
            word_count=len(words),
            avg_word_length=round(avg, 2),
            complexity=sentence_complexity(tokens),
            sentence_type=sentence_type(sentence.text),
        ))
    return structures
