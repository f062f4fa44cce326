"""Text segmentation: tokens, sentences, and verses."""

from __future__ import annotations

import re
from collections import Counter

from poetik.models import Sentence, Token, Verse
from poetik.utils.normalization import normalize
from poetik.utils.syllables import estimate_syllables

PUNCTUATION = frozenset('.,!?;:–—-"“”„»«()…')
SENTENCE_TERMINALS = frozenset(".!?…")

_LETTER = r"(?:[^\W\d_]|[\u0300-\u036f])"
_ALNUM = rf"(?:{_LETTER}|\d)"
_WORD = rf"{_ALNUM}+(?:[-'’]{_ALNUM}+)*"

# Words (letter/digit runs joined by internal hyphens or apostrophes),
# otherwise any single non-space character. Only PUNCTUATION members count
# as punctuation; other characters are kept as symbol tokens.
_TOKEN_RE = re.compile(rf"{_WORD}|\S")
_WORD_RE = re.compile(_WORD)

_SENTENCE_END = re.compile(r"[.!?…]+(?=\s)")

ABBREVIATIONS = ("Dr", "Prof", "etc", "z.B", "d.h", "u.a", "usw", "bzw", "inkl", "evtl", "ggf")
_ABBREVIATION_TAIL = re.compile(
    r"(?:^|\W)(?:" + "|".join(re.escape(a) for a in ABBREVIATIONS) + r")$",
    re.IGNORECASE,
)

_LINE_SPLIT = re.compile(r"\r?\n")


def tokenize(text: str) -> list[Token]:
    """Split *text* into word, punctuation and symbol tokens.

    Every non-whitespace character lands in exactly one token. Offsets
    index the normalised text; positions are dense over all tokens.
    """
    if not text or not isinstance(text, str):
        return []

    normalized = normalize(text)
    tokens: list[Token] = []
    for position, match in enumerate(_TOKEN_RE.finditer(normalized)):
        piece = match.group()
        tokens.append(Token(
            text=piece,
            char_offset=match.start(),
            position=position,
            is_punctuation=piece in PUNCTUATION,
            is_symbol=piece not in PUNCTUATION and _WORD_RE.fullmatch(piece) is None,
        ))
    return tokens


def extract_words(text: str) -> list[str]:
    """Word tokens of *text* (no punctuation)."""
    return [t.text for t in tokenize(text) if t.is_word]


def count_words(text: str) -> int:
    return len(extract_words(text))


def count_word_frequencies(words: list[str]) -> Counter:
    """Case-insensitive word counts."""
    return Counter(w.lower() for w in words)


def segment_sentences(text: str) -> list[Sentence]:
    """Split text into sentences, line by line.

    A run of ``. ! ? …`` followed by whitespace ends a sentence unless the
    text before it ends with a known abbreviation. An unterminated
    remainder of a line becomes its own sentence.
    """
    if not text or not isinstance(text, str):
        return []

    normalized = normalize(text)
    pieces: list[str] = []

    for line in _LINE_SPLIT.split(normalized):
        if not line.strip():
            continue

        start = 0
        for m in _SENTENCE_END.finditer(line):
            before = line[start:m.start()]
            if _ABBREVIATION_TAIL.search(before.rstrip()):
                continue
            candidate = line[start:m.end()].strip()
            if candidate:
                pieces.append(candidate)
            start = m.end()

        rest = line[start:].strip()
        if rest:
            pieces.append(rest)

    if not pieces:
        stripped = normalized.strip()
        return [Sentence(text=stripped, index=0, word_count=count_words(stripped))]

    return [
        Sentence(text=p, index=i, word_count=count_words(p))
        for i, p in enumerate(pieces)
    ]


def detect_verses(text: str) -> list[Verse]:
    """Split a poem into verses tagged with stanza indices.

    Blank lines close the current stanza; consecutive blank lines count
    once. Fewer than two non-blank lines means the text is not treated as
    verse and an empty list is returned.
    """
    if not text or not isinstance(text, str):
        return []

    lines = _LINE_SPLIT.split(normalize(text))
    if sum(1 for line in lines if line.strip()) < 2:
        return []

    verses: list[Verse] = []
    stanza = 0
    in_stanza = 0

    for raw in lines:
        line = raw.strip()
        if not line:
            if in_stanza > 0:
                stanza += 1
                in_stanza = 0
            continue

        words = extract_words(line)
        verses.append(Verse(
            text=line,
            index=len(verses),
            stanza_index=stanza,
            verse_in_stanza_index=in_stanza,
            word_count=len(words),
            syllable_count=sum(estimate_syllables(w) for w in words),
        ))
        in_stanza += 1

    return verses


def stanza_count(verses: list[Verse]) -> int:
    if not verses:
        return 0
    return len({v.stanza_index for v in verses})
