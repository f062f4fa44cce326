"""Rule-based German part-of-speech tagger.

Fallback for when no ML tagger is available. Closed word lists are tried
in a fixed priority order; the first list containing the word wins. Words
in no list go through suffix and shape heuristics.
"""

from __future__ import annotations

import re
from typing import Sequence

from poetik.models import Token

DETERMINERS = frozenset({
    "der", "die", "das", "den", "dem", "des",
    "ein", "eine", "einen", "einem", "einer", "eines",
    "kein", "keine", "keinen", "keinem", "keiner", "keines",
    "dieser", "diese", "dieses", "diesen", "diesem",
    "jener", "jene", "jenes", "jeder", "jede", "jedes", "jeden", "jedem",
    "welcher", "welche", "welches", "manche", "mancher", "alle", "einige",
})

PRONOUNS = frozenset({
    "ich", "du", "er", "sie", "es", "wir", "ihr",
    "mich", "dich", "sich", "uns", "euch",
    "mir", "dir", "ihm", "ihnen", "ihn",
    "man", "jemand", "niemand", "etwas", "nichts", "wer", "was",
})

POSSESSIVES = frozenset({
    "mein", "meine", "meinen", "meinem", "meiner", "meines",
    "dein", "deine", "deinen", "deinem", "deiner", "deines",
    "sein", "seine", "seinen", "seinem", "seiner", "seines",
    "unser", "unsere", "unseren", "unserem", "unserer",
    "euer", "eure", "euren", "eurem", "eurer",
    "ihre", "ihren", "ihrem", "ihrer", "ihres",
})

PREPOSITIONS = frozenset({
    "in", "im", "an", "am", "auf", "aus", "bei", "beim", "mit", "nach",
    "seit", "von", "vom", "zu", "zum", "zur", "durch", "für", "gegen",
    "ohne", "um", "über", "unter", "vor", "hinter", "neben", "zwischen",
    "ins", "ans", "aufs", "trotz", "während", "wegen", "bis",
})

COORDINATING = frozenset({"und", "oder", "aber", "denn", "sondern", "doch", "sowie"})

SUBORDINATING = frozenset({
    "dass", "weil", "wenn", "als", "ob", "obwohl", "damit", "bevor",
    "nachdem", "sobald", "solange", "falls", "indem", "wie",
})

AUXILIARIES = frozenset({
    "sein", "bin", "bist", "ist", "sind", "seid", "war", "warst", "waren", "wart",
    "haben", "habe", "hast", "hat", "habt", "hatte", "hattest", "hatten",
    "werden", "werde", "wirst", "wird", "werdet", "wurde", "wurden",
    "gewesen", "geworden", "wäre", "hätte", "würde",
})

MODALS = frozenset({
    "können", "kann", "kannst", "könnt", "konnte", "könnte",
    "müssen", "muss", "musst", "müsst", "musste", "müsste",
    "dürfen", "darf", "darfst", "durfte", "dürfte",
    "sollen", "soll", "sollst", "sollte",
    "wollen", "will", "willst", "wollte",
    "mögen", "mag", "magst", "mochte", "möchte",
})

PARTICLES = frozenset({"nicht", "zu", "ja", "nein", "nur", "auch", "schon", "noch", "mal", "wohl"})

ADVERBS = frozenset({
    "sehr", "hier", "dort", "da", "heute", "gestern", "morgen", "jetzt",
    "immer", "nie", "oft", "bald", "gern", "gerne", "dann", "so", "sonst",
    "wieder", "vielleicht", "leider", "fast", "ganz", "bereits", "oben", "unten",
})

# (word list, tag, score), tried top-down; first hit wins.
# Possessive "sein"/"ihr" overlap with other lists; earlier lists take them.
WORD_LISTS: tuple[tuple[frozenset, str, float], ...] = (
    (DETERMINERS, "DET", 0.95),
    (PRONOUNS, "PRON", 0.95),
    (POSSESSIVES, "DET", 0.9),
    (PREPOSITIONS, "ADP", 0.95),
    (COORDINATING, "CCONJ", 0.95),
    (SUBORDINATING, "SCONJ", 0.9),
    (AUXILIARIES, "AUX", 0.9),
    (MODALS, "AUX", 0.9),
    (PARTICLES, "PART", 0.85),
    (ADVERBS, "ADV", 0.85),
)

_VERB_SUFFIX = re.compile(r"(?:en|st|t)$")
_ADJ_SUFFIX = re.compile(r"(?:lich|ig|isch|bar|sam|haft)$")
_DIGIT = re.compile(r"\d")

DEFAULT_TAG = "X"
DEFAULT_SCORE = 0.3
SYMBOL_TAG = "X"
SYMBOL_SCORE = 0.0


def tag_word(text: str) -> tuple[str, float]:
    """Return ``(tag, score)`` for a single word token.

    Capitalisation is checked before suffixes: many nouns end in verb or
    adjective suffixes.
    """
    lower = text.lower()
    for words, tag, score in WORD_LISTS:
        if lower in words:
            return tag, score

    if text[:1].isupper():
        return "NOUN", 0.7
    if _VERB_SUFFIX.search(lower):
        return "VERB", 0.6
    if _ADJ_SUFFIX.search(lower):
        return "ADJ", 0.65
    if _DIGIT.search(text):
        return "NUM", 0.9
    return DEFAULT_TAG, DEFAULT_SCORE


def tag_pos(tokens: Sequence[Token]) -> list[Token]:
    """Annotate *tokens* with ``pos_tag``/``pos_score``.

    Returns new tokens; offsets and positions are left untouched.
    """
    tagged: list[Token] = []
    for token in tokens:
        if token.is_punctuation:
            tag, score = "PUNCT", 1.0
        elif token.is_symbol:
            tag, score = SYMBOL_TAG, SYMBOL_SCORE
        else:
            tag, score = tag_word(token.text)
        tagged.append(token.model_copy(update={"pos_tag": tag, "pos_score": score}))
    return tagged
