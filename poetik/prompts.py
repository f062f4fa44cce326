"""Chat prompts for the OpenAI-backed sentiment, NER, POS and morphology providers."""

from __future__ import annotations

# ── Output schemas (for including in prompts) ────────────────────────────

SENTIMENT_SCHEMA = """{
  "label": "<positive|negative|neutral>",
  "score": "<0.0-1.0, confidence in the label>"
}"""

NER_SCHEMA = """{
  "entities": [
    {"word": "<exact surface form>", "entity_group": "<PER|LOC|ORG|MISC|DATE|TIME|MONEY|PERCENT>",
     "score": "<0.0-1.0>", "start": "<char offset>", "end": "<char offset>"}
  ]
}"""

POS_SCHEMA = """{
  "tokens": [
    {"word": "<exact surface form>", "entity_group": "<universal POS tag>", "score": "<0.0-1.0>"}
  ]
}"""

MORPHOLOGY_SCHEMA = """{
  "tokens": [
    {"word": "<exact surface form>", "entity_group": "<UD features, e.g. Case=Nom|Gender=Masc|Number=Sing>",
     "score": "<0.0-1.0>"}
  ]
}"""

_SYSTEM_SENTIMENT = """Du bist ein Klassifikator für die Stimmung deutscher Texte.
Antworte ausschließlich mit JSON nach diesem Schema:
{schema}"""

_SYSTEM_NER = """Du erkennst benannte Entitäten in deutschen Texten.
Gib nur Entitäten zurück, deren Wortlaut exakt im Text vorkommt.
Antworte ausschließlich mit JSON nach diesem Schema:
{schema}"""

_SYSTEM_POS = """Du bestimmst Wortarten (Universal Dependencies, UPOS) in deutschen Texten.
Gib jedes Wort genau einmal in Textreihenfolge zurück, ohne Satzzeichen.
Antworte ausschließlich mit JSON nach diesem Schema:
{schema}"""

_SYSTEM_MORPHOLOGY = """Du bestimmst morphologische Merkmale (Universal Dependencies) deutscher Wörter.
Gib für jedes flektierte Wort Kasus, Genus, Numerus, Person, Tempus oder Modus an,
soweit bestimmbar, als Merkmalsliste der Form Schlüssel=Wert, getrennt durch |.
Antworte ausschließlich mit JSON nach diesem Schema:
{schema}"""


def _messages(system: str, schema: str, text: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": system.format(schema=schema)},
        {"role": "user", "content": text},
    ]


def build_sentiment_messages(text: str) -> list[dict[str, str]]:
    return _messages(_SYSTEM_SENTIMENT, SENTIMENT_SCHEMA, text)


def build_ner_messages(text: str) -> list[dict[str, str]]:
    return _messages(_SYSTEM_NER, NER_SCHEMA, text)


def build_pos_messages(text: str) -> list[dict[str, str]]:
    return _messages(_SYSTEM_POS, POS_SCHEMA, text)


def build_morphology_messages(text: str) -> list[dict[str, str]]:
    return _messages(_SYSTEM_MORPHOLOGY, MORPHOLOGY_SCHEMA, text)
