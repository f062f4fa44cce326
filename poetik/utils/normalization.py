"""Encoding repair, Unicode normalisation and input validation."""

from __future__ import annotations

import re
import unicodedata

from poetik.errors import ValidationError

# Mis-decoded UTF-8 (read as Latin-1/CP-1252) back to the intended character.
# Order matters: the bare "â€" entry must come after its longer variants.
ENCODING_FIXES: tuple[tuple[str, str], ...] = (
    ("Ã¼", "ü"),
    ("Ã¤", "ä"),
    ("Ã¶", "ö"),
    ("ÃŸ", "ß"),
    ("Ã„", "Ä"),
    ("Ã–", "Ö"),
    ("Ãœ", "Ü"),
    ("Ã©", "é"),
    ("Ã¨", "è"),
    ("Ã ", "à"),
    ("Ã¢", "â"),
    ("Ã«", "ë"),
    ("Ã®", "î"),
    ("Ã´", "ô"),
    ("Ã»", "û"),
    ("Ã§", "ç"),
    ("â€œ", "“"),
    ("â€ž", "„"),
    ("â€™", "’"),
    ("â€˜", "‘"),
    ("â€“", "–"),
    ("â€”", "—"),
    ("â€¦", "…"),
    ("â€", "”"),
    ("Â»", "»"),
    ("Â«", "«"),
    ("Â°", "°"),
)

_LETTER_RE = re.compile(r"[^\W\d_]")


def normalize(text: str) -> str:
    """Repair known mis-encodings, then apply NFC composition.

    Idempotent: NFC runs before the fixes as well, so decomposed input
    cannot assemble a new mis-encoded sequence on a second pass.
    Non-string and empty input is returned as is.
    """
    if not text or not isinstance(text, str):
        return text

    normalized = unicodedata.normalize("NFC", text)
    for wrong, correct in ENCODING_FIXES:
        if wrong in normalized:
            normalized = normalized.replace(wrong, correct)

    return unicodedata.normalize("NFC", normalized)


def clean_text(text: str) -> str:
    """Normalise and tidy whitespace around punctuation."""
    if not text or not isinstance(text, str):
        return ""

    cleaned = normalize(text)
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = re.sub(r"\s+([.,!?;:])", r"\1", cleaned)
    cleaned = re.sub(r"([.,!?;:])(?=[^\s.,!?;:])", r"\1 ", cleaned)
    return cleaned.strip()


def validate_text(
    text: object,
    min_chars: int = 10,
    max_chars: int = 10000,
    min_letters: int = 3,
) -> str:
    """Return the normalised, trimmed text or raise ``ValidationError``."""
    if text is None or text == "":
        raise ValidationError("No text provided.")
    if not isinstance(text, str):
        raise ValidationError(f"Text must be a string (got {type(text).__name__}).")

    trimmed = normalize(text).strip()

    if len(trimmed) < min_chars:
        raise ValidationError(
            f"Text too short: minimum is {min_chars} characters (got {len(trimmed)})."
        )
    if len(trimmed) > max_chars:
        raise ValidationError(
            f"Text too long: maximum is {max_chars} characters (got {len(trimmed)})."
        )

    letters = len(_LETTER_RE.findall(trimmed))
    if letters < min_letters:
        raise ValidationError(
            f"Text contains too few letters: minimum is {min_letters} (got {letters})."
        )

    return trimmed
