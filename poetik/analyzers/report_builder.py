"""Report builder: German Markdown overview and flat JSON export."""

from __future__ import annotations

import json
import logging
from typing import Any

from poetik.models import (
    AnalysisReport,
    Aspect,
    InferenceOutcome,
    PunctuationStyle,
    RhymeSchemeType,
    SentimentLabel,
)
from poetik.utils.language import language_name

logger = logging.getLogger("poetik")

FLOAT_DIGITS = 3

RHYME_NAMES = {
    RhymeSchemeType.paired_rhyme: "Paarreim",
    RhymeSchemeType.cross_rhyme: "Kreuzreim",
    RhymeSchemeType.enclosed_rhyme: "Umarmender Reim",
    RhymeSchemeType.monorhyme: "Durchgehender Reim",
    RhymeSchemeType.free_scheme: "Freies Reimschema",
}

SENTIMENT_NAMES = {
    SentimentLabel.positive: "positiv",
    SentimentLabel.negative: "negativ",
    SentimentLabel.neutral: "neutral",
}

PUNCTUATION_NAMES = {
    PunctuationStyle.expressive: "expressiv",
    PunctuationStyle.questioning: "fragend",
    PunctuationStyle.complex: "komplex",
    PunctuationStyle.neutral: "neutral",
}

EASE_NAMES = {
    "very_easy": "sehr leicht",
    "easy": "leicht",
    "medium": "mittel",
    "hard": "schwer",
    "very_hard": "sehr schwer",
}

WIENER_NAMES = {
    "primary": "Grundschulniveau",
    "middle": "Mittelstufe",
    "upper": "Oberstufe",
    "academic": "akademisches Niveau",
}


def round_floats(value: Any, digits: int = FLOAT_DIGITS) -> Any:
    """Recursively round every float in a JSON-like structure."""
    if isinstance(value, float):
        return round(value, digits)
    if isinstance(value, dict):
        return {k: round_floats(v, digits) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [round_floats(v, digits) for v in value]
    return value


def _outcome_dict(outcome: InferenceOutcome | None) -> dict | None:
    if outcome is None:
        return None
    return outcome.model_dump(mode="json", exclude_none=True)


def build_export(report: AnalysisReport) -> dict:
    """Flat export: text, annotated tokens, sentiment, readability, style."""
    summary = report.summary
    export = {
        "version": report.version,
        "input_text_hash": report.input_text_hash,
        "metadata": report.metadata.model_dump(mode="json"),
        "text": report.text,
        "tokens": [
            {
                "text": t.text,
                "char_offset": t.char_offset,
                "position": t.position,
                "is_punctuation": t.is_punctuation,
                "is_symbol": t.is_symbol,
                "pos_tag": t.pos_tag,
                "pos_score": t.pos_score,
                "entity_type": t.entity_type,
                "entity_score": t.entity_score,
                "morphology": t.morphology,
                "sentiment": _outcome_dict(t.sentiment),
            }
            for t in report.tokens
        ],
        "sentiment": None,
        "readability": report.readability.model_dump(mode="json") if report.readability else None,
        "style": summary.style.model_dump(mode="json") if summary.style else None,
        "summary": summary.model_dump(mode="json"),
    }
    if report.sentiment is not None:
        export["sentiment"] = {
            "overall": _outcome_dict(report.sentiment.overall),
            "statistics": report.sentiment.statistics.model_dump(mode="json"),
        }
    return round_floats(export)


def build_json_report(report: AnalysisReport) -> str:
    return json.dumps(build_export(report), indent=2, ensure_ascii=False)


def build_full_json_report(report: AnalysisReport) -> str:
    """Serialize the complete report model."""
    return json.dumps(round_floats(report.model_dump(mode="json")), indent=2, ensure_ascii=False)


def build_markdown_report(report: AnalysisReport) -> str:
    """Generate a human-readable German Markdown report."""
    meta = report.metadata
    lines: list[str] = []

    _h = lambda level, text: "#" * level + " " + text

    lines.append(_h(1, "Textanalyse"))
    lines.append("")
    lines.append(f"**Sprache:** {language_name(meta.language)} ({meta.language_confidence:.2f})  ")
    lines.append(f"**Zeichen:** {meta.text_length}  ")
    lines.append(f"**Datum:** {meta.analyzed_at}  ")
    lines.append(f"**Dauer:** {meta.duration_ms:.0f} ms  ")
    lines.append("")

    if report.text:
        lines.append(_h(2, "Text"))
        lines.append("")
        lines.append("```")
        lines.append(report.text)
        lines.append("```")
        lines.append("")

    # ── Basic stats ───────────────────────────────────────────────────
    bs = report.summary.basic_stats
    lines.append(_h(2, "Überblick"))
    lines.append("")
    lines.append(f"- **Wörter:** {bs.word_count}, **Sätze:** {bs.sentence_count}")
    if bs.verse_count:
        lines.append(f"- **Verse:** {bs.verse_count}, **Strophen:** {bs.stanza_count}")
    lines.append(f"- **Ø Wortlänge:** {bs.avg_word_length:.2f} Zeichen")
    lines.append(f"- **Ø Wörter pro Satz:** {bs.avg_words_per_sentence:.2f}")
    if report.summary.complexity:
        cx = report.summary.complexity
        lines.append(f"- **Komplexität:** {cx.score}/100 ({cx.level})")
    lines.append("")

    # ── Readability ───────────────────────────────────────────────────
    if report.readability:
        r = report.readability
        lines.append(_h(2, "Lesbarkeit"))
        lines.append("")
        lines.append(f"- **Flesch (Amstad):** {r.flesch_reading_ease:.1f} ({EASE_NAMES.get(r.ease_band, r.ease_band)})")
        lines.append(f"- **Wiener Sachtextformel:** {r.wiener_index:.2f} ({WIENER_NAMES.get(r.wiener_band, r.wiener_band)})")
        lines.append(f"- **Ø Silben pro Wort:** {r.avg_syllables_per_word:.2f}")
        lines.append(f"- **Lexikalische Dichte:** {r.lexical_density:.1f} %")
        lines.append("")

    # ── Sentiment ─────────────────────────────────────────────────────
    lines.append(_h(2, "Stimmung"))
    lines.append("")
    if Aspect.sentiment not in meta.aspects:
        lines.append("*Stimmung nicht angefordert.*")
    elif report.sentiment is None:
        lines.append("*Kein Sentiment-Modell verfügbar; Stimmung wurde nicht analysiert.*")
    else:
        s = report.sentiment
        if s.overall.is_ok:
            label = SENTIMENT_NAMES.get(SentimentLabel(s.overall.label), s.overall.label)
            lines.append(f"- **Gesamt:** {label} (Score {s.overall.score:+.2f})")
        else:
            lines.append(f"- **Gesamt:** nicht verfügbar ({s.overall.reason or s.overall.status.value})")
        st = s.statistics
        lines.append(
            f"- **Verteilung:** positiv {st.distribution.get('positive', 0):.1f} %, "
            f"negativ {st.distribution.get('negative', 0):.1f} %, "
            f"neutral {st.distribution.get('neutral', 0):.1f} %"
        )
        lines.append(f"- **Trend:** {s.trend.trend} (Steigung {s.trend.slope:+.4f})")
        lines.append(f"- **Konsistenz:** {s.consistency.consistency:.2f}")
        if s.peaks:
            peaks = ", ".join(f"{p.word} ({p.score:+.2f})" for p in s.peaks[:5])
            lines.append(f"- **Emotionale Höhepunkte:** {peaks}")
    lines.append("")

    # ── Style ─────────────────────────────────────────────────────────
    if report.syntax:
        syn = report.syntax
        lines.append(_h(2, "Stil"))
        lines.append("")
        if syn.rhyme_scheme:
            rs = syn.rhyme_scheme
            lines.append(f"- **Reimschema:** {rs.scheme} ({RHYME_NAMES[rs.scheme_label]})")
        lines.append(f"- **Interpunktion:** {PUNCTUATION_NAMES[syn.punctuation.style]}")
        if syn.repetitions:
            reps = ", ".join(
                f"{r.word} ×{r.count}" + (" (Anapher)" if r.is_anaphora else "")
                + (" (Epipher)" if r.is_epiphora else "")
                for r in syn.repetitions[:8]
            )
            lines.append(f"- **Wiederholungen:** {reps}")
        if syn.alliterations:
            allit = "; ".join(" ".join(a.words) for a in syn.alliterations[:5])
            lines.append(f"- **Alliterationen:** {allit}")
        if syn.parallelism:
            lines.append(f"- **Parallelismen:** {len(syn.parallelism)} Satzpaare")
        lines.append("")

    # ── Semantics ─────────────────────────────────────────────────────
    lines.append(_h(2, "Semantik"))
    lines.append("")
    if Aspect.semantics not in meta.aspects:
        lines.append("*Semantische Analyse nicht angefordert.*")
    elif report.semantics is None:
        lines.append("*Kein Embedding-Modell verfügbar; semantische Analyse entfällt.*")
    else:
        sem = report.semantics
        if report.summary.themes:
            lines.append(f"- **Themen:** {', '.join(report.summary.themes)}")
        lines.append(f"- **Kohäsion:** {sem.cohesion.score:.2f} ({sem.cohesion.interpretation})")
        lines.append(f"- **Diversität:** {sem.diversity.diversity:.2f}")
        for i, f in enumerate(sem.semantic_fields[:5], 1):
            lines.append(f"- **Feld {i}:** {f.theme} ({f.size} Wörter, Kohärenz {f.coherence:.2f})")
        if sem.thematic_development.shifts:
            lines.append(f"- **Themenwechsel:** {len(sem.thematic_development.shifts)}")
    lines.append("")

    if meta.warnings:
        lines.append(_h(2, "Hinweise"))
        lines.append("")
        for w in meta.warnings:
            lines.append(f"- {w}")
        lines.append("")

    lines.append("---")
    lines.append(f"*Erstellt mit poetik v{report.version}*")

    return "\n".join(lines)
