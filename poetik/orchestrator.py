"""Main pipeline orchestrator: coordinates all analysis stages."""

from __future__ import annotations

import hashlib
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from poetik.analyzers.report_builder import build_json_report, build_markdown_report
from poetik.analyzers.rule_analysis import analyze_readability, analyze_syntax, segment
from poetik.analyzers.semantics import run_semantic_analysis
from poetik.analyzers.sentiment import context_text, run_sentiment_analysis
from poetik.analyzers.tokens import annotate_tokens, build_token_analysis
from poetik.cache import AnalysisCache, text_key
from poetik.collaborators import Collaborators, classify_sentiment
from poetik.config import PipelineConfig
from poetik.errors import AnalysisCancelled, ValidationError
from poetik.inference_client import build_collaborators
from poetik.logger import generate_run_id, save_run, setup_logger
from poetik.models import (
    AnalysisReport,
    Aspect,
    BasicStats,
    Complexity,
    ModelsUsed,
    ReadabilityMetrics,
    ReportMetadata,
    SemanticAnalysis,
    SentimentAnalysis,
    SentimentLabel,
    SentimentSummary,
    StyleSummary,
    Summary,
    SyntaxAnalysis,
    TextComparison,
    TextStatistics,
    Token,
    Verse,
    WordAnalysis,
)
from poetik.utils.language import detect_language, is_german, language_name
from poetik.utils.normalization import validate_text
from poetik.utils.segmentation import stanza_count, tokenize

logger = logging.getLogger("poetik")

VERSION = "1.0.0"
ALL_ASPECTS: tuple[Aspect, ...] = tuple(Aspect)
PARTIAL_DEFAULT: tuple[Aspect, ...] = (Aspect.tokens, Aspect.sentiment)
THEME_COUNT = 5

_SENTIMENT_VALUE = {
    SentimentLabel.positive.value: 1,
    SentimentLabel.negative.value: -1,
    SentimentLabel.neutral.value: 0,
}


def parse_aspects(aspects: Optional[Iterable[Any]]) -> tuple[Aspect, ...]:
    """Aspect enums from names; None means all of them."""
    if aspects is None:
        return ALL_ASPECTS
    parsed = []
    for a in aspects:
        try:
            aspect = a if isinstance(a, Aspect) else Aspect(str(a).strip().lower())
        except ValueError:
            valid = ", ".join(x.value for x in Aspect)
            raise ValidationError(f"Unknown aspect {a!r}; expected one of: {valid}.") from None
        if aspect not in parsed:
            parsed.append(aspect)
    if not parsed:
        raise ValidationError("At least one aspect must be requested.")
    return tuple(parsed)


def assess_complexity(
    readability: ReadabilityMetrics,
    stats: TextStatistics,
    sentence_complexities: list[int],
) -> Complexity:
    """0-100 from syllables per word, sentence length, syntax and vocabulary."""
    score = min(readability.avg_syllables_per_word / 3, 1) * 25
    score += min(readability.avg_words_per_sentence / 20, 1) * 25
    if sentence_complexities:
        score += sum(sentence_complexities) / len(sentence_complexities) / 100 * 25
    score += stats.type_token_ratio * 25

    if score > 75:
        level = "very complex"
    elif score > 50:
        level = "complex"
    elif score > 25:
        level = "medium"
    else:
        level = "simple"
    return Complexity(score=int(round(score)), level=level)


def build_summary(
    tokens: list[Token],
    verses: list[Verse],
    readability: ReadabilityMetrics,
    stats: TextStatistics,
    sentiment: Optional[SentimentAnalysis],
    syntax: Optional[SyntaxAnalysis],
    semantics: Optional[SemanticAnalysis],
) -> Summary:
    words = [t for t in tokens if t.is_word]
    summary = Summary(
        basic_stats=BasicStats(
            word_count=len(words),
            sentence_count=readability.sentence_count,
            verse_count=len(verses),
            stanza_count=stanza_count(verses),
            avg_word_length=stats.avg_word_length,
            avg_words_per_sentence=readability.avg_words_per_sentence,
            reading_ease=readability.flesch_reading_ease,
        ),
    )

    if sentiment is not None and sentiment.overall.is_ok:
        summary.sentiment = SentimentSummary(
            overall=SentimentLabel(sentiment.overall.label),
            confidence=sentiment.overall.confidence,
            distribution=sentiment.statistics.distribution,
        )

    if syntax is not None:
        rs = syntax.rhyme_scheme
        summary.style = StyleSummary(
            punctuation_style=syntax.punctuation.style,
            has_rhymes=bool(rs and rs.pairs),
            rhyme_scheme=rs.scheme_label if rs else None,
            alliteration_count=len(syntax.alliterations),
            repetition_count=len(syntax.repetitions),
            parallelism_count=len(syntax.parallelism),
        )
        complexities = [s.complexity for s in syntax.sentence_structure]
        summary.complexity = assess_complexity(readability, stats, complexities)

    if semantics is not None:
        summary.themes = [k.phrase for k in semantics.key_phrases[:THEME_COUNT]]

    return summary


class Orchestrator:
    """Coordinates the analysis pipeline for one configuration.

    Collaborators and the cache are injected; by default they are built
    from *config*.
    """

    def __init__(
        self,
        config: PipelineConfig,
        collaborators: Optional[Collaborators] = None,
        cache: Optional[AnalysisCache] = None,
        run_id: Optional[str] = None,
        progress_cb: Optional[Callable[[str, float], None]] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ):
        self.config = config
        self.collaborators = collaborators if collaborators is not None else build_collaborators(config)
        if cache is None and config.enable_cache:
            cache = AnalysisCache(config.cache_size).init()
        self.cache = cache
        self.run_id = run_id or generate_run_id()
        self.progress_cb = progress_cb
        self.cancel_check = cancel_check
        self.logger = setup_logger(
            "poetik",
            verbosity=config.verbosity,
            run_id=self.run_id if config.store_runs else None,
        )

    def _progress(self, stage: str, pct: float) -> None:
        if self.progress_cb:
            self.progress_cb(stage, pct)

    def _cancelled(self) -> bool:
        if self.cancel_check:
            return self.cancel_check()
        return False

    def _checkpoint(self, stage: str) -> None:
        if self._cancelled():
            self.logger.info("Run %s cancelled before %s", self.run_id, stage)
            raise AnalysisCancelled(stage)

    def validate(self, text: Any) -> str:
        cfg = self.config
        return validate_text(
            text,
            min_chars=cfg.min_input_chars,
            max_chars=cfg.max_input_chars,
            min_letters=cfg.min_letters,
        )

    async def analyze(
        self,
        text: str,
        aspects: Optional[Iterable[Any]] = None,
        run_id: Optional[str] = None,
    ) -> AnalysisReport:
        """
        Run the pipeline over *text* for the requested aspects.

        Args:
            text: Input text (German prose or poetry).
            aspects: Subset of tokens/sentiment/syntax/semantics/readability;
                None runs everything.
            run_id: Overrides the orchestrator's run id for this report.

        Returns:
            AnalysisReport. Aspects not requested are None.

        Raises:
            ValidationError: Input rejected before any processing.
            AnalysisCancelled: The cancel callback fired between stages.
            InvariantViolation: Internal segmentation inconsistency.
        """
        t0 = time.monotonic()
        run_id = run_id or self.run_id

        # ── Validate input ────────────────────────────────────────────
        clean = self.validate(text)
        wanted = parse_aspects(aspects)

        key = text_key(clean, [a.value for a in wanted])
        if self.cache is not None:
            hit = self.cache.get(key)
            if hit is not None:
                self.logger.info("Cache hit for %s", hit.input_text_hash)
                return hit.model_copy(update={
                    "metadata": hit.metadata.model_copy(update={"cached": True}),
                })

        self.logger.info("=== Starting analysis run %s ===", run_id)
        self.logger.info(
            "Input: %d chars, aspects: %s", len(clean), ",".join(a.value for a in wanted),
        )
        self._progress("starting", 0.0)
        warnings: list[str] = []
        available = self.collaborators.availability()
        calls_before = len(self.collaborators.call_log())
        self.logger.debug("Providers available: %s", available.model_dump())

        lang, lang_conf = detect_language(clean)
        if not is_german(lang):
            self.logger.warning("Detected language %s; analysis is tuned for German", lang)
            warnings.append(f"language detected as {language_name(lang)} ({lang}); results assume German")

        # ── Step 1: Segmentation ──────────────────────────────────────
        self._checkpoint("tokenization")
        self._progress("tokenization", 0.1)
        seg = segment(clean)

        # ── Step 2: Token annotation ──────────────────────────────────
        self._checkpoint("token_analysis")
        self._progress("token_analysis", 0.25)
        annotation = await annotate_tokens(
            clean, seg.tokens, self.collaborators, self.config,
            use_models=Aspect.tokens in wanted,
        )
        tokens = annotation.tokens
        warnings.extend(annotation.warnings)
        token_analysis = build_token_analysis(tokens) if Aspect.tokens in wanted else None

        # ── Step 3: Sentiment ─────────────────────────────────────────
        sentiment = None
        if Aspect.sentiment in wanted:
            self._checkpoint("sentiment")
            self._progress("sentiment", 0.45)
            sentiment, tokens = await run_sentiment_analysis(
                clean, tokens, seg.sentences, self.collaborators, self.config,
                cancel_check=self.cancel_check,
            )
            if sentiment is None:
                warnings.append("sentiment: no classifier available")
            elif not sentiment.overall.is_ok:
                warnings.append(f"sentiment: {sentiment.overall.reason or sentiment.overall.status.value}")

        # ── Step 4: Syntax and style ──────────────────────────────────
        syntax = None
        if Aspect.syntax in wanted:
            self._checkpoint("syntax")
            self._progress("syntax", 0.65)
            syntax = analyze_syntax(tokens, seg.sentences, seg.verses, self.config)

        # ── Step 5: Semantics ─────────────────────────────────────────
        semantics = None
        if Aspect.semantics in wanted:
            self._checkpoint("semantics")
            self._progress("semantics", 0.85)
            semantics = await run_semantic_analysis(
                clean, tokens, self.collaborators, self.config,
                cancel_check=self.cancel_check,
            )
            if semantics is None:
                warnings.append("semantics: no embedding provider available")
            elif semantics.embedded_words == 0:
                warnings.append("semantics: no word embeddings could be computed")

        # ── Step 6: Readability and summary ───────────────────────────
        self._checkpoint("summary")
        self._progress("summary", 0.95)
        readability, stats = analyze_readability(tokens, seg.sentences)
        summary = build_summary(tokens, seg.verses, readability, stats, sentiment, syntax, semantics)

        duration = (time.monotonic() - t0) * 1000
        models_used = ModelsUsed(
            sentiment=sentiment is not None and sentiment.overall.is_ok,
            ner=annotation.ner_used,
            pos=annotation.pos_source == "ml",
            embeddings=semantics is not None and semantics.embedded_words > 0,
            morphology=annotation.morphology_used,
        )
        calls = self.collaborators.call_log()[calls_before:]
        if calls:
            self.logger.info(
                "Inference: %d calls, %.1f ms total",
                len(calls), sum(c["duration_ms"] for c in calls),
            )

        report = AnalysisReport(
            version=VERSION,
            input_text_hash=hashlib.sha256(clean.encode()).hexdigest()[:16],
            metadata=ReportMetadata(
                run_id=run_id,
                analyzed_at=datetime.now(timezone.utc).isoformat(),
                duration_ms=round(duration, 1),
                text_length=len(clean),
                language=lang,
                language_confidence=lang_conf,
                models_available=available,
                models_used=models_used,
                inference_calls=len(calls),
                pos_source=annotation.pos_source,
                aspects=list(wanted),
                warnings=warnings,
            ),
            text=clean,
            tokens=tokens,
            sentences=seg.sentences,
            verses=seg.verses,
            statistics=stats,
            readability=readability if Aspect.readability in wanted else None,
            token_analysis=token_analysis,
            sentiment=sentiment,
            syntax=syntax,
            semantics=semantics,
            summary=summary,
        )

        if self.cache is not None:
            self.cache.put(key, report)

        # ── Persist run ───────────────────────────────────────────────
        if self.config.store_runs:
            try:
                save_run(run_id, report.model_dump(mode="json"))
            except OSError as e:
                self.logger.warning("Failed to save run data: %s", e)

        self._progress("done", 1.0)
        self.logger.info("=== Run %s completed in %.1f ms ===", run_id, duration)
        return report

    async def analyze_partial(
        self,
        text: str,
        aspects: Iterable[Any] = PARTIAL_DEFAULT,
    ) -> AnalysisReport:
        """Only the requested aspects (default: tokens and sentiment)."""
        return await self.analyze(text, aspects)

    async def analyze_word(self, word: str, context: str) -> WordAnalysis:
        """Annotate the first occurrence of *word* inside *context*.

        Raises:
            ValidationError: Invalid context, or the word does not occur in it.
        """
        clean = self.validate(context)
        target = (word or "").strip().lower()
        tokens = tokenize(clean)
        match = next(
            (t for t in tokens if t.is_word and t.text.lower() == target),
            None,
        )
        if match is None:
            raise ValidationError(f"Word {word!r} not found in context.")

        annotation = await annotate_tokens(clean, tokens, self.collaborators, self.config)
        token = annotation.tokens[match.position]

        sentiment = None
        if self.collaborators.sentiment is not None:
            window = context_text(annotation.tokens, match.position, self.config.processing.context_window)
            sentiment = await classify_sentiment(self.collaborators.sentiment, window)
            token = token.model_copy(update={"sentiment": sentiment})

        return WordAnalysis(word=word, token=token, sentiment=sentiment)

    async def compare_texts(self, first: str, second: str) -> TextComparison:
        """Compare sentiment, readability and themes of two texts.

        Each text is stored under its own run id (``<run_id>-a`` and ``-b``).
        """
        a = await self.analyze(first, run_id=f"{self.run_id}-a")
        b = await self.analyze(second, run_id=f"{self.run_id}-b")

        comparison = TextComparison(
            length_difference=abs(len(a.text) - len(b.text)),
            word_count_difference=abs(
                a.summary.basic_stats.word_count - b.summary.basic_stats.word_count
            ),
            reading_ease_difference=round(abs(
                a.summary.basic_stats.reading_ease - b.summary.basic_stats.reading_ease
            ), 3),
        )

        if a.summary.sentiment and b.summary.sentiment:
            va = _SENTIMENT_VALUE[a.summary.sentiment.overall.value]
            vb = _SENTIMENT_VALUE[b.summary.sentiment.overall.value]
            comparison.sentiment_difference = abs(va - vb)
            comparison.sentiment_similar = va == vb

        if a.semantics is not None and b.semantics is not None:
            pa = {k.phrase.lower() for k in a.semantics.key_phrases}
            pb = {k.phrase.lower() for k in b.semantics.key_phrases}
            union = pa | pb
            if union:
                comparison.thematic_similarity = round(len(pa & pb) / len(union), 3)
            comparison.common_themes = sorted(pa & pb)
            comparison.unique_to_first = sorted(pa - pb)
            comparison.unique_to_second = sorted(pb - pa)

        return comparison

    def render(self, report: AnalysisReport) -> tuple[str, str]:
        """(markdown, json) renderings of *report*."""
        return build_markdown_report(report), build_json_report(report)


async def analyze(
    text: str,
    options: Optional[dict[str, Any]] = None,
    progress_cb: Optional[Callable[[str, float], None]] = None,
) -> AnalysisReport:
    """
    One-shot analysis.

    Options:
        aspects: iterable of aspect names (default: all)
        config: PipelineConfig (default: loaded from the environment)
        collaborators: Collaborators (default: built from config)
        cancel_check: callable returning True to stop between stages
    """
    options = options or {}
    config = options.get("config") or PipelineConfig.load()
    orchestrator = Orchestrator(
        config,
        collaborators=options.get("collaborators"),
        progress_cb=progress_cb,
        cancel_check=options.get("cancel_check"),
    )
    return await orchestrator.analyze(text, options.get("aspects"))
