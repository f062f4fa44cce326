"""Tests for the analysis stages: token annotation, sentiment, semantics, syntax."""

import asyncio

import pytest

from poetik.analyzers.rule_analysis import analyze_readability, analyze_syntax, segment
from poetik.analyzers.semantics import run_semantic_analysis
from poetik.analyzers.sentiment import (
    context_text,
    run_sentiment_analysis,
    sentiment_consistency,
    sentiment_shifts,
    sentiment_statistics,
    sentiment_trend,
)
from poetik.analyzers.tokens import (
    annotate_tokens,
    apply_entities,
    apply_ml_pos,
    apply_morphology,
    build_token_analysis,
    check_positions,
)
from poetik.collaborators import Collaborators
from poetik.errors import InvariantViolation
from poetik.models import Entity, InferenceOutcome, OutcomeStatus, RhymeSchemeType
from poetik.utils.pos_rules import tag_pos
from poetik.utils.segmentation import segment_sentences, tokenize

from fakes import (
    FailingEmbeddings,
    FailingMorphology,
    FailingPos,
    FailingSentiment,
    LexiconSentiment,
    StaticNer,
    StaticPos,
    TopicEmbeddings,
)


def _with_scores(text, scores):
    """Word tokens of *text* carrying the given sentiment scores in order."""
    tokens = tokenize(text)
    it = iter(scores)
    out = []
    for t in tokens:
        if t.is_punctuation:
            out.append(t)
            continue
        s = next(it)
        label = "positive" if s > 0 else "negative" if s < 0 else "neutral"
        out.append(t.model_copy(update={
            "sentiment": InferenceOutcome.ok(label, s, confidence=0.9),
        }))
    return out


# ── Segmentation ──────────────────────────────────────────────────────────

class TestSegment:
    def test_offsets_and_positions(self, two_stanzas):
        seg = segment(two_stanzas)
        for i, t in enumerate(seg.tokens):
            assert t.position == i
            assert two_stanzas[t.char_offset:t.char_offset + len(t.text)] == t.text
        assert len(seg.verses) == 6
        assert {v.stanza_index for v in seg.verses} == {0, 1}

    def test_prose_has_no_verses(self):
        seg = segment("Ein einziger Satz ohne Zeilenumbruch.")
        assert seg.verses == []
        assert len(seg.sentences) == 1

    def test_check_positions(self):
        tokens = tokenize("Wind und Wellen")
        check_positions(tokens, "test")
        shuffled = [tokens[1], tokens[0], tokens[2]]
        with pytest.raises(InvariantViolation):
            check_positions(shuffled, "test")


# ── Token annotation ──────────────────────────────────────────────────────

class TestApplyEntities:
    def test_exact_match_and_min_score(self):
        tokens = tokenize("Goethe lebte in Weimar bei Weima.")
        entities = [
            Entity(word="Goethe", label="B-PER", score=0.99),
            Entity(word="Weimar", label="LOC", score=0.7),
        ]
        out = apply_entities(tokens, entities)
        assert out[0].entity_type == "PER"
        assert out[0].entity_score == 0.99
        assert all(t.entity_type is None for t in out[1:])

    def test_threshold_is_configurable(self):
        tokens = tokenize("Sie reiste nach Weimar.")
        out = apply_entities(tokens, [Entity(word="weimar", label="LOC", score=0.7)], min_score=0.5)
        assert out[3].entity_type == "LOC"

    def test_partial_words_never_match(self):
        tokens = tokenize("Die Weimarer Klassik")
        out = apply_entities(tokens, [Entity(word="Weimar", label="LOC", score=0.99)])
        assert all(t.entity_type is None for t in out)


class TestApplyMlPos:
    def test_in_order_matching(self):
        tokens = tokenize("Der Wind weht.")
        preds = [Entity(word="Der", label="DET", score=0.9), Entity(word="weht", label="VERB", score=0.8)]
        out = apply_ml_pos(tokens, preds)
        assert [(t.pos_tag, t.pos_score) for t in out] == [
            ("DET", 0.9), ("X", 0.0), ("VERB", 0.8), ("PUNCT", 1.0),
        ]

    def test_cursor_only_moves_forward(self):
        tokens = tokenize("Der Wind weht")
        preds = [Entity(word="weht", label="VERB", score=0.8), Entity(word="Der", label="DET", score=0.9)]
        out = apply_ml_pos(tokens, preds)
        assert [t.pos_tag for t in out] == ["X", "X", "VERB"]

    def test_repeated_words_claimed_in_turn(self):
        tokens = tokenize("rot und rot")
        preds = [Entity(word="rot", label="ADJ", score=0.9), Entity(word="rot", label="NOUN", score=0.6)]
        out = apply_ml_pos(tokens, preds)
        assert [t.pos_tag for t in out] == ["ADJ", "X", "NOUN"]


class TestApplyMorphology:
    def test_features_on_every_match(self):
        tokens = tokenize("Wind und wind.")
        preds = [
            Entity(word="wind", label="Case=Nom|Number=Sing", score=0.7),
            Entity(word="Wind", label="Case=Acc|Number=Sing", score=0.9),
        ]
        out = apply_morphology(tokens, preds)
        assert out[0].morphology == {"Case": "Acc", "Number": "Sing"}
        assert out[2].morphology == out[0].morphology
        assert out[0].morphology_score == 0.9
        assert out[1].morphology is None
        assert out[3].morphology is None

    def test_label_without_features_ignored(self):
        out = apply_morphology(tokenize("Wind"), [Entity(word="Wind", label="NOUN", score=0.9)])
        assert out[0].morphology is None


class TestAnnotateTokens:
    TEXT = "Der Dichter wohnte in Weimar."

    def _run(self, config, collaborators, use_models=True):
        tokens = tokenize(self.TEXT)
        return asyncio.run(annotate_tokens(self.TEXT, tokens, collaborators, config, use_models))

    def test_rules_without_models(self, config):
        result = self._run(config, Collaborators())
        assert result.pos_source == "rules"
        assert result.ner_used is False
        assert [t.pos_tag for t in result.tokens][:2] == ["DET", "NOUN"]
        assert result.warnings == []

    def test_ml_pos_overrides_rules(self, config):
        pos = StaticPos([
            {"word": "Der", "entity_group": "DET", "score": 0.99},
            {"word": "Dichter", "entity_group": "PROPN", "score": 0.97},
        ])
        result = self._run(config, Collaborators(pos=pos))
        assert result.pos_source == "ml"
        tags = [t.pos_tag for t in result.tokens]
        assert tags == ["DET", "NOUN", "X", "X", "X", "PUNCT"]

    def test_failed_pos_falls_back_with_warning(self, config):
        result = self._run(config, Collaborators(pos=FailingPos()))
        assert result.pos_source == "rules"
        assert result.warnings == ["pos: too slow"]
        assert result.tokens[0].pos_tag == "DET"

    def test_models_switched_off(self, config):
        pos = StaticPos([{"word": "Der", "entity_group": "NOUN", "score": 0.5}])
        result = self._run(config, Collaborators(pos=pos), use_models=False)
        assert result.pos_source == "rules"
        assert result.tokens[0].pos_tag == "DET"

    def test_entities_attached(self, config):
        ner = StaticNer([{"word": "Weimar", "entity_group": "LOC", "score": 0.95}])
        result = self._run(config, Collaborators(ner=ner))
        assert result.ner_used is True
        weimar = [t for t in result.tokens if t.text == "Weimar"][0]
        assert weimar.entity_type == "LOC"
        assert weimar.pos_tag == "NOUN"

    def test_failed_morphology_warns(self, config):
        result = self._run(config, Collaborators(morphology=FailingMorphology()))
        assert result.morphology_used is False
        assert result.warnings == ["morphology: lost connection"]
        assert all(t.morphology is None for t in result.tokens)


class TestTokenAnalysis:
    def test_frequencies_and_rare_words(self):
        tokens = tag_pos(tokenize("Der Sommernachtstraum ist herrlich und der Sommernachtstraum duftet."))
        analysis = build_token_analysis(tokens)
        freq = analysis.frequencies
        assert freq.total_words == 8
        assert freq.unique_words == 6
        assert freq.lexical_diversity == 0.75
        assert freq.hapax_legomena == 4
        assert freq.median_frequency == 1.0
        assert [f.word for f in freq.frequencies[:2]] == ["Der", "Sommernachtstraum"]
        assert freq.frequencies[0].positions == [0, 5]
        assert [r.word for r in analysis.rare_words] == ["herrlich", "duftet"]

    def test_compounds(self):
        tokens = tag_pos(tokenize("Der Sommernachtstraum im Haus Garten."))
        compounds = build_token_analysis(tokens).compounds
        assert [(c.word, c.type) for c in compounds] == [
            ("Sommernachtstraum", "long_word"),
            ("Haus Garten", "noun_compound"),
        ]
        assert compounds[1].components == ["Haus", "Garten"]

    def test_diversity(self):
        tokens = tag_pos(tokenize("Der Wind und die Welle."))
        diversity = build_token_analysis(tokens).diversity
        assert diversity.pos_distribution[0].tag == "DET"
        assert diversity.pos_distribution[0].percentage == 40.0
        assert diversity.content_word_ratio == 0.4

    def test_empty(self):
        analysis = build_token_analysis([])
        assert analysis.frequencies.total_words == 0
        assert analysis.compounds == []


# ── Sentiment ─────────────────────────────────────────────────────────────

class TestSentimentAggregates:
    def test_statistics(self):
        tokens = _with_scores("Sonne Regen Wind Mond", [0.9, -0.6, 0.0, 0.9])
        stats = sentiment_statistics(tokens)
        assert stats.positive_count == 2
        assert stats.negative_count == 1
        assert stats.neutral_count == 1
        assert stats.average_score == 0.3
        assert stats.overall == "positive"
        assert stats.dominant == "positive"
        assert stats.distribution["positive"] == 50.0
        assert stats.emotional_range == 1.5

    def test_neutral_band(self):
        stats = sentiment_statistics(_with_scores("Sonne Regen", [0.5, -0.4]))
        assert stats.overall == "neutral"

    def test_no_scored_tokens(self):
        stats = sentiment_statistics(tokenize("Sonne und Regen"))
        assert stats.positive_count == 0
        assert stats.distribution == {"positive": 0.0, "negative": 0.0, "neutral": 0.0}

    def test_trend_needs_five_points(self):
        assert sentiment_trend(_with_scores("a b c d", [0.1, 0.2, 0.3, 0.4])).trend == "stable"
        trend = sentiment_trend(_with_scores("a b c d e", [-0.8, -0.4, 0.0, 0.4, 0.8]))
        assert trend.trend == "improving"
        assert trend.slope == pytest.approx(0.4)
        assert trend.confidence == 1.0

    def test_shifts(self):
        shifts = sentiment_shifts(_with_scores("hell dunkel dunkel", [0.9, -0.9, -0.8]))
        assert len(shifts) == 1
        assert shifts[0].position == 1
        assert shifts[0].direction == "negative"
        assert shifts[0].magnitude == 1.8

    def test_consistency(self):
        steady = sentiment_consistency(_with_scores("a b c", [0.5, 0.5, 0.5]))
        assert steady.consistency == 1.0
        assert steady.is_consistent
        assert sentiment_consistency(_with_scores("a", [0.5])).consistency == 0.0

    def test_context_window(self):
        tokens = tokenize("eins zwei drei vier fünf")
        assert context_text(tokens, 0, 1) == "eins zwei"
        assert context_text(tokens, 2, 1) == "zwei drei vier"


class TestRunSentiment:
    def _run(self, text, config, classifier, **kw):
        tokens = tokenize(text)
        sentences = segment_sentences(text)
        return asyncio.run(run_sentiment_analysis(
            text, tokens, sentences, Collaborators(sentiment=classifier), config, **kw
        ))

    def test_full_pass(self, poem, config):
        classifier = LexiconSentiment()
        analysis, tokens = self._run(poem, config, classifier)
        assert analysis.overall.label == "positive"
        assert len(analysis.sentences) == 3
        words = [t for t in tokens if not t.is_punctuation]
        assert len(words) == 17
        assert all(t.sentiment is not None for t in words)
        assert all(t.sentiment is None for t in tokens if t.is_punctuation)
        assert classifier.calls == 1 + 3 + 17

    def test_without_sentences(self, poem, config):
        classifier = LexiconSentiment()
        analysis, _ = self._run(poem, config, classifier, include_sentences=False)
        assert analysis.sentences == []
        assert classifier.calls == 1 + 17

    def test_no_classifier(self, poem, config):
        tokens = tokenize(poem)
        analysis, out = asyncio.run(run_sentiment_analysis(
            poem, tokens, segment_sentences(poem), Collaborators(), config
        ))
        assert analysis is None
        assert out == tokens

    def test_failing_classifier_degrades(self, poem, config):
        analysis, tokens = self._run(poem, config, FailingSentiment())
        assert analysis.overall.status == OutcomeStatus.error
        assert analysis.statistics.positive_count == 0
        assert all(
            t.sentiment.status == OutcomeStatus.error for t in tokens if not t.is_punctuation
        )


# ── Semantics ─────────────────────────────────────────────────────────────

class TestRunSemantics:
    def _run(self, text, config, provider):
        tokens = tag_pos(tokenize(text))
        return asyncio.run(run_semantic_analysis(
            text, tokens, Collaborators(embeddings=provider), config
        ))

    def test_nature_words_form_a_field(self, poem, config):
        result = self._run(poem, config, TopicEmbeddings())
        assert result.embedded_words == 15
        assert result.text_embedding_dim == 8
        assert any(
            set(f.words) == {"Sonne", "Himmel", "Vögel", "Bäumen"}
            for f in result.semantic_fields
        )

    def test_key_phrases_ranked(self, poem, config):
        phrases = self._run(poem, config, TopicEmbeddings()).key_phrases
        assert 0 < len(phrases) <= 15
        importances = [p.importance for p in phrases]
        assert importances == sorted(importances, reverse=True)

    def test_failing_provider(self, poem, config):
        result = self._run(poem, config, FailingEmbeddings())
        assert result.embedded_words == 0
        assert result.key_phrases == []
        assert result.semantic_fields == []

    def test_no_provider(self, poem, config):
        assert self._run(poem, config, None) is None


# ── Syntax and readability ────────────────────────────────────────────────

class TestSyntaxStage:
    def test_two_stanzas(self, two_stanzas, config):
        seg = segment(two_stanzas)
        syntax = analyze_syntax(seg.tokens, seg.sentences, seg.verses, config)
        assert syntax.rhyme_scheme.pattern == ["A", "B", "C", "A", "D", "D"]
        assert len(syntax.sentence_structure) == len(seg.sentences)

    def test_rhyme_threshold_from_config(self, config):
        text = "leise Bäche\neinem Blick\nHoffnungsglück\ndie Schwäche"
        config.thresholds.rhyme_similarity = 0.6
        seg = segment(text)
        syntax = analyze_syntax(seg.tokens, seg.sentences, seg.verses, config)
        assert syntax.rhyme_scheme.scheme_label == RhymeSchemeType.enclosed_rhyme

    def test_prose_has_no_rhyme(self, config):
        seg = segment("Ein Satz. Noch ein Satz.")
        assert analyze_syntax(seg.tokens, seg.sentences, seg.verses, config).rhyme_scheme is None

    def test_readability(self):
        seg = segment("Die Sonne scheint.")
        metrics, stats = analyze_readability(seg.tokens, seg.sentences)
        assert metrics.flesch_reading_ease == 99.0
        assert stats.word_count == 3
