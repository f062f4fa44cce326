"""Contract tests for data models (no API keys needed)."""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from poetik.models import (
    AnalysisReport, Aspect, InferenceOutcome, OutcomeStatus, ReportMetadata,
    RhymeScheme, RhymeSchemeType, SemanticField, Token,
)


class TestInferenceOutcome:
    def test_ok(self):
        o = InferenceOutcome.ok("positive", 0.9, confidence=0.95)
        assert o.is_ok
        assert o.status == OutcomeStatus.ok
        assert o.reason is None

    def test_unavailable(self):
        o = InferenceOutcome.unavailable()
        assert not o.is_ok
        assert o.status == OutcomeStatus.unavailable
        assert o.label is None
        assert o.score is None

    def test_error_keeps_reason(self):
        o = InferenceOutcome.error("timeout")
        assert o.status == OutcomeStatus.error
        assert o.reason == "timeout"


class TestToken:
    def test_frozen(self):
        t = Token(text="Sonne", char_offset=4, position=1)
        with pytest.raises(PydanticValidationError):
            t.position = 2

    def test_annotation_by_copy(self):
        t = Token(text="Sonne", char_offset=4, position=1)
        tagged = t.model_copy(update={"pos_tag": "NOUN", "pos_score": 0.7})
        assert tagged.pos_tag == "NOUN"
        assert tagged.char_offset == 4
        assert tagged.position == 1
        assert t.pos_tag is None


class TestRhymeScheme:
    def test_scheme_string(self):
        rs = RhymeScheme(pattern=["A", "B", "B", "A"], scheme_label=RhymeSchemeType.enclosed_rhyme)
        assert rs.scheme == "ABBA"

    def test_defaults(self):
        rs = RhymeScheme()
        assert rs.pattern == []
        assert rs.scheme_label == RhymeSchemeType.free_scheme


class TestSemanticField:
    def test_size_and_theme(self):
        f = SemanticField(words=["Sonne", "Himmel", "Wald"], representatives=["Sonne", "Wald"])
        assert f.size == 3
        assert f.theme == "Sonne, Wald"


class TestAnalysisReport:
    def test_defaults(self):
        r = AnalysisReport()
        assert r.sentiment is None
        assert r.semantics is None
        assert r.metadata.models_used.sentiment is False
        assert r.summary.themes == []

    def test_words_property(self):
        r = AnalysisReport(tokens=[
            Token(text="Hallo", char_offset=0, position=0),
            Token(text="!", char_offset=5, position=1, is_punctuation=True),
        ])
        assert [t.text for t in r.words] == ["Hallo"]

    def test_serialization(self):
        r = AnalysisReport(
            input_text_hash="abc",
            metadata=ReportMetadata(aspects=[Aspect.tokens, Aspect.sentiment]),
            text="Hallo Welt",
        )
        data = json.loads(r.model_dump_json())
        assert data["metadata"]["aspects"] == ["tokens", "sentiment"]
        assert data["sentiment"] is None
        restored = AnalysisReport(**data)
        assert restored.metadata.aspects == [Aspect.tokens, Aspect.sentiment]
