"""Pydantic data models for the poetik analysis pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ────────────────────────────────────────────────────────────────

class OutcomeStatus(str, Enum):
    ok = "ok"
    unavailable = "unavailable"
    error = "error"


class SentimentLabel(str, Enum):
    positive = "positive"
    negative = "negative"
    neutral = "neutral"


class RhymeSchemeType(str, Enum):
    paired_rhyme = "paired_rhyme"
    cross_rhyme = "cross_rhyme"
    enclosed_rhyme = "enclosed_rhyme"
    monorhyme = "monorhyme"
    free_scheme = "free_scheme"


class PunctuationStyle(str, Enum):
    expressive = "expressive"
    questioning = "questioning"
    complex = "complex"
    neutral = "neutral"


class SentenceType(str, Enum):
    question = "question"
    exclamation = "exclamation"
    complex = "complex"
    statement = "statement"


class Aspect(str, Enum):
    tokens = "tokens"
    sentiment = "sentiment"
    syntax = "syntax"
    semantics = "semantics"
    readability = "readability"


# ── Collaborator boundary ────────────────────────────────────────────────

class InferenceOutcome(BaseModel):
    """Normalised result of one external inference call.

    Exactly one of three shapes: ``ok`` with label/score, ``unavailable``
    when no provider is configured, ``error`` with a reason.
    """

    status: OutcomeStatus
    label: Optional[str] = None
    score: Optional[float] = None
    confidence: Optional[float] = None
    raw_label: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def ok(
        cls,
        label: str,
        score: float,
        confidence: Optional[float] = None,
        raw_label: Optional[str] = None,
    ) -> "InferenceOutcome":
        return cls(
            status=OutcomeStatus.ok,
            label=label,
            score=score,
            confidence=confidence,
            raw_label=raw_label,
        )

    @classmethod
    def unavailable(cls, reason: str = "") -> "InferenceOutcome":
        return cls(status=OutcomeStatus.unavailable, reason=reason or None)

    @classmethod
    def error(cls, reason: str) -> "InferenceOutcome":
        return cls(status=OutcomeStatus.error, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status == OutcomeStatus.ok


class Entity(BaseModel):
    word: str
    label: str
    score: float = 0.0
    start: Optional[int] = None
    end: Optional[int] = None


# ── Segmentation ─────────────────────────────────────────────────────────

class Token(BaseModel):
    """A word, punctuation or symbol token.

    Frozen: later stages attach annotations through ``model_copy``; the
    offset and position of a token never change.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    char_offset: int
    position: int
    is_punctuation: bool = False
    is_symbol: bool = False

    pos_tag: Optional[str] = None
    pos_score: Optional[float] = None
    entity_type: Optional[str] = None
    entity_score: Optional[float] = None
    sentiment: Optional[InferenceOutcome] = None
    morphology: Optional[dict[str, str]] = None
    morphology_score: Optional[float] = None

    @property
    def is_word(self) -> bool:
        return not (self.is_punctuation or self.is_symbol)

    @property
    def length(self) -> int:
        return len(self.text)


class Sentence(BaseModel):
    text: str
    index: int
    word_count: int = 0


class Verse(BaseModel):
    text: str
    index: int
    stanza_index: int
    verse_in_stanza_index: int
    word_count: int = 0
    syllable_count: int = 0


# ── Rule-based analysis ─────────────────────────────────────────────────

class RhymePair(BaseModel):
    verse_i: int
    verse_j: int
    similarity: float


class RhymeScheme(BaseModel):
    pattern: list[str] = Field(default_factory=list)
    pairs: list[RhymePair] = Field(default_factory=list)
    endings: list[str] = Field(default_factory=list)
    scheme_label: RhymeSchemeType = RhymeSchemeType.free_scheme

    @property
    def scheme(self) -> str:
        return "".join(self.pattern)


class Repetition(BaseModel):
    word: str
    count: int
    positions: list[int] = Field(default_factory=list)
    is_anaphora: bool = False
    is_epiphora: bool = False


class Alliteration(BaseModel):
    letter: str
    words: list[str] = Field(default_factory=list)
    positions: list[int] = Field(default_factory=list)


class ParallelPair(BaseModel):
    sentence_i: int
    sentence_j: int
    similarity: float
    text_i: str = ""
    text_j: str = ""


class PunctuationPattern(BaseModel):
    total: int = 0
    counts: dict[str, int] = Field(default_factory=dict)
    distribution: dict[str, float] = Field(default_factory=dict)
    style: PunctuationStyle = PunctuationStyle.neutral


class SentenceStructure(BaseModel):
    index: int
    text: str
    token_count: int = 0
    word_count: int = 0
    avg_word_length: float = 0.0
    complexity: int = 0
    sentence_type: SentenceType = SentenceType.statement


class SyntaxAnalysis(BaseModel):
    sentence_structure: list[SentenceStructure] = Field(default_factory=list)
    rhyme_scheme: Optional[RhymeScheme] = None
    alliterations: list[Alliteration] = Field(default_factory=list)
    repetitions: list[Repetition] = Field(default_factory=list)
    parallelism: list[ParallelPair] = Field(default_factory=list)
    punctuation: PunctuationPattern = Field(default_factory=PunctuationPattern)


class ReadabilityMetrics(BaseModel):
    word_count: int = 0
    sentence_count: int = 0
    syllable_count: int = 0
    avg_words_per_sentence: float = 0.0
    avg_syllables_per_word: float = 0.0
    flesch_reading_ease: float = 0.0
    wiener_index: float = 0.0
    lexical_density: float = 0.0
    ease_band: str = ""
    wiener_band: str = ""
    interpretation: str = ""


class TextStatistics(BaseModel):
    word_count: int = 0
    unique_words: int = 0
    sentence_count: int = 0
    avg_word_length: float = 0.0
    avg_words_per_sentence: float = 0.0
    punctuation_count: int = 0
    type_token_ratio: float = 0.0


# ── Token-level analysis ─────────────────────────────────────────────────

class WordFrequency(BaseModel):
    word: str
    count: int = 0
    positions: list[int] = Field(default_factory=list)
    pos_tag: Optional[str] = None
    entity_type: Optional[str] = None
    first_occurrence: int = 0


class FrequencyAnalysis(BaseModel):
    frequencies: list[WordFrequency] = Field(default_factory=list)
    total_words: int = 0
    unique_words: int = 0
    lexical_diversity: float = 0.0
    hapax_legomena: int = 0
    mean_frequency: float = 0.0
    median_frequency: float = 0.0

    @property
    def most_frequent(self) -> list[WordFrequency]:
        return self.frequencies[:10]


class CompoundWord(BaseModel):
    word: str
    position: int
    type: str
    components: list[str] = Field(default_factory=list)
    pos_tag: Optional[str] = None


class RareWord(BaseModel):
    word: str
    position: int
    pos_tag: Optional[str] = None
    entity_type: Optional[str] = None


class DistributionEntry(BaseModel):
    tag: str
    count: int
    percentage: float


class TokenDiversity(BaseModel):
    pos_distribution: list[DistributionEntry] = Field(default_factory=list)
    entity_distribution: list[DistributionEntry] = Field(default_factory=list)
    content_word_ratio: float = 0.0
    named_entity_ratio: float = 0.0


class TokenAnalysis(BaseModel):
    frequencies: FrequencyAnalysis = Field(default_factory=FrequencyAnalysis)
    compounds: list[CompoundWord] = Field(default_factory=list)
    rare_words: list[RareWord] = Field(default_factory=list)
    diversity: TokenDiversity = Field(default_factory=TokenDiversity)


# ── Sentiment ────────────────────────────────────────────────────────────

class SentenceSentiment(BaseModel):
    sentence_index: int
    text: str
    sentiment: InferenceOutcome


class SentimentStatistics(BaseModel):
    overall: SentimentLabel = SentimentLabel.neutral
    dominant: SentimentLabel = SentimentLabel.neutral
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    average_score: float = 0.0
    average_confidence: float = 0.0
    distribution: dict[str, float] = Field(default_factory=dict)
    emotional_range: float = 0.0


class EmotionalPeak(BaseModel):
    position: int
    word: str
    label: str
    score: float
    confidence: float


class SentimentTrend(BaseModel):
    trend: str = "stable"
    slope: float = 0.0
    direction: str = "neutral"
    confidence: float = 0.0


class SentimentShift(BaseModel):
    position: int
    word: str
    from_label: str
    to_label: str
    magnitude: float
    direction: str


class SentimentConsistency(BaseModel):
    consistency: float = 0.0
    variance: float = 0.0
    standard_deviation: float = 0.0
    is_consistent: bool = False
    interpretation: str = ""


class SentimentAnalysis(BaseModel):
    overall: InferenceOutcome
    sentences: list[SentenceSentiment] = Field(default_factory=list)
    statistics: SentimentStatistics = Field(default_factory=SentimentStatistics)
    peaks: list[EmotionalPeak] = Field(default_factory=list)
    trend: SentimentTrend = Field(default_factory=SentimentTrend)
    shifts: list[SentimentShift] = Field(default_factory=list)
    consistency: SentimentConsistency = Field(default_factory=SentimentConsistency)


# ── Semantics ────────────────────────────────────────────────────────────

class WordEmbedding(BaseModel):
    word: str
    position: int
    embedding: list[float]
    pos_tag: Optional[str] = None
    entity_type: Optional[str] = None


class SimilarityPair(BaseModel):
    word_i: str
    word_j: str
    similarity: float
    position_i: int
    position_j: int
    category: str


class SemanticField(BaseModel):
    words: list[str] = Field(default_factory=list)
    representatives: list[str] = Field(default_factory=list)
    coherence: float = 0.0

    @property
    def size(self) -> int:
        return len(self.words)

    @property
    def theme(self) -> str:
        return ", ".join(self.representatives)


class KeyPhrase(BaseModel):
    phrase: str
    type: str
    importance: float
    position: int
    pos_tag: Optional[str] = None


class Cohesion(BaseModel):
    score: float = 0.0
    sequential: float = 0.0
    central: float = 0.0
    interpretation: str = ""


class ThematicSegment(BaseModel):
    start_position: int
    end_position: int
    words: list[str] = Field(default_factory=list)
    coherence: float = 0.0


class ThematicShift(BaseModel):
    position: int
    from_segment: int
    to_segment: int
    magnitude: float
    from_words: list[str] = Field(default_factory=list)
    to_words: list[str] = Field(default_factory=list)
    type: str = "minor"


class ThematicDevelopment(BaseModel):
    segments: list[ThematicSegment] = Field(default_factory=list)
    shifts: list[ThematicShift] = Field(default_factory=list)
    consistency: float = 1.0
    interpretation: str = ""
    has_progressive_narrative: bool = False


class SemanticDiversity(BaseModel):
    diversity: float = 0.0
    interpretation: str = ""
    comparisons: int = 0


class SemanticAnalysis(BaseModel):
    embedded_words: int = 0
    text_embedding_dim: int = 0
    similarities: list[SimilarityPair] = Field(default_factory=list)
    semantic_fields: list[SemanticField] = Field(default_factory=list)
    key_phrases: list[KeyPhrase] = Field(default_factory=list)
    cohesion: Cohesion = Field(default_factory=Cohesion)
    thematic_development: ThematicDevelopment = Field(default_factory=ThematicDevelopment)
    diversity: SemanticDiversity = Field(default_factory=SemanticDiversity)


# ── Summary and report ───────────────────────────────────────────────────

class Complexity(BaseModel):
    score: int = 0
    level: str = ""


class BasicStats(BaseModel):
    word_count: int = 0
    sentence_count: int = 0
    verse_count: int = 0
    stanza_count: int = 0
    avg_word_length: float = 0.0
    avg_words_per_sentence: float = 0.0
    reading_ease: float = 0.0


class SentimentSummary(BaseModel):
    overall: SentimentLabel
    confidence: Optional[float] = None
    distribution: dict[str, float] = Field(default_factory=dict)


class StyleSummary(BaseModel):
    punctuation_style: PunctuationStyle = PunctuationStyle.neutral
    has_rhymes: bool = False
    rhyme_scheme: Optional[RhymeSchemeType] = None
    alliteration_count: int = 0
    repetition_count: int = 0
    parallelism_count: int = 0


class Summary(BaseModel):
    basic_stats: BasicStats = Field(default_factory=BasicStats)
    sentiment: Optional[SentimentSummary] = None
    style: Optional[StyleSummary] = None
    themes: list[str] = Field(default_factory=list)
    complexity: Optional[Complexity] = None


class ModelsUsed(BaseModel):
    sentiment: bool = False
    ner: bool = False
    pos: bool = False
    embeddings: bool = False
    morphology: bool = False


class ReportMetadata(BaseModel):
    run_id: str = ""
    analyzed_at: str = ""
    duration_ms: float = 0.0
    text_length: int = 0
    language: str = "de"
    language_confidence: float = 0.0
    models_available: ModelsUsed = Field(default_factory=ModelsUsed)
    models_used: ModelsUsed = Field(default_factory=ModelsUsed)
    inference_calls: int = 0
    pos_source: str = "rules"
    aspects: list[Aspect] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cached: bool = False


class AnalysisReport(BaseModel):
    version: str = "1.0.0"
    input_text_hash: str = ""
    metadata: ReportMetadata = Field(default_factory=ReportMetadata)
    text: str = ""
    tokens: list[Token] = Field(default_factory=list)
    sentences: list[Sentence] = Field(default_factory=list)
    verses: list[Verse] = Field(default_factory=list)
    statistics: Optional[TextStatistics] = None
    readability: Optional[ReadabilityMetrics] = None
    token_analysis: Optional[TokenAnalysis] = None
    sentiment: Optional[SentimentAnalysis] = None
    syntax: Optional[SyntaxAnalysis] = None
    semantics: Optional[SemanticAnalysis] = None
    summary: Summary = Field(default_factory=Summary)

    @property
    def words(self) -> list[Token]:
        return [t for t in self.tokens if not t.is_punctuation]


class WordAnalysis(BaseModel):
    word: str
    token: Token
    sentiment: Optional[InferenceOutcome] = None


class TextComparison(BaseModel):
    length_difference: int = 0
    sentiment_similar: Optional[bool] = None
    sentiment_difference: Optional[int] = None
    reading_ease_difference: float = 0.0
    word_count_difference: int = 0
    thematic_similarity: Optional[float] = None
    common_themes: list[str] = Field(default_factory=list)
    unique_to_first: list[str] = Field(default_factory=list)
    unique_to_second: list[str] = Field(default_factory=list)
