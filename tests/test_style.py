"""Unit tests for rhyme, repetition, parallelism and other style detectors."""

import pytest

from poetik.models import PunctuationStyle, RhymeSchemeType, SentenceType, Verse
from poetik.utils.segmentation import detect_verses, segment_sentences, tokenize
from poetik.utils.style import (
    analyze_punctuation,
    analyze_rhyme_scheme,
    analyze_sentence_structure,
    classify_scheme,
    detect_alliterations,
    detect_parallelism,
    ending_similarity,
    find_repetitions,
    levenshtein,
    scheme_letter,
    sentence_complexity,
    sentence_type,
)


def _verses(*lines):
    return detect_verses("\n".join(lines))


# ── Rhyme ─────────────────────────────────────────────────────────────────

class TestLevenshtein:
    def test_known_distances(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("che", "che") == 0

    def test_ending_similarity(self):
        assert ending_similarity("", "") == 1.0
        assert ending_similarity("che", "che") == 1.0
        assert ending_similarity("ick", "ück") == pytest.approx(2 / 3)


class TestSchemeLetters:
    def test_letters(self):
        assert scheme_letter(0) == "A"
        assert scheme_letter(25) == "Z"
        assert scheme_letter(26) == "AA"
        assert scheme_letter(27) == "AB"

    @pytest.mark.parametrize("pattern,label", [
        ("AABB", RhymeSchemeType.paired_rhyme),
        ("ABAB", RhymeSchemeType.cross_rhyme),
        ("ABBA", RhymeSchemeType.enclosed_rhyme),
        ("AAAA", RhymeSchemeType.monorhyme),
        ("ABCD", RhymeSchemeType.free_scheme),
        ("ABA", RhymeSchemeType.free_scheme),
        ("AABBCC", RhymeSchemeType.paired_rhyme),
    ])
    def test_classify(self, pattern, label):
        assert classify_scheme(list(pattern)) == label


class TestRhymeScheme:
    def test_baeche_blick_example(self):
        verses = _verses(
            "Im Wald da rauschen leise Bäche,",
            "Ich sah dich an mit einem Blick,",
            "Du warst mein ganzes Hoffnungsglück,",
            "Und nun bleibt nur die Schwäche.",
        )
        rs = analyze_rhyme_scheme(verses)
        # "ick" vs "ück" scores 2/3, which does not clear 0.7
        assert rs.pattern == ["A", "B", "C", "A"]
        assert rs.endings == ["che", "ick", "ück", "che"]
        assert [(p.verse_i, p.verse_j) for p in rs.pairs] == [(0, 3)]
        assert rs.scheme_label == RhymeSchemeType.free_scheme

    def test_lower_threshold_groups_near_rhymes(self):
        verses = _verses("leise Bäche", "einem Blick", "Hoffnungsglück", "die Schwäche")
        rs = analyze_rhyme_scheme(verses, threshold=0.6)
        assert rs.scheme == "ABBA"
        assert rs.scheme_label == RhymeSchemeType.enclosed_rhyme

    def test_paired_and_cross(self):
        paired = analyze_rhyme_scheme(_verses("im Wind", "das Kind", "die Nacht", "die Macht"))
        assert paired.scheme == "AABB"
        assert paired.scheme_label == RhymeSchemeType.paired_rhyme

        cross = analyze_rhyme_scheme(_verses("die Nacht", "im Wind", "die Macht", "das Kind"))
        assert cross.scheme == "ABAB"
        assert cross.scheme_label == RhymeSchemeType.cross_rhyme

    def test_pattern_length_matches_verses(self, two_stanzas):
        verses = detect_verses(two_stanzas)
        rs = analyze_rhyme_scheme(verses)
        assert len(rs.pattern) == len(verses) == 6
        assert rs.pattern == ["A", "B", "C", "A", "D", "D"]

    def test_verse_without_words_gets_own_letter(self):
        verses = [
            Verse(text="im Wind", index=0, stanza_index=0, verse_in_stanza_index=0),
            Verse(text="...", index=1, stanza_index=0, verse_in_stanza_index=1),
            Verse(text="das Kind", index=2, stanza_index=0, verse_in_stanza_index=2),
        ]
        assert analyze_rhyme_scheme(verses).pattern == ["A", "B", "A"]

    def test_empty(self):
        rs = analyze_rhyme_scheme([])
        assert rs.pattern == []
        assert rs.scheme_label == RhymeSchemeType.free_scheme


# ── Repetition and parallelism ────────────────────────────────────────────

class TestRepetitions:
    def test_anaphora(self):
        tokens = tokenize("Die Nacht ist kalt. Die Nacht ist lang. Der Morgen kommt.")
        reps = find_repetitions(tokens)
        assert [r.word for r in reps] == ["nacht"]
        assert reps[0].count == 2
        assert reps[0].positions == [1, 6]
        assert reps[0].is_anaphora
        assert not reps[0].is_epiphora

    def test_epiphora(self):
        tokens = tokenize("Es ruft die Ferne. Wir sehnen uns nach Ferne.")
        reps = find_repetitions(tokens)
        assert len(reps) == 1
        assert reps[0].is_epiphora
        assert not reps[0].is_anaphora

    def test_single_occurrence_never_listed(self):
        reps = find_repetitions(tokenize("Wolken ziehen über Wolken und Berge."))
        words = {r.word for r in reps}
        assert "wolken" in words
        assert "berge" not in words
        assert all(len(r.positions) == r.count for r in reps)

    def test_short_words_ignored(self):
        assert find_repetitions(tokenize("und und und ist ist")) == []


class TestParallelism:
    def test_similar_sentences(self):
        sentences = segment_sentences(
            "Ich sehe den Wald. Ich sehe den Baum. Heute regnet es stark und lange."
        )
        pairs = detect_parallelism(sentences)
        assert len(pairs) == 1
        assert (pairs[0].sentence_i, pairs[0].sentence_j) == (0, 1)
        assert pairs[0].similarity == 0.72

    def test_long_previews_are_cut(self):
        line = "Der alte Mann ging langsam über die Brücke und dachte an früher."
        pairs = detect_parallelism(segment_sentences(f"{line} {line}"))
        assert pairs[0].text_i.endswith("...")
        assert len(pairs[0].text_i) == 53


# ── Punctuation and alliteration ──────────────────────────────────────────

class TestPunctuation:
    def test_expressive(self):
        p = analyze_punctuation(tokenize("Oh! Ah! Nein!"))
        assert p.style == PunctuationStyle.expressive
        assert p.distribution["exclamation"] == 100.0
        assert p.total == 3

    def test_questioning(self):
        assert analyze_punctuation(tokenize("Was? Wer? Wie.")).style == PunctuationStyle.questioning

    def test_complex(self):
        assert analyze_punctuation(tokenize("Erst, dann, danach, zuletzt.")).style == PunctuationStyle.complex

    def test_no_punctuation(self):
        p = analyze_punctuation(tokenize("Kein Satzzeichen hier"))
        assert p.total == 0
        assert p.style == PunctuationStyle.neutral
        assert set(p.distribution.values()) == {0.0}

    def test_symbols_not_counted(self):
        p = analyze_punctuation(tokenize("Rabatt: 50 % & mehr!"))
        assert p.total == 2
        assert "%" not in p.counts


class TestAlliteration:
    def test_run(self):
        found = detect_alliterations(tokenize("Milch macht müde Männer munter."))
        assert len(found) == 1
        assert found[0].letter == "m"
        assert found[0].words == ["Milch", "macht", "müde", "Männer", "munter"]

    def test_function_words_skipped(self):
        found = detect_alliterations(tokenize("Wald und Wiese"))
        assert [a.words for a in found] == [["Wald", "Wiese"]]

    def test_punctuation_breaks_run(self):
        assert detect_alliterations(tokenize("Wald. Wiese")) == []


# ── Sentence structure ────────────────────────────────────────────────────

class TestSentenceStructure:
    @pytest.mark.parametrize("text,kind", [
        ("Wer bist du?", SentenceType.question),
        ("Lauf!", SentenceType.exclamation),
        ("Ich kam, sah und siegte.", SentenceType.complex),
        ("Es regnet.", SentenceType.statement),
    ])
    def test_sentence_type(self, text, kind):
        assert sentence_type(text) == kind

    def test_complexity(self):
        assert sentence_complexity([]) == 0
        assert sentence_complexity(tokenize("Es regnet.")) == 25

    def test_structure(self):
        structures = analyze_sentence_structure(segment_sentences("Es regnet. Wer kommt?"))
        assert [s.index for s in structures] == [0, 1]
        assert structures[0].token_count == 3
        assert structures[0].word_count == 2
        assert structures[0].complexity == 25
        assert structures[1].sentence_type == SentenceType.question
