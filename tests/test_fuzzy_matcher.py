"""Unit tests for typo-tolerant string matching.

Run: pytest tests/test_fuzzy_matcher.py -v
"""

import random
import string

import pytest

from lumo.matching.fuzzy_matcher import FuzzyMatcher, levenshtein_distance, phonetic_key


@pytest.fixture
def matcher():
    return FuzzyMatcher()


def random_words(seed: int, count: int = 40):
    rng = random.Random(seed)
    alphabet = string.ascii_letters + " "
    return ["".join(rng.choice(alphabet) for _ in range(rng.randint(0, 12))) for _ in range(count)]


class TestLevenshteinDistance:
    """Test edit distance."""

    def test_known_distances(self):
        """Test textbook examples."""
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("flaw", "lawn") == 2
        assert levenshtein_distance("same", "same") == 0

    def test_empty_strings(self):
        """Test distance against empty string is the other length."""
        assert levenshtein_distance("", "") == 0
        assert levenshtein_distance("abc", "") == 3
        assert levenshtein_distance("", "abcd") == 4

    def test_symmetry(self):
        """Test distance(a, b) == distance(b, a) over random pairs."""
        words = random_words(seed=11)
        for a, b in zip(words, reversed(words)):
            assert levenshtein_distance(a, b) == levenshtein_distance(b, a)


class TestSimilarity:
    """Test normalized similarity scores."""

    def test_identical_is_one(self, matcher):
        """Test similarity(s, s) == 1.0 for non-empty strings."""
        for word in random_words(seed=3):
            if word:
                assert matcher.similarity(word, word) == 1.0

    def test_empty_is_zero(self, matcher):
        """Test similarity against an empty string is 0.0."""
        assert matcher.similarity("experience", "") == 0.0
        assert matcher.similarity("", "experience") == 0.0

    def test_case_and_whitespace_insensitive(self, matcher):
        """Test normalization before comparison."""
        assert matcher.similarity("  Invitrace ", "invitrace") == 1.0

    def test_whitespace_only_is_zero(self, matcher):
        """Test strings that trim to empty never match."""
        assert matcher.similarity("   ", "abc") == 0.0

    def test_always_in_unit_interval(self, matcher):
        """Test every score stays within [0, 1]."""
        words = random_words(seed=5)
        for a in words:
            for b in words[:10]:
                assert 0.0 <= matcher.similarity(a, b) <= 1.0

    def test_typo_scores_high(self, matcher):
        """Test a single-letter typo stays above the default threshold."""
        assert matcher.similarity("experience", "experiance") == pytest.approx(0.9)
        assert matcher.matches("experience", "experiance")

    def test_single_characters(self, matcher):
        """Test single-character input never raises."""
        assert matcher.similarity("a", "b") == 0.0
        assert matcher.similarity("a", "A") == 1.0


class TestBestMatch:
    """Test candidate selection."""

    def test_best_candidate(self, matcher):
        """Test the closest candidate wins."""
        match = matcher.find_best_match("figmaa", ["Sketch", "Figma", "Framer"])
        assert match is not None
        assert match.match == "Figma"

    def test_no_candidate_above_threshold(self, matcher):
        """Test None when nothing clears the threshold."""
        assert matcher.find_best_match("zzz", ["Figma", "Sketch"]) is None

    def test_earlier_candidate_wins_tie(self, matcher):
        """Test ties keep the first candidate."""
        match = matcher.find_best_match("cat", ["bat", "hat"], min_score=0.5)
        assert match.match == "bat"

    def test_find_all_sorted(self, matcher):
        """Test all matches come back best first."""
        matches = matcher.find_all_matches("design", ["designs", "design", "resign"], min_score=0.5)
        assert [m.match for m in matches][0] == "design"
        scores = [m.score for m in matches]
        assert scores == sorted(scores, reverse=True)

    def test_has_similar(self, matcher):
        """Test a token list scan for one similar enough candidate."""
        assert matcher.has_similar("experience", ["his", "experiance"], 0.65)
        assert not matcher.has_similar("experience", ["his", "work"], 0.65)
        assert not matcher.has_similar("experience", [])
        assert not matcher.has_similar("", ["experience"])

    def test_has_similar_agrees_with_matches(self, matcher):
        """Test the scan gives the same answer as pairwise matches()."""
        words = [w for w in random_words(seed=17, count=60) if w.strip()]
        for target in words[:20]:
            expected = any(matcher.matches(word, target, 0.65) for word in words[20:])
            assert matcher.has_similar(target, words[20:], 0.65) == expected


class TestSmartMatch:
    """Test the exact → fuzzy → phonetic → partial cascade."""

    def test_exact(self, matcher):
        """Test exact match reports score 1.0."""
        result = matcher.smart_match("invitrace", "Invitrace")
        assert result.matches and result.method == "exact" and result.score == 1.0

    def test_fuzzy(self, matcher):
        """Test typo goes through the fuzzy step."""
        result = matcher.smart_match("invitrce", "Invitrace")
        assert result.matches and result.method == "fuzzy"

    def test_phonetic(self):
        """Test sounds-like collisions score 0.8."""
        strict = FuzzyMatcher(threshold=0.95)
        result = strict.smart_match("fone", "phone")
        assert result.method == "phonetic"
        assert result.score == 0.8

    def test_partial(self):
        """Test substring with a close length ratio."""
        strict = FuzzyMatcher(threshold=0.95)
        result = strict.smart_match("peak account", "peak accounts team")
        assert result.method == "partial"
        assert result.score == pytest.approx(12 / 18)

    def test_none(self, matcher):
        """Test unrelated strings report the raw fuzzy score."""
        result = matcher.smart_match("xyz", "Invitrace")
        assert not result.matches
        assert result.method == "none"
        assert result.score == matcher.similarity("xyz", "Invitrace")

    def test_empty_input_never_raises(self, matcher):
        """Test empty strings fall through to 'none'."""
        assert matcher.smart_match("", "Invitrace").method == "none"
        assert matcher.smart_match("", "").matches is False


class TestPhonetics:
    """Test the lossy phonetic key."""

    def test_ph_and_ck(self):
        """Test ph→f and ck→k rewrites."""
        assert phonetic_key("phone") == phonetic_key("fone")
        assert phonetic_key("back") == phonetic_key("bak")

    def test_doubled_letters_collapse(self):
        """Test repeated letters collapse."""
        assert phonetic_key("coffee") == phonetic_key("cofe")

    def test_sounds_like_empty(self, matcher):
        """Test empty input is never a phonetic match."""
        assert matcher.sounds_like("", "a") is False
