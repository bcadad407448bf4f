"""Unit tests for query validation, canned fallbacks and small talk.

Run: pytest tests/test_fallbacks.py -v
"""

import random

import pytest

from lumo.flows.node_logic.util_context_validator import ContextValidator
from lumo.flows.node_logic.util_fallback_strategy import (
    GIBBERISH_SUGGESTIONS,
    LOW_CONFIDENCE_SUGGESTIONS,
    NO_CONTEXT_SUGGESTIONS,
    TOO_BROAD_SUGGESTIONS,
    FallbackStrategy,
)
from lumo.flows.node_logic.util_small_talk import SmallTalkHandler, matches_any, strip_punctuation


@pytest.fixture
def validator():
    return ContextValidator()


@pytest.fixture
def fallbacks(knowledge):
    return FallbackStrategy(knowledge.fallbacks, random.Random(3))


@pytest.fixture
def small_talk(knowledge):
    return SmallTalkHandler(knowledge.small_talk, random.Random(3))


class TestGibberishDetection:
    """Test the keyboard-mash heuristics."""

    def test_keyboard_pattern(self, validator):
        """Test known mash patterns."""
        assert validator.is_gibberish("asdfgh") is True
        assert validator.is_gibberish("xjklqwz") is True

    def test_real_question(self, validator):
        """Test a normal question is not gibberish."""
        assert validator.is_gibberish("tell me about his experience") is False

    def test_low_vowel_ratio(self, validator):
        """Test vowel ratio below 0.15 over more than five letters."""
        assert validator.is_gibberish("brr pfft hmm") is True

    def test_short_input_not_ratio_checked(self, validator):
        """Test five letters or fewer skip the ratio check."""
        assert validator.is_gibberish("hmm") is False

    def test_consonant_run(self, validator):
        """Test six consonants in a row."""
        assert validator.is_gibberish("a rhythms question") is True


class TestValidation:
    """Test vagueness and follow-up validation."""

    @pytest.mark.parametrize("query", ["idk", "Whatever you like", "tell me something", "random"])
    def test_vague(self, validator, query):
        """Test vague triggers."""
        assert validator.is_vague(query) is True

    def test_not_vague(self, validator):
        """Test a specific question is not vague."""
        assert validator.is_vague("what are his skills") is False

    def test_follow_up_without_history(self, validator):
        """Test follow-ups need conversation history."""
        result = validator.validate_follow_up("follow_up_more", [])
        assert result.is_valid is False
        assert result.reason == "no_context"
        assert result.suggestion

    def test_follow_up_with_history(self, validator):
        """Test follow-ups pass when something was said."""
        assert validator.validate_follow_up("follow_up_previous", ["turn"]).is_valid

    def test_other_types_always_valid(self, validator):
        """Test non follow-up reference types are not validated."""
        assert validator.validate_follow_up("context_switch", []).is_valid

    def test_reference_needs_topic(self, validator):
        """Test a reference without a last topic is invalid."""
        assert validator.validate_reference(True, None).reason == "missing_reference"
        assert validator.validate_reference(True, "Invitrace").is_valid
        assert validator.validate_reference(False, None).is_valid


class TestFallbackStrategy:
    """Test canned fallback replies."""

    def test_gibberish_suggestions_fixed(self, fallbacks, knowledge):
        """Test the gibberish reply uses its fixed suggestion set."""
        response = fallbacks.handle_gibberish()
        assert response["suggestions"] == GIBBERISH_SUGGESTIONS
        lines = [r.text for r in knowledge.fallbacks.gibberish.responses]
        assert any(response["text"].startswith(line) for line in lines)

    def test_each_category_has_three_suggestions(self, fallbacks):
        """Test every fallback pairs with three suggestions."""
        assert fallbacks.handle_no_context()["suggestions"] == NO_CONTEXT_SUGGESTIONS
        assert fallbacks.handle_low_confidence()["suggestions"] == LOW_CONFIDENCE_SUGGESTIONS
        assert fallbacks.handle_too_broad()["suggestions"] == TOO_BROAD_SUGGESTIONS
        for suggestions in (NO_CONTEXT_SUGGESTIONS, LOW_CONFIDENCE_SUGGESTIONS, GIBBERISH_SUGGESTIONS, TOO_BROAD_SUGGESTIONS):
            assert len(suggestions) == 3

    def test_suggestions_are_copies(self, fallbacks):
        """Test callers can't mutate the shared suggestion list."""
        response = fallbacks.handle_gibberish()
        response["suggestions"].append({"label": "x", "payload": "x"})
        assert len(GIBBERISH_SUGGESTIONS) == 3

    def test_vague_action(self, fallbacks):
        """Test vague fallbacks carry the surprise action."""
        assert fallbacks.handle_vague_query().action == "surprise_query"

    def test_weighted_distribution(self, knowledge):
        """Test a 2:1 weighted pool is sampled roughly 2:1."""
        strategy = FallbackStrategy(knowledge.fallbacks, random.Random(42))
        heavy = knowledge.fallbacks.low_confidence.responses[0].text
        picks = [strategy.handle_low_confidence()["text"].startswith(heavy) for _ in range(3000)]
        assert 0.6 < sum(picks) / len(picks) < 0.73


class TestSmallTalk:
    """Test small talk categories and trigger boundaries."""

    def test_greeting(self, small_talk, knowledge):
        """Test a greeting answers from the greeting pool."""
        result = small_talk.detect("Hello")
        assert result.is_small_talk and result.type == "greeting"
        assert result.response in knowledge.small_talk.greetings.responses

    @pytest.mark.parametrize("query,kind", [
        ("thanks a lot", "gratitude"),
        ("haha nice one", "reaction"),
        ("this is amazing", "reaction"),
        ("ok", "affirmation"),
        ("bye", "farewell"),
        ("well done", "encouragement"),
    ])
    def test_categories(self, small_talk, query, kind):
        """Test each category's trigger positions."""
        assert small_talk.detect(query).type == kind

    def test_trigger_needs_word_boundary(self, small_talk):
        """Test 'hi' inside 'chicken' does not count."""
        assert small_talk.detect("chicken recipes").is_small_talk is False

    def test_matches_any_positions(self):
        """Test equal, start, middle and end positions."""
        assert matches_any("hi", ["hi"])
        assert matches_any("hi nate", ["hi"])
        assert matches_any("oh hi there", ["hi"])
        assert matches_any("well hi", ["hi"])
        assert not matches_any("high", ["hi"])

    @pytest.mark.parametrize("query,kind", [
        ("thanks!", "gratitude"),
        ("Hello, tell me about his experience", "greeting"),
        ("wow... really?", "reaction"),
        ("what's up?", "greeting"),
        ("what?", "confusion"),
    ])
    def test_punctuation(self, small_talk, query, kind):
        """Test trailing and inline punctuation does not hide a trigger."""
        assert small_talk.detect(query).type == kind

    def test_question_is_not_confusion(self, small_talk):
        """Test 'what' opening a real question is not read as confusion."""
        assert small_talk.detect("What are his skills?").is_small_talk is False

    def test_strip_punctuation(self):
        """Test apostrophes survive and runs of punctuation collapse."""
        assert strip_punctuation("hello, nate!!") == "hello nate"
        assert strip_punctuation("i don't understand...") == "i don't understand"

    def test_auto_execute(self, small_talk):
        """Test 'you pick' style requests."""
        assert small_talk.detect_auto_execute("You pick!")
        assert not small_talk.detect_auto_execute("what are his skills")
