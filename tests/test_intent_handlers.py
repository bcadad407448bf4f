"""Unit tests for intent answers, button payloads and follow-ups.

Run: pytest tests/test_intent_handlers.py -v
"""

import pytest

from lumo.flows.node_logic.util_intent_handlers import (
    NOT_SURE_TEXT,
    execute_intent,
    execute_payload,
    handle_follow_up,
    handle_surprise,
    is_payload,
)
from lumo.matching.context_resolver import ContextResolver
from lumo.matching.entity_extractor import ExtractedEntity
from lumo.matching.reference_resolver import (
    CONTEXT_SWITCH,
    FOLLOW_UP_MORE,
    FOLLOW_UP_NEXT,
    FOLLOW_UP_PREVIOUS,
    PRONOUN_REFERENCE,
)


def company(name):
    return ExtractedEntity("company_name", name, 1.0, 0)


class TestIntentHandlers:
    """Test answers for classified intents."""

    def test_experience_overview(self, turn):
        """Test the overview without a named company."""
        response = execute_intent(turn, "experience_query", [])
        assert response["text"].startswith("Nate has **8+ years experience** across Healthcare, Fintech, and Food & Agritech.")
        assert "- **Current:** **Lead Product Designer** at **Invitrace**" in response["text"]
        assert response["suggestions"]

    def test_company_story(self, turn):
        """Test a named company gets dynamic narrative and case-study buttons."""
        response = execute_intent(turn, "company_specific", [company("Invitrace")])
        assert "Invitrace" in response["text"]
        assert "led" in response["text"]
        labels = [s["label"] for s in response["suggestions"]]
        assert labels == ["PeakAccount", "CP Origin", "Back to case studies", "Exit case studies"]

    def test_company_without_case_study(self, turn):
        """Test companies with no case study fall back to a menu button."""
        response = execute_intent(turn, "company_specific", [company("Codefin")])
        assert "Codefin" in response["text"]
        assert response["suggestions"][0]["label"] == "Back to Menu"

    def test_skill_usage(self, turn):
        """Test a named skill lists where it was demonstrated."""
        response = execute_intent(turn, "skill_specific", [ExtractedEntity("skill_name", "Figma", 1.0, 0)])
        assert "demonstrated **Figma** at **PeakAccount**" in response["text"]
        assert response["suggestions"][0]["payload"] == "tell me about peakaccount"

    def test_skills_overview(self, turn):
        """Test the generic skills answer."""
        response = execute_intent(turn, "skills_query", [])
        assert response["text"].startswith("**Core strengths:**")

    def test_contact_tracks_event(self, turn):
        """Test viewing contact details queues an event."""
        response = execute_intent(turn, "contact_query", [])
        assert response["text"].startswith("**Let's connect!**")
        assert ("track_event", {"name": "contact_inquiry_viewed", "payload": {}}) in turn.events

    @pytest.mark.parametrize("query,theme", [
        ("switch to light mode", "light"),
        ("twilight theme please", "twilight"),
        ("change the theme", "dark"),
    ])
    def test_theme(self, turn, query, theme):
        """Test theme selection from the query."""
        response = execute_intent(turn, "theme_change", [], query)
        assert response["command"] == {"type": "set_theme", "value": theme}

    def test_resume(self, turn):
        """Test the resume intent issues a download."""
        assert execute_intent(turn, "resume_request", [])["command"] == {"type": "download", "value": "resume"}

    def test_unknown_intent(self, turn):
        """Test an intent with no handler gets the low-confidence fallback."""
        response = execute_intent(turn, "hobbies", [])
        assert response["suggestions"]

    def test_surprise_never_repeats(self, turn):
        """Test consecutive surprises differ."""
        seen = [handle_surprise(turn)["text"] for _ in range(20)]
        assert all(a != b for a, b in zip(seen, seen[1:]))
        assert turn.dialogue.last_surprise_content in seen[-1]


class TestPayloads:
    """Test verbatim button payloads."""

    @pytest.mark.parametrize("payload,command", [
        ("contact", {"type": "scroll", "value": "contact-section"}),
        ("experience", {"type": "scroll", "value": "experience-section"}),
        ("download cv", {"type": "download", "value": "resume"}),
        ("toggle theme", {"type": "theme", "value": "toggle"}),
        ("scroll to top", {"type": "scroll", "value": "profile-section"}),
    ])
    def test_commands(self, turn, payload, command):
        """Test payloads that drive the page."""
        assert execute_payload(turn, payload)["command"] == command

    def test_media(self, turn):
        """Test the joke face payload returns media."""
        response = execute_payload(turn, "show face")
        assert response["media"]["url"] == "/media/nate-joke-face.gif"

    def test_hiring(self, turn):
        """Test the hiring payload prefixes the contact card."""
        assert execute_payload(turn, "yes, i'm hiring")["text"].startswith("Music to my ears!")

    def test_not_a_payload(self, turn):
        """Test free text is not treated as a payload."""
        assert execute_payload(turn, "tell me about invitrace") is None
        assert is_payload("skills")
        assert not is_payload("Skills")


class TestFollowUps:
    """Test more / previous / next / context switch."""

    def test_previous_role(self, turn):
        """Test stepping back from the current role."""
        turn.context.add_entity("company_name", "Invitrace")
        response = handle_follow_up(turn, FOLLOW_UP_PREVIOUS)
        assert "**Doctor Anywhere**" in response["text"]
        assert turn.context.get_entity_stack()[0].value == "Doctor Anywhere"
        assert turn.context.get_active_topic().name == "Doctor Anywhere"

    def test_next_from_current(self, turn):
        """Test there is nothing after the current role."""
        turn.context.add_entity("company_name", "Invitrace")
        response = handle_follow_up(turn, FOLLOW_UP_NEXT)
        assert response["text"] == "Invitrace is his current role, so nothing after it yet!"

    def test_previous_from_first(self, turn):
        """Test there is nothing before the first role."""
        turn.context.add_entity("company_name", "Codefin")
        response = handle_follow_up(turn, FOLLOW_UP_PREVIOUS)
        assert "where it all started" in response["text"]

    def test_timeline_defaults_to_current(self, turn):
        """Test no company in memory anchors on the current role."""
        response = handle_follow_up(turn, FOLLOW_UP_PREVIOUS)
        assert "**Doctor Anywhere**" in response["text"]

    def test_more_about_resolved_company(self, turn):
        """Test 'tell me more' expands the resolved company."""
        turn.context.add_entity("company_name", "Invitrace")
        turn.context.set_topic("Invitrace")
        resolution = ContextResolver(turn.context).resolve("tell me more about it")
        response = handle_follow_up(turn, FOLLOW_UP_MORE, resolution)
        detailed = turn.services.profile_store.find_company("Invitrace").storytelling.detailed
        assert response["text"].endswith(detailed)

    def test_more_without_anything(self, turn):
        """Test 'tell me more' with nothing said yet."""
        response = handle_follow_up(turn, FOLLOW_UP_MORE)
        assert response["text"] == NOT_SURE_TEXT

    def test_more_after_last_response(self, turn):
        """Test 'tell me more' repeats the last answer when nothing else fits."""
        turn.dialogue.last_response = "Nate shoots on film."
        response = handle_follow_up(turn, FOLLOW_UP_MORE)
        assert response["text"].endswith("Nate shoots on film.")

    def test_more_after_fallback(self, turn):
        """Test 'tell me more' never expands a low-confidence reply."""
        turn.dialogue.last_intent = "low_confidence"
        turn.dialogue.last_response = "I'm not quite sure what you mean."
        response = handle_follow_up(turn, FOLLOW_UP_MORE)
        assert response["text"] == NOT_SURE_TEXT

    def test_unresolved_pronoun(self, turn):
        """Test a pronoun with nothing to point at is not handled."""
        assert handle_follow_up(turn, PRONOUN_REFERENCE) is None

    def test_context_switch(self, turn):
        """Test 'what about skills' answers the skills intent."""
        response = handle_follow_up(turn, CONTEXT_SWITCH, topic="skills")
        assert "**Core strengths:**" in response["text"]

    def test_context_switch_unknown_topic(self, turn):
        """Test an unclassifiable topic is not handled."""
        assert handle_follow_up(turn, CONTEXT_SWITCH, topic="the weather") is None
        assert handle_follow_up(turn, CONTEXT_SWITCH, topic=None) is None
