"""Answer builders for classified intents, button payloads and follow-ups.

Every handler receives the TurnContext and returns a LumoResponse. Handlers
read the profile through ProfileStore / KnowledgeGraph, pick canned variants
through the injected random source, and may mutate the turn's working copy
of the dialogue state (e.g. the last surprise shown). Nothing here records
turns or messages; the pipeline nodes do that once an answer is chosen.

Handlers:
- Intents: experience, skills, contact, education, location, surprise,
  quick summary, deep dive, resume, theme
- Payloads: verbatim button payloads routed by ``execute_payload``
- Follow-ups: "tell me more", "before that", "after that", "what about X"

Example:
    response = execute_intent(turn, "experience_query", entities, query)
    response["text"]  # "Nate has **8+ years experience** across ..."
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from lumo.config.knowledge import ExperienceEntry
from lumo.flows.node_logic.util_suggestions import DEFAULT_SUGGESTIONS, labels_to_suggestions
from lumo.flows.node_logic.util_turn_context import TurnContext
from lumo.matching.context_resolver import ResolutionResult
from lumo.matching.entity_extractor import ExtractedEntity
from lumo.matching.reference_resolver import (
    CONTEXT_SWITCH,
    FOLLOW_UP_MORE,
    FOLLOW_UP_NEXT,
    FOLLOW_UP_PREVIOUS,
    PRONOUN_REFERENCE,
)
from lumo.state.conversation_state import LumoResponse, Suggestion
from lumo.utils.sampling import random_choice, weighted_choice

logger = logging.getLogger(__name__)

COMPANY_ENTITY = "company_name"
SKILL_ENTITY = "skill_name"

# Experience ids with a case study node in conversation_flows.json
CASE_STUDY_NODES = {
    "invitrace": "node_project_invitrace",
    "peakaccount": "node_project_peakaccount",
    "cp_origin": "node_project_cporigin",
}

THEME_EMOJI = {"dark": "🌙", "light": "☀️", "twilight": "🌇"}

NOT_SURE_TEXT = "I'm not sure what you'd like to know more about. Could you be more specific?"

# Canned "didn't get that" replies; "tell me more" never expands these
UNEXPANDABLE_INTENTS = {"low_confidence"}

BACK_TO_MENU: List[Suggestion] = [{"label": "Back to Menu", "payload": "experience", "icon": "🔙"}]


def _squash(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


def _first_entity(entities: Sequence[ExtractedEntity], entity_type: str) -> Optional[ExtractedEntity]:
    return next((e for e in entities if e.type == entity_type), None)


def _with_command(response: LumoResponse, command_type: str, value: str) -> LumoResponse:
    response["command"] = {"type": command_type, "value": value}
    return response


# ============================================================================
# Dynamic company content
# ============================================================================

def find_nlg_key(turn: TurnContext, value: str) -> Optional[str]:
    """Match an entity value to an nlg_factors key ("CP Origin" -> "cp_origin")."""
    target = _squash(value)
    factors = turn.services.profile_store.get_nlg_factors()
    return next((key for key in factors if _squash(key) == target), None)


def generate_dynamic_content(turn: TurnContext, company_key: str, style: str = "professional") -> Optional[str]:
    """Fill a random narrative template with the company's NLG factors."""
    factors = turn.services.profile_store.get_nlg_factors().get(company_key)
    templates = turn.services.knowledge.templates.en.get(style) or turn.services.knowledge.templates.en.get("professional")
    if not factors or not templates:
        return None

    template = random_choice(templates, turn.services.rng)
    return turn.services.grammar.fill_template(template, factors)


def _case_study_suggestions(turn: TurnContext, company_key: str) -> List[Suggestion]:
    node_id = CASE_STUDY_NODES.get(company_key)
    node = turn.services.knowledge.flows.nodes.get(node_id) if node_id else None
    if node is None or not node.suggestions:
        return [dict(s) for s in BACK_TO_MENU]
    return labels_to_suggestions(node.suggestions)


# ============================================================================
# Intent handlers
# ============================================================================

def handle_experience(turn: TurnContext, entities: Sequence[ExtractedEntity]) -> LumoResponse:
    """Company story when a company is named, the career overview otherwise."""
    services = turn.services
    company = _first_entity(entities, COMPANY_ENTITY)

    if company:
        key = find_nlg_key(turn, company.value)
        if key:
            text = generate_dynamic_content(turn, key)
            if text:
                return {"text": text, "suggestions": _case_study_suggestions(turn, key)}

        experience = services.profile_store.find_company(company.value)
        if experience:
            return {
                "text": f"**{experience.role.title}** at **{experience.company.name}**\n{experience.storytelling.medium}",
                "suggestions": turn.suggestions("company_specific"),
            }

    profile = services.knowledge.profile
    current = services.profile_store.get_current_experience()
    earlier = [e.company.name for e in services.profile_store.get_work_experience()[1:]]
    lines = [
        f"{profile.identity.nickname} has **{profile.experience.summary.total_years} experience** across "
        f"{services.grammar.list(profile.experience.summary.industries)}.",
        "",
        f"- **Current:** **{current.role.title}** at **{current.company.name}**",
        f"- **Focus:** {current.storytelling.short}",
    ]
    if earlier:
        lines.append(f"- **Before that:** {services.grammar.list(earlier)}")
    return {"text": "\n".join(lines), "suggestions": turn.suggestions("experience")}


def handle_skills(turn: TurnContext, entities: Sequence[ExtractedEntity]) -> LumoResponse:
    services = turn.services
    skill = _first_entity(entities, SKILL_ENTITY)

    if skill:
        usage = services.knowledge_graph.find_skill_usage(skill.value)
        if usage:
            places = [f"**{r.target}** ({r.context})" for r in usage]
            text = (
                f"{services.profile_store.get_nickname()} demonstrated **{skill.value}** at "
                f"{services.grammar.list(places)}.\n\nIt was a key lever for his success in those roles."
            )
            first = usage[0].target
            return {
                "text": text,
                "suggestions": [
                    {"label": f"Experience at {first}", "payload": f"tell me about {first.lower()}", "icon": "💼"},
                    {"label": "Other Skills", "payload": "skills", "icon": "⚡"},
                ],
            }

    lines = ["**Core strengths:**", ""]
    for competency in services.profile_store.get_top_competencies():
        lines.append(f"- **{competency.name}**: {competency.description}")
    return {"text": "\n".join(lines), "suggestions": turn.suggestions("skills")}


def handle_contact(turn: TurnContext) -> LumoResponse:
    contact = turn.services.profile_store.get_contact_info()
    social = dict(contact.social)
    linkedin = social.pop("linkedin", None)

    lines = ["**Let's connect!**", "", f"📧 Email: {contact.primary.value}"]
    if linkedin:
        lines.append(f"💼 LinkedIn: {linkedin.url}")
    if social:
        names = [name.capitalize() if name != "github" else "GitHub" for name in social]
        lines.append(f"🌐 Other: {' & '.join(names)}")
    lines.extend(["", f"Usual response time: {contact.response_time}."])

    turn.track("contact_inquiry_viewed")
    return {"text": "\n".join(lines), "suggestions": turn.suggestions("contact")}


def handle_education(turn: TurnContext) -> LumoResponse:
    education = turn.services.profile_store.get_education()
    if not education:
        return {
            "text": "Nate's story is told mostly through his work. Want to see his experience?",
            "suggestions": turn.suggestions("education"),
        }

    lines = ["**Education**", ""]
    for entry in education:
        where = f" ({entry.location})" if entry.location else ""
        lines.append(f"- **{entry.degree}**, {entry.institution}{where}")
    return {"text": "\n".join(lines), "suggestions": turn.suggestions("education")}


def location_key(query: str) -> str:
    lowered = query.lower()
    if "bangkok" in lowered or "thailand" in lowered:
        return "bangkok"
    if "remote" in lowered:
        return "remote"
    return "general"


def handle_location(turn: TurnContext, key: str = "general") -> LumoResponse:
    contexts = turn.services.knowledge.greetings.location_contexts
    location = contexts.get(key) or contexts["general"]
    return {
        "text": location.text,
        "suggestions": [{"label": label, "payload": label, "icon": "🌍"} for label in location.suggestions],
    }


def handle_surprise(turn: TurnContext) -> LumoResponse:
    """Weighted fun fact, never the same one twice in a row."""
    surprises = turn.services.knowledge.flows.extras.surprises
    pool = [s for s in surprises if s.content != turn.dialogue.last_surprise_content] or surprises
    picked = weighted_choice(pool, turn.services.rng)
    turn.dialogue.last_surprise_content = picked.content

    text = f"{picked.content}\n\n{picked.followup}" if picked.followup else picked.content
    return {"text": text, "suggestions": turn.suggestions("surprise")}


def handle_quick_tour(turn: TurnContext) -> LumoResponse:
    services = turn.services
    profile = services.knowledge.profile
    current = services.profile_store.get_current_experience()
    narrative = services.profile_store.get_narrative()

    text = (
        f"**TL;DR:** {narrative.elevator_pitch}\n\n"
        f"- **Now:** {current.role.title} at {current.company.name}\n"
        f"- **Experience:** {profile.experience.summary.total_years} across "
        f"{services.grammar.list(profile.experience.summary.industries)}\n"
        f"- **Superpowers:** {services.grammar.list(narrative.unique_value[:3])}"
    )
    return {"text": text, "suggestions": turn.suggestions("quick_summary")}


def handle_deep_dive(turn: TurnContext) -> LumoResponse:
    services = turn.services
    current = services.profile_store.get_current_experience()
    narrative = services.profile_store.get_narrative()

    text = (
        f"**The full story**\n\n{narrative.elevator_pitch}\n\n"
        f"**Right now:** {current.storytelling.detailed}\n\n"
        f"**What sets him apart:** {services.grammar.list(narrative.unique_value)}.\n\n"
        f"**The thread through it all:** {services.grammar.capitalize(narrative.career_themes.impact)}."
    )
    return {"text": text, "suggestions": turn.suggestions("deep_dive")}


def handle_theme_change(turn: TurnContext, query: str) -> LumoResponse:
    lowered = query.lower()
    if "twilight" in lowered:
        theme = "twilight"
    elif "light" in lowered:
        theme = "light"
    else:
        theme = "dark"

    response: LumoResponse = {"text": f"Switching to **{theme} mode**... {THEME_EMOJI[theme]}", "suggestions": []}
    return _with_command(response, "set_theme", theme)


def handle_resume(turn: TurnContext) -> LumoResponse:
    response: LumoResponse = {"text": "Downloading my resume now...", "suggestions": turn.suggestions("contact")}
    return _with_command(response, "download", "resume")


def handle_media(turn: TurnContext, key: str = "joke_face") -> LumoResponse:
    media = turn.services.knowledge.greetings.rich_media.get(key)
    if media is None:
        logger.warning(f"No rich media configured for {key!r}, showing a surprise instead")
        return handle_surprise(turn)

    return {
        "text": media.caption,
        "suggestions": [{"label": "Back to serious", "payload": "quick summary", "icon": "👔"}],
        "media": media.model_dump(),
    }


def execute_intent(
    turn: TurnContext,
    intent: str,
    entities: Sequence[ExtractedEntity],
    query: str = "",
) -> LumoResponse:
    """Dispatch a classified intent to its answer builder."""
    if intent in ("experience_query", "company_specific"):
        return handle_experience(turn, entities)
    if intent in ("skills_query", "skill_specific"):
        return handle_skills(turn, entities)
    if intent == "contact_query":
        return handle_contact(turn)
    if intent == "education_query":
        return handle_education(turn)
    if intent == "location_query":
        return handle_location(turn, location_key(query))
    if intent == "surprise_query":
        return handle_surprise(turn)
    if intent == "quick_summary":
        return handle_quick_tour(turn)
    if intent == "deep_dive":
        return handle_deep_dive(turn)
    if intent == "resume_request":
        return handle_resume(turn)
    if intent == "theme_change":
        return handle_theme_change(turn, query)

    logger.warning(f"No handler for intent {intent!r}")
    return turn.services.fallbacks.handle_low_confidence()


# ============================================================================
# Direct payloads (button clicks)
# ============================================================================

def _payload_contact(turn: TurnContext) -> LumoResponse:
    return _with_command(handle_contact(turn), "scroll", "contact-section")


def _payload_experience(turn: TurnContext) -> LumoResponse:
    return _with_command(handle_experience(turn, []), "scroll", "experience-section")


def _payload_just_browsing(turn: TurnContext) -> LumoResponse:
    return {
        "text": "No problem! Take your time. If you get curious, try 'Surprise Me' for a random fact. 🎲",
        "suggestions": [{"label": "Surprise Me", "payload": "surprise me", "icon": "🎲"}],
    }


def _payload_hiring(turn: TurnContext) -> LumoResponse:
    response = handle_contact(turn)
    response["text"] = f"Music to my ears! 🎵 \n\n{response['text']}"
    return response


def _payload_scroll_top(turn: TurnContext) -> LumoResponse:
    return _with_command({"text": "Back to the top!", "suggestions": []}, "scroll", "profile-section")


def _payload_theme_toggle(turn: TurnContext) -> LumoResponse:
    return _with_command({"text": "Switching visual mode.", "suggestions": []}, "theme", "toggle")


PAYLOAD_ROUTES: Tuple[Tuple[Tuple[str, ...], Callable[[TurnContext], LumoResponse]], ...] = (
    (("contact", "contact info", "email", "remote work?", "remote work"), _payload_contact),
    (("experience", "work experience", "projects", "portfolio", "see portfolio", "show thai projects"), _payload_experience),
    (("skills", "other skills"), lambda turn: handle_skills(turn, [])),
    (("quick summary", "give me the highlights"), handle_quick_tour),
    (("deep dive", "tell me everything"), handle_deep_dive),
    (("surprise me", "fun facts"), handle_surprise),
    (("just browsing", "no thanks"), _payload_just_browsing),
    (("yes, i'm hiring",), _payload_hiring),
    (("scroll to top", "go to top"), _payload_scroll_top),
    (("bangkok 🇹🇭", "bangkok", "thailand"), lambda turn: handle_location(turn, "bangkok")),
    (("canada", "usa", "europe"), lambda turn: handle_location(turn, "general")),
    (("show me the face!", "show face", "joke face"), handle_media),
    (("download cv", "download resume", "get resume"), handle_resume),
    (("toggle theme", "switch theme", "dark mode", "light mode"), _payload_theme_toggle),
)

_PAYLOADS: Dict[str, Callable[[TurnContext], LumoResponse]] = {
    payload: handler for payloads, handler in PAYLOAD_ROUTES for payload in payloads
}


def execute_payload(turn: TurnContext, normalized_query: str) -> Optional[LumoResponse]:
    """Answer a verbatim button payload, or None when the text is not one."""
    handler = _PAYLOADS.get(normalized_query)
    if handler is None:
        return None
    return handler(turn)


def is_payload(normalized_query: str) -> bool:
    return normalized_query in _PAYLOADS


# ============================================================================
# Follow-ups
# ============================================================================

def _last_company(turn: TurnContext) -> Optional[ExperienceEntry]:
    store = turn.services.profile_store
    for item in turn.context.get_entity_stack():
        if item.type == COMPANY_ENTITY:
            experience = store.find_company(item.value)
            if experience:
                return experience
    for entity in turn.dialogue.last_entities:
        if entity.get("type") == COMPANY_ENTITY:
            experience = store.find_company(entity.get("value", ""))
            if experience:
                return experience
    return None


def _follow_up_more(turn: TurnContext, resolution: Optional[ResolutionResult]) -> LumoResponse:
    services = turn.services
    intro = services.reference_resolver.get_follow_up_intro(FOLLOW_UP_MORE, services.rng)
    entity = resolution.resolved_entity if resolution else None

    if entity is not None:
        experience = services.profile_store.find_company(entity.value)
        if experience:
            return {
                "text": f"{intro} {experience.storytelling.detailed}".strip(),
                "suggestions": turn.suggestions("company_specific"),
            }
        competency = services.profile_store.get_competency_by_name(entity.value)
        if competency:
            return {
                "text": f"{intro} **{competency.name}**: {competency.description}".strip(),
                "suggestions": turn.suggestions("skills"),
            }

    last_intent = turn.dialogue.last_intent or ""
    if "experience" in last_intent or last_intent == "company_specific":
        pitch = services.profile_store.get_narrative().elevator_pitch
        return {"text": f"{intro} {pitch}".strip(), "suggestions": turn.suggestions("experience")}
    if "skill" in last_intent:
        skills = handle_skills(turn, [])
        suggestions = services.recommender.get_contextual_suggestions("fallback") or skills["suggestions"]
        return {"text": skills["text"], "suggestions": suggestions}
    if turn.dialogue.last_response and last_intent not in UNEXPANDABLE_INTENTS:
        return {"text": f"{intro} {turn.dialogue.last_response}".strip(), "suggestions": turn.suggestions()}

    return {"text": NOT_SURE_TEXT, "suggestions": [dict(s) for s in DEFAULT_SUGGESTIONS]}


def _follow_up_timeline(turn: TurnContext, reference_type: str) -> LumoResponse:
    """Step one role back (older) or forward (newer) from the company in context."""
    services = turn.services
    timeline = services.profile_store.get_work_experience()
    anchor = _last_company(turn) or timeline[0]
    index = next(i for i, e in enumerate(timeline) if e.id == anchor.id)

    step = 1 if reference_type == FOLLOW_UP_PREVIOUS else -1
    target_index = index + step
    if target_index >= len(timeline):
        return {
            "text": f"That's where it all started! {anchor.company.name} was Nate's first design role.",
            "suggestions": turn.suggestions("experience"),
        }
    if target_index < 0:
        return {
            "text": f"{anchor.company.name} is his current role, so nothing after it yet!",
            "suggestions": turn.suggestions("experience"),
        }

    target = timeline[target_index]
    intro = services.reference_resolver.get_follow_up_intro(reference_type, services.rng)
    turn.context.add_entity(COMPANY_ENTITY, target.company.name)
    turn.context.set_topic(target.company.name)
    text = (
        f"{intro} **{target.role.title}** at **{target.company.name}** "
        f"({target.role.start} to {target.role.end})\n{target.storytelling.medium}"
    )
    return {"text": text.strip(), "suggestions": turn.suggestions("company_specific")}


def _context_switch(turn: TurnContext, topic: Optional[str]) -> Optional[LumoResponse]:
    if not topic:
        return None
    services = turn.services
    best = services.intent_classifier.get_best_intent(topic)
    if best is None or not services.intent_classifier.meets_threshold(best):
        return None

    intro = services.reference_resolver.get_follow_up_intro(CONTEXT_SWITCH, services.rng)
    entities = services.entity_extractor.extract(topic)
    response = execute_intent(turn, best.intent, entities, topic)
    response["text"] = f"{intro} {response['text']}".strip()
    return response


def handle_follow_up(
    turn: TurnContext,
    reference_type: str,
    resolution: Optional[ResolutionResult] = None,
    topic: Optional[str] = None,
) -> Optional[LumoResponse]:
    """Answer a reference to earlier conversation. None means "not handled"."""
    if reference_type in (FOLLOW_UP_MORE, PRONOUN_REFERENCE):
        if reference_type == PRONOUN_REFERENCE and not (resolution and resolution.resolved_entity):
            return None
        return _follow_up_more(turn, resolution)
    if reference_type in (FOLLOW_UP_PREVIOUS, FOLLOW_UP_NEXT):
        return _follow_up_timeline(turn, reference_type)
    if reference_type == CONTEXT_SWITCH:
        return _context_switch(turn, topic)
    return None
