"""Understanding nodes: parallel analysis, entity extraction, context resolution.

Small-talk detection and intent classification are independent, so they run
side by side on the engine's analysis executor. Each task is isolated: a
failure is logged and treated as "no result" so the other still counts.

Entity extraction then feeds the ContextResolver, which scores the entity
stack against the query. A close race below the confidence floor stops the
pipeline with a clarification prompt offering the top two candidates.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Dict, Optional

from lumo.flows.node_logic.util_turn_context import TurnContext
from lumo.matching.context_resolver import ContextResolver
from lumo.matching.entity_extractor import ExtractedEntity
from lumo.observability.langsmith_tracer import create_custom_span
from lumo.state.conversation_state import TurnState

logger = logging.getLogger(__name__)

RESOLVED_ENTITY_MIN_CONFIDENCE = 0.6


def classification_context(turn: TurnContext) -> Dict[str, Any]:
    """Flags the intent catalog's context boosters key on."""
    profile = turn.dialogue.user_profile
    return {
        "user_type": turn.dialogue.user_type,
        "conversation_depth": turn.dialogue.conversation_depth,
        "returning_visitor": bool(profile and profile.visit_count > 1),
    }


def _result_or_none(future: Future, label: str) -> Optional[Any]:
    try:
        return future.result()
    except Exception as e:
        logger.error(f"{label} failed, continuing without it: {e}", exc_info=True)
        return None


def needs_clarification(resolution) -> bool:
    """A close race below the confidence floor with two names to offer."""
    return resolution is not None and resolution.clarification_needed and len(resolution.candidates) >= 2


def analyze_query(state: TurnState, turn: TurnContext) -> TurnState:
    """Run small-talk detection and intent classification concurrently."""
    services = turn.services
    query = state["query"]
    context = classification_context(turn)

    with create_custom_span(name="analyze_query", inputs={"query": query, "context": context}):
        small_talk_future = services.executor.submit(services.small_talk.detect, query)
        intent_future = services.executor.submit(services.intent_classifier.get_best_intent, query, context)

        state["small_talk"] = _result_or_none(small_talk_future, "Small talk detection")
        state["intent_score"] = _result_or_none(intent_future, "Intent classification")

        best = state["intent_score"]
        logger.debug(
            f"Analysis: intent={best.intent if best else None} "
            f"({best.confidence if best else 0:.2f}), small_talk={bool(state['small_talk'] and state['small_talk'].is_small_talk)}"
        )
    return state


def resolve_context(state: TurnState, turn: TurnContext) -> TurnState:
    """Extract entities and resolve implicit references against memory."""
    query = state["query"]
    with create_custom_span(name="resolve_context", inputs={"query": query}):
        entities = list(turn.services.entity_extractor.extract(query))
        resolution = ContextResolver(turn.context).resolve(query)

        if not needs_clarification(resolution):
            resolved = resolution.resolved_entity
            if (
                resolved is not None
                and resolution.confidence > RESOLVED_ENTITY_MIN_CONFIDENCE
                and all(e.value.lower() != resolved.value.lower() for e in entities)
            ):
                entities.append(ExtractedEntity(resolved.type, resolved.value, resolution.confidence, -1))

        state["entities"] = entities
        state["resolution"] = resolution
    return state


def ask_clarification(state: TurnState, turn: TurnContext) -> TurnState:
    """Stop and ask which entity the visitor meant when two are equally likely."""
    resolution = state.get("resolution")
    if not needs_clarification(resolution):
        return state

    first, second = (c.entity.value for c in resolution.candidates[:2])
    with create_custom_span(name="ask_clarification", inputs={"candidates": [first, second]}):
        state["answer"] = {
            "text": f"I'm not quite sure if you're referring to **{first}** or **{second}**. Could you clarify?",
            "suggestions": [
                {"label": first, "payload": first.lower(), "icon": "👉"},
                {"label": second, "payload": second.lower(), "icon": "👉"},
            ],
        }
        turn.track("context_ambiguity_triggered", {"candidates": [first, second]})
        state["turn_kind"] = "clarification"
        state["pipeline_halt"] = True
    return state
