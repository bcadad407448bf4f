"""Fallback cascade for turns nothing above could answer.

Order:
1. Gibberish → keyboard-mash reply with safe suggestions
2. Vague ("idk", "anything") or "you pick" → usually a surprise fact
3. Follow-up reference ("tell me more", "before that", "what about X"),
   validated against the turn log; no history → no-context reply
4. Search over the profile, only when the top hit is confident
5. Low-confidence reply

Every branch produces an answer, so the pipeline always halts here.
"""

from __future__ import annotations

import logging
from typing import Optional

from lumo.flows.node_logic.util_intent_handlers import handle_follow_up, handle_surprise
from lumo.flows.node_logic.util_turn_context import TurnContext
from lumo.matching.reference_resolver import FOLLOW_UP_TYPES
from lumo.observability.langsmith_tracer import create_custom_span
from lumo.retrieval.search_engine import SearchEngine
from lumo.state.conversation_state import LumoResponse, TurnState

logger = logging.getLogger(__name__)

SURPRISE_ACTION = "surprise_query"


def _finish(state: TurnState, turn: TurnContext, answer: LumoResponse, kind: str, record: bool = False) -> TurnState:
    if record:
        turn.record_turn(state["query"], kind, state.get("entities", []), answer["text"])
    state["answer"] = answer
    state["turn_kind"] = kind
    state["pipeline_halt"] = True
    return state


def search_fallback(turn: TurnContext, query: str) -> Optional[LumoResponse]:
    results = turn.services.search.search(query)
    if not results or not SearchEngine.is_confident(results[0]):
        return None

    top = results[0]
    turn.track("lumo_search_fallback", {"query": query[:200], "result_id": top.id, "score": round(top.score, 2)})
    return {
        "text": (
            f"I'm not 100% sure, but I found this related to **\"{query}\"**:\n\n"
            f"**{top.title}**\n{top.description}\n\nIs that helpful?"
        ),
        "suggestions": [
            {"label": "Yes", "payload": "yes", "icon": "👍"},
            {"label": "No", "payload": "no", "icon": "👎"},
        ],
    }


def apply_fallbacks(state: TurnState, turn: TurnContext) -> TurnState:
    services = turn.services
    query = state["query"]

    with create_custom_span(name="apply_fallbacks", inputs={"query": query}):
        if services.validator.is_gibberish(query):
            turn.track_fallback("gibberish", query)
            return _finish(state, turn, services.fallbacks.handle_gibberish(), "gibberish")

        if services.validator.is_vague(query) or services.small_talk.detect_auto_execute(query):
            vague = services.fallbacks.handle_vague_query()
            turn.track_fallback("vague", query)
            if vague.action == SURPRISE_ACTION:
                surprise = handle_surprise(turn)
                answer = {"text": f"{vague.text}\n\n{surprise['text']}", "suggestions": surprise["suggestions"]}
            else:
                answer = {"text": vague.text, "suggestions": turn.suggestions()}
            return _finish(state, turn, answer, "vague")

        reference = services.reference_resolver.detect_reference(query)
        state["reference"] = reference
        if reference.has_reference and reference.type:
            validation = services.validator.validate_follow_up(reference.type, turn.dialogue.conversation_turns)
            if validation.is_valid:
                answer = handle_follow_up(turn, reference.type, state.get("resolution"), reference.topic)
                if answer is not None:
                    return _finish(state, turn, answer, "follow_up", record=True)
            elif reference.type in FOLLOW_UP_TYPES:
                turn.track_fallback("no_context", query)
                return _finish(state, turn, services.fallbacks.handle_no_context(), "no_context")

        answer = search_fallback(turn, query)
        if answer is not None:
            return _finish(state, turn, answer, "search", record=True)

        logger.info(f"Low confidence for {query[:80]!r}")
        turn.track_fallback("low_confidence", query)
        return _finish(state, turn, services.fallbacks.handle_low_confidence(), "low_confidence", record=True)
