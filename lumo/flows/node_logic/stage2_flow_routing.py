"""Deterministic routing: scripted flows first, then verbatim button payloads.

Both bypass fuzzy understanding entirely. A flow transition wins over a
payload so that "Invitrace" inside the case-study walkthrough advances the
script instead of being treated as free text.
"""

from __future__ import annotations

import logging

from lumo.flows.node_logic.util_intent_handlers import execute_payload
from lumo.flows.node_logic.util_suggestions import labels_to_suggestions
from lumo.flows.node_logic.util_turn_context import TurnContext
from lumo.observability.langsmith_tracer import create_custom_span
from lumo.state.conversation_state import TurnState

logger = logging.getLogger(__name__)

DIRECT_COMMAND_INTENT = "direct_command"


def route_flow(state: TurnState, turn: TurnContext) -> TurnState:
    """Advance the visitor's flow token when the input matches a transition."""
    token = turn.dialogue.flow_token
    with create_custom_span(name="route_flow", inputs={"node": token.current_node_id}):
        result = turn.services.flow_engine.process(token, state["query"])
        if result.response is None:
            return state

        turn.dialogue.flow_token = result.next_token
        answer = {
            "text": result.response.text,
            "suggestions": labels_to_suggestions(result.response.suggestions),
        }
        if result.response.command:
            answer["command"] = result.response.command

        state["answer"] = answer
        state["turn_kind"] = "flow"
        state["pipeline_halt"] = True
        logger.debug(f"Flow moved to {result.next_token.current_node_id}")
    return state


def route_direct_payload(state: TurnState, turn: TurnContext) -> TurnState:
    """Known button payloads go straight to their handler."""
    normalized = state["normalized_query"]
    with create_custom_span(name="route_direct_payload", inputs={"payload": normalized}):
        answer = execute_payload(turn, normalized)
        if answer is None:
            return state

        turn.track_command(normalized)
        turn.record_turn(state["query"], DIRECT_COMMAND_INTENT, [], answer["text"])

        state["answer"] = answer
        state["turn_kind"] = "direct"
        state["pipeline_halt"] = True
    return state
