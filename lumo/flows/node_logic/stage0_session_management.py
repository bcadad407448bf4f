"""Turn state initialization.

Ensures every TurnState field the later nodes read exists with a safe
default, so nodes can use ``state["x"]`` for the core containers instead of
guarding every access.
"""

from __future__ import annotations

import logging
from typing import Optional

from lumo.flows.node_logic.util_turn_context import TurnContext
from lumo.observability.langsmith_tracer import create_custom_span
from lumo.state.conversation_state import TurnState

logger = logging.getLogger(__name__)

USER_TYPE_KEYWORDS = (
    ("recruiter", ("hiring", "recruit", "position", "candidate", "opening", "salary")),
    ("designer", ("figma", "design system", "ux ", "wireframe", "portfolio review")),
    ("developer", ("developer", "engineer", "code", " api ", "frontend")),
)


def detect_user_type(query: str) -> Optional[str]:
    """Guess who is asking from vocabulary. None when nothing stands out."""
    lowered = f" {query.lower()} "
    for user_type, keywords in USER_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return user_type
    return None


def initialize_turn_state(state: TurnState, turn: TurnContext) -> TurnState:
    """Normalize the query and set default containers and control flags."""
    with create_custom_span(name="initialize_turn_state", inputs={"query": state.get("query", "")}):
        query = state.get("query") or ""
        state["query"] = query
        state["normalized_query"] = query.lower().strip()
        state.setdefault("session_id", "")
        state.setdefault("entities", [])
        state.setdefault("intent_score", None)
        state.setdefault("small_talk", None)
        state.setdefault("resolution", None)
        state.setdefault("reference", None)
        state["pipeline_halt"] = False
        state["record_messages"] = True

        user_type = detect_user_type(query)
        if user_type and user_type != turn.dialogue.user_type:
            logger.debug(f"Visitor looks like a {user_type}")
            turn.dialogue.user_type = user_type

        logger.debug(
            f"Turn start: query={state['normalized_query'][:60]!r}, "
            f"depth={turn.dialogue.conversation_depth}, flow_node={turn.dialogue.flow_token.current_node_id}"
        )
    return state
