"""Conversation memory and analytics logging nodes.

1. update_memory → append the user/bot messages to conversation memory
2. log_and_notify → replay the turn's queued analytics calls and its latency

Design Principles:
- update_memory runs on the turn's working copy, so an abandoned turn
  (timeout or crash) leaves memory untouched
- log_and_notify runs only after the engine committed the turn
- Reliability: analytics failures are logged by AnalyticsManager, never raised
"""

from __future__ import annotations

import logging

from lumo.analytics.supabase_analytics import AnalyticsManager
from lumo.flows.node_logic.util_turn_context import TurnContext
from lumo.observability.langsmith_tracer import create_custom_span
from lumo.state.conversation_state import TurnState

logger = logging.getLogger(__name__)


def update_memory(state: TurnState, turn: TurnContext) -> TurnState:
    """Record the exchange unless the turn opted out (interrupt, /debug)."""
    answer = state.get("answer")
    if not answer or not state.get("record_messages", True):
        return state

    with create_custom_span(name="update_memory", inputs={"turn_kind": state.get("turn_kind")}):
        turn.context.add_message("user", state["query"])
        turn.context.add_message("bot", answer["text"])
        logger.debug(f"Memory now holds {len(turn.context.get_history())} messages")
    return state


def log_and_notify(state: TurnState, turn: TurnContext, analytics: AnalyticsManager, latency_ms: float) -> TurnState:
    """Flush queued analytics calls, then record the turn latency."""
    with create_custom_span(
        name="log_and_notify",
        inputs={"events": len(turn.events), "latency_ms": round(latency_ms), "turn_kind": state.get("turn_kind")},
    ):
        for method, kwargs in turn.events:
            getattr(analytics, method)(**kwargs)
        turn.events.clear()
        analytics.track_latency(latency_ms)

        logger.info(f"Turn answered via {state.get('turn_kind', 'unknown')} in {latency_ms:.0f}ms")
    return state
