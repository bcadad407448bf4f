"""Global interrupts and the debug console.

Both run before any understanding: the visitor can always bail out of a
scripted flow or a topic with "stop" / "help" / "main menu", and ``/debug``
renders the engine's memory without touching it.
"""

from __future__ import annotations

import logging
from typing import List

from lumo.flows.node_logic.util_turn_context import TurnContext
from lumo.observability.langsmith_tracer import create_custom_span
from lumo.state.context_manager import MAX_HISTORY
from lumo.state.conversation_state import Suggestion, TurnState

logger = logging.getLogger(__name__)

INTERRUPT_KEYWORDS = ("stop", "restart", "start over", "home", "main menu", "help")
DEBUG_COMMAND = "/debug"

INTERRUPT_TEXT = "🛑 I've stopped the current topic. What would you like to do next?"

INTERRUPT_SUGGESTIONS: List[Suggestion] = [
    {"label": "Start Over", "payload": "start over", "icon": "🔄"},
    {"label": "Experience", "payload": "experience", "icon": "💼"},
    {"label": "Chat", "payload": "hello", "icon": "👋"},
]


def handle_interrupt(state: TurnState, turn: TurnContext) -> TurnState:
    """Exact-match stop words reset conversation memory and any scripted flow."""
    if state["normalized_query"] not in INTERRUPT_KEYWORDS:
        return state

    with create_custom_span(name="handle_interrupt", inputs={"keyword": state["normalized_query"]}):
        turn.context.reset()
        turn.dialogue.flow_token = turn.services.flow_engine.create_token()

        state["answer"] = {"text": INTERRUPT_TEXT, "suggestions": [dict(s) for s in INTERRUPT_SUGGESTIONS]}
        state["turn_kind"] = "interrupt"
        state["record_messages"] = False
        state["pipeline_halt"] = True
        logger.info(f"Interrupt {state['normalized_query']!r}: context and flow reset")
    return state


def render_debug(turn: TurnContext) -> str:
    """Markdown snapshot of memory, logic state and session health."""
    context = turn.context
    topic = context.get_active_topic()
    stack = context.get_entity_stack()
    metrics = turn.metrics

    topic_text = f"**{topic.name}** ({topic.confidence:.2f})" if topic else "None"
    stack_text = ", ".join(f"{e.value} ({e.expires_after_turns}t)" for e in stack) if stack else "Empty"

    return "\n".join([
        "**🕷️ LumoAI Debug Console**",
        "",
        "**🧠 Memory**",
        f"- Active Topic: {topic_text}",
        f"- Entity Stack: {stack_text}",
        f"- History Depth: {len(context.get_history())}/{MAX_HISTORY}",
        "",
        "**⚙️ Logic State**",
        f"- Last Intent: {turn.dialogue.last_intent or 'None'}",
        f"- Conversation Depth: {turn.dialogue.conversation_depth}",
        f"- Session Token: {turn.dialogue.flow_token.current_node_id}",
        "",
        "**📈 Health**",
        f"- Latency Avg: {metrics.average_latency:.0f}ms",
        f"- Fallback Rate: {metrics.fallback_rate * 100:.1f}%",
    ])


def handle_debug(state: TurnState, turn: TurnContext) -> TurnState:
    if state["normalized_query"] != DEBUG_COMMAND:
        return state

    with create_custom_span(name="handle_debug", inputs={}):
        state["answer"] = {"text": render_debug(turn), "suggestions": []}
        state["turn_kind"] = "debug"
        state["record_messages"] = False
        state["pipeline_halt"] = True
    return state
