"""Node logic package - the turn pipeline's node implementations.

This package organizes node modules by pipeline stage:
- stage0_session_management: Turn state initialization, visitor type hints
- stage1_interrupts: Global interrupts and the /debug console
- stage2_flow_routing: Scripted flows and verbatim button payloads
- stage3_understanding: Parallel small talk + intent, entities, context resolution
- stage4_composition: Small talk and intent answers merged into one reply
- stage5_fallbacks: Gibberish, vague, follow-up, search and low-confidence replies
- stage6_logging: Conversation memory and analytics flushing

util_* modules hold the components the nodes call (matchers' helpers,
answer builders, suggestion pools, flow engine, grammar).

Every node has the signature ``(state, turn) -> state``; the orchestrator
binds ``turn`` per call.
"""

from __future__ import annotations

from lumo.flows.node_logic.stage0_session_management import detect_user_type, initialize_turn_state
from lumo.flows.node_logic.stage1_interrupts import handle_debug, handle_interrupt, render_debug
from lumo.flows.node_logic.stage2_flow_routing import route_direct_payload, route_flow
from lumo.flows.node_logic.stage3_understanding import analyze_query, ask_clarification, resolve_context
from lumo.flows.node_logic.stage4_composition import compose_response
from lumo.flows.node_logic.stage5_fallbacks import apply_fallbacks
from lumo.flows.node_logic.stage6_logging import log_and_notify, update_memory
from lumo.flows.node_logic.util_turn_context import LumoServices, TurnContext

__all__ = [
    "detect_user_type",
    "initialize_turn_state",
    "handle_interrupt",
    "handle_debug",
    "render_debug",
    "route_flow",
    "route_direct_payload",
    "analyze_query",
    "resolve_context",
    "ask_clarification",
    "compose_response",
    "apply_fallbacks",
    "update_memory",
    "log_and_notify",
    "LumoServices",
    "TurnContext",
]
