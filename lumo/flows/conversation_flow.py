"""Lumo turn orchestrator: a short-circuiting node pipeline behind a deadline.

Pipeline (each stage may set ``pipeline_halt`` and answer the turn):
0. initialize_turn_state → normalize the query, default containers, visitor type
1. handle_interrupt → "stop" / "help" / "main menu" reset memory and flows
   handle_debug → ``/debug`` renders memory and health, touches nothing
2. route_flow → scripted case-study flows advance on their triggers
   route_direct_payload → verbatim button payloads skip fuzzy matching
3. analyze_query → small talk + intent classification in parallel
   resolve_context → entities + context resolution over the entity stack
   ask_clarification → two equally likely entities → ask which one
4. compose_response → greeting and intent answers merged
5. apply_fallbacks → gibberish → vague → follow-up → search → low confidence
6. update_memory → user/bot messages into conversation memory (always runs)

After the pipeline, the engine commits the turn's working copies of memory
and dialogue state, then log_and_notify replays the queued analytics calls.

Turn Isolation:
- Each turn runs on a fork of the ContextManager and a deep copy of the
  DialogueState, on the engine's turn executor
- ``future.result(timeout=...)`` enforces the deadline; a late turn keeps
  running on its copies but is never committed
- Any exception, or the deadline, yields the generic apology

Design Principles:
- Deterministic checks before fuzzy ones; order is part of the behaviour
- No global singletons: knowledge, search index and stores are injected
- Every turn answers: the caller always gets text plus suggestions

Example:
    >>> engine = LumoEngine(rng=random.Random(7))
    >>> engine.generate_response("tell me about his experience")["text"]
    'Nate has **8+ years experience** across Healthcare, Fintech, and Food & Agritech. ...'
"""

from __future__ import annotations

import copy
import logging
import random
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from lumo.analytics.supabase_analytics import AnalyticsManager, build_sink
from lumo.config import settings
from lumo.config.knowledge import FollowUp, KnowledgeBundle, load_knowledge
from lumo.flows.node_logic import (
    analyze_query,
    apply_fallbacks,
    ask_clarification,
    compose_response,
    detect_user_type,
    handle_debug,
    handle_interrupt,
    initialize_turn_state,
    log_and_notify,
    resolve_context,
    route_direct_payload,
    route_flow,
    update_memory,
)
from lumo.flows.node_logic.util_response_coordinator import NO_RESPONSE_TEXT
from lumo.flows.node_logic.util_suggestions import DEFAULT_SUGGESTIONS, Recommendation, labels_to_suggestions
from lumo.flows.node_logic.util_turn_context import LumoServices, TurnContext
from lumo.observability.langsmith_tracer import create_custom_span
from lumo.state.context_manager import ContextManager
from lumo.state.conversation_state import DialogueState, LumoResponse, Suggestion, TurnState
from lumo.state.session_manager import SessionManager
from lumo.state.storage import InMemoryStore, KeyValueStore
from lumo.utils.sampling import random_choice, weighted_choice

logger = logging.getLogger(__name__)

APOLOGY_TEXT = "My brain hiccupped! 🤯 I encountered an unexpected error. Could we try that again?"

MORNING_HOURS = range(5, 12)
AFTERNOON_HOURS = range(12, 18)
LATE_NIGHT_START = 23
LATE_NIGHT_END = 4

TURN_WORKERS = 4
ANALYSIS_WORKERS = 2

Node = Callable[[TurnState], TurnState]


def build_pipeline(turn: TurnContext) -> List[Node]:
    """Bind the stage nodes to one turn, in cascade order."""
    return [
        # ═══════════════════════════════════════════════════════════════════
        # STAGE 0: INITIALIZATION
        # State Modified: normalized_query, defaults, dialogue.user_type
        # ═══════════════════════════════════════════════════════════════════
        lambda s: initialize_turn_state(s, turn),

        # ═══════════════════════════════════════════════════════════════════
        # STAGE 1: INTERRUPTS (exact match, no memory recorded)
        # Short-Circuit: stop/help/main menu, /debug
        # ═══════════════════════════════════════════════════════════════════
        lambda s: handle_interrupt(s, turn),
        lambda s: handle_debug(s, turn),

        # ═══════════════════════════════════════════════════════════════════
        # STAGE 2: DETERMINISTIC ROUTING
        # Short-Circuit: flow transition, known button payload
        # ═══════════════════════════════════════════════════════════════════
        lambda s: route_flow(s, turn),
        lambda s: route_direct_payload(s, turn),

        # ═══════════════════════════════════════════════════════════════════
        # STAGE 3: UNDERSTANDING
        # State Modified: small_talk, intent_score, entities, resolution
        # Short-Circuit: ambiguous reference → clarification question
        # ═══════════════════════════════════════════════════════════════════
        lambda s: analyze_query(s, turn),
        lambda s: resolve_context(s, turn),
        lambda s: ask_clarification(s, turn),

        # ═══════════════════════════════════════════════════════════════════
        # STAGE 4: COMPOSITION
        # Short-Circuit: small talk and/or an intent above its threshold
        # ═══════════════════════════════════════════════════════════════════
        lambda s: compose_response(s, turn),

        # ═══════════════════════════════════════════════════════════════════
        # STAGE 5: FALLBACKS (always answers)
        # ═══════════════════════════════════════════════════════════════════
        lambda s: apply_fallbacks(s, turn),
    ]


def run_conversation_flow(
    state: TurnState,
    turn: TurnContext,
    nodes: Optional[Sequence[Node]] = None,
) -> TurnState:
    """Run the node cascade for one turn, then record the exchange.

    Args:
        state: Initial turn state (requires ``query``)
        turn: Services plus the turn's working copies of memory
        nodes: Optional custom node sequence (for testing)

    Returns:
        The final TurnState; ``answer`` is set unless every node passed.
        A cancelled turn returns early and leaves memory untouched.
    """
    pipeline = nodes or build_pipeline(turn)

    for node in pipeline:
        if turn.is_cancelled():
            logger.info("Turn cancelled past its deadline, skipping the remaining nodes")
            return state
        state = node(state)
        if state.get("pipeline_halt"):
            break

    if turn.is_cancelled():
        return state

    # Runs even after a short-circuit; interrupt and /debug opt out themselves
    return update_memory(state, turn)


@dataclass
class GreetingSelection:
    message: str
    suggestions: List[Suggestion] = field(default_factory=list)
    follow_up_id: Optional[str] = None


class LumoEngine:
    """Stateful conversation controller for one visitor.

    Args:
        knowledge: Validated knowledge bundle. Loaded from ``settings.DATA_DIR`` when omitted.
        store: Key-value backend for context and session. In-memory when omitted.
        rng: Random source for every canned-variant pick (seed it in tests).
        analytics: Analytics manager. Built from settings when omitted.
        clock: Seconds since the epoch (memory timestamps, session TTL).
        now: Local datetime (greeting time of day, easter eggs).
        timeout_s: Per-turn deadline. ``settings.TURN_TIMEOUT_S`` when omitted.
        session_id: Identifier used in analytics payloads.
    """

    def __init__(
        self,
        knowledge: Optional[KnowledgeBundle] = None,
        store: Optional[KeyValueStore] = None,
        rng: Optional[random.Random] = None,
        analytics: Optional[AnalyticsManager] = None,
        clock: Callable[[], float] = time.time,
        now: Callable[[], datetime] = datetime.now,
        timeout_s: Optional[float] = None,
        session_id: Optional[str] = None,
    ):
        self.knowledge = knowledge or load_knowledge()
        self.store = store if store is not None else InMemoryStore()
        self.rng = rng or random.Random()
        self.clock = clock
        self.now = now
        self.timeout_s = settings.TURN_TIMEOUT_S if timeout_s is None else timeout_s
        self.session_id = session_id or uuid.uuid4().hex
        self.analytics = analytics or AnalyticsManager(build_sink(), session_id=self.session_id)

        self._lock = threading.Lock()
        self._turn_executor = ThreadPoolExecutor(
            max_workers=TURN_WORKERS, thread_name_prefix=f"lumo-turn-{self.session_id[:8]}"
        )
        self._analysis_executor = ThreadPoolExecutor(
            max_workers=ANALYSIS_WORKERS, thread_name_prefix=f"lumo-analysis-{self.session_id[:8]}"
        )

        self.services = LumoServices.build(self.knowledge, self.rng, self._analysis_executor, clock, now)
        self.context = ContextManager(self.store, clock=clock)
        self.session = SessionManager(self.store, clock=clock)
        self.dialogue = DialogueState(flow_token=self.services.flow_engine.create_token())
        self.welcome_message = self._restore_session()

        logger.info(f"LumoEngine ready for session {self.session_id[:8]} (timeout {self.timeout_s}s)")

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _restore_session(self) -> Optional[str]:
        """Load a stored session, count the visit and compute the welcome line."""
        stored = self.session.load_session()
        if stored is None:
            self.dialogue.user_profile = self.services.user_profiler.create_default_profile()
            return None

        previous_visit = stored.profile.last_visit
        self.dialogue.conversation_turns = list(stored.conversation_history)
        self.dialogue.user_profile = self.session.increment_visit(stored.profile)
        welcome = self.session.get_welcome_message(self.dialogue.user_profile, since=previous_visit)
        self.session.save_session(self.dialogue.user_profile, self.dialogue.conversation_turns)
        logger.info(f"Returning visitor, visit #{self.dialogue.user_profile.visit_count}")
        return welcome

    def get_welcome_message(self) -> Optional[str]:
        return self.welcome_message

    def shutdown(self) -> None:
        self._turn_executor.shutdown(wait=False, cancel_futures=True)
        self._analysis_executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def new_turn(self) -> TurnContext:
        """Working copies for one turn; nothing is shared with the engine."""
        return TurnContext(
            services=self.services,
            context=self.context.fork(),
            dialogue=copy.deepcopy(self.dialogue),
            metrics=self.analytics.get_session_metrics(),
        )

    def generate_response(self, query: str) -> LumoResponse:
        """Answer one visitor message. Always returns text and suggestions."""
        with self._lock:
            started = time.perf_counter()
            turn = self.new_turn()
            state: TurnState = {"query": query or "", "session_id": self.session_id}

            with create_custom_span(name="lumo_turn", inputs={"query": query, "session_id": self.session_id}):
                try:
                    future = self._turn_executor.submit(run_conversation_flow, state, turn)
                    state = future.result(timeout=self.timeout_s)
                except FutureTimeout:
                    turn.cancel()
                    future.cancel()
                    logger.warning(f"Turn exceeded {self.timeout_s}s deadline, discarding it: {query[:80]!r}")
                    return self._apology("timeout")
                except Exception as e:
                    logger.error(f"Turn failed for {query[:80]!r}: {e}", exc_info=True)
                    return self._apology("exception")

                self._commit(turn)
                latency_ms = (time.perf_counter() - started) * 1000
                log_and_notify(state, turn, self.analytics, latency_ms)

            return self._finalize(state.get("answer"))

    def _commit(self, turn: TurnContext) -> None:
        self.context.commit(turn.context)
        self.dialogue = turn.dialogue
        if turn.turn_recorded and self.dialogue.user_profile is not None:
            self.session.save_session(self.dialogue.user_profile, self.dialogue.conversation_turns)

    def _apology(self, reason: str) -> LumoResponse:
        self.analytics.track_event("lumo_error", {"reason": reason})
        return {"text": APOLOGY_TEXT, "suggestions": [dict(s) for s in DEFAULT_SUGGESTIONS]}

    @staticmethod
    def _finalize(answer: Optional[LumoResponse]) -> LumoResponse:
        """Well-formed response: text, a suggestions list, optional command/media."""
        if not answer:
            return {"text": NO_RESPONSE_TEXT, "suggestions": [dict(s) for s in DEFAULT_SUGGESTIONS]}

        response: LumoResponse = {
            "text": answer.get("text") or NO_RESPONSE_TEXT,
            "suggestions": list(answer.get("suggestions") or []),
        }
        if answer.get("command"):
            response["command"] = answer["command"]
        if answer.get("media"):
            response["media"] = answer["media"]
        return response

    # ------------------------------------------------------------------
    # Greetings, nudges and extras
    # ------------------------------------------------------------------

    def select_greeting(self) -> GreetingSelection:
        """Time-of-day greeting with weighted variants."""
        hour = self.now().hour
        contexts = self.knowledge.greetings.time_contexts
        if hour in MORNING_HOURS:
            time_context = contexts.morning
        elif hour in AFTERNOON_HOURS:
            time_context = contexts.afternoon
        else:
            time_context = contexts.evening

        variant = weighted_choice(time_context.variants, self.rng)
        suggestions = self.services.recommender.get_contextual_suggestions("greeting") or []
        return GreetingSelection(message=variant.message, suggestions=suggestions, follow_up_id=variant.follow_up_id)

    def get_follow_up(self, follow_up_id: str) -> Optional[FollowUp]:
        return self.knowledge.greetings.follow_ups.get(follow_up_id)

    def get_proactive_nudge(self) -> Optional[LumoResponse]:
        """One idle nudge per session; later calls return None."""
        with self._lock:
            if self.dialogue.nudge_count > 0:
                return None
            nudge = random_choice(self.knowledge.greetings.idle_nudges, self.rng)
            self.dialogue.nudge_count += 1
        return {"text": nudge.text, "suggestions": labels_to_suggestions(nudge.suggestions)}

    def add_easter_egg(self, text: str) -> str:
        """Late-night or weekend flourish around a reply."""
        moment = self.now()
        eggs = self.knowledge.greetings.easter_eggs

        egg = None
        if moment.hour >= LATE_NIGHT_START or moment.hour <= LATE_NIGHT_END:
            egg = eggs.get("late_night")
        elif moment.weekday() >= 5:
            egg = eggs.get("weekend")

        if egg is None:
            return text
        return f"{egg.prefix}{text}{egg.suffix}"

    def get_recommendation(self) -> Optional[Recommendation]:
        if self.dialogue.user_profile is None:
            return None
        return self.services.recommender.get_recommendation(self.dialogue.user_profile)

    def track_suggestion_click(self, label: str) -> None:
        with self._lock:
            if self.dialogue.user_profile is not None:
                self.services.user_profiler.track_click(label, self.dialogue.user_profile)
                self.session.save_session(self.dialogue.user_profile, self.dialogue.conversation_turns)

    def detect_user_type(self, query: str) -> Optional[str]:
        with self._lock:
            user_type = detect_user_type(query)
            if user_type:
                self.dialogue.user_type = user_type
            return user_type

    def get_state(self) -> Dict[str, Any]:
        """JSON-friendly snapshot of memory and dialogue state."""
        with self._lock:
            dialogue = self.dialogue
            return {
                "session_id": self.session_id,
                "context": self.context.get_context().to_dict(),
                "dialogue": {
                    "topics_discussed": list(dialogue.topics_discussed),
                    "conversation_depth": dialogue.conversation_depth,
                    "user_type": dialogue.user_type,
                    "last_intent": dialogue.last_intent,
                    "last_entities": list(dialogue.last_entities),
                    "nudge_count": dialogue.nudge_count,
                    "flow_token": asdict(dialogue.flow_token),
                    "turns": len(dialogue.conversation_turns),
                },
                "profile": dialogue.user_profile.to_dict() if dialogue.user_profile else None,
            }


# ============================================================================
# LangGraph export (Studio visualization)
# ============================================================================

def build_studio_graph(engine: Optional[LumoEngine] = None) -> Any:
    """Build the turn pipeline as a compiled LangGraph StateGraph.

    Nodes are bound to one TurnContext taken from ``engine``; halting nodes
    jump straight to ``update_memory``, which always ends the graph.
    """
    from langgraph.graph import END, START, StateGraph

    engine = engine or LumoEngine()
    turn = engine.new_turn()

    def halt_or(next_node: str) -> Callable[[TurnState], str]:
        return lambda s: "update_memory" if s.get("pipeline_halt") else next_node

    workflow = StateGraph(TurnState)
    workflow.add_node("initialize", lambda s: initialize_turn_state(s, turn))
    workflow.add_node("interrupt", lambda s: handle_interrupt(s, turn))
    workflow.add_node("debug", lambda s: handle_debug(s, turn))
    workflow.add_node("flow", lambda s: route_flow(s, turn))
    workflow.add_node("payload", lambda s: route_direct_payload(s, turn))
    workflow.add_node("analyze", lambda s: analyze_query(s, turn))
    workflow.add_node("resolve", lambda s: resolve_context(s, turn))
    workflow.add_node("clarify", lambda s: ask_clarification(s, turn))
    workflow.add_node("compose", lambda s: compose_response(s, turn))
    workflow.add_node("fallbacks", lambda s: apply_fallbacks(s, turn))
    workflow.add_node("update_memory", lambda s: update_memory(s, turn))

    workflow.add_edge(START, "initialize")
    workflow.add_edge("initialize", "interrupt")

    chain = ["interrupt", "debug", "flow", "payload", "analyze", "resolve", "clarify", "compose", "fallbacks"]
    for current, following in zip(chain, chain[1:]):
        workflow.add_conditional_edges(
            current,
            halt_or(following),
            {"update_memory": "update_memory", following: following},
        )

    workflow.add_edge("fallbacks", "update_memory")
    workflow.add_edge("update_memory", END)

    return workflow.compile()
