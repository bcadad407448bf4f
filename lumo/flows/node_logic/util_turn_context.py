"""What a pipeline node can reach while handling one turn.

LumoServices bundles the engine's read-only components (built once per
engine). TurnContext adds the per-turn working copies of conversation
memory and dialogue state, plus the analytics events queued by the turn.
The engine commits the working copies and flushes the events only when
the turn finishes inside its deadline.
"""

from __future__ import annotations

import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from lumo.analytics.supabase_analytics import SessionMetrics
from lumo.config.knowledge import KnowledgeBundle
from lumo.flows.node_logic.util_context_validator import ContextValidator
from lumo.flows.node_logic.util_fallback_strategy import FallbackStrategy
from lumo.flows.node_logic.util_flow_engine import FlowEngine
from lumo.flows.node_logic.util_grammar import GrammarEngine
from lumo.flows.node_logic.util_small_talk import SmallTalkHandler
from lumo.flows.node_logic.util_suggestions import SmartRecommender, SuggestionGenerator
from lumo.matching import EntityExtractor, IntentClassifier, ReferenceResolver
from lumo.matching.entity_extractor import ExtractedEntity
from lumo.retrieval import KnowledgeGraph, ProfileStore, SearchEngine
from lumo.state.context_manager import ContextManager
from lumo.state.conversation_state import MAX_CONVERSATION_TURNS, DialogueState, Suggestion
from lumo.state.user_profiler import ConversationTurn, UserProfiler


@dataclass
class LumoServices:
    knowledge: KnowledgeBundle
    rng: random.Random
    intent_classifier: IntentClassifier
    entity_extractor: EntityExtractor
    reference_resolver: ReferenceResolver
    small_talk: SmallTalkHandler
    validator: ContextValidator
    fallbacks: FallbackStrategy
    search: SearchEngine
    profile_store: ProfileStore
    knowledge_graph: KnowledgeGraph
    grammar: GrammarEngine
    flow_engine: FlowEngine
    suggestions: SuggestionGenerator
    recommender: SmartRecommender
    user_profiler: UserProfiler
    executor: ThreadPoolExecutor
    clock: Callable[[], float] = time.time
    now: Callable[[], datetime] = datetime.now

    @classmethod
    def build(
        cls,
        knowledge: KnowledgeBundle,
        rng: random.Random,
        executor: ThreadPoolExecutor,
        clock: Callable[[], float] = time.time,
        now: Callable[[], datetime] = datetime.now,
    ) -> "LumoServices":
        profile_store = ProfileStore(knowledge.profile)
        return cls(
            knowledge=knowledge,
            rng=rng,
            intent_classifier=IntentClassifier(knowledge.intents),
            entity_extractor=EntityExtractor(knowledge.entities),
            reference_resolver=ReferenceResolver(knowledge.references),
            small_talk=SmallTalkHandler(knowledge.small_talk, rng),
            validator=ContextValidator(),
            fallbacks=FallbackStrategy(knowledge.fallbacks, rng),
            search=SearchEngine(knowledge.profile),
            profile_store=profile_store,
            knowledge_graph=KnowledgeGraph(knowledge.knowledge_graph, profile_store),
            grammar=GrammarEngine(),
            flow_engine=FlowEngine(knowledge.flows),
            suggestions=SuggestionGenerator(knowledge.templates, rng),
            recommender=SmartRecommender(),
            user_profiler=UserProfiler(clock),
            executor=executor,
            clock=clock,
            now=now,
        )


@dataclass
class TurnContext:
    services: LumoServices
    context: ContextManager
    dialogue: DialogueState
    metrics: SessionMetrics = field(default_factory=SessionMetrics)
    events: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)
    turn_recorded: bool = False
    cancelled: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        """Ask the pipeline to stop before its next node; set when the deadline passes."""
        self.cancelled.set()

    def is_cancelled(self) -> bool:
        return self.cancelled.is_set()

    # Analytics calls are queued as (AnalyticsManager method, kwargs) and
    # replayed by the engine once the turn is committed.
    def track(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        self.events.append(("track_event", {"name": name, "payload": payload or {}}))

    def track_intent(self, intent: str, confidence: float, entities: List[str]) -> None:
        self.events.append(("track_intent", {"intent": intent, "confidence": confidence, "entities": entities}))

    def track_command(self, command: str) -> None:
        self.events.append(("track_command", {"command": command}))

    def track_fallback(self, kind: str, query: str = "") -> None:
        self.events.append(("track_fallback", {"kind": kind, "query": query}))

    def suggestions(self, kind: Optional[str] = None, count: int = 3) -> List[Suggestion]:
        topic = self.context.get_active_topic()
        return self.services.suggestions.generate(kind, count, active_topic=topic.name if topic else None)

    def record_turn(self, query: str, intent: str, entities: List[ExtractedEntity], response: str) -> None:
        """Append to the turn log (last 10) and refresh the visitor profile."""
        dialogue = self.dialogue
        entity_dicts = [
            {"type": e.type, "value": e.value, "confidence": e.confidence, "position": e.position}
            for e in entities
        ]
        dialogue.conversation_turns.append(
            ConversationTurn(query, intent, entity_dicts, response, self.services.clock())
        )
        del dialogue.conversation_turns[:-MAX_CONVERSATION_TURNS]

        dialogue.last_intent = intent
        dialogue.last_entities = entity_dicts
        dialogue.last_topic = intent
        dialogue.last_response = response

        dialogue.user_profile = self.services.user_profiler.build_profile(
            dialogue.conversation_turns, dialogue.user_profile
        )
        self.turn_recorded = True
