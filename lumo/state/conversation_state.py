"""Per-turn pipeline state and the dialogue state that survives between turns.

TurnState is the dict the pipeline nodes pass along (same shape as a
LangGraph state: TypedDict with total=False, every node returns the dict
with the fields it touched). DialogueState and FlowToken are the engine's
own memory: what was asked, where the scripted flow is, the visitor profile.

Example Usage:
    ```python
    from lumo.state.conversation_state import TurnState

    def detect_gibberish(state: TurnState, turn) -> TurnState:
        query = state["query"]                   # always set by the engine
        entities = state.get("entities", [])     # optional fields via .get()
        ...
        return state
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from typing_extensions import TypedDict

from lumo.state.user_profiler import ConversationTurn, UserProfile

MAX_CONVERSATION_TURNS = 10


class Suggestion(TypedDict, total=False):
    label: str
    payload: str
    icon: str


class Command(TypedDict):
    type: str
    value: str


class LumoResponse(TypedDict, total=False):
    """What the engine hands back to the UI. ``text`` is always present."""

    text: str
    suggestions: List[Suggestion]
    command: Optional[Command]
    media: Optional[Dict[str, Any]]


class TurnState(TypedDict, total=False):
    """State dictionary passed between pipeline nodes for one turn.

    Field Categories:
        Input: query, normalized_query, session_id
        Understanding: intent_score, small_talk, entities, resolution, reference
        Output: answer, turn_kind
        Control: pipeline_halt, record_messages
    """

    # --- Input ---
    query: str
    """Raw user text for this turn."""

    normalized_query: str
    """Lowercased, stripped query used for exact-match routing."""

    session_id: str
    """Session identifier, used for analytics and tracing metadata."""

    # --- Understanding ---
    intent_score: Optional[Any]
    """Best IntentScore from the classifier, or None."""

    small_talk: Optional[Any]
    """SmallTalkResult from the small talk detector, or None."""

    entities: List[Any]
    """ExtractedEntity list, possibly extended with the resolved context entity."""

    resolution: Any
    """ResolutionResult from the context resolver."""

    reference: Any
    """ReferenceDetection for the legacy follow-up path."""

    # --- Output ---
    answer: LumoResponse
    """Final response for the UI. Set by whichever node handled the turn."""

    turn_kind: str
    """Which branch answered: interrupt, debug, flow, direct, clarification,
    intent, small_talk, gibberish, vague, follow_up, search, low_confidence."""

    # --- Control ---
    pipeline_halt: bool
    """True once a node produced the answer; remaining nodes are skipped."""

    record_messages: bool
    """False for turns that must not touch conversation memory (interrupt, /debug)."""


@dataclass
class FlowToken:
    """Position inside the scripted conversation flows."""

    current_node_id: str = "root"
    history: List[str] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    is_flow_active: bool = False


@dataclass
class DialogueState:
    topics_discussed: List[str] = field(default_factory=list)
    conversation_depth: int = 0
    user_type: Optional[str] = None
    last_intent: Optional[str] = None
    last_entities: List[Dict[str, Any]] = field(default_factory=list)
    last_topic: Optional[str] = None
    last_response: Optional[str] = None
    last_surprise_content: Optional[str] = None
    nudge_count: int = 0
    flow_token: FlowToken = field(default_factory=FlowToken)
    conversation_turns: List[ConversationTurn] = field(default_factory=list)
    user_profile: Optional[UserProfile] = None

    def track_topic(self, topic: str) -> None:
        if topic not in self.topics_discussed:
            self.topics_discussed.append(topic)
            self.conversation_depth += 1
