"""Conversational memory with decay-on-user-turn semantics.

ContextManager owns one ConversationContext:

- history: sliding window of the last 10 messages (oldest evicted first)
- recent_intents: last 5 executed intents, most recent first
- entity_stack: up to 5 recently discussed entities, most recent first; each
  expires after 3 user turns unless mentioned again
- active_topic: the one subject the conversation is currently "about";
  its confidence drops by 0.1 per user turn and it is forgotten below 0.3

Decay runs only when a *user* message is added. Bot and system messages never
age the memory.

Every mutation persists the context under ``lumo_context_v2``. Storage
failures are logged and swallowed; the in-memory context stays authoritative.
Persisted documents without a version (or with version < 2) are migrated:
history is salvaged and trimmed to the window, everything derived is reset.

Turn isolation:
    The engine works on ``fork()`` (a deep copy that never touches storage)
    and calls ``commit(fork)`` only when the turn finished in time, so a turn
    that times out leaves no trace.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from lumo.state.storage import KeyValueStore

logger = logging.getLogger(__name__)

CONTEXT_VERSION = 2
STORAGE_KEY = "lumo_context_v2"
MAX_HISTORY = 10
MAX_RECENT_INTENTS = 5
MAX_ENTITY_STACK = 5
DEFAULT_ENTITY_EXPIRY = 3
TOPIC_DECAY = 0.1
TOPIC_FLOOR = 0.3

VALID_ROLES = ("user", "bot", "system")


@dataclass
class Message:
    role: str
    content: str
    timestamp: float


@dataclass
class EntityItem:
    type: str
    value: str
    timestamp: float
    expires_after_turns: int = DEFAULT_ENTITY_EXPIRY


@dataclass
class ActiveTopic:
    name: str
    confidence: float
    last_mentioned_at: float


@dataclass
class IntentRecord:
    intent: str
    confidence: float
    timestamp: float


@dataclass
class ConversationContext:
    version: int = CONTEXT_VERSION
    history: List[Message] = field(default_factory=list)
    recent_intents: List[IntentRecord] = field(default_factory=list)
    entity_stack: List[EntityItem] = field(default_factory=list)
    active_topic: Optional[ActiveTopic] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationContext":
        """Rebuild a context from its ``to_dict()`` form.

        Raises:
            KeyError, TypeError, ValueError: The document has the wrong shape.
        """
        if not isinstance(data, dict):
            raise TypeError(f"context document must be a dict, got {type(data).__name__}")

        topic = data.get("active_topic")
        return cls(
            version=int(data["version"]),
            history=[_message_from_dict(m) for m in data.get("history", [])],
            recent_intents=[
                IntentRecord(str(r["intent"]), float(r["confidence"]), float(r["timestamp"]))
                for r in data.get("recent_intents", [])
            ],
            entity_stack=[
                EntityItem(str(e["type"]), str(e["value"]), float(e["timestamp"]), int(e["expires_after_turns"]))
                for e in data.get("entity_stack", [])
            ],
            active_topic=(
                ActiveTopic(str(topic["name"]), float(topic["confidence"]), float(topic["last_mentioned_at"]))
                if topic
                else None
            ),
        )


def _message_from_dict(data: Dict[str, Any]) -> Message:
    role = str(data["role"])
    if role not in VALID_ROLES:
        raise ValueError(f"unknown message role {role!r}")
    return Message(role, str(data["content"]), float(data["timestamp"]))


class ContextManager:
    """Owns and persists one ConversationContext.

    Args:
        store: Key-value backend. ``None`` keeps the context in memory only.
        storage_key: Key the context is persisted under.
        clock: Returns the current time in seconds (injectable for tests).
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        storage_key: str = STORAGE_KEY,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.storage_key = storage_key
        self.clock = clock
        self.context = self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> ConversationContext:
        if self.store is None:
            return ConversationContext()

        try:
            stored = self.store.get(self.storage_key)
        except Exception as e:
            logger.warning(f"Failed to read context from storage, starting fresh: {e}")
            return ConversationContext()

        if stored is None:
            return ConversationContext()

        if not isinstance(stored, dict):
            logger.warning(f"Ignoring persisted context with unexpected type {type(stored).__name__}")
            return ConversationContext()

        version = stored.get("version")
        if not isinstance(version, int) or version < CONTEXT_VERSION:
            logger.warning(f"Migrating legacy context (version={version!r}) to v{CONTEXT_VERSION}")
            return self._migrate(stored)

        try:
            return ConversationContext.from_dict(stored)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Persisted context is malformed, resetting: {e}")
            return ConversationContext()

    def _migrate(self, old: Dict[str, Any]) -> ConversationContext:
        history: List[Message] = []
        raw_history = old.get("history")
        if isinstance(raw_history, list):
            for item in raw_history[-MAX_HISTORY:]:
                try:
                    history.append(_message_from_dict(item))
                except (KeyError, TypeError, ValueError):
                    continue

        return ConversationContext(history=history)

    def _save(self) -> None:
        if self.store is None:
            return
        try:
            self.store.set(self.storage_key, self.context.to_dict())
        except Exception as e:
            logger.warning(f"Failed to persist context, continuing in memory: {e}")

    # ------------------------------------------------------------------
    # Turn isolation
    # ------------------------------------------------------------------

    def fork(self) -> "ContextManager":
        """Deep copy that mutates freely and never writes to storage."""
        clone = ContextManager(store=None, storage_key=self.storage_key, clock=self.clock)
        clone.context = copy.deepcopy(self.context)
        return clone

    def commit(self, fork: "ContextManager") -> None:
        """Adopt a fork's context and persist it."""
        self.context = copy.deepcopy(fork.context)
        self._save()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_message(self, role: str, content: str) -> None:
        """Append to the history window; user messages also trigger decay."""
        if role not in VALID_ROLES:
            raise ValueError(f"unknown message role {role!r}")

        self.context.history.append(Message(role, content, self.clock()))
        if len(self.context.history) > MAX_HISTORY:
            self.context.history = self.context.history[-MAX_HISTORY:]

        if role == "user":
            self._decrement_entity_expiry()
            self._decay_topic_confidence()

        self._save()

    def add_entity(self, entity_type: str, value: str) -> None:
        """Push an entity to the head of the stack.

        A value already on the stack (case-insensitive) is moved to the head
        with a refreshed expiry instead of being duplicated.
        """
        now = self.clock()
        stack = [e for e in self.context.entity_stack if e.value.lower() != value.lower()]
        stack.insert(0, EntityItem(entity_type, value, now, DEFAULT_ENTITY_EXPIRY))
        self.context.entity_stack = stack[:MAX_ENTITY_STACK]
        self._save()

    def set_topic(self, name: str, confidence: float = 1.0) -> None:
        self.context.active_topic = ActiveTopic(name, confidence, self.clock())
        self._save()

    def track_intent(self, intent: str, confidence: float) -> None:
        self.context.recent_intents.insert(0, IntentRecord(intent, confidence, self.clock()))
        del self.context.recent_intents[MAX_RECENT_INTENTS:]
        self._save()

    def reset(self) -> None:
        self.context = ConversationContext()
        self._save()

    def _decrement_entity_expiry(self) -> None:
        before = len(self.context.entity_stack)
        for entity in self.context.entity_stack:
            entity.expires_after_turns -= 1
        self.context.entity_stack = [e for e in self.context.entity_stack if e.expires_after_turns > 0]

        if len(self.context.entity_stack) < before:
            logger.debug(f"Evicted {before - len(self.context.entity_stack)} expired entities")

    def _decay_topic_confidence(self) -> None:
        topic = self.context.active_topic
        if topic is None:
            return

        # Rounded so 1.0 reaches exactly 0.3 after seven turns
        topic.confidence = round(max(0.0, topic.confidence - TOPIC_DECAY), 6)
        if topic.confidence < TOPIC_FLOOR:
            logger.debug(f"Forgetting topic {topic.name!r}")
            self.context.active_topic = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_context(self) -> ConversationContext:
        return self.context

    def get_history(self) -> List[Message]:
        return self.context.history

    def get_entity_stack(self) -> List[EntityItem]:
        return self.context.entity_stack

    def get_active_topic(self) -> Optional[ActiveTopic]:
        return self.context.active_topic

    def get_recent_intents(self) -> List[IntentRecord]:
        return self.context.recent_intents

    def get_last_intent(self) -> Optional[str]:
        return self.context.recent_intents[0].intent if self.context.recent_intents else None
