"""Conversation memory, visitor sessions and their storage backends."""

from lumo.state.storage import (
    KeyValueStore,
    InMemoryStore,
    JsonFileStore,
    SupabaseStore,
    ScopedStore,
    build_store,
)
from lumo.state.context_manager import ContextManager, ConversationContext, EntityItem, ActiveTopic, Message
from lumo.state.user_profiler import UserProfiler, UserProfile, ConversationTurn
from lumo.state.session_manager import SessionManager, SessionData
from lumo.state.conversation_state import TurnState, DialogueState, FlowToken, LumoResponse

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    "SupabaseStore",
    "ScopedStore",
    "build_store",
    "ContextManager",
    "ConversationContext",
    "EntityItem",
    "ActiveTopic",
    "Message",
    "UserProfiler",
    "UserProfile",
    "ConversationTurn",
    "SessionManager",
    "SessionData",
    "TurnState",
    "DialogueState",
    "FlowToken",
    "LumoResponse",
]
