"""Visitor session persistence: profile plus the last ten conversation turns.

Sessions live under ``lumo_ai_session`` in whatever KeyValueStore the engine
was given. A session older than 24 hours is treated as gone and removed on
load. Like the context store, every backend failure is logged and ignored.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from lumo.state.storage import KeyValueStore
from lumo.state.user_profiler import ConversationTurn, UserProfile

logger = logging.getLogger(__name__)

SESSION_KEY = "lumo_ai_session"
MAX_TURNS = 10
SESSION_TTL_S = 24 * 60 * 60
DAY_S = 24 * 60 * 60


@dataclass
class SessionData:
    profile: UserProfile
    conversation_history: List[ConversationTurn] = field(default_factory=list)
    timestamp: float = 0.0


class SessionManager:
    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        storage_key: str = SESSION_KEY,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.storage_key = storage_key
        self.clock = clock

    def save_session(self, profile: UserProfile, history: List[ConversationTurn]) -> None:
        if self.store is None:
            return
        payload = {
            "profile": profile.to_dict(),
            "conversation_history": [turn.to_dict() for turn in history[-MAX_TURNS:]],
            "timestamp": self.clock(),
        }
        try:
            self.store.set(self.storage_key, payload)
        except Exception as e:
            logger.warning(f"Failed to save session: {e}")

    def load_session(self) -> Optional[SessionData]:
        """Return the stored session, or None when missing, expired or unreadable."""
        if self.store is None:
            return None

        try:
            stored = self.store.get(self.storage_key)
        except Exception as e:
            logger.warning(f"Failed to load session: {e}")
            return None

        if not stored:
            return None

        try:
            timestamp = float(stored["timestamp"])
            if self.clock() - timestamp > SESSION_TTL_S:
                logger.info("Session expired, clearing it")
                self.clear_session()
                return None

            return SessionData(
                profile=UserProfile.from_dict(stored["profile"]),
                conversation_history=[
                    ConversationTurn.from_dict(turn) for turn in stored.get("conversation_history", [])
                ],
                timestamp=timestamp,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Stored session is malformed, ignoring it: {e}")
            return None

    def is_returning_user(self) -> bool:
        session = self.load_session()
        return session is not None and session.profile.visit_count > 0

    def get_welcome_message(self, profile: UserProfile, since: Optional[float] = None) -> Optional[str]:
        """Greeting for a returning visitor, keyed on days since ``since`` (default: the profile's last visit)."""
        if profile.visit_count <= 1:
            return None

        last_visit = profile.last_visit if since is None else since
        days_since = (self.clock() - last_visit) / DAY_S
        if days_since < 1:
            return "Welcome back! Ready to pick up where we left off?"
        if days_since < 7:
            return "Hey! Good to see you again! What interests you today?"
        return "Welcome back! It's been a while. What would you like to explore?"

    def clear_session(self) -> None:
        if self.store is None:
            return
        try:
            self.store.remove(self.storage_key)
        except Exception as e:
            logger.warning(f"Failed to clear session: {e}")

    def increment_visit(self, profile: UserProfile) -> UserProfile:
        profile.visit_count += 1
        profile.last_visit = self.clock()
        return profile
