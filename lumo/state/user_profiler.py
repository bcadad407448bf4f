"""Builds a lightweight visitor profile from conversation turns."""

from __future__ import annotations

import re
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

CASUAL_MARKERS = re.compile(r"\b(lol|haha|yo|sup|wat|thx)\b")
PROFESSIONAL_MIN_LENGTH = 30


@dataclass
class ConversationTurn:
    user_query: str
    intent: str
    entities: List[Dict[str, Any]] = field(default_factory=list)
    response: str = ""
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        return cls(
            user_query=str(data["user_query"]),
            intent=str(data["intent"]),
            entities=list(data.get("entities", [])),
            response=str(data.get("response", "")),
            timestamp=float(data.get("timestamp", 0.0)),
        )


@dataclass
class UserProfile:
    topics_explored: List[str] = field(default_factory=list)
    company_interest: List[str] = field(default_factory=list)
    skill_interest: List[str] = field(default_factory=list)
    conversation_style: str = "unknown"
    preferred_depth: str = "medium"
    question_count: int = 0
    session_start_time: float = 0.0
    total_time_spent: float = 0.0
    message_count: int = 0
    preferred_content_type: str = "mixed"
    clicked_suggestions: List[str] = field(default_factory=list)
    first_visit: float = 0.0
    last_visit: float = 0.0
    visit_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{key: value for key, value in data.items() if key in known})


class UserProfiler:
    """Infers interests, tone and preferred depth from what the visitor asked.

    All detection is counting: no state is kept between calls besides the
    profile that is passed in.
    """

    def __init__(self, clock=time.time):
        self.clock = clock

    def create_default_profile(self) -> UserProfile:
        now = self.clock()
        return UserProfile(session_start_time=now, first_visit=now, last_visit=now)

    def build_profile(
        self, history: List[ConversationTurn], existing: Optional[UserProfile] = None
    ) -> UserProfile:
        profile = existing or self.create_default_profile()

        now = self.clock()
        profile.last_visit = now
        profile.message_count = len(history)
        profile.total_time_spent = now - profile.session_start_time

        # Counts are rebuilt from the full window on every call
        profile.question_count = 0
        for turn in history:
            if turn.intent not in profile.topics_explored:
                profile.topics_explored.append(turn.intent)
            profile.question_count += 1

            for entity in turn.entities:
                value = entity.get("value")
                if entity.get("type") == "company_name" and value not in profile.company_interest:
                    profile.company_interest.append(value)
                if entity.get("type") == "skill_name" and value not in profile.skill_interest:
                    profile.skill_interest.append(value)

        profile.conversation_style = self.detect_style(history)
        profile.preferred_depth = self.detect_depth(history)
        profile.preferred_content_type = self.detect_content_preference(profile)
        return profile

    def detect_style(self, history: List[ConversationTurn]) -> str:
        casual = professional = excited = 0

        for turn in history:
            query = turn.user_query.lower()
            if CASUAL_MARKERS.search(query):
                casual += 1
            if len(query) > PROFESSIONAL_MIN_LENGTH and "!" not in query:
                professional += 1
            if "!" in query or turn.user_query.isupper():
                excited += 1

        best = max(casual, professional, excited)
        if best == 0:
            return "unknown"
        if best == casual:
            return "casual"
        if best == excited:
            return "excited"
        return "professional"

    def detect_depth(self, history: List[ConversationTurn]) -> str:
        detail = quick = 0

        for turn in history:
            query = turn.user_query.lower()
            if any(word in query for word in ("detail", "more", "deep")):
                detail += 1
            if any(word in query for word in ("quick", "summary", "tldr")):
                quick += 1

        if detail > quick:
            return "detailed"
        if quick > detail:
            return "quick"
        return "medium"

    def detect_content_preference(self, profile: UserProfile) -> str:
        topics = profile.topics_explored
        experience = sum(1 for t in topics if "experience" in t or "company" in t)
        skills = sum(1 for t in topics if "skill" in t or "design" in t)
        projects = sum(1 for t in topics if "project" in t)

        best = max(experience, skills, projects)
        if best == 0:
            return "mixed"
        if best == experience:
            return "experience"
        if best == skills:
            return "skills"
        return "projects"

    def track_click(self, label: str, profile: UserProfile) -> None:
        if label not in profile.clicked_suggestions:
            profile.clicked_suggestions.append(label)
