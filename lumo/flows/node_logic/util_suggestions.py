"""Follow-up suggestion buttons and profile-driven recommendations."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional

from lumo.config.knowledge import TemplateCatalog
from lumo.state.conversation_state import Suggestion
from lumo.state.user_profiler import UserProfile
from lumo.utils.sampling import shuffled

DEFAULT_SUGGESTIONS: List[Suggestion] = [
    {"label": "Experience", "payload": "experience", "icon": "💼"},
    {"label": "Skills", "payload": "skills", "icon": "⚡"},
    {"label": "Contact", "payload": "contact", "icon": "📫"},
]


def labels_to_suggestions(labels: List[str], icon: Optional[str] = "👉") -> List[Suggestion]:
    """Flow and location data list plain labels; the payload is the lowercased label."""
    suggestions = []
    for label in labels:
        suggestion: Suggestion = {"label": label, "payload": label.lower()}
        if icon:
            suggestion["icon"] = "🔙" if "back" in label.lower() else icon
        suggestions.append(suggestion)
    return suggestions


class SuggestionGenerator:
    """Picks suggestion buttons for an answer.

    Without a type, an active topic produces topic-centred buttons. Otherwise
    a shuffled sample of the type's pool in templates.json is used, falling
    back to Experience / Skills / Contact.
    """

    def __init__(self, templates: TemplateCatalog, rng: Optional[random.Random] = None):
        self.templates = templates
        self.rng = rng

    def generate(self, kind: Optional[str] = None, count: int = 3, active_topic: Optional[str] = None) -> List[Suggestion]:
        if kind is None and active_topic:
            return [
                {"label": f"More about {active_topic}", "payload": f"tell me more about {active_topic}", "icon": "👀"},
                {"label": "Related Skills", "payload": "skills", "icon": "⚡"},
                {"label": "Main Menu", "payload": "main menu", "icon": "🏠"},
            ]

        pool = self.templates.suggestions.get(kind, []) if kind else []
        if not pool:
            return [dict(s) for s in DEFAULT_SUGGESTIONS]

        picked = shuffled(pool, self.rng)[:count]
        return [s.model_dump(exclude_none=True) for s in picked]


@dataclass
class Recommendation:
    message: str
    suggestions: List[Suggestion]


class SmartRecommender:
    def get_contextual_suggestions(self, context: str) -> Optional[List[Suggestion]]:
        if context == "greeting":
            return [
                {"label": "Quick Summary", "payload": "quick summary", "icon": "⚡"},
                {"label": "Work Experience", "payload": "experience", "icon": "💼"},
                {"label": "Surprise Me", "payload": "surprise me", "icon": "🎲"},
            ]
        if context == "quick_summary":
            return [
                {"label": "Deep Dive", "payload": "deep dive", "icon": "🔍"},
                {"label": "Contact", "payload": "contact", "icon": "📧"},
            ]
        if context == "company_specific":
            return [{"label": "Contact", "payload": "contact", "icon": "📧"}]
        if context == "surprise":
            return [
                {"label": "Another One!", "payload": "surprise me", "icon": "🎲"},
                {"label": "Quick Summary", "payload": "quick summary", "icon": "⚡"},
            ]
        if context == "fallback":
            return [
                {"label": 'Try "Experience"', "payload": "experience", "icon": "💼"},
                {"label": 'Try "Skills"', "payload": "skills", "icon": "🛠️"},
            ]
        return None

    def get_recommendation(self, profile: UserProfile) -> Optional[Recommendation]:
        if len(profile.company_interest) == 1:
            company = profile.company_interest[0]
            return Recommendation(
                f"Interested in his time at {company}? There's deeper work to explore there.",
                [
                    {"label": f"Projects at {company}", "payload": f"show me projects at {company}"},
                    {"label": f"His role at {company}", "payload": f"what was his role at {company}?"},
                    {"label": "Challenges", "payload": f"what challenges did he face at {company}?"},
                ],
            )

        if len(profile.skill_interest) == 1:
            skill = profile.skill_interest[0]
            return Recommendation(
                f"Diving into {skill}? Check out the award-winning projects he's built!",
                [
                    {"label": "Projects", "payload": "projects"},
                    {"label": "Experience", "payload": "experience"},
                    {"label": "Other Skills", "payload": "skills"},
                ],
            )

        experience_topics = sum(1 for t in profile.topics_explored if "experience" in t or "company" in t)
        if experience_topics >= 3:
            return Recommendation(
                "You seem interested in the full story. Want a comprehensive overview?",
                [
                    {"label": "Deep Dive", "payload": "deep dive"},
                    {"label": "Quick Summary", "payload": "quick summary"},
                    {"label": "Specific Projects", "payload": "projects"},
                ],
            )

        if profile.conversation_style == "casual" and profile.question_count > 2:
            return Recommendation(
                "Want to hear something unexpected?",
                [
                    {"label": "Surprise Me", "payload": "surprise me"},
                    {"label": "Fun Facts", "payload": "fun facts"},
                    {"label": "Projects", "payload": "projects"},
                ],
            )

        return None

    def personalize_order(self, suggestions: List[Suggestion], profile: UserProfile) -> List[Suggestion]:
        """Stable sort by how well each button fits the visitor's profile."""
        return sorted(suggestions, key=lambda s: self._score(s, profile), reverse=True)

    @staticmethod
    def _score(suggestion: Suggestion, profile: UserProfile) -> int:
        label = suggestion["label"].lower()
        score = 0

        preferred = {"experience": "experience", "skills": "skill", "projects": "project"}
        keyword = preferred.get(profile.preferred_content_type)
        if keyword and keyword in label:
            score += 10

        if suggestion["label"] in profile.clicked_suggestions:
            score -= 5

        if profile.preferred_depth == "quick" and "quick" in label:
            score += 5
        if profile.preferred_depth == "detailed" and ("deep" in label or "detail" in label):
            score += 5

        return score
