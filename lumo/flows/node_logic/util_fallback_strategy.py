"""Canned replies for turns nothing else could answer.

Each category picks a line from fallback_responses.json through the
weighted picker and pairs it with a small fixed set of safe suggestions.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional

from lumo.config.knowledge import FallbackCatalog, FallbackCategory, WeightedText
from lumo.state.conversation_state import LumoResponse, Suggestion
from lumo.utils.sampling import weighted_choice

DEFAULT_VAGUE_ACTION = "surprise_query"

NO_CONTEXT_SUGGESTIONS: List[Suggestion] = [
    {"label": "Experience", "payload": "Tell me about Nate's experience"},
    {"label": "Skills", "payload": "What are Nate's skills?"},
    {"label": "Quick Summary", "payload": "Give me a quick summary"},
]

LOW_CONFIDENCE_SUGGESTIONS: List[Suggestion] = [
    {"label": "Experience", "payload": "Tell me about his experience"},
    {"label": "Skills", "payload": "What are his skills?"},
    {"label": "Contact", "payload": "How can I contact him?"},
]

GIBBERISH_SUGGESTIONS: List[Suggestion] = [
    {"label": "Experience", "payload": "Tell me about his work"},
    {"label": "Skills", "payload": "What can he do?"},
    {"label": "Quick Tour", "payload": "Give me the highlights"},
]

TOO_BROAD_SUGGESTIONS: List[Suggestion] = [
    {"label": "Quick Summary", "payload": "Give me the highlights first"},
    {"label": "Experience", "payload": "Start with experience"},
    {"label": "Skills", "payload": "Start with skills"},
]


@dataclass
class VagueFallback:
    text: str
    action: str = DEFAULT_VAGUE_ACTION


class FallbackStrategy:
    def __init__(self, catalog: FallbackCatalog, rng: Optional[random.Random] = None):
        self.catalog = catalog
        self.rng = rng

    def _pick(self, category: FallbackCategory) -> WeightedText:
        return weighted_choice(category.responses, self.rng)

    def handle_no_context(self) -> LumoResponse:
        return {"text": self._pick(self.catalog.no_context).text, "suggestions": list(NO_CONTEXT_SUGGESTIONS)}

    def handle_vague_query(self) -> VagueFallback:
        selected = self._pick(self.catalog.vague_query)
        return VagueFallback(text=selected.text, action=selected.action or DEFAULT_VAGUE_ACTION)

    def handle_low_confidence(self) -> LumoResponse:
        line = self._pick(self.catalog.low_confidence).text
        text = (
            f"{line}\n"
            "• Work Experience & Projects\n"
            "• Skills & Expertise\n"
            "• Contact Information\n\n"
            "What interests you?"
        )
        return {"text": text, "suggestions": list(LOW_CONFIDENCE_SUGGESTIONS)}

    def handle_gibberish(self) -> LumoResponse:
        line = self._pick(self.catalog.gibberish).text
        text = f"{line}\n• Experience & Projects\n• Skills & Expertise\n• Contact Info"
        return {"text": text, "suggestions": list(GIBBERISH_SUGGESTIONS)}

    def handle_too_broad(self) -> LumoResponse:
        return {"text": self._pick(self.catalog.too_broad).text, "suggestions": list(TOO_BROAD_SUGGESTIONS)}
