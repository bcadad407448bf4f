"""Small talk detection: greetings, thanks, reactions, goodbyes."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from lumo.config.knowledge import SmallTalkCatalog, SmallTalkCategory
from lumo.utils.sampling import random_choice


@dataclass(frozen=True)
class SmallTalkResult:
    is_small_talk: bool
    type: Optional[str] = None
    response: Optional[str] = None


NOT_SMALL_TALK = SmallTalkResult(False)

_PUNCTUATION = re.compile(r"[^\w\s']+")


def strip_punctuation(text: str) -> str:
    """Drop punctuation except apostrophes, so "hello, nate!" reads as "hello nate"."""
    return " ".join(_PUNCTUATION.sub(" ", text).split())


def matches_any(query: str, triggers: Sequence[str]) -> bool:
    """Whole-word trigger check: equal, or bounded by spaces / string ends."""
    for trigger in triggers:
        if (
            query == trigger
            or f" {trigger} " in query
            or query.startswith(f"{trigger} ")
            or query.endswith(f" {trigger}")
        ):
            return True
    return False


class SmallTalkHandler:
    def __init__(self, catalog: SmallTalkCatalog, rng: Optional[random.Random] = None):
        self.catalog = catalog
        self.rng = rng

    def _ordered_categories(self) -> List[tuple]:
        c = self.catalog
        return [
            ("greeting", c.greetings),
            ("gratitude", c.gratitude),
            ("reaction", c.reactions.positive),
            ("reaction", c.reactions.laughter),
            ("reaction", c.reactions.surprise),
            ("affirmation", c.affirmations),
            ("farewell", c.farewells),
            ("confusion", c.confusion),
            ("encouragement", c.encouragement),
        ]

    def detect(self, query: str) -> SmallTalkResult:
        normalized = query.lower().strip()
        bare = strip_punctuation(normalized)
        for kind, category in self._ordered_categories():
            if matches_any(normalized, category.triggers) or matches_any(bare, category.triggers):
                return SmallTalkResult(True, kind, self._respond(category))
        return NOT_SMALL_TALK

    def detect_auto_execute(self, query: str) -> bool:
        """True for "you pick" style requests where the bot should just choose."""
        normalized = query.lower().strip()
        return any(trigger in normalized for trigger in self.catalog.auto_execute_triggers)

    def _respond(self, category: SmallTalkCategory) -> str:
        return random_choice(category.responses, self.rng)
