"""Detect conversational references: pronouns, follow-ups and topic switches."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Optional

from lumo.config.knowledge import ReferenceCatalog
from lumo.utils.sampling import random_choice

PRONOUN_REFERENCE = "pronoun_reference"
FOLLOW_UP_MORE = "follow_up_more"
FOLLOW_UP_PREVIOUS = "follow_up_previous"
FOLLOW_UP_NEXT = "follow_up_next"
CONTEXT_SWITCH = "context_switch"

FOLLOW_UP_TYPES = (FOLLOW_UP_MORE, FOLLOW_UP_PREVIOUS, FOLLOW_UP_NEXT)

_CONTEXT_SWITCH = re.compile(r"(?:what|how) about (.+)", re.IGNORECASE)


@dataclass(frozen=True)
class ReferenceDetection:
    has_reference: bool
    type: Optional[str] = None
    topic: Optional[str] = None


NO_REFERENCE = ReferenceDetection(False)


class ReferenceResolver:
    """Classify a query as referring back to earlier conversation.

    Checks run in priority order and the first hit wins: bare pronoun,
    "tell me more" phrases, "before that" phrases, "after that" phrases,
    then ``what/how about X`` as a topic switch.
    """

    def __init__(self, catalog: ReferenceCatalog):
        self.catalog = catalog

    def detect_reference(self, query: str) -> ReferenceDetection:
        normalized = query.lower().strip()
        patterns = self.catalog.reference_patterns

        for pronoun in patterns.pronouns.subject_references:
            if normalized == pronoun or f" {pronoun} " in normalized:
                return ReferenceDetection(True, PRONOUN_REFERENCE)

        for phrase in patterns.follow_up_more.phrases:
            if phrase in normalized:
                return ReferenceDetection(True, FOLLOW_UP_MORE)

        for phrase in patterns.follow_up_previous.phrases:
            if phrase in normalized:
                return ReferenceDetection(True, FOLLOW_UP_PREVIOUS)

        for phrase in patterns.follow_up_next.phrases:
            if phrase in normalized:
                return ReferenceDetection(True, FOLLOW_UP_NEXT)

        match = _CONTEXT_SWITCH.search(normalized)
        if match:
            topic = re.sub(r"\?$", "", match.group(1)).strip()
            return ReferenceDetection(True, CONTEXT_SWITCH, topic)

        return NO_REFERENCE

    def is_follow_up_more(self, query: str) -> bool:
        return self.detect_reference(query).type == FOLLOW_UP_MORE

    def is_follow_up_previous(self, query: str) -> bool:
        return self.detect_reference(query).type == FOLLOW_UP_PREVIOUS

    def is_follow_up_next(self, query: str) -> bool:
        return self.detect_reference(query).type == FOLLOW_UP_NEXT

    def get_follow_up_intro(self, reference_type: str, rng: Optional[random.Random] = None) -> str:
        """Random lead-in line for a follow-up answer; empty for unknown types."""
        intros = self.catalog.follow_up_responses
        pools = {
            FOLLOW_UP_MORE: intros.more_details_intros,
            FOLLOW_UP_PREVIOUS: intros.chronological_previous,
            FOLLOW_UP_NEXT: intros.chronological_next,
            CONTEXT_SWITCH: intros.context_switch,
        }
        pool = pools.get(reference_type)
        if not pool:
            return ""
        return random_choice(pool, rng)
