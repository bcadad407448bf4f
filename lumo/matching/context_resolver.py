"""Pick which remembered entity an under-specified query is about."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from lumo.state.context_manager import ContextManager, EntityItem

logger = logging.getLogger(__name__)

RECENCY_WEIGHT = 0.2
TOPIC_WEIGHT = 0.3
MENTION_WEIGHT = 0.5
AMBIGUITY_GAP = 0.3
CLARIFY_BELOW = 0.8
MAX_CANDIDATES = 3


@dataclass
class ScoredCandidate:
    entity: EntityItem
    score: float
    breakdown: Dict[str, float] = field(default_factory=dict)


@dataclass
class ResolutionResult:
    resolved_entity: Optional[EntityItem]
    confidence: float
    is_ambiguous: bool
    clarification_needed: bool = False
    candidates: List[ScoredCandidate] = field(default_factory=list)


class ContextResolver:
    """Scores the entity stack against the query and the active topic.

    Each stack entry gets recency (position in the stack), topic (the active
    topic name appears in the entity value) and mention (the entity value
    appears in the query) credit.
    """

    def __init__(self, context_manager: ContextManager):
        self.context_manager = context_manager

    def resolve(self, query: str) -> ResolutionResult:
        stack = self.context_manager.get_entity_stack()
        if not stack:
            return ResolutionResult(resolved_entity=None, confidence=0.0, is_ambiguous=False)

        topic = self.context_manager.get_active_topic()
        lowered_query = query.lower()

        candidates = []
        for index, entity in enumerate(stack):
            recency = max(0.0, 1 - index / 10) * RECENCY_WEIGHT
            topic_score = TOPIC_WEIGHT if topic and topic.name.lower() in entity.value.lower() else 0.0
            mention = MENTION_WEIGHT if entity.value.lower() in lowered_query else 0.0
            candidates.append(
                ScoredCandidate(
                    entity=entity,
                    score=recency + topic_score + mention,
                    breakdown={"recency": recency, "topic": topic_score, "mention": mention},
                )
            )

        candidates.sort(key=lambda c: c.score, reverse=True)
        top = candidates[0]

        is_ambiguous = len(candidates) >= 2 and (top.score - candidates[1].score) < AMBIGUITY_GAP
        clarification_needed = is_ambiguous and top.score < CLARIFY_BELOW

        logger.debug(
            f"Resolved {top.entity.value!r} ({top.score:.2f}) from {len(candidates)} candidates, "
            f"ambiguous={is_ambiguous}"
        )

        return ResolutionResult(
            resolved_entity=top.entity,
            confidence=top.score,
            is_ambiguous=is_ambiguous,
            clarification_needed=clarification_needed,
            candidates=candidates[:MAX_CANDIDATES],
        )
