"""Multi-signal intent scoring against the intent catalog.

Scoring per intent (summed):
- primary keyword hit: +10
- secondary keyword hit: +5
- synonym hit: +7
- semantic pattern hit: +15 (``{a|b}`` alternation, flexible whitespace)

The sum is then multiplied by every context booster whose flag is truthy in
the caller's context, and by 0.3 for every negative keyword present.
Confidence is ``min(score / 50, 1.0)``; the fixed normaliser means an intent
with many hits saturates at 1.0.

A keyword "hits" when it is a substring of the query, when any query token is
at least 0.65 similar to it, or when it contains a query token of three or
more characters.

Results keep only intents with a positive score, sorted by score descending.
Exact ties keep catalog order (Python's sort is stable).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple

from lumo.config.knowledge import IntentCatalog, IntentDefinition
from lumo.matching.fuzzy_matcher import FuzzyMatcher

logger = logging.getLogger(__name__)

PRIMARY_POINTS = 10
SECONDARY_POINTS = 5
SYNONYM_POINTS = 7
PATTERN_POINTS = 15
NEGATIVE_PENALTY = 0.3
MAX_SCORE = 50.0
KEYWORD_SIMILARITY = 0.65
MIN_PARTIAL_TOKEN = 3
DEFAULT_CONFIDENCE_THRESHOLD = 0.6

SLANG_MAP: Dict[str, str] = {
    "sklz": "skills",
    "skil": "skill",
    "wat": "what",
    "wut": "what",
    "wrk": "work",
    "exp": "experience",
    "xp": "experience",
    "pls": "please",
    "thx": "thanks",
    "thnx": "thanks",
    "u": "you",
    "ur": "your",
    "r": "are",
    "y": "why",
    "bc": "because",
    "gud": "good",
    "gd": "good",
}

_SLANG_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(rf"\b{re.escape(slang)}\b", re.IGNORECASE), proper) for slang, proper in SLANG_MAP.items()
]


@dataclass
class IntentScore:
    intent: str
    score: float
    confidence: float
    matched_keywords: List[str] = field(default_factory=list)
    matched_patterns: List[str] = field(default_factory=list)


def convert_pattern(pattern: str) -> str:
    """``"tell me about {his|your} work"`` -> ``"tell\\s+me\\s+about\\s+(his|your)\\s+work"``."""
    converted = re.sub(r"\{([^}]+)\}", r"(\1)", pattern)
    return re.sub(r"\s+", r"\\s+", converted)


def normalize_query(query: str) -> str:
    """Lowercase, trim and expand chat shorthand ("u" -> "you", "sklz" -> "skills")."""
    normalized = query.lower().strip()
    for regex, proper in _SLANG_PATTERNS:
        normalized = regex.sub(proper, normalized)
    return normalized


class IntentClassifier:
    """Rank catalog intents for a query.

    Args:
        catalog: Validated intent catalog (``intents.json``).
        matcher: Fuzzy matcher used for token-level keyword similarity.
    """

    def __init__(self, catalog: IntentCatalog, matcher: Optional[FuzzyMatcher] = None):
        self.catalog = catalog
        self.matcher = matcher or FuzzyMatcher()
        self._patterns: Dict[str, List[Tuple[str, Pattern[str]]]] = {
            name: [(p, re.compile(convert_pattern(p), re.IGNORECASE)) for p in definition.semantic_patterns]
            for name, definition in catalog.intents.items()
        }

    def classify(self, query: str, context: Optional[Mapping[str, Any]] = None) -> List[IntentScore]:
        normalized = normalize_query(query)
        scores: List[IntentScore] = []

        for name, definition in self.catalog.intents.items():
            result = self._score_intent(name, normalized, definition, context)
            if result.score > 0:
                scores.append(result)

        ranked = sorted(scores, key=lambda s: s.score, reverse=True)
        if ranked:
            logger.debug(f"Intent ranking for {query!r}: {[(s.intent, round(s.score, 1)) for s in ranked[:3]]}")
        return ranked

    def get_best_intent(self, query: str, context: Optional[Mapping[str, Any]] = None) -> Optional[IntentScore]:
        scores = self.classify(query, context)
        return scores[0] if scores else None

    def meets_threshold(self, intent_score: IntentScore) -> bool:
        definition = self.catalog.intents.get(intent_score.intent)
        threshold = DEFAULT_CONFIDENCE_THRESHOLD
        if definition is not None and definition.confidence_threshold is not None:
            threshold = definition.confidence_threshold
        return intent_score.confidence >= threshold

    # ------------------------------------------------------------------
    # Scoring helpers
    # ------------------------------------------------------------------

    def _score_intent(
        self,
        name: str,
        query: str,
        definition: IntentDefinition,
        context: Optional[Mapping[str, Any]],
    ) -> IntentScore:
        score = 0.0
        matched_keywords: List[str] = []
        matched_patterns: List[str] = []

        for keyword in definition.primary_keywords:
            if self.matches_keyword(query, keyword):
                score += PRIMARY_POINTS
                matched_keywords.append(keyword)

        for keyword in definition.secondary_keywords:
            if self.matches_keyword(query, keyword):
                score += SECONDARY_POINTS
                matched_keywords.append(keyword)

        for synonym_list in definition.synonyms.values():
            for synonym in synonym_list:
                if self.matches_keyword(query, synonym):
                    score += SYNONYM_POINTS
                    matched_keywords.append(synonym)

        for raw, regex in self._patterns.get(name, []):
            if regex.search(query):
                score += PATTERN_POINTS
                matched_patterns.append(raw)

        if context and definition.context_boosters:
            for flag, factor in definition.context_boosters.items():
                if context.get(flag):
                    score *= factor

        for negative in definition.negative_keywords:
            if negative.lower() in query:
                score *= NEGATIVE_PENALTY

        return IntentScore(
            intent=name,
            score=score,
            confidence=min(score / MAX_SCORE, 1.0),
            matched_keywords=matched_keywords,
            matched_patterns=matched_patterns,
        )

    def matches_keyword(self, query: str, keyword: str) -> bool:
        keyword_lower = keyword.lower()
        if keyword_lower in query:
            return True

        words = query.split()
        if self.matcher.has_similar(keyword_lower, words, KEYWORD_SIMILARITY):
            return True
        return any(len(word) >= MIN_PARTIAL_TOKEN and word in keyword_lower for word in words)
