"""Typo-tolerant string matching.

Every lexical comparison in Lumo eventually lands here: keyword matching in the
intent classifier, known-entity lookup in the entity extractor, and the
"did you mean" style checks in the fallback cascade.

Matching strategies (cheapest and most precise first):
- exact: case/whitespace-insensitive equality
- fuzzy: normalized Levenshtein similarity >= threshold
- phonetic: coarse "sounds like" key (deliberately lossy)
- partial: substring containment in either direction

Design Principles:
- Pure functions over strings, no shared state besides the default threshold
- Never raises on empty or single-character input
- Edit distance comes from rapidfuzz; has_similar() scans a whole token
  list in one call
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

DEFAULT_THRESHOLD = 0.75
PHONETIC_SCORE = 0.8
PARTIAL_MIN_RATIO = 0.6

_VOWEL_RUN = re.compile(r"[aeiou]+")
_DOUBLE_LETTER = re.compile(r"([a-z])\1+")


@dataclass(frozen=True)
class FuzzyMatch:
    """Best candidate returned by find_best_match / find_all_matches."""

    match: str
    score: float


@dataclass(frozen=True)
class SmartMatch:
    """Result of smart_match: whether it matched, how well, and which strategy hit."""

    matches: bool
    score: float
    method: str  # exact | fuzzy | phonetic | partial | none


def levenshtein_distance(s1: str, s2: str) -> int:
    """Minimum number of single-character edits to turn s1 into s2.

    Unit cost for insertion, deletion and substitution. Distance against an
    empty string is the other string's length.
    """
    return Levenshtein.distance(s1, s2)


def phonetic_key(text: str) -> str:
    """Reduce a word to a rough pronunciation key ("fone" and "phone" collide)."""
    key = text.lower().strip()
    key = key.replace("ph", "f").replace("ck", "k")
    key = _VOWEL_RUN.sub("a", key)
    return _DOUBLE_LETTER.sub(r"\1", key)


class FuzzyMatcher:
    """Levenshtein-based similarity with phonetic and partial-match heuristics.

    Args:
        threshold: Default similarity cut-off used by matches(), find_best_match()
            and the fuzzy step of smart_match().

    Example:
        >>> matcher = FuzzyMatcher()
        >>> matcher.similarity("experience", "experiance")
        0.9
        >>> matcher.smart_match("invitrace", "Invitrace").method
        'exact'
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        self.threshold = threshold

    def distance(self, s1: str, s2: str) -> int:
        return levenshtein_distance(s1, s2)

    def similarity(self, s1: str, s2: str) -> float:
        """Similarity score in [0, 1]; 1.0 means identical after lowercase/trim."""
        if s1 == s2 and s1:
            return 1.0
        if not s1 or not s2:
            return 0.0

        str1 = s1.lower().strip()
        str2 = s2.lower().strip()
        if str1 == str2:
            return 1.0 if str1 else 0.0
        if not str1 or not str2:
            return 0.0

        distance = levenshtein_distance(str1, str2)
        max_len = max(len(str1), len(str2))
        return max(0.0, 1.0 - distance / max_len)

    def matches(self, s1: str, s2: str, threshold: Optional[float] = None) -> bool:
        cutoff = self.threshold if threshold is None else threshold
        return self.similarity(s1, s2) >= cutoff

    def has_similar(self, target: str, candidates: Iterable[str], threshold: Optional[float] = None) -> bool:
        """Whether any candidate is at least ``threshold`` similar to ``target``."""
        cutoff = self.threshold if threshold is None else threshold
        key = target.lower().strip()
        if not key:
            return False

        choices = [c.lower().strip() for c in candidates]
        choices = [c for c in choices if c]
        if not choices:
            return False

        hit = process.extractOne(key, choices, scorer=Levenshtein.normalized_similarity, score_cutoff=cutoff)
        return hit is not None

    def find_best_match(
        self,
        query: str,
        candidates: Iterable[str],
        min_score: Optional[float] = None,
    ) -> Optional[FuzzyMatch]:
        """Highest-scoring candidate at/above the threshold, or None.

        Earlier candidates win ties.
        """
        cutoff = self.threshold if min_score is None else min_score
        best: Optional[FuzzyMatch] = None

        for candidate in candidates:
            score = self.similarity(query, candidate)
            if score >= cutoff and (best is None or score > best.score):
                best = FuzzyMatch(match=candidate, score=score)

        return best

    def find_all_matches(
        self,
        query: str,
        candidates: Iterable[str],
        min_score: Optional[float] = None,
    ) -> List[FuzzyMatch]:
        cutoff = self.threshold if min_score is None else min_score
        found = [
            FuzzyMatch(match=candidate, score=score)
            for candidate in candidates
            if (score := self.similarity(query, candidate)) >= cutoff
        ]
        return sorted(found, key=lambda m: m.score, reverse=True)

    def sounds_like(self, s1: str, s2: str) -> bool:
        """Coarse phonetic equality. False positives are acceptable."""
        if not s1 or not s2:
            return False
        return phonetic_key(s1) == phonetic_key(s2)

    def partial_match(self, query: str, candidate: str) -> bool:
        q = query.lower().strip()
        c = candidate.lower().strip()
        if not q or not c:
            return False
        return q in c or c in q

    def smart_match(self, query: str, candidate: str) -> SmartMatch:
        """Run exact → fuzzy → phonetic → partial and report the first hit.

        Used where several strategies must agree on a single confidence figure
        (e.g. known-entity lookup in the entity extractor).
        """
        if query.lower().strip() == candidate.lower().strip() and query.strip():
            return SmartMatch(True, 1.0, "exact")

        fuzzy_score = self.similarity(query, candidate)
        if fuzzy_score >= self.threshold:
            return SmartMatch(True, fuzzy_score, "fuzzy")

        if self.sounds_like(query, candidate):
            return SmartMatch(True, PHONETIC_SCORE, "phonetic")

        if self.partial_match(query, candidate):
            q_len, c_len = len(query.strip()), len(candidate.strip())
            ratio = min(q_len, c_len) / max(q_len, c_len)
            if ratio >= PARTIAL_MIN_RATIO:
                return SmartMatch(True, ratio, "partial")

        return SmartMatch(False, fuzzy_score, "none")
