"""Cheap sanity checks on a query before the fallback cascade answers it."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from lumo.matching.reference_resolver import FOLLOW_UP_TYPES

GIBBERISH_PATTERNS = ("asdf", "qwer", "zxcv", "jkl", "fdsa", "asd")
VAGUE_TRIGGERS = ("something", "anything", "whatever", "idk", "dunno", "random")

MIN_LETTERS_FOR_RATIO = 5
MIN_VOWEL_RATIO = 0.15

_VOWELS = re.compile(r"[aeiou]")
_CONSONANTS = re.compile(r"[bcdfghjklmnpqrstvwxyz]")
_CONSONANT_RUN = re.compile(r"[bcdfghjklmnpqrstvwxyz]{6,}")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    reason: Optional[str] = None
    suggestion: Optional[str] = None


VALID = ValidationResult(True)


class ContextValidator:
    def validate_follow_up(self, query_type: str, conversation_history: Optional[Sequence]) -> ValidationResult:
        """A follow-up ("tell me more", "before that") needs something to follow."""
        if query_type not in FOLLOW_UP_TYPES:
            return VALID

        if not conversation_history:
            return ValidationResult(
                False,
                "no_context",
                "I'd love to tell you more! What would you like to know about?",
            )
        return VALID

    def validate_reference(self, has_reference: bool, last_topic: Optional[str]) -> ValidationResult:
        if not has_reference:
            return VALID
        if not last_topic:
            return ValidationResult(False, "missing_reference", "What would you like to know more about?")
        return VALID

    def is_vague(self, query: str) -> bool:
        normalized = query.lower().strip()
        return any(trigger in normalized for trigger in VAGUE_TRIGGERS)

    def is_gibberish(self, query: str) -> bool:
        normalized = query.lower().strip()

        if any(pattern in normalized for pattern in GIBBERISH_PATTERNS):
            return True

        vowels = len(_VOWELS.findall(normalized))
        consonants = len(_CONSONANTS.findall(normalized))
        total = vowels + consonants
        if total > MIN_LETTERS_FOR_RATIO and vowels / total < MIN_VOWEL_RATIO:
            return True

        return bool(_CONSONANT_RUN.search(normalized))
