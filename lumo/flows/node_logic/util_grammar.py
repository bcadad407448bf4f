"""Tiny English grammar helpers for templated answers.

``fill_template`` understands ``{key}`` and ``{key_modifier}`` slots where the
modifier is a tense (past, present, future, continuous) or ``capitalize``.
Unknown keys are left in place.
"""

from __future__ import annotations

import re
from typing import Dict, List

TENSES = ("past", "present", "future", "continuous")

IRREGULAR_VERBS = {
    "build": {"past": "built", "present": "builds", "continuous": "building"},
    "lead": {"past": "led", "present": "leads", "continuous": "leading"},
    "run": {"past": "ran", "present": "runs", "continuous": "running"},
    "create": {"past": "created", "present": "creates", "continuous": "creating"},
}

_SLOT = re.compile(r"\{([a-zA-Z]+)(?:_(past|present|future|continuous|capitalize))?\}")


class GrammarEngine:
    def conjugate(self, verb: str, tense: str) -> str:
        v = verb.lower()

        if tense == "future":
            return f"will {v}"

        if v in IRREGULAR_VERBS:
            return IRREGULAR_VERBS[v].get(tense, v)

        if tense == "past":
            return f"{v}d" if v.endswith("e") else f"{v}ed"
        if tense == "present":
            return f"{v}s"
        if tense == "continuous":
            return f"{v[:-1]}ing" if v.endswith("e") else f"{v}ing"
        return v

    def list(self, items: List[str]) -> str:
        """Join with an Oxford comma."""
        if not items:
            return ""
        if len(items) == 1:
            return items[0]
        if len(items) == 2:
            return f"{items[0]} and {items[1]}"
        return f"{', '.join(items[:-1])}, and {items[-1]}"

    def capitalize(self, text: str) -> str:
        return text[:1].upper() + text[1:] if text else ""

    def fill_template(self, template: str, factors: Dict[str, str]) -> str:
        def substitute(match: re.Match) -> str:
            key, modifier = match.group(1), match.group(2)
            value = factors.get(key)
            if not value:
                return match.group(0)
            if modifier in TENSES:
                return self.conjugate(value, modifier)
            if modifier == "capitalize":
                return self.capitalize(value)
            return value

        return _SLOT.sub(substitute, template)
