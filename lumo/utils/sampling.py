"""Randomised selection with an injectable random source.

Canned replies (greetings, fallbacks, surprises, small talk) are picked
through these helpers so tests can pass ``random.Random(seed)`` and assert
coverage or distribution instead of exact text.
"""

from __future__ import annotations

import random
from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

_default_rng = random.Random()


def _rng(rng: Optional[random.Random]) -> random.Random:
    return rng if rng is not None else _default_rng


def random_choice(items: Sequence[T], rng: Optional[random.Random] = None) -> T:
    """Uniform pick. Raises ValueError on an empty sequence."""
    if not items:
        raise ValueError("random_choice() needs at least one item")
    return items[int(_rng(rng).random() * len(items))]


def weighted_choice(
    items: Sequence[T],
    rng: Optional[random.Random] = None,
    weight: Callable[[T], float] = lambda item: getattr(item, "weight", 1.0),
) -> T:
    """Pick one item with probability proportional to its weight.

    Walks the cumulative weights against a single uniform draw; the first item
    is returned when rounding leaves the draw unconsumed.
    """
    if not items:
        raise ValueError("weighted_choice() needs at least one item")

    total = sum(weight(item) for item in items)
    remaining = _rng(rng).random() * total
    for item in items:
        remaining -= weight(item)
        if remaining <= 0:
            return item
    return items[0]


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Fisher-Yates shuffle into a new list."""
    result = list(items)
    _rng(rng).shuffle(result)
    return result
