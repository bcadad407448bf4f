"""Shared fixtures: the bundled knowledge, seeded randomness and a ready engine."""

import random
from datetime import datetime

import pytest

from lumo.analytics.supabase_analytics import AnalyticsManager, LoggingAnalytics
from lumo.config.knowledge import load_knowledge
from lumo.flows.conversation_flow import LumoEngine
from lumo.state.context_manager import ContextManager
from lumo.state.storage import InMemoryStore

# Tuesday mid-morning: no easter egg, morning greeting
FIXED_NOW = datetime(2024, 3, 5, 10, 30)
FIXED_CLOCK = 1_709_600_000.0


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = FIXED_CLOCK):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture(scope="session")
def knowledge():
    return load_knowledge()


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def context_manager(store, clock):
    return ContextManager(store, clock=clock)


@pytest.fixture
def analytics_sink():
    return LoggingAnalytics()


@pytest.fixture
def analytics(analytics_sink):
    return AnalyticsManager(analytics_sink, session_id="test-session")


@pytest.fixture
def make_engine(knowledge, store, clock, analytics):
    """Factory so a test can build several engines over the same store."""
    engines = []

    def factory(**overrides):
        options = dict(
            knowledge=knowledge,
            store=store,
            rng=random.Random(7),
            analytics=analytics,
            clock=clock,
            now=lambda: FIXED_NOW,
            timeout_s=5.0,
            session_id="test-session",
        )
        options.update(overrides)
        engine = LumoEngine(**options)
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        engine.shutdown()


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def turn(engine):
    """A fresh TurnContext bound to the engine's services."""
    return engine.new_turn()
