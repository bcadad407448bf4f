"""Analytics events for Lumo conversations.

Events are tiny ``(name, payload)`` pairs. Where they go is up to the sink:

- LoggingAnalytics: log line only (default, local dev and tests)
- SupabaseAnalytics: one row per event in the ``lumo_events`` table

``AnalyticsManager`` wraps a sink with the helpers the engine calls
(``track_intent``, ``track_command``, ``track_latency``, ``track_fallback``)
and keeps per-session metrics for the ``/debug`` console. A failing sink is
logged and ignored; analytics never break a conversation.

Example usage:
    from lumo.analytics.supabase_analytics import AnalyticsManager, build_sink

    analytics = AnalyticsManager(build_sink(), session_id="abc-123")
    analytics.track_intent("experience_query", 0.5, ["Invitrace"])
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from typing_extensions import Protocol

from lumo.config import settings
from lumo.config.supabase_config import get_supabase_client, supabase_settings

logger = logging.getLogger(__name__)


class AnalyticsSink(Protocol):
    def track_event(self, name: str, payload: Dict[str, Any]) -> None: ...


class LoggingAnalytics:
    """Sink that only logs. Keeps the last events in memory for inspection."""

    def __init__(self, keep: int = 100):
        self.keep = keep
        self.events: List[Dict[str, Any]] = []

    def track_event(self, name: str, payload: Dict[str, Any]) -> None:
        logger.info(f"[analytics] {name}: {payload}")
        self.events.append({"name": name, "payload": payload})
        del self.events[:-self.keep]


class SupabaseAnalytics:
    """Analytics sink using Supabase Postgres.

    Each event becomes one row: ``name``, ``session_id``, ``payload`` (jsonb)
    and ``created_at``.
    """

    def __init__(self, table: Optional[str] = None):
        """Initialize lazily so the app can start while Supabase is down."""
        self.table = table or supabase_settings.events_table
        self._client = None

    @property
    def client(self):
        """Get Supabase client with lazy initialization."""
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def track_event(self, name: str, payload: Dict[str, Any]) -> None:
        try:
            self.client.table(self.table).insert({
                "name": name,
                "session_id": payload.get("session_id"),
                "payload": payload,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
            logger.debug(f"Logged analytics event {name}")
        except Exception as e:
            logger.error(f"Failed to log analytics event {name}: {e}")


def build_sink(enabled: Optional[bool] = None) -> AnalyticsSink:
    """Supabase sink when analytics are enabled and configured, logging otherwise."""
    enabled = settings.ANALYTICS_ENABLED if enabled is None else enabled
    if enabled and supabase_settings.is_configured:
        return SupabaseAnalytics()
    if enabled:
        logger.warning("LUMO_ANALYTICS_ENABLED is set but Supabase is not configured; logging events only")
    return LoggingAnalytics()


@dataclass
class SessionMetrics:
    turns: int = 0
    fallbacks: int = 0
    latencies_ms: List[float] = field(default_factory=list)

    @property
    def average_latency(self) -> float:
        return sum(self.latencies_ms) / len(self.latencies_ms) if self.latencies_ms else 0.0

    @property
    def fallback_rate(self) -> float:
        return self.fallbacks / self.turns if self.turns else 0.0


class AnalyticsManager:
    def __init__(self, sink: Optional[AnalyticsSink] = None, session_id: str = ""):
        self.sink = sink or LoggingAnalytics()
        self.session_id = session_id
        self.metrics = SessionMetrics()

    def track_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        data = dict(payload or {})
        data.setdefault("session_id", self.session_id)
        try:
            self.sink.track_event(name, data)
        except Exception as e:
            logger.error(f"Analytics sink failed for {name}: {e}")

    def track_intent(self, intent: str, confidence: float, entities: List[str]) -> None:
        self.track_event("lumo_intent", {
            "intent_name": intent,
            "confidence": confidence,
            "entities": ",".join(entities),
        })

    def track_command(self, command: str) -> None:
        self.track_event("lumo_command", {"command_name": command, "source": "button_click"})

    def track_latency(self, latency_ms: float) -> None:
        self.metrics.turns += 1
        self.metrics.latencies_ms.append(latency_ms)
        self.track_event("lumo_latency", {"latency_ms": round(latency_ms)})

    def track_fallback(self, kind: str, query: str = "") -> None:
        self.metrics.fallbacks += 1
        self.track_event("lumo_fallback", {"kind": kind, "query": query[:200]})

    def get_session_metrics(self) -> SessionMetrics:
        return self.metrics
