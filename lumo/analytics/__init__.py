"""Conversation analytics (Supabase or log-only)."""

from lumo.analytics.supabase_analytics import (
    AnalyticsSink,
    AnalyticsManager,
    LoggingAnalytics,
    SupabaseAnalytics,
    SessionMetrics,
    build_sink,
)

__all__ = [
    "AnalyticsSink",
    "AnalyticsManager",
    "LoggingAnalytics",
    "SupabaseAnalytics",
    "SessionMetrics",
    "build_sink",
]
