"""Observability module for Lumo.

Provides LangSmith integration for tracing the turn pipeline.
"""

from .langsmith_tracer import (
    get_langsmith_client,
    initialize_langsmith,
    create_custom_span,
    tracing_enabled,
)

__all__ = [
    "get_langsmith_client",
    "initialize_langsmith",
    "create_custom_span",
    "tracing_enabled",
]
