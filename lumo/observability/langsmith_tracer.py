"""LangSmith tracing helpers.

Tracing is opt-in: set ``LANGSMITH_TRACING=true`` (or the older
``LANGCHAIN_TRACING_V2=true``) plus ``LANGSMITH_API_KEY``. When disabled,
``create_custom_span`` is a no-op context manager, so pipeline nodes can
wrap their bodies unconditionally.

Example:
    with create_custom_span(name="classify_intent", inputs={"query": query}):
        ...
"""

import contextlib
import logging
import os
from typing import Any, Dict, Optional

import langsmith
from langsmith import Client

logger = logging.getLogger(__name__)

DEFAULT_PROJECT = "lumo-assistant"

_client: Optional[Client] = None


def tracing_enabled() -> bool:
    for name in ("LANGSMITH_TRACING", "LANGCHAIN_TRACING_V2"):
        if os.getenv(name, "").strip().lower() == "true":
            return True
    return False


def get_project_name() -> str:
    return os.getenv("LANGSMITH_PROJECT") or os.getenv("LANGCHAIN_PROJECT") or DEFAULT_PROJECT


def get_langsmith_client() -> Optional[Client]:
    """Return a shared LangSmith client, or None when tracing is off."""
    global _client
    if not tracing_enabled():
        return None
    if _client is None:
        try:
            _client = Client()
        except Exception as e:
            logger.error(f"Failed to create LangSmith client: {e}")
            return None
    return _client


def initialize_langsmith() -> bool:
    """Log whether tracing is active. Returns True when it is."""
    if not tracing_enabled():
        logger.info("LangSmith tracing disabled")
        return False

    if get_langsmith_client() is None:
        return False

    logger.info(f"LangSmith tracing enabled for project {get_project_name()!r}")
    return True


def create_custom_span(name: str, inputs: Optional[Dict[str, Any]] = None):
    """Context manager for one traced pipeline step."""
    if not tracing_enabled():
        return contextlib.nullcontext()
    return langsmith.trace(name, run_type="chain", inputs=inputs or {}, project_name=get_project_name())
