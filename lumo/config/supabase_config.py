"""Supabase connection settings.

Credentials come from the environment (``SUPABASE_URL`` plus either
``SUPABASE_SERVICE_ROLE_KEY`` or ``SUPABASE_KEY``). Both the session store
and the analytics sink share one lazily created client.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

logger = logging.getLogger(__name__)


@dataclass
class SupabaseSettings:
    url: Optional[str] = field(default_factory=lambda: os.getenv("SUPABASE_URL"))
    key: Optional[str] = field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY")
    )
    sessions_table: str = field(default_factory=lambda: os.getenv("LUMO_SESSIONS_TABLE", "lumo_sessions"))
    events_table: str = field(default_factory=lambda: os.getenv("LUMO_EVENTS_TABLE", "lumo_events"))

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.key)


supabase_settings = SupabaseSettings()


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Create (once) and return the Supabase client.

    Raises:
        RuntimeError: If SUPABASE_URL / SUPABASE_KEY are not set.
    """
    if not supabase_settings.is_configured:
        raise RuntimeError("Supabase is not configured: set SUPABASE_URL and SUPABASE_KEY")

    logger.info("Creating Supabase client")
    return create_client(supabase_settings.url, supabase_settings.key)
