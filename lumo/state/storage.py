"""Key-value persistence adapters for conversation context and sessions.

The engine only ever needs ``get`` / ``set`` / ``remove`` on JSON-shaped
values, so every backend implements that tiny protocol:

- InMemoryStore: process-local dict (default, used by tests)
- JsonFileStore: a single JSON file on disk (terminal REPL)
- SupabaseStore: ``lumo_sessions`` table with ``key`` / ``value`` columns

Backends are allowed to raise. Callers (ContextManager, SessionManager)
catch, log and carry on with in-memory state, so a flaky backend never
breaks a conversation.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from typing_extensions import Protocol

from lumo.config import settings
from lumo.config.supabase_config import get_supabase_client, supabase_settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryStore:
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """All keys live in one JSON object on disk.

    Args:
        path: File location. Created on first write.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=2)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)


class SupabaseStore:
    """Rows of ``(key, value)`` in the sessions table.

    The client is created lazily so the API can start while Supabase is down.
    """

    def __init__(self, table: Optional[str] = None):
        self.table = table or supabase_settings.sessions_table
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def get(self, key: str) -> Optional[Any]:
        result = self.client.table(self.table).select("value").eq("key", key).limit(1).execute()
        if not result.data:
            return None
        return result.data[0].get("value")

    def set(self, key: str, value: Any) -> None:
        self.client.table(self.table).upsert({"key": key, "value": value}).execute()

    def remove(self, key: str) -> None:
        self.client.table(self.table).delete().eq("key", key).execute()


class ScopedStore:
    """Prefix every key with a namespace (one namespace per chat session)."""

    def __init__(self, inner: KeyValueStore, namespace: str):
        self.inner = inner
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[Any]:
        return self.inner.get(self._key(key))

    def set(self, key: str, value: Any) -> None:
        self.inner.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self.inner.remove(self._key(key))


def build_store(backend: Optional[str] = None) -> KeyValueStore:
    """Create the store selected by ``LUMO_STORAGE_BACKEND``.

    Unknown names and an unconfigured Supabase fall back to memory.
    """
    backend = (backend or settings.STORAGE_BACKEND).lower()

    if backend == "file":
        path = settings.get_storage_path()
        logger.info(f"Using JSON file store at {path}")
        return JsonFileStore(path)

    if backend == "supabase":
        if supabase_settings.is_configured:
            logger.info(f"Using Supabase store (table {supabase_settings.sessions_table})")
            return SupabaseStore()
        logger.warning("LUMO_STORAGE_BACKEND=supabase but Supabase is not configured; using memory")
    elif backend != "memory":
        logger.warning(f"Unknown storage backend {backend!r}; using memory")

    return InMemoryStore()
