"""Application settings and path configuration.

Simple module-level constants for paths and runtime configuration.
Everything reads from the environment so the API, the terminal REPL and
the tests can all tune the engine without code changes.

Environment Variables:
- PROJECT_ROOT: Project root directory (auto-detected if not set)
- LUMO_DATA_DIR: Directory holding the JSON knowledge files (default: bundled lumo/data)
- LUMO_TURN_TIMEOUT_S: Hard per-turn deadline in seconds (default: 1.5)
- LUMO_MAX_SESSIONS: Chat API sessions kept in memory before the least recent is evicted (default: 200)
- LUMO_STORAGE_BACKEND: memory | file | supabase (default: memory)
- LUMO_STORAGE_PATH: JSON file used by the file backend (default: .lumo/storage.json)
- LUMO_ANALYTICS_ENABLED: Write analytics events to Supabase (default: false)
- LOG_LEVEL: Root logging level for entry points (default: INFO)
- FRONTEND_URL: Extra CORS origin for the chat API
"""

import os
from pathlib import Path


# Detect project root
def _detect_project_root() -> Path:
    """Detect project root directory.

    Tries in order:
    1. PROJECT_ROOT environment variable
    2. Git repository root (walks up from cwd)
    3. Current working directory
    """
    if os.getenv("PROJECT_ROOT"):
        return Path(os.getenv("PROJECT_ROOT")).resolve()

    try:
        current = Path.cwd()
        while current != current.parent:
            if (current / ".git").exists():
                return current
            current = current.parent
    except OSError:
        pass

    return Path.cwd()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


PROJECT_ROOT = _detect_project_root()

# Bundled knowledge files live next to the package
PACKAGE_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DATA_DIR = Path(os.getenv("LUMO_DATA_DIR", str(PACKAGE_DATA_DIR)))

TURN_TIMEOUT_S = float(os.getenv("LUMO_TURN_TIMEOUT_S", "1.5"))

MAX_SESSIONS = int(os.getenv("LUMO_MAX_SESSIONS", "200"))

STORAGE_BACKEND = os.getenv("LUMO_STORAGE_BACKEND", "memory").lower()
STORAGE_PATH = os.getenv("LUMO_STORAGE_PATH", ".lumo/storage.json")

ANALYTICS_ENABLED = _env_flag("LUMO_ANALYTICS_ENABLED")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

FRONTEND_URL = os.getenv("FRONTEND_URL")


def get_storage_path() -> str:
    """Get the file-store path as an absolute string.

    Relative paths resolve against the project root, and the parent
    directory is created on demand.

    Example:
        from lumo.config.settings import get_storage_path

        store = JsonFileStore(get_storage_path())
    """
    path = Path(STORAGE_PATH)

    if not path.is_absolute():
        path = PROJECT_ROOT / path

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass  # the store degrades to in-memory if the write fails later

    return str(path.resolve())
