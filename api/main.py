"""FastAPI chat endpoint for the Lumo portfolio assistant.

Run locally with:
    uvicorn api.main:app --reload --port 8000
"""

import logging
import os
import sys
import threading
import uuid
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

# Add project root to path so the lumo package is importable without install
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

from lumo import __version__
from lumo.config import settings
from lumo.config.knowledge import load_knowledge
from lumo.flows.conversation_flow import LumoEngine
from lumo.observability import initialize_langsmith
from lumo.state.storage import ScopedStore, build_store

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Lumo API", version=__version__)

# --- CORS ---
origins = [
    "http://localhost:3000",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

initialize_langsmith()

# --- Shared, read-only knowledge (validated once at startup) ---
knowledge = load_knowledge()
store = build_store()


# --- One engine per session, each with its own storage namespace ---
def create_engine(session_id: str) -> LumoEngine:
    return LumoEngine(
        knowledge=knowledge,
        store=ScopedStore(store, session_id),
        session_id=session_id,
    )


class EnginePool:
    """Least-recently-used map of session id to LumoEngine.

    At most ``max_sessions`` engines are kept. The engine evicted to make room
    is shut down so its worker threads exit; its context and visitor profile
    stay in the store, so a later request for that session rebuilds it.
    """

    def __init__(self, factory: Callable[[str], LumoEngine], max_sessions: int = settings.MAX_SESSIONS):
        self.factory = factory
        self.max_sessions = max(1, max_sessions)
        self._engines: "OrderedDict[str, LumoEngine]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> LumoEngine:
        evicted: List[Tuple[str, LumoEngine]] = []
        with self._lock:
            engine = self._engines.get(session_id)
            if engine is not None:
                self._engines.move_to_end(session_id)
                return engine

            engine = self.factory(session_id)
            self._engines[session_id] = engine
            while len(self._engines) > self.max_sessions:
                evicted.append(self._engines.popitem(last=False))

        for old_id, old_engine in evicted:
            logger.info(f"Evicting idle session {old_id[:8]} ({self.max_sessions} sessions max)")
            old_engine.shutdown()
        return engine

    def shutdown(self) -> None:
        with self._lock:
            engines, self._engines = list(self._engines.values()), OrderedDict()
        for engine in engines:
            engine.shutdown()

    def values(self) -> List[LumoEngine]:
        with self._lock:
            return list(self._engines.values())

    def __getitem__(self, session_id: str) -> LumoEngine:
        return self._engines[session_id]

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._engines

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._engines))

    def __len__(self) -> int:
        return len(self._engines)


engines = EnginePool(create_engine)


def get_engine(session_id: str) -> LumoEngine:
    return engines.get(session_id)


# --- Request / Response models ---
class ChatRequest(BaseModel):
    message: str
    session_id: Optional[str] = None


class ChatResponse(BaseModel):
    response: str
    suggestions: List[Dict[str, Any]] = Field(default_factory=list)
    command: Optional[Dict[str, str]] = None
    media: Optional[Dict[str, Any]] = None
    session_id: str


class GreetingResponse(BaseModel):
    greeting: str
    welcome_back: Optional[str] = None
    suggestions: List[Dict[str, Any]] = Field(default_factory=list)
    session_id: str


# Use sync def so FastAPI runs it in a threadpool (generate_response blocks on its deadline)
@app.post("/chat", response_model=ChatResponse)
def chat(req: ChatRequest):
    session_id = req.session_id or str(uuid.uuid4())
    engine = get_engine(session_id)

    result = engine.generate_response(req.message)

    return ChatResponse(
        response=result["text"],
        suggestions=result.get("suggestions", []),
        command=result.get("command"),
        media=result.get("media"),
        session_id=session_id,
    )


@app.get("/greeting", response_model=GreetingResponse)
def greeting(session_id: Optional[str] = None):
    session_id = session_id or str(uuid.uuid4())
    engine = get_engine(session_id)
    selection = engine.select_greeting()

    return GreetingResponse(
        greeting=engine.add_easter_egg(selection.message),
        welcome_back=engine.get_welcome_message(),
        suggestions=selection.suggestions,
        session_id=session_id,
    )


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__, "sessions": len(engines)}
