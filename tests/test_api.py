"""Tests for the FastAPI chat endpoints.

Run: pytest tests/test_api.py -v
"""

import threading

import pytest
from fastapi.testclient import TestClient

import api.main as api_main
from lumo.state.storage import InMemoryStore


@pytest.fixture
def pool(monkeypatch):
    monkeypatch.setattr(api_main, "store", InMemoryStore())
    engines = api_main.EnginePool(api_main.create_engine, max_sessions=3)
    monkeypatch.setattr(api_main, "engines", engines)
    yield engines
    engines.shutdown()


@pytest.fixture
def client(pool):
    return TestClient(api_main.app)


def session_threads(session_id):
    return [t for t in threading.enumerate() if session_id in t.name]


class TestChatEndpoint:
    """Test POST /chat."""

    def test_new_session(self, client):
        """Test a message without a session id creates one."""
        response = client.post("/chat", json={"message": "tell me about his experience"})
        assert response.status_code == 200

        data = response.json()
        assert data["response"].startswith("Nate has **8+ years experience**")
        assert data["suggestions"]
        assert data["session_id"]
        assert data["session_id"] in api_main.engines

    def test_session_keeps_memory(self, client):
        """Test follow-ups in the same session see earlier turns."""
        first = client.post("/chat", json={"message": "tell me about invitrace", "session_id": "abc"}).json()
        second = client.post("/chat", json={"message": "tell me more about it", "session_id": "abc"}).json()

        assert first["session_id"] == second["session_id"] == "abc"
        engine = api_main.engines["abc"]
        assert engine.get_state()["dialogue"]["last_intent"] == "follow_up"

    def test_sessions_are_isolated(self, client):
        """Test two sessions never share memory."""
        client.post("/chat", json={"message": "tell me about invitrace", "session_id": "one"})
        client.post("/chat", json={"message": "hello", "session_id": "two"})

        assert api_main.engines["two"].context.get_entity_stack() == []

    def test_command_passthrough(self, client):
        """Test commands are returned to the page."""
        data = client.post("/chat", json={"message": "download cv"}).json()
        assert data["command"] == {"type": "download", "value": "resume"}

    def test_message_required(self, client):
        """Test the request body is validated."""
        assert client.post("/chat", json={}).status_code == 422


class TestGreetingAndHealth:
    """Test GET /greeting and GET /health."""

    def test_greeting(self, client):
        """Test a greeting comes with suggestions and a session id."""
        data = client.get("/greeting").json()
        assert data["greeting"]
        assert data["suggestions"]
        assert data["welcome_back"] is None
        assert data["session_id"] in api_main.engines

    def test_greeting_reuses_session(self, client):
        """Test the same session id maps to the same engine."""
        client.get("/greeting", params={"session_id": "abc"})
        client.get("/greeting", params={"session_id": "abc"})
        assert list(api_main.engines) == ["abc"]

    def test_health(self, client):
        """Test the health check reports active sessions."""
        client.post("/chat", json={"message": "hello", "session_id": "abc"})
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["sessions"] == 1


class TestEnginePool:
    """Test the bounded per-session engine map."""

    def test_sessions_are_bounded(self, client, pool):
        """Test the least recently used sessions are evicted past the limit."""
        for i in range(5):
            client.post("/chat", json={"message": "hello", "session_id": f"visitor-{i}"})

        assert len(pool) == 3
        assert list(pool) == ["visitor-2", "visitor-3", "visitor-4"]
        assert client.get("/health").json()["sessions"] == 3

    def test_recent_use_protects_session(self, client, pool):
        """Test touching a session moves it to the back of the eviction queue."""
        for session_id in ("first", "second", "third"):
            client.post("/chat", json={"message": "hello", "session_id": session_id})
        client.post("/chat", json={"message": "skills", "session_id": "first"})
        client.post("/chat", json={"message": "hello", "session_id": "fourth"})

        assert "first" in pool
        assert "second" not in pool

    def test_eviction_releases_threads(self, pool):
        """Test an evicted engine's worker threads exit."""
        for session_id in ("evict-a", "evict-b", "evict-c"):
            pool.get(session_id).generate_response("hello")

        threads = session_threads("evict-a")
        assert threads

        pool.get("evict-d")
        assert "evict-a" not in pool
        for thread in threads:
            thread.join(timeout=2)
        assert not any(thread.is_alive() for thread in threads)
        assert session_threads("evict-b")

    def test_evicted_session_keeps_memory(self, client, pool):
        """Test a rebuilt engine reloads the session's stored context."""
        client.post("/chat", json={"message": "tell me about invitrace", "session_id": "returning"})
        for i in range(3):
            client.post("/chat", json={"message": "hello", "session_id": f"other-{i}"})
        assert "returning" not in pool

        client.post("/chat", json={"message": "hello", "session_id": "returning"})
        engine = pool["returning"]
        assert engine.context.get_entity_stack()[0].value == "Invitrace"
        assert engine.get_welcome_message() is not None
