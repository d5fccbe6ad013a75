"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from vid2chat.api import create_app
from vid2chat.errors import CollaboratorFailure
from vid2chat.rate_limiter import RateLimiter
from vid2chat.service import Vid2ChatService

from conftest import FakeSearch, FakeTranscripts, ScriptedCompletion

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.fixture
def completion():
    return ScriptedCompletion()


@pytest.fixture
def service(settings, two_chunk_items, completion):
    return Vid2ChatService(
        settings,
        transcripts=FakeTranscripts(two_chunk_items),
        completion=completion,
        search=FakeSearch(),
        limiter=RateLimiter(limit=2, window_seconds=3600),
    )


@pytest.fixture
def client(service):
    with TestClient(create_app(service=service)) as test_client:
        yield test_client


class TestSessionRoutes:
    def test_root_and_health(self, client):
        assert client.get("/").json() == {"message": "API is running"}
        health = client.get("/health").json()
        assert health["status"] == "ok"
        assert health["sessions"] == 0

    def test_session_round_trip(self, client, completion):
        completion.replies = ["Answer with [3s] timestamp."]

        started = client.post("/api/start-session", json={"videoUrl": VIDEO_URL})
        assert started.status_code == 200
        body = started.json()
        assert body["totalChunks"] == 2
        assert body["videoUrl"] == VIDEO_URL

        reply = client.post(
            "/api/chat", json={"sessionId": body["sessionId"], "message": "What happens?"}
        )
        assert reply.status_code == 200
        assert reply.json() == {
            "reply": "Answer with [3s] timestamp.",
            "currentChunk": 1,
            "totalChunks": 2,
        }

        reset = client.post("/api/reset-session", json={"sessionId": body["sessionId"]})
        assert reset.json() == {"message": "Session reset successfully"}

        again = client.post("/api/reset-session", json={"sessionId": body["sessionId"]})
        assert again.status_code == 404
        assert again.json()["error"]["code"] == "NOT_FOUND"

    def test_chat_unknown_session(self, client):
        response = client.post("/api/chat", json={"sessionId": "nope", "message": "hi"})
        assert response.status_code == 404

    def test_missing_field_is_bad_request(self, client):
        response = client.post("/api/start-session", json={})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    def test_collaborator_failure_is_bad_gateway(self, client, completion):
        completion.replies = [CollaboratorFailure("openai", "upstream down")]
        session_id = client.post("/api/start-session", json={"videoUrl": VIDEO_URL}).json()["sessionId"]

        response = client.post("/api/chat", json={"sessionId": session_id, "message": "hi"})

        assert response.status_code == 502
        assert response.json()["error"]["details"]["service"] == "openai"


class TestRateLimitedRoutes:
    def test_search_then_rate_limited(self, client):
        first = client.post("/api/search-videos", json={"query": "cats"})
        assert first.status_code == 200
        assert first.json()["rateLimit"]["remaining"] == 1
        assert len(first.json()["videos"]) == 10

        client.post("/api/search-videos", json={"query": "cats"})
        blocked = client.post("/api/search-videos", json={"query": "cats"})

        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) >= 1
        assert blocked.json()["error"]["details"]["retryAfterSeconds"] >= 1

    def test_recommend_playlist(self, client, completion):
        completion.replies = ['["a", "b"]', "Watch a, then b."]

        response = client.post("/api/recommend-playlist", json={"topic": "chess openings"})

        assert response.status_code == 200
        body = response.json()
        assert body["searchTerms"] == ["a", "b"]
        assert [v["searchTerm"] for v in body["videos"]] == ["a", "a", "b", "b"]
        assert body["explanation"] == "Watch a, then b."
        assert set(body["rateLimit"]) == {"remaining", "limit", "resetAt"}
