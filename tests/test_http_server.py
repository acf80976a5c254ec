"""Tests for the HTTP server.

These tests require the optional [http] dependencies.
Install with: pip install "coach-gateway[http]"
"""

import json

import httpx
import pytest

# Skip all tests in this module if HTTP deps not installed
fastapi = pytest.importorskip(
    "fastapi",
    reason="HTTP dependencies not installed. Install with: pip install 'coach-gateway[http]'",
)
from fastapi.testclient import TestClient

from tests.transcripts import (
    chat_body,
    chat_text,
    json_reply,
    responses_body,
    responses_text,
    stream_reply,
)

BODY = {"system_prompt": "You are a coach.", "user_content": "Evaluate e4."}


@pytest.fixture
def client_for(make_gateway):
    from coach_gateway.http_server import create_app

    def _client(stub):
        return TestClient(create_app(make_gateway(stub)))

    return _client


def _lines(response):
    return [json.loads(line) for line in response.text.splitlines() if line]


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    def test_health_returns_ok(self, stub, client_for):
        response = client_for(stub).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "coach-gateway"}


class TestOneShotEndpoints:
    """Tests for /v1/coach/reply and /v1/taunt."""

    def test_coach_reply(self, stub, client_for):
        stub.local(json_reply(responses_body("Solid opening move.", reasoning="Central pawn.")))

        response = client_for(stub).post("/v1/coach/reply", json=BODY)

        assert response.status_code == 200
        assert response.json() == {
            "answer_text": "Solid opening move.",
            "reasoning_text": "Central pawn.",
            "provider_used": "local",
        }

    def test_taunt_with_remote_hint(self, stub, client_for):
        stub.openrouter(json_reply(chat_body("Is that all you've got?")))

        response = client_for(stub).post("/v1/taunt", json={**BODY, "llm_source": "remote"})

        assert response.status_code == 200
        assert response.json()["provider_used"] == "openrouter"
        assert len(stub.calls_to("/responses")) == 0

    def test_provider_failure_returns_502(self, stub, client_for):
        stub.local(httpx.Response(401, text="bad key"))

        response = client_for(stub).post("/v1/coach/reply", json=BODY)

        assert response.status_code == 502
        assert response.json()["detail"].startswith("LLM request failed:")

    def test_missing_fields_rejected(self, stub, client_for):
        response = client_for(stub).post("/v1/coach/reply", json={"system_prompt": "x"})

        assert response.status_code == 422


class TestStreamingEndpoints:
    """Tests for the NDJSON streaming endpoints."""

    def test_coach_stream(self, stub, client_for):
        stub.local(stream_reply(responses_text("Good. "), responses_text("Keep going!")))

        response = client_for(stub).post("/v1/coach/reply/stream", json=BODY)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert _lines(response) == [
            {"type": "typing", "state": "start"},
            {"type": "sentence", "text": "Good."},
            {"type": "sentence", "text": " Keep going!"},
            {"type": "typing", "state": "end"},
        ]

    def test_taunt_stream_falls_back(self, stub, client_for):
        stub.local(httpx.ConnectError("Connection refused"))
        stub.openrouter(stream_reply(chat_text("Too slow.")))

        response = client_for(stub).post("/v1/taunt/stream", json=BODY)

        assert _lines(response) == [
            {"type": "typing", "state": "start"},
            {"type": "sentence", "text": "Too slow."},
            {"type": "typing", "state": "end"},
        ]

    def test_stream_error_is_reported_in_band(self, stub, client_for):
        stub.local(httpx.ConnectError("Connection refused"))
        stub.openrouter(httpx.Response(503))

        response = client_for(stub).post("/v1/coach/reply/stream", json=BODY)
        lines = _lines(response)

        assert response.status_code == 200
        assert lines[0]["type"] == "error"
        assert lines[0]["message"].startswith("LLM streaming request failed:")
        assert lines[-1] == {"type": "typing", "state": "end"}

    def test_lan_port_as_string(self, stub, client_for):
        stub.local(stream_reply(responses_text("From the LAN box.")))

        client_for(stub).post(
            "/v1/coach/reply/stream",
            json={**BODY, "llm_source": "lan", "lan_host": "192.168.1.2", "lan_port": "1234"},
        )

        assert str(stub.requests[0].url) == "http://192.168.1.2:1234/v1/responses"
