"""
Tests for the CEO Desk HTTP API.
"""
import json

import pytest
from fastapi.testclient import TestClient

from ceodesk.engine import DelegationEngine
from ceodesk.errors import ResponderBackendError
from ceodesk.main import create_app
from ceodesk.models import ResponderId
from ceodesk.registry import ResponderRegistry

from conftest import FakeResponder


def chat_body(content: str, **extra) -> dict:
    return {"messages": [{"role": "user", "content": content}], **extra}


def parse_sse(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


@pytest.fixture
def client(registry, settings):
    app = create_app()
    app.state.engine = DelegationEngine(registry, settings=settings)
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    """Test health and info endpoints"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_service_info(self, client):
        data = client.get("/").json()
        assert data["service"] == "ceodesk"
        assert data["registry_stats"]["total_responders"] == len(ResponderId)
        assert data["throttle_stats"]["enabled"] is False
        assert data["classification_rules"][0]["category"] == "research"


class TestChat:
    """Test the CEO chat endpoint"""

    def test_json_reply(self, client, responders):
        response = client.post("/api/chat", json=chat_body("hello"))

        assert response.status_code == 200
        data = response.json()
        assert data["text"] == data["content"] == data["message"] == "CEO answer"
        assert data["request_id"].startswith("req-")
        assert responders[ResponderId.GENERALIST].instructions == ["hello"]

    def test_research_is_delegated(self, client, responders):
        response = client.post("/api/chat", json=chat_body("research the market for electric bikes"))

        assert response.status_code == 200
        assert len(responders[ResponderId.RESEARCHER].calls) == 1

    def test_available_agents_restrict_delegation(self, client, responders):
        response = client.post(
            "/api/chat",
            json=chat_body("research the market for electric bikes", available_agents=["dev"]),
        )

        assert response.status_code == 200
        assert responders[ResponderId.RESEARCHER].calls == []

    def test_stream_flag(self, client, responders):
        responders[ResponderId.GENERALIST].reply = "A" * 200

        response = client.post("/api/chat", json=chat_body("hello", stream=True))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert events[0][0] == "status"
        assert events[-1][0] == "done"
        chunks = [data["content"] for name, data in events if name == "message"]
        assert "".join(chunks) == "A" * 200
        assert events[-1][1]["text"] == "A" * 200

    def test_stream_accept_header(self, client):
        response = client.post(
            "/api/chat",
            json=chat_body("hello"),
            headers={"Accept": "text/event-stream"},
        )
        assert response.headers["content-type"].startswith("text/event-stream")

    def test_empty_messages(self, client):
        response = client.post("/api/chat", json={"messages": []})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_no_user_message(self, client):
        response = client.post("/api/chat", json={"messages": [{"role": "assistant", "content": "hi"}]})
        assert response.status_code == 400
        assert response.json()["message"] == "No user message found"

    def test_malformed_json(self, client):
        response = client.post(
            "/api/chat",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_preflight(self, client):
        response = client.options("/api/chat")
        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]
        assert "access-control-allow-credentials" not in response.headers

    def test_usage_hint(self, client):
        response = client.get("/api/chat")
        assert response.status_code == 200
        assert "POST" in response.json()["message"]

    def test_unbound_responder_is_500(self, settings):
        registry = ResponderRegistry({ResponderId.GENERALIST: FakeResponder()})
        app = create_app()
        app.state.engine = DelegationEngine(registry, settings=settings)

        with TestClient(app) as test_client:
            response = test_client.post("/api/chat", json=chat_body("research electric bikes"))

        assert response.status_code == 500
        assert response.json()["error"] == "internal_error"
        assert "researcher" not in response.json()["message"]


class TestDirectPersonaChat:
    """Test talking to one persona"""

    def test_alias(self, client, responders):
        response = client.post("/api/chat/dev", json=chat_body("build me an app"))

        assert response.status_code == 200
        assert response.json()["text"] == "Development plan"
        call = responders[ResponderId.DEVELOPER].calls[0]
        assert call["instruction"] == "build me an app"
        assert call["system_prompt"].startswith("You are Alex")
        assert responders[ResponderId.DESIGNER].calls == []

    def test_ceo(self, client, responders):
        response = client.post("/api/chat/ceo", json=chat_body("hello"))
        assert response.json()["text"] == "CEO answer"

    def test_unknown_persona(self, client):
        response = client.post("/api/chat/janitor", json=chat_body("hello"))
        assert response.status_code == 404

    def test_persona_failure(self, client, responders):
        responders[ResponderId.MARKETER].error = ResponderBackendError("upstream 502")

        response = client.post("/api/chat/marketing", json=chat_body("promote it"))

        assert response.status_code == 502
        assert "upstream" not in response.json()["message"]

    def test_usage_hint(self, client):
        response = client.get("/api/chat/designer")
        assert response.json()["agent"] == "designer"


class TestAgentToAgent:
    """Test persona-to-persona requests"""

    def test_raw(self, client):
        response = client.post("/api/agent-to-agent", json={
            "target_id": "researcher",
            "prompt": "summarise e-bike trends",
        })

        assert response.status_code == 200
        assert response.json() == {"result": "Research findings", "raw_response": None}

    def test_integrated(self, client):
        response = client.post("/api/agent-to-agent", json={
            "requester_id": "generalist",
            "target_id": "researcher",
            "prompt": "summarise e-bike trends",
            "original_query": "what's happening with e-bikes?",
        })

        data = response.json()
        assert data["result"] == "CEO answer"
        assert data["raw_response"] == "Research findings"

    def test_invalid_target(self, client):
        response = client.post("/api/agent-to-agent", json={"target_id": "janitor", "prompt": "hi"})
        assert response.status_code == 400


class TestPlanPreview:
    """Test the dry-run planning endpoint"""

    def test_preview_does_not_dispatch(self, client, responders):
        response = client.post("/v1/plan", json={"content": "build a landing page with a modern design"})

        data = response.json()
        assert data["classification"]["category"] == "development"
        assert [s["target"] for s in data["plan"]["steps"]] == ["designer", "developer"]
        assert all(not r.calls for r in responders.values())
