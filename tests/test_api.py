"""Tests for the HTTP surface."""

import json

import pytest
from fastapi.testclient import TestClient

from agentdesk.core import LLMException
from agentdesk.main import create_app
from agentdesk.tickets.application import TicketService
from tests.conftest import FakeRetriever, FlakyMemoryRepository, ScriptedGenerationClient, build_orchestrator

LOGIN_TICKET = json.dumps({
    "action": "create_ticket",
    "subject": "Login issue",
    "description": "User cannot log in",
    "status": "open",
})


@pytest.fixture
def app(test_settings):
    return create_app(test_settings)


def wire(app, llm, ticket_repository, memory=None):
    memory = memory or FlakyMemoryRepository()
    app.state.orchestrator = build_orchestrator(llm, FakeRetriever(["open 9-6"]), memory, ticket_repository)
    app.state.ticket_service = TicketService(ticket_repository)
    return memory


class TestChatEndpoint:
    def test_missing_chat_input_is_rejected(self, app, ticket_repository):
        llm = ScriptedGenerationClient()
        memory = wire(app, llm, ticket_repository)
        client = TestClient(app)

        for body in ({}, {"userId": "u1"}, {"chatInput": ""}, {"chatInput": None}):
            response = client.post("/api/chat", json=body)
            assert response.status_code == 400
            assert response.json() == {"error": "Message is required"}

        bodiless = [
            client.post("/api/chat"),
            client.post("/api/chat", content="hello", headers={"Content-Type": "text/plain"}),
            client.post("/api/chat", content="{not json", headers={"Content-Type": "application/json"}),
            client.post("/api/chat", json=["hello"]),
        ]
        for response in bodiless:
            assert response.status_code == 400
            assert response.json() == {"error": "Message is required"}

        assert llm.calls == []
        assert memory.append_attempts == 0

    def test_conversational_reply(self, app, ticket_repository):
        llm = ScriptedGenerationClient(knowledge="We are open Mon-Fri 9-6", tone="Sure! Mon-Fri 9-6")
        wire(app, llm, ticket_repository)

        response = TestClient(app).post("/api/chat", json={"chatInput": "What are your business hours?"})

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"userId", "response"}
        assert body["response"] == "Sure! Mon-Fri 9-6"
        assert body["userId"]
        assert response.headers["X-Correlation-ID"]

    def test_ticket_reply(self, app, ticket_repository):
        llm = ScriptedGenerationClient(
            classification='{"category": "customer-service"}',
            customer_service=LOGIN_TICKET,
        )
        wire(app, llm, ticket_repository)

        response = TestClient(app).post(
            "/api/chat",
            json={"userId": "u1", "chatInput": "create a ticket, I can't log in"}
        )

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"userId", "ticketResponse"}
        assert body["userId"] == "u1"
        assert body["ticketResponse"].startswith('Ticket created successfully with subject: "Login issue" at ')

    def test_pipeline_failure_is_generic_500(self, app, ticket_repository):
        llm = ScriptedGenerationClient(classification=LLMException("provider said: secret stack"))
        wire(app, llm, ticket_repository)

        response = TestClient(app).post("/api/chat", json={"chatInput": "hello"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "The request could not be processed."
        assert "secret" not in response.text
        assert body["correlation_id"] == response.headers["X-Correlation-ID"]

    def test_unexpected_error_is_generic_500(self, app, ticket_repository):
        class ExplodingMemory(FlakyMemoryRepository):
            async def get_conversation(self, session_id, limit=None):
                raise RuntimeError("driver crashed")

        llm = ScriptedGenerationClient()
        wire(app, llm, ticket_repository, memory=ExplodingMemory())

        response = TestClient(app, raise_server_exceptions=False).post(
            "/api/chat", json={"userId": "u1", "chatInput": "hello"}
        )

        assert response.status_code == 500
        assert response.json()["error"] == "The request could not be processed."
        assert "driver crashed" not in response.text

    def test_unavailable_without_orchestrator(self, app):
        response = TestClient(app).post("/api/chat", json={"chatInput": "hello"})
        assert response.status_code == 503


class TestHistoryEndpoints:
    def test_history_and_clear(self, app, ticket_repository):
        wire(app, ScriptedGenerationClient(), ticket_repository)
        client = TestClient(app)
        user_id = client.post("/api/chat", json={"chatInput": "hello"}).json()["userId"]

        history = client.get(f"/api/chat/{user_id}/history")
        assert history.status_code == 200
        assert history.json()["userId"] == user_id
        assert [m["role"] for m in history.json()["messages"]] == ["user", "assistant"]

        assert client.delete(f"/api/chat/{user_id}").status_code == 204
        assert client.get(f"/api/chat/{user_id}/history").json()["messages"] == []


class TestTicketEndpoints:
    def test_list_get_and_update(self, app, ticket_repository):
        llm = ScriptedGenerationClient(
            classification='{"category": "customer-service"}',
            customer_service=LOGIN_TICKET,
        )
        wire(app, llm, ticket_repository)
        client = TestClient(app)
        client.post("/api/chat", json={"chatInput": "create a ticket"})

        listing = client.get("/api/tickets").json()
        assert listing["count"] == 1
        ticket_id = listing["tickets"][0]["id"]

        assert client.get(f"/api/tickets/{ticket_id}").json()["subject"] == "Login issue"

        updated = client.patch(f"/api/tickets/{ticket_id}", json={"status": "resolved"})
        assert updated.status_code == 200
        assert updated.json()["status"] == "resolved"

    def test_missing_ticket_is_404(self, app, ticket_repository):
        wire(app, ScriptedGenerationClient(), ticket_repository)
        response = TestClient(app).get("/api/tickets/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Ticket with id 'nope' not found"}

    def test_invalid_status_is_422(self, app, ticket_repository):
        wire(app, ScriptedGenerationClient(), ticket_repository)
        response = TestClient(app).patch("/api/tickets/any", json={"status": "escalated"})
        assert response.status_code == 422


class TestApplicationLifespan:
    def test_mock_provider_end_to_end(self, test_settings):
        with TestClient(create_app(test_settings)) as client:
            health = client.get("/health").json()
            assert health["checks"]["chat"] == "available"

            reply = client.post("/api/chat", json={"chatInput": "What are your business hours?"})
            assert reply.status_code == 200
            assert "response" in reply.json()

            ticket = client.post("/api/chat", json={"chatInput": "create a ticket, I can't log in"})
            assert ticket.status_code == 200
            assert "ticketResponse" in ticket.json()

            assert client.get("/api/tickets").json()["count"] == 1

    def test_root(self, app):
        assert TestClient(app).get("/").json()["service"] == "AgentDesk"
