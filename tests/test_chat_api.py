"""Tests for the chat endpoint with mocked message storage and agent."""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from app.core.schemas_chat import AgentResponse, MessageResponse
from app.main import app

client = TestClient(app)


def _message(message_id: int, text: str, is_agent: bool) -> MessageResponse:
    return MessageResponse(id=message_id, user_id=7, message=text, is_agent_response=is_agent)


def _agent(reply: str = "Could I offer you a discount instead?"):
    agent = MagicMock()
    agent.process_message = AsyncMock(return_value=AgentResponse(message=reply))
    return agent


def test_chat_round_trip():
    history = [
        _message(1, "Hello", False),
        _message(2, "Hi! How can I help?", True),
        _message(3, "I want a refund", False),
    ]
    stored = [history[-1], _message(4, "Could I offer you a discount instead?", True)]
    agent = _agent()

    with patch("app.api.chat.create_message", side_effect=stored) as create, \
            patch("app.api.chat.list_recent_messages", return_value=history) as list_recent, \
            patch("app.api.chat.get_agent", return_value=agent):
        response = client.post("/v1/chat", json={"message": "I want a refund", "user_id": 7})

    assert response.status_code == 200
    list_recent.assert_called_once_with(7, limit=None)
    body = response.json()
    assert body["user_message"]["message"] == "I want a refund"
    assert body["agent_message"]["message"] == "Could I offer you a discount instead?"
    assert body["agent_message"]["is_agent_response"] is True

    conversation = agent.process_message.await_args.args[0]
    assert [(t.role.value, t.content) for t in conversation] == [
        ("user", "Hello"),
        ("assistant", "Hi! How can I help?"),
        ("user", "I want a refund"),
    ]
    assert create.call_args_list[1].kwargs == {
        "user_id": 7,
        "message": "Could I offer you a discount instead?",
        "is_agent_response": True,
    }


def test_chat_history_cap_comes_from_settings():
    settings = MagicMock(MESSAGE_HISTORY_LIMIT=2)
    stored = [_message(3, "hi", False), _message(4, "Hello!", True)]

    with patch("app.api.chat.get_settings", return_value=settings), \
            patch("app.api.chat.create_message", side_effect=stored), \
            patch("app.api.chat.list_recent_messages", return_value=[stored[0]]) as list_recent, \
            patch("app.api.chat.get_agent", return_value=_agent("Hello!")):
        response = client.post("/v1/chat", json={"message": "hi", "user_id": 7})

    assert response.status_code == 200
    list_recent.assert_called_once_with(7, limit=2)


def test_chat_requires_message_and_user():
    assert client.post("/v1/chat", json={"user_id": 7}).status_code == 422
    assert client.post("/v1/chat", json={"message": "hi"}).status_code == 422
    assert client.post("/v1/chat", json={"message": "", "user_id": 7}).status_code == 422


def test_chat_storage_failure_returns_500():
    with patch("app.api.chat.create_message", side_effect=RuntimeError("db down")):
        response = client.post("/v1/chat", json={"message": "hi", "user_id": 7})

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"


def test_list_user_messages():
    history = [_message(1, "Hello", False), _message(2, "Hi!", True)]
    with patch("app.api.chat.list_recent_messages", return_value=history) as list_recent:
        response = client.get("/v1/users/7/messages", params={"limit": 10})

    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == [1, 2]
    list_recent.assert_called_once_with(7, limit=10)
