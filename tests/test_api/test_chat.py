from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from trading_journal.dependencies import get_generative_client
from trading_journal.services.assistant import ERROR_RESPONSE, QUOTA_FALLBACK_RESPONSES, QuotaExceededError

HEADERS = {"X-API-Key": "test_secret", "X-User-Id": "user-1"}


@pytest.fixture
def with_mock_model(test_app, mock_generative_client):
    test_app.dependency_overrides[get_generative_client] = lambda: mock_generative_client
    return mock_generative_client


@pytest.mark.asyncio
async def test_chat_turn_is_saved(client, with_mock_model):
    response = await client.post("/api/v1/chat", json={"message": "hi"}, headers=HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Hello from the assistant"
    assert data["usage"] == {"totalTokenCount": 42}
    assert data["status"] == "ok"
    assert data["search_performed"] is False

    response = await client.get("/api/v1/chat/history", headers=HEADERS)
    history = response.json()
    assert len(history) == 2
    assert {m["message_type"] for m in history} == {"user", "ai"}
    ai = next(m for m in history if m["message_type"] == "ai")
    assert ai["message"] == "Hello from the assistant"


@pytest.mark.asyncio
async def test_chat_with_search(client, with_mock_model):
    with patch(
        "trading_journal.services.search.WebSearchClient.search",
        new=AsyncMock(return_value="LIVE SEARCH RESULTS:\n\nTitle: Gold hits record"),
    ):
        response = await client.post("/api/v1/chat", json={"message": "What is the gold price today?"}, headers=HEADERS)

    data = response.json()
    assert data["search_performed"] is True
    assert data["live_data_used"] is True
    prompt = with_mock_model.generate.await_args.args[0]
    assert "Gold hits record" in prompt


@pytest.mark.asyncio
async def test_chat_quota_fallback(client, with_mock_model, quota_guard):
    with_mock_model.generate.side_effect = QuotaExceededError("429")
    response = await client.post("/api/v1/chat", json={"message": "hi"}, headers=HEADERS)

    data = response.json()
    assert response.status_code == 200
    assert data["status"] == "quota_exceeded"
    assert data["message"] in QUOTA_FALLBACK_RESPONSES
    assert quota_guard.is_available() is False


@pytest.mark.asyncio
async def test_history_is_per_user(client, with_mock_model):
    await client.post("/api/v1/chat", json={"message": "hi"}, headers=HEADERS)
    response = await client.get(
        "/api/v1/chat/history", headers={"X-API-Key": "test_secret", "X-User-Id": "user-2"}
    )
    assert response.json() == []


@pytest.mark.asyncio
async def test_history_limit_bounds(client):
    response = await client.get("/api/v1/chat/history?limit=0", headers=HEADERS)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_empty_message_rejected(client):
    response = await client.post("/api/v1/chat", json={"message": ""}, headers=HEADERS)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_greeting(client):
    response = await client.get("/api/v1/chat/greeting?name=Sam", headers={"X-API-Key": "test_secret"})
    assert response.status_code == 200
    greeting = response.json()["greeting"]
    assert greeting.startswith("Good ")
    assert " Sam!" in greeting


@pytest.mark.asyncio
async def test_quota_fallbacks_rotate_across_requests(client, with_mock_model):
    with_mock_model.generate.side_effect = QuotaExceededError("429")

    replies = []
    for _ in QUOTA_FALLBACK_RESPONSES:
        response = await client.post("/api/v1/chat", json={"message": "hi"}, headers=HEADERS)
        replies.append(response.json()["message"])

    assert replies == QUOTA_FALLBACK_RESPONSES


@pytest.mark.asyncio
async def test_non_json_model_reply_is_friendly_error(client):
    resp = MagicMock()
    resp.status_code = 200
    resp.text = "<html>502 Bad Gateway</html>"
    resp.json = MagicMock(side_effect=ValueError("Expecting value: line 1 column 1"))

    with patch("httpx.AsyncClient") as MockClient, \
            patch("trading_journal.services.assistant.asyncio.sleep", new=AsyncMock()):
        instance = AsyncMock()
        instance.post = AsyncMock(return_value=resp)
        MockClient.return_value.__aenter__ = AsyncMock(return_value=instance)
        MockClient.return_value.__aexit__ = AsyncMock(return_value=False)

        response = await client.post("/api/v1/chat", json={"message": "hi"}, headers=HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "error"
    assert data["message"] == ERROR_RESPONSE
