"""Tests for the assistant client: API errors, quota cooldown, retry, prompt parts."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from trading_journal.services.assistant import (
    ERROR_RESPONSE,
    QUOTA_FALLBACK_RESPONSES,
    AssistantError,
    AssistantService,
    ConversationContext,
    GenerativeClient,
    QuotaExceededError,
    QuotaGuard,
    datetime_block,
    get_greeting,
    time_ago,
)


def _http_response(status_code, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json = MagicMock(return_value=payload)
    resp.text = text
    return resp


def _client(post):
    mock_instance = AsyncMock()
    mock_instance.post = post
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=None)
    return mock_instance


class TestQuotaGuard:
    def test_available_until_marked(self):
        guard = QuotaGuard(cooldown_hours=24)
        assert guard.is_available() is True
        assert guard.reset_at is None

    def test_cooldown_expires(self):
        guard = QuotaGuard(cooldown_hours=24)
        start = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        guard.mark_exceeded(now=start)

        assert guard.is_available(now=start + timedelta(hours=23)) is False
        assert guard.reset_at == start + timedelta(hours=24)
        assert guard.is_available(now=start + timedelta(hours=24)) is True
        assert guard.exceeded_at is None

    def test_fallback_messages_rotate(self):
        guard = QuotaGuard(cooldown_hours=24)
        messages = [guard.fallback_message() for _ in QUOTA_FALLBACK_RESPONSES]
        assert messages == QUOTA_FALLBACK_RESPONSES
        assert guard.fallback_message() == QUOTA_FALLBACK_RESPONSES[0]


class TestGenerativeClient:
    @pytest.mark.asyncio
    async def test_returns_text_and_usage(self, settings):
        payload = {
            "candidates": [{"content": {"parts": [{"text": "Hi trader"}]}}],
            "usageMetadata": {"totalTokenCount": 12},
        }
        with patch("httpx.AsyncClient") as mock_client:
            post = AsyncMock(return_value=_http_response(200, payload))
            mock_client.return_value = _client(post)
            text, usage = await GenerativeClient(settings).generate("hello")

        assert text == "Hi trader"
        assert usage == {"totalTokenCount": 12}
        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["x-goog-api-key"] == "test-gemini-key"
        assert kwargs["json"]["generationConfig"]["maxOutputTokens"] == 1000
        assert post.call_args.args[0].endswith("/models/gemini-1.5-flash:generateContent")

    @pytest.mark.asyncio
    async def test_image_is_sent_inline(self, settings):
        payload = {"candidates": [{"content": {"parts": [{"text": "{}"}]}}]}
        with patch("httpx.AsyncClient") as mock_client:
            post = AsyncMock(return_value=_http_response(200, payload))
            mock_client.return_value = _client(post)
            await GenerativeClient(settings).generate("extract", image=(b"png-bytes", "image/png"))

        parts = post.call_args.kwargs["json"]["contents"][0]["parts"]
        assert parts[1]["inline_data"]["mime_type"] == "image/png"
        assert parts[1]["inline_data"]["data"] == "cG5nLWJ5dGVz"

    @pytest.mark.asyncio
    async def test_429_is_quota_error(self, settings):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value = _client(AsyncMock(return_value=_http_response(429, text="Too many")))
            with pytest.raises(QuotaExceededError):
                await GenerativeClient(settings).generate("hello")

    @pytest.mark.asyncio
    async def test_resource_exhausted_body_is_quota_error(self, settings):
        body = '{"error": {"status": "RESOURCE_EXHAUSTED"}}'
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value = _client(AsyncMock(return_value=_http_response(400, text=body)))
            with pytest.raises(QuotaExceededError):
                await GenerativeClient(settings).generate("hello")

    @pytest.mark.asyncio
    async def test_server_error_is_assistant_error(self, settings):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value = _client(AsyncMock(return_value=_http_response(500, text="boom")))
            with pytest.raises(AssistantError) as exc:
                await GenerativeClient(settings).generate("hello")
        assert not isinstance(exc.value, QuotaExceededError)

    @pytest.mark.asyncio
    async def test_non_json_body_is_assistant_error(self, settings):
        resp = _http_response(200, text="<html>Bad gateway</html>")
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1")
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value = _client(AsyncMock(return_value=resp))
            with pytest.raises(AssistantError) as exc:
                await GenerativeClient(settings).generate("hello")
        assert not isinstance(exc.value, QuotaExceededError)

    @pytest.mark.asyncio
    async def test_non_object_json_is_assistant_error(self, settings):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value = _client(AsyncMock(return_value=_http_response(200, ["unexpected"])))
            with pytest.raises(AssistantError):
                await GenerativeClient(settings).generate("hello")

    @pytest.mark.asyncio
    async def test_missing_key(self, settings):
        settings.gemini_api_key = ""
        with pytest.raises(AssistantError):
            await GenerativeClient(settings).generate("hello")


class TestAssistantService:
    @pytest.mark.asyncio
    async def test_ok_reply(self, settings, quota_guard, mock_generative_client):
        service = AssistantService(settings, mock_generative_client, quota_guard)
        reply = await service.process_message("hi", {}, "This is the start of our conversation.")
        assert reply.status == "ok"
        assert reply.message == "Hello from the assistant"
        assert reply.usage == {"totalTokenCount": 42}

    @pytest.mark.asyncio
    async def test_retries_transient_error(self, settings, quota_guard, mock_generative_client):
        mock_generative_client.generate.side_effect = [AssistantError("503"), ("Recovered", None)]
        service = AssistantService(settings, mock_generative_client, quota_guard)

        with patch("trading_journal.services.assistant.asyncio.sleep", new=AsyncMock()) as sleep:
            reply = await service.process_message("hi", {}, "")

        assert reply.message == "Recovered"
        assert mock_generative_client.generate.await_count == 2
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, settings, quota_guard, mock_generative_client):
        mock_generative_client.generate.side_effect = AssistantError("503")
        service = AssistantService(settings, mock_generative_client, quota_guard)

        with patch("trading_journal.services.assistant.asyncio.sleep", new=AsyncMock()):
            reply = await service.process_message("hi", {}, "")

        assert reply.status == "error"
        assert reply.message == ERROR_RESPONSE
        assert mock_generative_client.generate.await_count == settings.ai_max_attempts

    @pytest.mark.asyncio
    async def test_quota_error_is_not_retried_and_sets_cooldown(self, settings, quota_guard, mock_generative_client):
        mock_generative_client.generate.side_effect = QuotaExceededError("429")
        service = AssistantService(settings, mock_generative_client, quota_guard)

        with patch("trading_journal.services.assistant.asyncio.sleep", new=AsyncMock()) as sleep:
            reply = await service.process_message("hi", {}, "")

        assert reply.status == "quota_exceeded"
        assert reply.message in QUOTA_FALLBACK_RESPONSES
        assert mock_generative_client.generate.await_count == 1
        sleep.assert_not_awaited()
        assert quota_guard.is_available() is False

    @pytest.mark.asyncio
    async def test_cooldown_skips_api_call(self, settings, quota_guard, mock_generative_client):
        quota_guard.mark_exceeded()
        service = AssistantService(settings, mock_generative_client, quota_guard)

        first = await service.process_message("hi", {}, "")
        second = await service.process_message("hi again", {}, "")

        mock_generative_client.generate.assert_not_awaited()
        assert first.status == "quota_exceeded"
        assert first.message != second.message

    def test_prompt_contains_stats_context_and_search(self, settings, quota_guard, mock_generative_client):
        service = AssistantService(settings, mock_generative_client, quota_guard)
        prompt = service.build_prompt(
            "What's gold doing?",
            {"total_trades": 4, "win_rate": 50.0, "total_profit": 80.0},
            "This is the start of our conversation.",
            search_block="LIVE SEARCH RESULTS:\n\nTitle: Gold",
        )
        assert "You are Sydney" in prompt
        assert "Total Trades: 4" in prompt
        assert "Win Rate: 50.0%" in prompt
        assert "Total P/L: $80.00" in prompt
        assert "LIVE SEARCH RESULTS:" in prompt
        assert prompt.endswith('Current User Message: "What\'s gold doing?"')


class TestConversationContext:
    def test_empty_render(self):
        assert ConversationContext().render() == "This is the start of our conversation."

    def test_render_from_stored_messages(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        # Stored rows come back newest first
        rows = [
            SimpleNamespace(message="Nice trade!", message_type="ai", created_at=now - timedelta(minutes=5)),
            SimpleNamespace(message="I closed gold at TP", message_type="user", created_at=now - timedelta(minutes=6)),
        ]
        text = ConversationContext.from_messages(rows).render("Sydney", now=now)

        assert text.startswith("CONVERSATION HISTORY (Last 2 messages):")
        assert text.index("User (6m ago): I closed gold at TP") < text.index("Sydney (5m ago): Nice trade!")

    def test_window_is_bounded(self):
        context = ConversationContext(max_turns=3)
        for i in range(5):
            context.add("user", f"m{i}")
        assert [t.content for t in context.turns] == ["m2", "m3", "m4"]


def test_time_ago():
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert time_ago(now - timedelta(seconds=30), now) == "just now"
    assert time_ago(now - timedelta(minutes=5), now) == "5m ago"
    assert time_ago(now - timedelta(hours=3), now) == "3h ago"
    assert time_ago(now - timedelta(days=2), now) == "2d ago"
    # Stored rows are naive UTC
    assert time_ago(datetime(2026, 3, 1, 11, 0), now) == "1h ago"


def test_datetime_block_weekend():
    saturday = datetime(2026, 3, 7, 10, 30, tzinfo=timezone.utc)
    block = datetime_block(saturday)
    assert "Markets Closed (Weekend)" in block
    assert "Weekend: Yes" in block
    assert "Season: Winter" in block


def test_datetime_block_market_hours():
    tuesday = datetime(2026, 7, 14, 10, 0, tzinfo=timezone.utc)
    block = datetime_block(tuesday)
    assert "Market status: Markets Open" in block
    assert "Business hours: Yes" in block
    assert "Season: Summer" in block


class TestGreeting:
    def test_time_of_day(self):
        assert get_greeting(now=datetime(2026, 3, 1, 8, 0)).startswith("Good morning!")
        assert get_greeting(now=datetime(2026, 3, 1, 13, 0)).startswith("Good afternoon!")
        assert get_greeting(now=datetime(2026, 3, 1, 23, 0)).startswith("Good evening!")

    def test_stable_within_a_day_and_includes_name(self):
        morning = get_greeting("Alex", now=datetime(2026, 3, 1, 8, 0))
        later = get_greeting("Alex", now=datetime(2026, 3, 1, 9, 30))
        assert morning == later
        assert morning.startswith("Good morning Alex!")
