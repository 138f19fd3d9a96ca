"""Conversational assistant backed by the Gemini generateContent REST API.

One prompt per turn, built from the persona, the current date/time, the
user's trading stats, the recent conversation and (optionally) live search
results. Quota errors put every AI call on cooldown; other failures are
retried a bounded number of times.
"""

import asyncio
import base64
import itertools
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx

from trading_journal.config import Settings

logger = logging.getLogger(__name__)

QUOTA_FALLBACK_RESPONSES = [
    "I'm experiencing high demand right now. Let me help you with your trading analysis in a moment! 📊",
    "My systems are busy processing other requests. Meanwhile, feel free to add your trades manually! 💪",
    "I'm temporarily unavailable, but your trading data is safe. Try again in a few moments! 🔄",
    "High traffic detected! While I recover, you can still use all other features of the platform! ⚡",
]
ERROR_RESPONSE = "I'm having trouble processing your message right now. Please try again in a moment! 🤖"
EMPTY_RESPONSE = "Sorry, I could not process your request."

QUOTA_MARKERS = ("quota", "resource_exhausted")


class AssistantError(Exception):
    """The generative API call failed or returned an unusable response."""


class QuotaExceededError(AssistantError):
    """The generative API rejected the call for quota or rate-limit reasons."""


class QuotaGuard:
    """Suppresses AI calls for a cooldown period after a quota error."""

    def __init__(self, cooldown_hours: float = 24.0):
        self.cooldown = timedelta(hours=cooldown_hours)
        self.exceeded_at: datetime | None = None
        self._fallbacks = itertools.cycle(QUOTA_FALLBACK_RESPONSES)

    def is_available(self, now: datetime | None = None) -> bool:
        if self.exceeded_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        if now - self.exceeded_at >= self.cooldown:
            self.exceeded_at = None
            return True
        return False

    def mark_exceeded(self, now: datetime | None = None) -> None:
        self.exceeded_at = now or datetime.now(timezone.utc)
        logger.warning("AI quota exceeded; suppressing calls until %s", self.reset_at)

    def fallback_message(self) -> str:
        """Next canned reply while the model is unavailable, rotating across requests."""
        return next(self._fallbacks)

    @property
    def reset_at(self) -> datetime | None:
        if self.exceeded_at is None:
            return None
        return self.exceeded_at + self.cooldown


class GenerativeClient:
    """Thin wrapper over the generateContent endpoint."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def url(self) -> str:
        return f"{self.settings.gemini_base_url}/models/{self.settings.gemini_model}:generateContent"

    async def generate(self, prompt: str, image: tuple[bytes, str] | None = None) -> tuple[str, dict | None]:
        """Send one prompt (optionally with an image) and return (text, usage)."""
        if not self.settings.gemini_api_key:
            raise AssistantError("Generative API key is not configured")

        parts: list[dict] = [{"text": prompt}]
        if image is not None:
            data, mime_type = image
            parts.append({
                "inline_data": {
                    "mime_type": mime_type,
                    "data": base64.b64encode(data).decode("ascii"),
                }
            })

        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": self.settings.ai_temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": self.settings.ai_max_output_tokens,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=60) as client:
                resp = await client.post(
                    self.url,
                    headers={"x-goog-api-key": self.settings.gemini_api_key, "Content-Type": "application/json"},
                    json=body,
                )
        except httpx.HTTPError as e:
            raise AssistantError(f"Generative API request failed: {e}") from e

        if resp.status_code == 429:
            raise QuotaExceededError(f"Generative API rate limited: {resp.text[:200]}")
        if resp.status_code >= 400:
            detail = resp.text
            if any(marker in detail.lower() for marker in QUOTA_MARKERS):
                raise QuotaExceededError(f"Generative API quota exhausted: {detail[:200]}")
            raise AssistantError(f"Generative API returned {resp.status_code}: {detail[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise AssistantError(f"Generative API returned a non-JSON body: {resp.text[:200]}") from e
        if not isinstance(data, dict):
            raise AssistantError("Generative API returned an unexpected payload")

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Generative API returned no text candidate")
            text = EMPTY_RESPONSE
        return text, data.get("usageMetadata")


# --- Prompt building blocks ---


def time_ago(timestamp: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    minutes = int((now - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


@dataclass
class ConversationTurn:
    role: str  # user, assistant
    content: str
    timestamp: datetime


@dataclass
class ConversationContext:
    """Bounded window of recent turns for one user."""

    max_turns: int = 20
    turns: list[ConversationTurn] = field(default_factory=list)

    def add(self, role: str, content: str, timestamp: datetime | None = None) -> None:
        self.turns.append(ConversationTurn(role, content, timestamp or datetime.now(timezone.utc)))
        if len(self.turns) > self.max_turns:
            del self.turns[: len(self.turns) - self.max_turns]

    @classmethod
    def from_messages(cls, messages, max_turns: int = 20) -> "ConversationContext":
        """Build from stored chat rows given newest first."""
        context = cls(max_turns=max_turns)
        for msg in reversed(list(messages)[:max_turns]):
            role = "user" if msg.message_type == "user" else "assistant"
            context.add(role, msg.message, msg.created_at)
        return context

    def render(self, assistant_name: str = "Sydney", now: datetime | None = None) -> str:
        if not self.turns:
            return "This is the start of our conversation."

        lines = "\n\n".join(
            f"{'User' if t.role == 'user' else assistant_name} ({time_ago(t.timestamp, now)}): {t.content}"
            for t in self.turns
        )
        return (
            f"CONVERSATION HISTORY (Last {len(self.turns)} messages):\n"
            f"{lines}\n\n"
            "Remember this context and refer to it naturally in your responses."
        )


def _season(now: datetime) -> str:
    month, day = now.month, now.day
    if (month == 12 and day >= 21) or month in (1, 2) or (month == 3 and day < 20):
        return "Winter"
    if (month == 3 and day >= 20) or month in (4, 5) or (month == 6 and day < 21):
        return "Spring"
    if (month == 6 and day >= 21) or month in (7, 8) or (month == 9 and day < 23):
        return "Summer"
    return "Autumn"


def _market_status(now: datetime) -> str:
    if now.weekday() >= 5:
        return "Markets Closed (Weekend)"
    hour = now.hour
    if 9 <= hour < 16:
        return "Markets Open"
    if 16 <= hour < 20:
        return "After Hours Trading"
    if 4 <= hour < 9:
        return "Pre-Market Trading"
    return "Markets Closed"


def datetime_block(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return (
        "CURRENT DATE & TIME INFORMATION:\n"
        f"Today is: {now.strftime('%A, %B')} {now.day}, {now.year}\n"
        f"Current time: {now.strftime('%I:%M %p')} ({now.tzname() or 'UTC'})\n"
        f"Market status: {_market_status(now)}\n"
        f"Season: {_season(now)}\n"
        f"Business hours: {'Yes' if 9 <= now.hour <= 17 else 'No'}\n"
        f"Weekend: {'Yes' if now.weekday() >= 5 else 'No'}"
    )


def get_greeting(user_name: str | None = None, now: datetime | None = None) -> str:
    """Time-of-day greeting, stable for a whole day."""
    now = now or datetime.now(timezone.utc)
    if 5 <= now.hour < 12:
        time_greeting = "Good morning"
    elif 12 <= now.hour < 17:
        time_greeting = "Good afternoon"
    else:
        time_greeting = "Good evening"

    name = f" {user_name}" if user_name else ""
    greetings = [
        f"{time_greeting}{name}! How's your trading going today?",
        f"{time_greeting}{name}! Ready to analyze some trades?",
        f"{time_greeting}{name}! What's on your trading radar today?",
        f"{time_greeting}{name}! Any exciting market moves catching your eye?",
        f"{time_greeting}{name}! I'm here to help with your trading analysis!",
    ]
    day_of_year = now.timetuple().tm_yday
    return greetings[day_of_year % len(greetings)]


@dataclass
class AssistantReply:
    message: str
    usage: dict | None = None
    status: str = "ok"  # ok, quota_exceeded, error


class AssistantService:
    """Builds the turn prompt and calls the generative API."""

    def __init__(self, settings: Settings, client: GenerativeClient, quota_guard: QuotaGuard):
        self.settings = settings
        self.client = client
        self.quota_guard = quota_guard

    def build_prompt(
        self,
        message: str,
        stats: dict,
        conversation: str,
        search_block: str = "",
        now: datetime | None = None,
    ) -> str:
        name = self.settings.assistant_name
        sections = [
            f"You are {name}, a friendly and conversational AI assistant specializing in trading "
            "analytics. Be warm, concise and helpful about trading, markets or general conversation. "
            "Keep responses to 2-3 sentences unless more detail is requested.",
            datetime_block(now),
            "USER'S TRADING CONTEXT (use when relevant):\n"
            f"- Total Trades: {stats.get('total_trades', 0)}\n"
            f"- Win Rate: {stats.get('win_rate', 0.0):.1f}%\n"
            f"- Total P/L: ${stats.get('total_profit', 0.0):.2f}",
            conversation,
        ]
        if search_block:
            sections.append(
                f"{search_block}\n\nUse the search results above to give an accurate, up-to-date "
                "answer and mention when you're using current information."
            )
        sections.append(f'Current User Message: "{message}"')
        return "\n\n".join(sections)

    async def process_message(
        self,
        message: str,
        stats: dict,
        conversation: str,
        search_block: str = "",
        now: datetime | None = None,
    ) -> AssistantReply:
        if not self.quota_guard.is_available():
            return AssistantReply(self.quota_guard.fallback_message(), status="quota_exceeded")

        prompt = self.build_prompt(message, stats, conversation, search_block, now)
        try:
            text, usage = await self._generate_with_retry(prompt)
        except QuotaExceededError:
            self.quota_guard.mark_exceeded()
            return AssistantReply(self.quota_guard.fallback_message(), status="quota_exceeded")
        except AssistantError as e:
            logger.error("Assistant turn failed: %s", e)
            return AssistantReply(ERROR_RESPONSE, status="error")

        return AssistantReply(text, usage=usage)

    async def _generate_with_retry(self, prompt: str) -> tuple[str, dict | None]:
        attempts = max(1, self.settings.ai_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await self.client.generate(prompt)
            except QuotaExceededError:
                raise
            except AssistantError as e:
                if attempt == attempts:
                    raise
                delay = self.settings.ai_retry_base_delay * 2 ** (attempt - 1) + random.uniform(0, 1)
                logger.warning("Generation attempt %d/%d failed (%s), retrying in %.1fs", attempt, attempts, e, delay)
                await asyncio.sleep(delay)
        raise AssistantError("Max retries exceeded")
