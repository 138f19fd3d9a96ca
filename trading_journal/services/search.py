"""Decide whether a chat message needs live web results, and fetch them."""

import logging
import re

import httpx

from trading_journal.config import Settings

logger = logging.getLogger(__name__)

SEARCH_MARKER = "LIVE SEARCH RESULTS:"

# Messages that never benefit from a web lookup
SMALL_TALK_PATTERNS = [
    r"(hi|hello|hey|hiya|yo|sup|howdy)( there)?( sydney)?[!.]*",
    r"good (morning|afternoon|evening|night)( sydney)?[!.]*",
    r"(thanks|thank you|thx|ty|cheers)( so much| a lot)?( sydney)?[!.]*",
    r"(ok|okay|k|cool|nice|great|awesome|got it|sounds good|sure|alright)[!.]*",
    r"(bye|goodbye|see you|see ya|later)[!.]*",
    r"how are you( doing)?( today)?[?!.]*",
    r"(yes|no|yep|nope|yeah|nah)[!.]*",
]

SEARCH_KEYWORDS = [
    "current", "now", "today", "latest", "recent", "news",
    "weather", "price", "bitcoin", "crypto", "stock",
    "war", "election", "breaking", "update", "situation",
    "who won", "score", "match", "game", "live",
]


class GreetingSkipTrigger:
    """Search everything except plain greetings and acknowledgements."""

    def __init__(self, patterns: list[str] | None = None):
        self._patterns = [re.compile(p) for p in (patterns or SMALL_TALK_PATTERNS)]

    def should_search(self, message: str) -> bool:
        text = message.strip().lower()
        if not text:
            return False
        return not any(p.fullmatch(text) for p in self._patterns)


class KeywordSearchTrigger:
    """Search only when the message mentions something time-sensitive."""

    def __init__(self, keywords: list[str] | None = None):
        self._keywords = keywords or SEARCH_KEYWORDS

    def should_search(self, message: str) -> bool:
        text = message.lower()
        return any(keyword in text for keyword in self._keywords)


def build_trigger(name: str):
    if name == "keyword":
        return KeywordSearchTrigger()
    if name == "greeting":
        return GreetingSkipTrigger()
    raise ValueError(f"Unknown search trigger: {name}")


class WebSearchClient:
    """Serper web search, formatted as a plain-text prompt block."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def search(self, query: str) -> str:
        """Return the formatted results block, or "" when search is unavailable."""
        if not self.settings.serper_api_key:
            return ""

        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.post(
                    self.settings.serper_url,
                    headers={"X-API-KEY": self.settings.serper_api_key, "Content-Type": "application/json"},
                    json={"q": query, "num": self.settings.search_num_results},
                )
                resp.raise_for_status()
                data = resp.json()
            return self._format(data)
        except Exception as e:
            logger.warning("Web search failed for %r: %s", query, e)
            return ""

    def _format(self, data: dict) -> str:
        blocks = []

        answer = data.get("answerBox") or {}
        answer_text = answer.get("answer") or answer.get("snippet")
        if answer_text:
            blocks.append(f"Direct answer: {answer_text}")

        panel = data.get("knowledgeGraph") or {}
        if panel.get("title"):
            line = f"Knowledge panel: {panel['title']}"
            if panel.get("description"):
                line += f" - {panel['description']}"
            blocks.append(line)

        for result in (data.get("organic") or [])[: self.settings.search_num_results]:
            blocks.append(
                f"Title: {result.get('title', '')}\n"
                f"Snippet: {result.get('snippet', '')}\n"
                f"URL: {result.get('link', '')}"
            )

        if not blocks:
            logger.info("Web search returned no results")
            return ""

        return f"{SEARCH_MARKER}\n\n" + "\n\n".join(blocks)
