"""Market snapshot for the dashboard: crypto prices, gold, fear & greed, news.

Every provider call degrades to a fixed fallback value on failure; results
carry `is_live` so the caller can tell which one it got.
"""

import asyncio
import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone

import httpx
import yfinance as yf

from trading_journal.config import Settings

logger = logging.getLogger(__name__)

COINGECKO_URL = (
    "https://api.coingecko.com/api/v3/simple/price"
    "?ids=bitcoin,ethereum&vs_currencies=usd&include_24hr_change=true"
)
FEAR_GREED_URL = "https://api.alternative.me/fng/"
NEWSAPI_URL = "https://newsapi.org/v2/everything"
NEWSAPI_QUERY = "bitcoin OR ethereum OR gold OR trading OR cryptocurrency"
GOOGLE_NEWS_RSS_URL = (
    "https://news.google.com/rss/search?"
    "q={query}+when:1d&hl=en-US&gl=US&ceid=US:en"
)
NEWS_RSS_QUERY = "bitcoin OR gold OR markets"
GOLD_TICKER = "GC=F"
NEWS_LIMIT = 10

FALLBACK_CRYPTO = {
    "btc": {"symbol": "BTC/USD", "price": 43250.00, "change_24h": 1250.00, "change_percent_24h": 2.98},
    "eth": {"symbol": "ETH/USD", "price": 2650.00, "change_24h": -45.00, "change_percent_24h": -1.67},
}
FALLBACK_GOLD = {"price": 2050.00, "change_24h": 15.50, "change_percent_24h": 0.76}
FALLBACK_FEAR_GREED = {"value": 65, "classification": "Greed"}

# (title, summary, source, hours ago)
FALLBACK_NEWS = [
    (
        "Bitcoin Reaches New Monthly High Amid Institutional Adoption",
        "Bitcoin continues its upward momentum as major institutions increase their "
        "cryptocurrency holdings, driving market confidence.",
        "Crypto News Today",
        0,
    ),
    (
        "Gold Prices Stabilize as Safe Haven Demand Increases",
        "Gold maintains its position as a preferred safe haven asset during periods of "
        "market uncertainty and inflation concerns.",
        "Financial Times",
        1,
    ),
    (
        "Ethereum Network Upgrade Shows Promising Results",
        "Latest Ethereum improvements focus on scalability and reduced transaction fees, "
        "attracting more developers to the platform.",
        "Blockchain Today",
        2,
    ),
    (
        "Trading Volume Surges Across Major Cryptocurrency Exchanges",
        "Increased retail and institutional trading activity drives record volumes across "
        "leading crypto trading platforms.",
        "Market Watch",
        3,
    ),
    (
        "Central Banks Consider Digital Currency Implementations",
        "Multiple central banks worldwide are accelerating their digital currency research "
        "and pilot programs.",
        "Reuters",
        4,
    ),
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def fallback_news() -> list[dict]:
    now = datetime.now(timezone.utc)
    return [
        {
            "title": title,
            "summary": summary,
            "url": "#",
            "published_at": (now - timedelta(hours=hours)).isoformat(),
            "source": source,
            "image_url": None,
        }
        for title, summary, source, hours in FALLBACK_NEWS
    ]


def _is_removed(value: str | None) -> bool:
    return not value or value == "[Removed]"


class MarketDataService:
    """Fetches public market data with graceful fallbacks."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def get_crypto_prices(self) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.settings.market_http_timeout) as client:
                resp = await client.get(COINGECKO_URL)
                resp.raise_for_status()
                data = resp.json()

            return {
                "btc": self._crypto_quote("BTC/USD", data["bitcoin"]),
                "eth": self._crypto_quote("ETH/USD", data["ethereum"]),
                "is_live": True,
            }
        except Exception as e:
            logger.warning("Crypto price fetch failed, using fallback: %s", e)
            return {**{k: dict(v) for k, v in FALLBACK_CRYPTO.items()}, "is_live": False}

    @staticmethod
    def _crypto_quote(symbol: str, coin: dict) -> dict:
        price = float(coin["usd"])
        pct = float(coin.get("usd_24h_change") or 0.0)
        # Absolute move reconstructed from the percentage against yesterday's price
        change = price - price / (1 + pct / 100) if pct > -100 else 0.0
        return {
            "symbol": symbol,
            "price": price,
            "change_24h": round(change, 2),
            "change_percent_24h": round(pct, 2),
        }

    async def get_gold_price(self) -> dict:
        try:
            df = await asyncio.to_thread(self._fetch_gold_history)
            closes = df["Close"].dropna()
            if len(closes) < 2:
                raise ValueError(f"insufficient gold history ({len(closes)} closes)")

            price = float(closes.iloc[-1])
            prev = float(closes.iloc[-2])
            change = price - prev
            return {
                "price": round(price, 2),
                "change_24h": round(change, 2),
                "change_percent_24h": round(change / prev * 100, 2) if prev else 0.0,
                "is_live": True,
            }
        except Exception as e:
            logger.warning("Gold price fetch failed, using fallback: %s", e)
            return {**FALLBACK_GOLD, "is_live": False}

    def _fetch_gold_history(self):
        return yf.Ticker(GOLD_TICKER).history(period="5d", interval="1d")

    async def get_fear_greed_index(self) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.settings.market_http_timeout) as client:
                resp = await client.get(FEAR_GREED_URL)
                resp.raise_for_status()
                latest = resp.json()["data"][0]

            return {
                "value": int(latest["value"]),
                "classification": latest["value_classification"],
                "timestamp": str(latest.get("timestamp", "")),
                "is_live": True,
            }
        except Exception as e:
            logger.warning("Fear & Greed fetch failed, using fallback: %s", e)
            return {**FALLBACK_FEAR_GREED, "timestamp": _now_iso(), "is_live": False}

    async def get_financial_news(self) -> dict:
        """NewsAPI when a key is set, then Google News RSS, then the fixed items."""
        providers = [("RSS", lambda: self._fetch_rss(NEWS_RSS_QUERY))]
        if self.settings.newsapi_key:
            providers.insert(0, ("NewsAPI", self._fetch_newsapi))

        for name, fetch in providers:
            try:
                items = await fetch()
            except Exception as e:
                logger.warning("%s news fetch failed: %s", name, e)
                continue
            if items:
                return {"items": items[:NEWS_LIMIT], "is_live": True}
            logger.warning("%s returned no usable articles", name)

        logger.warning("All news providers failed, using fallback")
        return {"items": fallback_news(), "is_live": False}

    async def _fetch_newsapi(self) -> list[dict]:
        params = {
            "q": NEWSAPI_QUERY,
            "sortBy": "publishedAt",
            "pageSize": NEWS_LIMIT,
            "language": "en",
            "apiKey": self.settings.newsapi_key,
        }
        async with httpx.AsyncClient(timeout=self.settings.market_http_timeout) as client:
            resp = await client.get(NEWSAPI_URL, params=params)
            resp.raise_for_status()
            articles = resp.json().get("articles", [])

        items = []
        for article in articles:
            title = article.get("title")
            summary = article.get("description") or title
            if _is_removed(title) or _is_removed(summary):
                continue
            items.append({
                "title": title,
                "summary": summary,
                "url": article.get("url") or "#",
                "published_at": article.get("publishedAt") or "",
                "source": (article.get("source") or {}).get("name") or "NewsAPI",
                "image_url": article.get("urlToImage"),
            })
        return items

    async def _fetch_rss(self, query: str) -> list[dict]:
        """Fetch and parse a Google News RSS feed for a search query."""
        url = GOOGLE_NEWS_RSS_URL.format(query=query)

        async with httpx.AsyncClient(timeout=self.settings.market_http_timeout) as client:
            resp = await client.get(url)
            resp.raise_for_status()

        items = []
        root = ET.fromstring(resp.text)
        for item in root.iter("item"):
            title_el = item.find("title")
            if title_el is None or not title_el.text:
                continue
            link_el = item.find("link")
            pub_el = item.find("pubDate")
            source_el = item.find("source")
            title = title_el.text.strip()
            items.append({
                "title": title,
                "summary": title,
                "url": link_el.text.strip() if link_el is not None and link_el.text else "#",
                "published_at": pub_el.text.strip() if pub_el is not None and pub_el.text else "",
                "source": source_el.text.strip() if source_el is not None and source_el.text else "Google News",
                "image_url": None,
            })
        return items

    async def get_all_market_data(self) -> dict:
        crypto, gold, fear_greed, news = await asyncio.gather(
            self.get_crypto_prices(),
            self.get_gold_price(),
            self.get_fear_greed_index(),
            self.get_financial_news(),
        )
        return {"crypto": crypto, "gold": gold, "fear_greed": fear_greed, "news": news}
