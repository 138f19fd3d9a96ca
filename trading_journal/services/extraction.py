"""Trade extraction from broker screenshots.

The model is asked for a JSON object; whatever comes back is located,
parsed and normalized field by field. Extraction is never retried.
"""

import json
import logging
import re
from datetime import datetime, timezone

from trading_journal.models.schemas import ExtractedTradeData
from trading_journal.services.assistant import GenerativeClient, QuotaGuard, QuotaExceededError

logger = logging.getLogger(__name__)

FOREX_PROMPT = """Analyze this trading table screenshot and extract ALL visible data. This is a trading history table with the following structure:

TABLE FORMAT (left to right columns):
1. Symbol (e.g., XAU/USD, EUR/USD)
2. Type (Buy/Sell with colored indicators)
3. Volume/Lot size (decimal numbers like 0.01, 0.1)
4. Open Price (entry price)
5. Close Price (exit price)
6. T/P (Take Profit) - always extract this number
7. S/L (Stop Loss) - always extract this number
8. Position ID or status
9. Open Time (format: "Jun 16, 8:50:55 PM")
10. Close Time (format: "Jun 16, 11:41:00 PM")
11. Additional columns (Swap, Reason, P/L)

EXTRACTION RULES:
- T/P and S/L are ALWAYS in columns 6 and 7, extract these numbers even if they look like prices
- Numbers may have commas (3,401.188), extract as numbers without commas
- Look for +/- in the P/L column for profit/loss values
- The table has NO headers, identify columns by position from left to right

Return ONLY this JSON structure:

{
  "symbol": "extracted symbol",
  "type": "Buy or Sell",
  "volumeLot": extracted_lot_size_number,
  "openPrice": open_price_number,
  "closePrice": close_price_number,
  "tp": take_profit_from_column_6,
  "sl": stop_loss_from_column_7,
  "position": "Open or Closed",
  "openTime": "time as shown",
  "closeTime": "time as shown",
  "reason": "reason_if_visible",
  "pnlUsd": profit_loss_number
}"""

CRYPTO_PROMPT = """Analyze this CRYPTO trading table screenshot and extract ALL visible data. This is a crypto futures trading history table with the following structure:

CRYPTO TABLE FORMAT (columns from left to right):
1. Futures (Symbol), e.g. "BTCUSDT Perpetual"
2. Margin Mode, "Cross" or "Isolated"
3. Avg Close Price (numbers like 107,128.9)
4. Direction, "Long" or "Short"
5. Margin Adjustment History, usually "View History" or actual history
6. Close Time, format "2024-05-28 21:11:47"
7. Closing Quantity, amount with USDT suffix (e.g. "548.5579 USDT")
8. Status, "All Closed", "Open", etc.
9. Realized PNL, e.g. "4,881 USDT", "+2,144 USD"
10. Open Time, format "2024-05-28 18:57:22"
11. Avg Entry Price (numbers like 108,045.3)

EXTRACTION RULES:
- Extract the futures symbol INCLUDING "Perpetual" if present
- Numbers may have commas or USDT/USD suffixes, extract just the number
- Look for + or - signs in PNL values
- The table has NO headers, identify columns by position from left to right

Return ONLY this JSON structure:

{
  "futuresSymbol": "extracted_futures_symbol",
  "marginMode": "Cross or Isolated",
  "avgClosePrice": close_price_number,
  "direction": "Long or Short",
  "marginAdjustmentHistory": "extracted_history_or_null",
  "closeTime": "time as shown",
  "closingQuantity": closing_quantity_number,
  "status": "status as shown",
  "realizedPnl": realized_pnl_number,
  "openTime": "time as shown",
  "avgEntryPrice": entry_price_number
}"""

PROMPTS = {"forex": FOREX_PROMPT, "crypto": CRYPTO_PROMPT}

JSON_PATTERNS = [
    re.compile(r"```json\n([\s\S]*?)\n```"),
    re.compile(r"```\n([\s\S]*?)\n```"),
    re.compile(r"\{[\s\S]*\}"),
]

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
BROKER_TIME_RE = re.compile(r"(\w{3})\s+(\d{1,2}),\s+(\d{1,2}):(\d{2}):(\d{2})\s+(AM|PM)", re.IGNORECASE)
LEADING_NUMBER_RE = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")
UNIT_SUFFIX_RE = re.compile(r"(USDT|USDC|USD)$", re.IGNORECASE)


class ExtractionError(Exception):
    """The model's reply could not be turned into trade data."""


def parse_number(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if not text:
        return None
    text = text.replace(",", "")
    text = re.sub(r"[$€£¥+\s]", "", text)
    text = UNIT_SUFFIX_RE.sub("", text)
    if "(" in text and ")" in text:
        text = "-" + text.replace("(", "").replace(")", "")

    match = LEADING_NUMBER_RE.match(text)
    return float(match.group(0)) if match else None


def _iso_z(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_datetime(value, now: datetime | None = None) -> str | None:
    """Normalize the time formats brokers show to a UTC ISO string."""
    if not value:
        return None
    text = str(value).strip()

    if "T" in text and "-" in text:
        try:
            return _iso_z(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None

    match = BROKER_TIME_RE.search(text)
    if match:
        month_name, day, hour, minute, second, ampm = match.groups()
        month = MONTHS.get(month_name.lower())
        if month:
            hour = int(hour) % 12
            if ampm.upper() == "PM":
                hour += 12
            year = (now or datetime.now(timezone.utc)).year
            try:
                return _iso_z(datetime(year, month, int(day), hour, int(minute), int(second)))
            except ValueError:
                return None

    try:
        return _iso_z(datetime.strptime(text, "%Y-%m-%d %H:%M:%S"))
    except ValueError:
        return None


def normalize_position(value) -> str | None:
    if not value:
        return None
    text = str(value).strip().lower()
    if "close" in text:
        return "Closed"
    if "open" in text:
        return "Open"
    return None


def normalize_reason(value) -> str | None:
    if not value:
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    if "tp" in text or "take profit" in text or "takeprofit" in text:
        return "TP"
    if "sl" in text or "stop loss" in text or "stoploss" in text:
        return "SL"
    if "early" in text or "manual" in text or "close" in text:
        return "Early Close"
    return "Other"


def _text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_model_json(text: str) -> dict:
    """Locate and decode the JSON object in a model reply."""
    cleaned = re.sub(r"```json\n?", "", text.strip())
    cleaned = re.sub(r"```\n?", "", cleaned)
    try:
        data = json.loads(cleaned)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    for pattern in JSON_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        candidate = match.group(1) if match.groups() else match.group(0)
        try:
            data = json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise ExtractionError("Could not extract valid JSON from AI response")


def clean_forex_data(data: dict, now: datetime | None = None) -> ExtractedTradeData:
    return ExtractedTradeData(
        symbol=_text(data.get("symbol")),
        type=_text(data.get("type")),
        volume_lot=parse_number(data.get("volumeLot")),
        open_price=parse_number(data.get("openPrice")),
        close_price=parse_number(data.get("closePrice")),
        tp=parse_number(data.get("tp")),
        sl=parse_number(data.get("sl")),
        position=normalize_position(data.get("position")),
        open_time=parse_datetime(data.get("openTime"), now),
        close_time=parse_datetime(data.get("closeTime"), now),
        reason=normalize_reason(data.get("reason")),
        pnl_usd=parse_number(data.get("pnlUsd")),
    )


def clean_crypto_data(data: dict, now: datetime | None = None) -> ExtractedTradeData:
    direction = _text(data.get("direction"))
    futures_symbol = _text(data.get("futuresSymbol"))
    avg_entry = parse_number(data.get("avgEntryPrice"))
    avg_close = parse_number(data.get("avgClosePrice"))
    realized = parse_number(data.get("realizedPnl"))
    quantity = parse_number(data.get("closingQuantity"))

    # Common fields mirror the futures columns so both trade forms can be prefilled
    return ExtractedTradeData(
        futures_symbol=futures_symbol,
        margin_mode=_text(data.get("marginMode")),
        avg_entry_price=avg_entry,
        avg_close_price=avg_close,
        direction=direction,
        margin_adjustment_history=_text(data.get("marginAdjustmentHistory")),
        closing_quantity=quantity,
        realized_pnl=realized,
        open_time=parse_datetime(data.get("openTime"), now),
        close_time=parse_datetime(data.get("closeTime"), now),
        symbol=futures_symbol,
        type={"Long": "Buy", "Short": "Sell"}.get(direction),
        open_price=avg_entry,
        close_price=avg_close,
        pnl_usd=realized,
        volume_lot=quantity,
        position=normalize_position(data.get("status") or "Closed"),
        reason=normalize_reason(data.get("reason")),
    )


class ScreenshotExtractor:
    def __init__(self, client: GenerativeClient, quota_guard: QuotaGuard):
        self.client = client
        self.quota_guard = quota_guard

    async def extract(self, image: bytes, mime_type: str, kind: str) -> ExtractedTradeData:
        """Extract one trade from a Forex or Crypto history screenshot.

        Raises QuotaExceededError while on cooldown or when the API reports
        quota exhaustion, ExtractionError when the reply has no usable JSON.
        """
        prompt = PROMPTS.get(kind)
        if prompt is None:
            raise ValueError(f"Unknown extraction kind: {kind}")

        if not self.quota_guard.is_available():
            raise QuotaExceededError("AI analysis quota exceeded; try again later")

        try:
            text, _usage = await self.client.generate(prompt, image=(image, mime_type))
        except QuotaExceededError:
            self.quota_guard.mark_exceeded()
            raise

        logger.debug("Extraction reply (%s): %s", kind, text)
        data = parse_model_json(text)
        if kind == "crypto":
            return clean_crypto_data(data)
        return clean_forex_data(data)
