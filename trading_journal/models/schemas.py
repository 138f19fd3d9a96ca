from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Side = Literal["Long", "Short"]
Position = Literal["Open", "Closed"]
Reason = Literal["TP", "SL", "Early Close", "Other"]


# --- Sessions ---


class SessionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    initial_capital: float = Field(..., ge=0)
    session_type: Literal["Forex", "Crypto"] = "Forex"


class CapitalUpdateRequest(BaseModel):
    current_capital: float


class SessionResponse(BaseModel):
    id: str
    user_id: str
    name: str
    initial_capital: float
    current_capital: float
    session_type: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SessionStatsResponse(BaseModel):
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    current_capital: float = 0.0
    net_profit_loss: float = 0.0
    net_profit_loss_percentage: float = 0.0
    total_margin_used: float = 0.0
    average_roi: float = 0.0


# --- Trades: common base plus one instrument-specific variant ---


class ForexTradeDetails(BaseModel):
    kind: Literal["Forex"]
    symbol: str | None = None
    volume_lot: float | None = None
    open_price: float | None = None
    close_price: float | None = None
    tp: float | None = None
    sl: float | None = None
    position: Position | None = None
    open_time: datetime | None = None
    close_time: datetime | None = None
    reason: Reason | None = None
    leverage: float | None = None
    contract_size: float | None = None


class CryptoTradeDetails(BaseModel):
    kind: Literal["Crypto"]
    futures_symbol: str | None = None
    margin_mode: str | None = None
    avg_entry_price: float | None = None
    avg_close_price: float | None = None
    direction: Side | None = None
    margin_adjustment_history: str | None = None
    closing_quantity: float | None = None
    realized_pnl: float | None = None
    open_time: datetime | None = None
    close_time: datetime | None = None
    position: Position | None = None
    reason: Reason | None = None


TradeDetails = Annotated[Union[ForexTradeDetails, CryptoTradeDetails], Field(discriminator="kind")]


class TradeCreateRequest(BaseModel):
    margin: float | None = Field(None, ge=0, description="Omit on Forex trades to derive it from lot, contract size, price and leverage")
    roi: float | None = Field(None, description="Omit to derive from profit_loss / margin")
    entry_side: Side
    profit_loss: float
    comments: str | None = None
    details: TradeDetails


class TradeUpdateRequest(BaseModel):
    margin: float | None = Field(None, ge=0)
    roi: float | None = None
    entry_side: Side | None = None
    profit_loss: float | None = None
    comments: str | None = None
    details: TradeDetails | None = None


class TradeResponse(BaseModel):
    id: str
    session_id: str
    margin: float
    roi: float
    entry_side: str
    profit_loss: float
    comments: str | None = None
    created_at: datetime | None = None
    details: TradeDetails


# --- Analytics ---


class MaxDrawdown(BaseModel):
    amount: float = 0.0
    percentage: float = 0.0


class TradeDistribution(BaseModel):
    long_trades: int = 0
    short_trades: int = 0
    long_percentage: float = 0.0
    short_percentage: float = 0.0


class TimeAnalysis(BaseModel):
    avg_hold_time: float = 0.0
    best_time: str = "N/A"


class RiskMetrics(BaseModel):
    avg_risk_per_trade: float = 0.0
    max_risk: float = 0.0


class Streaks(BaseModel):
    best_streak: int = 0
    worst_streak: int = 0


class AnalyticsResponse(BaseModel):
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    success_rate: float = 0.0
    overall_performance: float = 0.0
    profit_factor: float = 0.0
    trade_distribution: TradeDistribution = TradeDistribution()
    average_r_multiple: float = 0.0
    max_drawdown: MaxDrawdown = MaxDrawdown()
    streaks: Streaks = Streaks()
    sharpe_ratio: float = 0.0
    time_analysis: TimeAnalysis = TimeAnalysis()
    risk_metrics: RiskMetrics = RiskMetrics()
    active_capital: float = 0.0
    risk_level: Literal["Low", "Moderate", "High"] = "Low"


# --- Market data ---


class CryptoPrice(BaseModel):
    symbol: str
    price: float
    change_24h: float
    change_percent_24h: float


class CryptoPricesResponse(BaseModel):
    btc: CryptoPrice
    eth: CryptoPrice
    is_live: bool


class GoldPriceResponse(BaseModel):
    price: float
    change_24h: float
    change_percent_24h: float
    is_live: bool


class FearGreedResponse(BaseModel):
    value: int
    classification: str
    timestamp: str
    is_live: bool


class NewsItem(BaseModel):
    title: str
    summary: str
    url: str
    published_at: str
    source: str
    image_url: str | None = None


class NewsFeedResponse(BaseModel):
    items: list[NewsItem]
    is_live: bool


class MarketDataResponse(BaseModel):
    crypto: CryptoPricesResponse
    gold: GoldPriceResponse
    fear_greed: FearGreedResponse
    news: NewsFeedResponse


# --- Chat ---


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    original_message: str | None = Field(None, description="User text before any client-side enrichment")
    session_id: str | None = None
    conversation_context: str | None = Field(None, description="Recent conversation as text; rehydrated from history when omitted")
    has_live_data: bool = False


class ChatResponse(BaseModel):
    message: str
    usage: dict | None = None
    live_data_used: bool = False
    search_performed: bool = False
    status: Literal["ok", "quota_exceeded", "error"] = "ok"


class ChatMessageResponse(BaseModel):
    id: int
    user_id: str
    message: str
    response: str | None = None
    message_type: str
    created_at: datetime | None = None


class GreetingResponse(BaseModel):
    greeting: str


# --- Screenshot extraction (camelCase on the wire) ---


class ExtractedTradeData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    symbol: str | None = None
    type: str | None = None
    volume_lot: float | None = None
    open_price: float | None = None
    close_price: float | None = None
    tp: float | None = None
    sl: float | None = None
    position: Position | None = None
    open_time: str | None = None
    close_time: str | None = None
    reason: Reason | None = None
    pnl_usd: float | None = None
    leverage: float | None = None
    contract_size: float | None = None
    futures_symbol: str | None = None
    margin_mode: str | None = None
    avg_entry_price: float | None = None
    avg_close_price: float | None = None
    direction: str | None = None
    margin_adjustment_history: str | None = None
    closing_quantity: float | None = None
    realized_pnl: float | None = None


# --- Export / import ---


class ExportedSession(BaseModel):
    name: str
    session_type: Literal["Forex", "Crypto"] = "Forex"
    initial_capital: float
    current_capital: float
    created_at: datetime | None = None


class ExportedTrade(BaseModel):
    margin: float
    roi: float
    entry_side: Side
    profit_loss: float
    comments: str | None = None
    created_at: datetime | None = None
    symbol: str | None = None
    volume_lot: float | None = None
    open_price: float | None = None
    close_price: float | None = None
    tp: float | None = None
    sl: float | None = None
    position: Position | None = None
    open_time: datetime | None = None
    close_time: datetime | None = None
    reason: Reason | None = None
    leverage: float | None = None
    contract_size: float | None = None
    futures_symbol: str | None = None
    margin_mode: str | None = None
    avg_entry_price: float | None = None
    avg_close_price: float | None = None
    direction: Side | None = None
    margin_adjustment_history: str | None = None
    closing_quantity: float | None = None
    realized_pnl: float | None = None


class SessionExport(BaseModel):
    session: ExportedSession
    trades: list[ExportedTrade] = []
    statistics: SessionStatsResponse | None = None


class ImportResponse(BaseModel):
    session: SessionResponse
    imported_trades: int
