from fastapi import Depends, Request

from trading_journal.config import Settings
from trading_journal.services.analytics import TradeAnalytics
from trading_journal.services.assistant import AssistantService, GenerativeClient, QuotaGuard
from trading_journal.services.chat import ChatService
from trading_journal.services.chat_store import ChatStore
from trading_journal.services.export import ExportService
from trading_journal.services.extraction import ScreenshotExtractor
from trading_journal.services.market_data import MarketDataService
from trading_journal.services.search import WebSearchClient, build_trigger
from trading_journal.services.trade_store import TradeStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_quota_guard(request: Request) -> QuotaGuard:
    return request.app.state.quota_guard


async def get_db_session(request: Request):
    async with request.app.state.async_session() as session:
        yield session


def get_trade_store() -> TradeStore:
    return TradeStore()


def get_chat_store() -> ChatStore:
    return ChatStore()


def get_trade_analytics() -> TradeAnalytics:
    return TradeAnalytics()


def get_market_data_service(settings: Settings = Depends(get_settings)) -> MarketDataService:
    return MarketDataService(settings)


def get_generative_client(settings: Settings = Depends(get_settings)) -> GenerativeClient:
    return GenerativeClient(settings)


def get_assistant_service(
    settings: Settings = Depends(get_settings),
    client: GenerativeClient = Depends(get_generative_client),
    quota_guard: QuotaGuard = Depends(get_quota_guard),
) -> AssistantService:
    return AssistantService(settings, client, quota_guard)


def get_chat_service(
    settings: Settings = Depends(get_settings),
    assistant: AssistantService = Depends(get_assistant_service),
    trade_store: TradeStore = Depends(get_trade_store),
    chat_store: ChatStore = Depends(get_chat_store),
) -> ChatService:
    return ChatService(
        settings=settings,
        assistant=assistant,
        search_client=WebSearchClient(settings),
        trigger=build_trigger(settings.search_trigger),
        trade_store=trade_store,
        chat_store=chat_store,
    )


def get_screenshot_extractor(
    client: GenerativeClient = Depends(get_generative_client),
    quota_guard: QuotaGuard = Depends(get_quota_guard),
) -> ScreenshotExtractor:
    return ScreenshotExtractor(client, quota_guard)


def get_export_service(trade_store: TradeStore = Depends(get_trade_store)) -> ExportService:
    return ExportService(trade_store)
