from fastapi import APIRouter

from trading_journal.api.health import router as health_router
from trading_journal.api.sessions import router as sessions_router
from trading_journal.api.trades import router as trades_router
from trading_journal.api.analytics import router as analytics_router
from trading_journal.api.market import router as market_router
from trading_journal.api.chat import router as chat_router
from trading_journal.api.extract import router as extract_router
from trading_journal.api.export import router as export_router

api_router = APIRouter()
api_router.include_router(health_router)
# Export routes first so /sessions/import is not captured by /sessions/{session_id}
api_router.include_router(export_router)
api_router.include_router(sessions_router)
api_router.include_router(trades_router)
api_router.include_router(analytics_router)
api_router.include_router(market_router)
api_router.include_router(chat_router)
api_router.include_router(extract_router)
