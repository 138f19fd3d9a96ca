from fastapi import APIRouter, Depends, Header, HTTPException

from trading_journal.config import Settings
from trading_journal.dependencies import get_db_session, get_settings, get_trade_analytics, get_trade_store
from trading_journal.models.schemas import AnalyticsResponse
from trading_journal.services.analytics import TradeAnalytics
from trading_journal.services.trade_store import TradeStore

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


@router.get("", response_model=AnalyticsResponse)
async def get_analytics(
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session=Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
    analytics: TradeAnalytics = Depends(get_trade_analytics),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    sessions = await store.list_sessions(db_session, x_user_id)
    trades = await store.list_user_trades(db_session, x_user_id)
    result = analytics.calculate(sessions, trades)
    return AnalyticsResponse(**result)
