from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from trading_journal.api.serializers import session_response
from trading_journal.config import Settings
from trading_journal.dependencies import get_db_session, get_settings, get_trade_store
from trading_journal.models.schemas import (
    CapitalUpdateRequest,
    SessionCreateRequest,
    SessionResponse,
    SessionStatsResponse,
)
from trading_journal.services.analytics import calculate_session_stats
from trading_journal.services.trade_store import TradeStore

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session: AsyncSession = Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    sessions = await store.list_sessions(db_session, x_user_id)
    return [session_response(s) for s in sessions]


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    request: SessionCreateRequest,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session: AsyncSession = Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    session = await store.create_session(
        db_session,
        user_id=x_user_id,
        name=request.name,
        initial_capital=request.initial_capital,
        session_type=request.session_type,
    )
    await db_session.commit()
    return session_response(session)


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session: AsyncSession = Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    if not await store.delete_session(db_session, x_user_id, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    await db_session.commit()
    return {"status": "deleted", "id": session_id}


@router.patch("/{session_id}/capital", response_model=SessionResponse)
async def update_capital(
    session_id: str,
    request: CapitalUpdateRequest,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session: AsyncSession = Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    session = await store.get_session(db_session, x_user_id, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    await store.update_session_capital(db_session, session, request.current_capital)
    await db_session.commit()
    return session_response(session)


@router.get("/{session_id}/stats", response_model=SessionStatsResponse)
async def get_session_stats(
    session_id: str,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session: AsyncSession = Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    session = await store.get_session(db_session, x_user_id, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    trades = await store.list_trades(db_session, session.id)
    return SessionStatsResponse(**calculate_session_stats(session, trades))
