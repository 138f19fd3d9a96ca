import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from trading_journal.api.serializers import session_type_of, trade_response
from trading_journal.config import Settings
from trading_journal.dependencies import get_db_session, get_settings, get_trade_store
from trading_journal.models.schemas import TradeCreateRequest, TradeResponse, TradeUpdateRequest
from trading_journal.models.trading_session import SessionType
from trading_journal.services.trade_store import TradeStore
from trading_journal.utils.calculations import calculate_forex_margin, calculate_roi

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["trades"])

# Columns that may not be cleared by a patch
REQUIRED_FIELDS = ("margin", "roi", "entry_side", "profit_loss")


@router.get("/sessions/{session_id}/trades", response_model=list[TradeResponse])
async def list_trades(
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

    session_type = session_type_of(session)
    trades = await store.list_trades(db_session, session.id)
    return [trade_response(t, session_type) for t in trades]


@router.post("/sessions/{session_id}/trades", response_model=TradeResponse, status_code=201)
async def add_trade(
    session_id: str,
    request: TradeCreateRequest,
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

    session_type = session_type_of(session)
    if request.details.kind != session_type:
        raise HTTPException(
            status_code=400,
            detail=f"{request.details.kind} trade cannot be added to a {session_type} session",
        )

    fields = request.details.model_dump(exclude={"kind"}, exclude_none=True)

    margin = request.margin
    if margin is None and session_type == SessionType.FOREX.value:
        margin = calculate_forex_margin(
            fields.get("volume_lot"), fields.get("contract_size"), fields.get("open_price"), fields.get("leverage")
        )
    if margin is None:
        raise HTTPException(
            status_code=422,
            detail="margin is required (or volume_lot, contract_size, open_price and leverage for Forex)",
        )

    if session_type == SessionType.CRYPTO.value and "direction" not in fields:
        fields["direction"] = request.entry_side

    roi = request.roi if request.roi is not None else calculate_roi(request.profit_loss, margin)

    trade = await store.add_trade(
        db_session,
        session.id,
        {
            **fields,
            "margin": margin,
            "roi": roi,
            "entry_side": request.entry_side,
            "profit_loss": request.profit_loss,
            "comments": request.comments,
        },
    )
    await store.update_session_capital(db_session, session, session.current_capital + request.profit_loss)
    await db_session.commit()
    return trade_response(trade, session_type)


@router.patch("/trades/{trade_id}", response_model=TradeResponse)
async def update_trade(
    trade_id: str,
    request: TradeUpdateRequest,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session: AsyncSession = Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    trade = await store.get_trade(db_session, x_user_id, trade_id)
    if trade is None:
        raise HTTPException(status_code=404, detail="Trade not found")
    session = await store.get_session(db_session, x_user_id, trade.session_id)
    session_type = session_type_of(session)

    changes = request.model_dump(exclude_unset=True, exclude={"details"})
    for key in REQUIRED_FIELDS:
        if key in changes and changes[key] is None:
            del changes[key]

    if request.details is not None:
        if request.details.kind != session_type:
            raise HTTPException(
                status_code=400,
                detail=f"{request.details.kind} details do not match a {session_type} session",
            )
        changes.update(request.details.model_dump(exclude={"kind"}, exclude_unset=True))

    old_pnl = trade.profit_loss
    await store.update_trade(db_session, trade, changes)

    # ROI stays as recorded at entry; only capital follows a P/L edit
    if "profit_loss" in changes and changes["profit_loss"] != old_pnl:
        await store.update_session_capital(
            db_session, session, session.current_capital + changes["profit_loss"] - old_pnl
        )
    await db_session.commit()
    return trade_response(trade, session_type)


@router.delete("/trades/{trade_id}")
async def delete_trade(
    trade_id: str,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session: AsyncSession = Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    trade = await store.get_trade(db_session, x_user_id, trade_id)
    if trade is None:
        raise HTTPException(status_code=404, detail="Trade not found")
    session = await store.get_session(db_session, x_user_id, trade.session_id)

    await store.update_session_capital(db_session, session, session.current_capital - trade.profit_loss)
    await store.delete_trade(db_session, trade)
    await db_session.commit()
    return {"status": "deleted", "id": trade_id}
