import re

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import Response

from trading_journal.api.serializers import session_response
from trading_journal.config import Settings
from trading_journal.dependencies import get_db_session, get_export_service, get_settings, get_trade_store
from trading_journal.models.schemas import ImportResponse, SessionExport
from trading_journal.services.export import ExportService
from trading_journal.services.trade_store import TradeStore

router = APIRouter(prefix="/api/v1/sessions", tags=["export"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _filename(name: str, suffix: str) -> str:
    return f"{re.sub(r'[^A-Za-z0-9_-]+', '_', name)}_{suffix}"


@router.post("/import", response_model=ImportResponse, status_code=201)
async def import_session(
    document: SessionExport,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session=Depends(get_db_session),
    exporter: ExportService = Depends(get_export_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    session, count = await exporter.import_session(db_session, x_user_id, document)
    await db_session.commit()
    return ImportResponse(session=session_response(session), imported_trades=count)


@router.get("/{session_id}/export/json")
async def export_json(
    session_id: str,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session=Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
    exporter: ExportService = Depends(get_export_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    session = await store.get_session(db_session, x_user_id, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    trades = await store.list_trades(db_session, session.id)
    return exporter.build_export(session, trades)


@router.get("/{session_id}/export/xlsx")
async def export_xlsx(
    session_id: str,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session=Depends(get_db_session),
    store: TradeStore = Depends(get_trade_store),
    exporter: ExportService = Depends(get_export_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    session = await store.get_session(db_session, x_user_id, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    trades = await store.list_trades(db_session, session.id)
    content = exporter.build_workbook(session, trades)
    filename = _filename(session.name, "detailed_trading_session.xlsx")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
