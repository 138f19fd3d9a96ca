from fastapi import APIRouter, Depends, Header, HTTPException, Query

from trading_journal.config import Settings
from trading_journal.dependencies import get_chat_service, get_chat_store, get_db_session, get_settings
from trading_journal.models.schemas import ChatMessageResponse, ChatRequest, ChatResponse, GreetingResponse
from trading_journal.services.assistant import get_greeting
from trading_journal.services.chat import ChatService
from trading_journal.services.chat_store import ChatStore

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def send_message(
    request: ChatRequest,
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session=Depends(get_db_session),
    chat: ChatService = Depends(get_chat_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    result = await chat.handle_message(db_session, x_user_id, request)
    return ChatResponse(**result)


@router.get("/history", response_model=list[ChatMessageResponse])
async def get_history(
    limit: int = Query(20, ge=1, le=200),
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    settings: Settings = Depends(get_settings),
    db_session=Depends(get_db_session),
    chat_store: ChatStore = Depends(get_chat_store),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    messages = await chat_store.get_history(db_session, x_user_id, limit=limit)
    return [
        ChatMessageResponse(
            id=m.id,
            user_id=m.user_id,
            message=m.message,
            response=m.response,
            message_type=m.message_type,
            created_at=m.created_at,
        )
        for m in messages
    ]


@router.get("/greeting", response_model=GreetingResponse)
async def greeting(
    name: str | None = None,
    x_api_key: str = Header(...),
    settings: Settings = Depends(get_settings),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return GreetingResponse(greeting=get_greeting(name))
