"""One assistant chat turn: stats, optional web search, prompt, persistence."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trading_journal.config import Settings
from trading_journal.models.schemas import ChatRequest
from trading_journal.services.assistant import AssistantService, ConversationContext
from trading_journal.services.chat_store import ChatStore
from trading_journal.services.search import WebSearchClient
from trading_journal.services.trade_store import TradeStore

logger = logging.getLogger(__name__)


def summarize_trades(trades) -> dict:
    total = len(trades)
    winning = sum(1 for t in trades if t.profit_loss > 0)
    return {
        "total_trades": total,
        "win_rate": winning / total * 100 if total else 0.0,
        "total_profit": sum(t.profit_loss for t in trades),
    }


class ChatService:
    def __init__(
        self,
        settings: Settings,
        assistant: AssistantService,
        search_client: WebSearchClient,
        trigger,
        trade_store: TradeStore,
        chat_store: ChatStore,
    ):
        self.settings = settings
        self.assistant = assistant
        self.search_client = search_client
        self.trigger = trigger
        self.trade_store = trade_store
        self.chat_store = chat_store

    async def handle_message(self, db_session: AsyncSession, user_id: str, request: ChatRequest) -> dict:
        trades = await self.trade_store.list_user_trades(db_session, user_id)
        stats = summarize_trades(trades)

        query = request.original_message or request.message
        search_block = ""
        if not request.has_live_data and self.trigger.should_search(query):
            search_block = await self.search_client.search(query)
        search_performed = bool(search_block)

        if request.conversation_context:
            conversation = f"Recent conversation:\n{request.conversation_context}"
        else:
            history = await self.chat_store.get_history(db_session, user_id, limit=self.settings.chat_history_window)
            context = ConversationContext.from_messages(history, max_turns=self.settings.chat_history_window)
            conversation = context.render(self.settings.assistant_name)

        reply = await self.assistant.process_message(request.message, stats, conversation, search_block)

        try:
            await self.chat_store.save_turn(db_session, user_id, query, reply.message)
            await db_session.commit()
        except SQLAlchemyError as e:
            await db_session.rollback()
            logger.error("Failed to save chat turn for user %s: %s", user_id, e)

        logger.info(
            "Chat turn for user %s: status=%s search=%s live_data=%s",
            user_id, reply.status, search_performed, request.has_live_data,
        )
        return {
            "message": reply.message,
            "usage": reply.usage,
            "live_data_used": request.has_live_data or search_performed,
            "search_performed": search_performed,
            "status": reply.status,
        }
