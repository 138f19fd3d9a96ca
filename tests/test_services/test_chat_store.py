from datetime import datetime

import pytest

from trading_journal.services.chat_store import ChatStore


@pytest.fixture
def store():
    return ChatStore()


@pytest.mark.asyncio
async def test_save_turn_writes_user_then_ai(store, db_session):
    user_msg, ai_msg = await store.save_turn(db_session, "user-1", "How am I doing?", "Great so far!")
    assert user_msg.message_type == "user"
    assert ai_msg.message_type == "ai"
    assert user_msg.id < ai_msg.id


@pytest.mark.asyncio
async def test_history_newest_first_and_scoped(store, db_session):
    stamp = datetime(2026, 3, 1, 9, 0, 0)
    for text in ("one", "two", "three"):
        msg = await store.add_message(db_session, "user-1", text, "user")
        msg.created_at = stamp
    await store.add_message(db_session, "user-2", "not mine", "user")
    await db_session.commit()

    history = await store.get_history(db_session, "user-1")
    # Same timestamp: ties fall back to insertion order, newest first
    assert [m.message for m in history] == ["three", "two", "one"]


@pytest.mark.asyncio
async def test_history_limit(store, db_session):
    for i in range(5):
        await store.add_message(db_session, "user-1", f"m{i}", "user")
    history = await store.get_history(db_session, "user-1", limit=2)
    assert len(history) == 2


@pytest.mark.asyncio
async def test_save_turn_leaves_commit_to_caller(store, db_session):
    await store.save_turn(db_session, "user-1", "How am I doing?", "Great so far!")
    await db_session.rollback()
    assert await store.get_history(db_session, "user-1") == []
