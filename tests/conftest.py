import os
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from trading_journal.config import Settings
from trading_journal.models.database import Base, create_engine, create_session_factory
from trading_journal.services.assistant import QuotaGuard

import trading_journal.models.chat_message  # noqa: F401
import trading_journal.models.trade  # noqa: F401
import trading_journal.models.trading_session  # noqa: F401

@pytest.fixture
def settings():
    """Test settings with dummy values."""
    return Settings(
        api_secret_key="test_secret",
        database_url="sqlite+aiosqlite:///:memory:",
        log_level="DEBUG",
        gemini_api_key="test-gemini-key",
        serper_api_key="test-serper-key",
        newsapi_key="",
        ai_retry_base_delay=0.0,
    )


@pytest_asyncio.fixture
async def db_engine():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    session_factory = create_session_factory(db_engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
def quota_guard():
    return QuotaGuard(cooldown_hours=24)


@pytest.fixture
def mock_generative_client():
    client = MagicMock()
    client.generate = AsyncMock(return_value=("Hello from the assistant", {"totalTokenCount": 42}))
    return client


@pytest_asyncio.fixture
async def test_app(settings, quota_guard):
    """Create a test FastAPI app with state set directly instead of the lifespan."""
    os.environ.update({
        "API_SECRET_KEY": settings.api_secret_key,
        "DATABASE_URL": settings.database_url,
    })

    from trading_journal.main import app

    app.state.settings = settings
    app.state.quota_guard = quota_guard

    engine = create_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    app.state.engine = engine
    app.state.async_session = create_session_factory(engine)

    yield app

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest_asyncio.fixture
async def client(test_app):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
