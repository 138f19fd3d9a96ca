import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from trading_journal.config import Settings
from trading_journal.models.database import Base, create_engine, create_session_factory
from trading_journal.services.assistant import QuotaGuard

# Register every table on Base.metadata before create_all
import trading_journal.models.chat_message  # noqa: F401
import trading_journal.models.trade  # noqa: F401
import trading_journal.models.trading_session  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Database
    engine = create_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    app.state.engine = engine
    app.state.async_session = create_session_factory(engine)

    app.state.settings = settings
    app.state.quota_guard = QuotaGuard(settings.ai_quota_cooldown_hours)

    logger.info(
        "Trading Journal started (db=%s, model=%s, search=%s)",
        settings.database_url,
        settings.gemini_model,
        "on" if settings.serper_api_key else "off",
    )
    yield

    await engine.dispose()
    logger.info("Trading Journal shut down")


app = FastAPI(title="Trading Journal", version="1.0.0", lifespan=lifespan)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Action failed"})


from trading_journal.api.router import api_router  # noqa: E402

app.include_router(api_router)
