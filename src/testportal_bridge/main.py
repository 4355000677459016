"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from testportal_bridge.config import settings
from testportal_bridge.database.engine import async_session_factory, init_db
from testportal_bridge.handlers.access_code import router as access_code_router
from testportal_bridge.handlers.admin import router as admin_router
from testportal_bridge.handlers.tokens import router as tokens_router
from testportal_bridge.services.secrets import SecretCache
from testportal_bridge.services.tokens import purge_expired_tokens

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


async def _purge_loop(interval: int) -> None:
    """Delete expired tokens every *interval* seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            async with async_session_factory() as session:
                await purge_expired_tokens(session)
        except Exception:
            logger.exception("Expired token purge failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    logger.info("Starting %s …", settings.app_name)
    await init_db()
    logger.info("Database initialised")

    purge_task = None
    if settings.token_purge_interval_seconds > 0:
        purge_task = asyncio.create_task(_purge_loop(settings.token_purge_interval_seconds))

    yield

    logger.info("Shutting down %s …", settings.app_name)
    if purge_task is not None:
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task


app = FastAPI(
    title=settings.app_name,
    description="Short-lived token broker for TestPortal access codes",
    version="0.1.0",
    lifespan=lifespan,
)

# Owned by this app instance; see handlers.deps.get_credentials.
app.state.secret_cache = SecretCache(settings.secret_cache_ttl_seconds)

app.include_router(tokens_router)
app.include_router(access_code_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check():
    """Simple liveness probe."""
    return {"status": "healthy", "app": settings.app_name}
