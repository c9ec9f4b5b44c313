import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authgate.api import auth as auth_api
from authgate.core.config import settings
from authgate.core.errors import AuthError, auth_error_handler
from authgate.core.logging import configure_logging
from authgate.db.database import close_db, init_db
from authgate.db.repositories.token_repo import TokenLedger
from authgate.db.repositories.user_repo import UserStore
from authgate.service.auth_service import AuthService
from authgate.service.sweeper import run_sweeper
from authgate.utils.audit import AuditMiddleware
from authgate.utils.security import TokenSigner

logger = logging.getLogger(__name__)

def build_auth_service(sessions: async_sessionmaker[AsyncSession]) -> AuthService:
    return AuthService(users=UserStore(sessions), ledger=TokenLedger(sessions), signer=TokenSigner())

def _log_sweeper_exit(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Token sweeper stopped", exc_info=task.exception())

@asynccontextmanager
async def lifespan(app: FastAPI):
    sessions = await init_db()
    app.state.auth_service = build_auth_service(sessions)
    sweeper = None
    if settings.AUTH_SWEEP_INTERVAL_SEC > 0:
        sweeper = asyncio.create_task(run_sweeper(app.state.auth_service.ledger, settings.AUTH_SWEEP_INTERVAL_SEC))
        sweeper.add_done_callback(_log_sweeper_exit)
    try:
        yield
    finally:
        logger.info("Shutting down...")
        if sweeper is not None:
            sweeper.cancel()
            # cancellation or an already-logged crash, never re-raised here
            await asyncio.gather(sweeper, return_exceptions=True)
        await close_db()

def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="authgate", version="0.1.0", lifespan=lifespan)
    app.add_middleware(AuditMiddleware, prefix="/auth")
    app.add_exception_handler(AuthError, auth_error_handler)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    app.include_router(auth_api.router, prefix="/auth", tags=["auth"])
    return app

app = create_app()
