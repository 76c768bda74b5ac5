# skypark/main.py
import asyncio
import logging

from fastapi import FastAPI
from contextlib import asynccontextmanager, suppress

from skypark.api.admin import router as admin_router
from skypark.api.auth import router as auth_router
from skypark.api.user import router as user_router
from skypark.api.responses import install_error_handlers

from skypark.core.config import settings
from skypark.core.log import configure_logging
from skypark.core.sms import LoggingSmsSender, VerificationCodeStore
from skypark.core.tokens import TokenManager
from skypark.db.session import engine, SessionLocal
from skypark.db.models import Base
from skypark.db.users import SqlUserStore
from skypark.services.auth import AuthService

logger = logging.getLogger("skypark")


def build_auth_service() -> AuthService:
    if settings.uses_default_secret:
        if settings.is_production:
            raise RuntimeError("JWT_SECRET must be set in production")
        logger.warning("Using default JWT secret. Set JWT_SECRET environment variable in production!")

    code_store = VerificationCodeStore.from_settings(
        settings, sender=LoggingSmsSender(log_codes=settings.sms_log_codes and not settings.is_production)
    )
    return AuthService(
        code_store=code_store,
        tokens=TokenManager.from_settings(settings),
        users=SqlUserStore(SessionLocal),
    )


async def sweep_codes_periodically(app: FastAPI, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        # se lee en cada vuelta: los tests pueden sustituir el servicio
        removed = app.state.auth_service.code_store.sweep_expired()
        if removed:
            logger.info("Removed %d expired SMS codes", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # === STARTUP ===
    configure_logging(settings.log_level)
    app.state.auth_service = build_auth_service()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sweeper = None
    if settings.sms_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(sweep_codes_periodically(app, settings.sms_sweep_interval_seconds))
    logger.info("Sky Park API started (env=%s)", settings.app_env)
    yield
    # === SHUTDOWN ===
    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
    await engine.dispose()

app = FastAPI(title="Sky Park API", version="1.0.0", lifespan=lifespan)
install_error_handlers(app)

app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(user_router, prefix="/api/v1/user", tags=["user"])
app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])


@app.get("/health")
def health():
    return {"status": "healthy", "service": "Sky Park API", "version": app.version}
