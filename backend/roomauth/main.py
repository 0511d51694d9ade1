"""
Application factory for the RoomMitra identity service.

    uvicorn roomauth.main:build_app --factory

Settings are read once from the environment (and .env) and passed explicitly
into create_app; tests call create_app with their own Settings and services.
"""
import logging
import sys
from typing import Optional

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sqlalchemy.engine import Engine

from .core.config import Settings
from .core.startup_validation import validate_settings
from .db import build_engine, build_session_factory
from .exception_handlers import register_exception_handlers
from .middleware import LoggingMiddleware, RequestIDMiddleware
from .routers import auth, users
from .services.container import AuthServices

logger = logging.getLogger("roomauth")


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def init_sentry(settings: Settings) -> None:
    """Sentry error tracking, only in non-local environments when SENTRY_DSN is set"""
    if not settings.SENTRY_DSN:
        if not settings.is_local:
            logger.warning("SENTRY_DSN not set; error tracking disabled")
        return
    if settings.is_local:
        logger.info("Sentry DSN configured but not initializing in local environment")
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1,
        environment=settings.ENV,
        # Phone numbers and emails must not leave the service
        send_default_pii=False,
    )
    logger.info(f"Sentry error tracking initialized for environment: {settings.ENV}")


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[AuthServices] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    validate_settings(settings)

    engine = engine or build_engine(settings.DATABASE_URL)
    services = services or AuthServices.build(settings)

    app = FastAPI(title="RoomMitra Identity", version="1.0.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.services = services

    # Starlette runs the last added middleware first
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)

    @app.get("/healthz")
    async def healthz():
        """Liveness probe; no dependency checks."""
        return {"ok": True, "service": "roomauth", "env": settings.ENV}

    app.include_router(auth.router)
    app.include_router(users.router)

    logger.info(f"RoomMitra identity service configured (ENV={settings.ENV})")
    return app


def build_app() -> FastAPI:
    """Process entry point: load .env, configure logging and Sentry, build the app"""
    load_dotenv()
    configure_logging()
    settings = Settings.from_env()
    init_sentry(settings)
    return create_app(settings)


