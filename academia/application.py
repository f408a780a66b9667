"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from academia.api import (
    create_auth_router,
    create_protected_router,
    create_public_router,
)
from academia.config import settings
from academia.enrollment.rules import EnrollmentLimits
from academia.gateway import RemoteGateway
from academia.middleware import APIKeyMiddleware, SessionCookieMiddleware
from academia.realtime.feed import ChangeFeed
from academia.utils.db import close_db, db_manager, init_db
from academia.utils.exception_handlers import register_exception_handlers
from academia.utils.pubsub import PubSubService
from academia.utils.redis import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    await init_db()
    redis = await init_redis()
    feed = ChangeFeed(PubSubService(redis) if redis is not None else None)
    await feed.start()
    app.state.gateway = RemoteGateway(
        db_manager.session_factory, feed, EnrollmentLimits.from_settings(settings)
    )
    logger.info("Application started", extra={"environment": settings.ENVIRONMENT})
    yield
    # Shutdown
    await feed.stop()
    await close_redis()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.API_TITLE,
        description="Course enrollment service for students, subjects and professors",
        version=settings.API_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Last added runs first: the session is resolved before the key check
    app.add_middleware(APIKeyMiddleware)
    app.add_middleware(SessionCookieMiddleware)

    app.include_router(create_public_router())
    app.include_router(create_auth_router())
    app.include_router(create_protected_router())

    return app
