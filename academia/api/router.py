"""API router factory with core endpoints."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from academia.config import settings
from academia.exceptions import DatabaseConnectionError
from academia.middleware.auth import APIKeyMiddleware
from academia.utils.db import db_manager

logger = logging.getLogger(__name__)


def create_public_router() -> APIRouter:
    """Create router with public endpoints (no authentication).

    Returns:
        APIRouter with root and liveness endpoints.
    """
    router = APIRouter()

    @router.get("/")
    async def root() -> dict:
        return {"message": f"{settings.API_TITLE} API", "version": settings.API_VERSION}

    @router.get("/health")
    async def health() -> dict:
        return {"status": "healthy"}

    return router


def create_auth_router() -> APIRouter:
    """Create router with the session endpoints (login, logout, me)."""
    from academia.api.auth import router as auth_router

    return auth_router


def create_protected_router() -> APIRouter:
    """Create router with protected endpoints (API key or session required).

    All routes are mounted under /api prefix.

    Returns:
        APIRouter with health checks, CRUD, selection and stream endpoints.
    """
    from academia.api.professors import router as professors_router
    from academia.api.streams import router as streams_router
    from academia.api.students import router as students_router
    from academia.api.subjects import router as subjects_router

    router = APIRouter(prefix=APIKeyMiddleware.PROTECTED_PREFIX)

    @router.get("/health", tags=["Health"], status_code=status.HTTP_200_OK)
    async def health_check() -> dict:
        return {"status": "healthy", "service": "academia"}

    @router.get(
        "/health/db",
        tags=["Health"],
        status_code=status.HTTP_200_OK,
        response_model=None,
    )
    async def health_check_db() -> JSONResponse:
        """Deep health check including database connectivity."""
        try:
            await db_manager.verify_connection()
        except DatabaseConnectionError as e:
            logger.error(f"Database health check failed: {e}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "unhealthy",
                    "database": "disconnected",
                    "error": str(e),
                },
            )
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "healthy", "database": "connected"},
        )

    # Streams first so "/students/stream" is not read as a student id
    router.include_router(streams_router)
    router.include_router(students_router)
    router.include_router(subjects_router)
    router.include_router(professors_router)

    return router
