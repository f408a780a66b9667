"""Centralized exception handlers for FastAPI application."""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from academia.exceptions import (
    AppError,
    DatabaseConnectionError,
    DuplicateRecordError,
    InvalidFilterError,
    PermissionDeniedError,
    ModelError,
    RecordNotFoundError,
    RedisConnectionError,
    RelatedRecordNotFoundError,
    RemoteError,
    RuleViolationError,
    SelectionRejectedError,
    TeachingLoadExceededError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExceptionConfig:
    """Configuration for exception handler behavior."""

    status_code: int
    error_name: str
    log_level: str = "warning"
    include_detail: bool = True


_BAD_REQUEST = ExceptionConfig(status.HTTP_400_BAD_REQUEST, "Bad Request")
_CONFLICT = ExceptionConfig(status.HTTP_409_CONFLICT, "Conflict")
_RULE_VIOLATION = ExceptionConfig(
    status.HTTP_422_UNPROCESSABLE_ENTITY, "Rule Violation", log_level="info"
)
_UNAVAILABLE = ExceptionConfig(
    status.HTTP_503_SERVICE_UNAVAILABLE,
    "Service Unavailable",
    log_level="error",
    include_detail=False,
)

# Handlers are matched along the exception's MRO, so subclasses listed here
# take precedence over their bases.
EXCEPTION_CONFIGS: dict[type[Exception], ExceptionConfig] = {
    RecordNotFoundError: ExceptionConfig(status.HTTP_404_NOT_FOUND, "Not Found"),
    PermissionDeniedError: ExceptionConfig(status.HTTP_403_FORBIDDEN, "Forbidden"),
    RelatedRecordNotFoundError: _BAD_REQUEST,
    InvalidFilterError: _BAD_REQUEST,
    DuplicateRecordError: _CONFLICT,
    ValidationError: _CONFLICT,
    SelectionRejectedError: _RULE_VIOLATION,
    TeachingLoadExceededError: _RULE_VIOLATION,
    RuleViolationError: _RULE_VIOLATION,
    DatabaseConnectionError: _UNAVAILABLE,
    RedisConnectionError: _UNAVAILABLE,
    RemoteError: _UNAVAILABLE,
    ModelError: ExceptionConfig(
        status.HTTP_400_BAD_REQUEST, "Bad Request", log_level="error"
    ),
    AppError: ExceptionConfig(
        status.HTTP_400_BAD_REQUEST, "Bad Request", log_level="error"
    ),
}


def _log_exception(exc: Exception, config: ExceptionConfig) -> None:
    log_func: Callable[..., None] = getattr(logger, config.log_level)
    log_func(f"{type(exc).__name__}: {exc}")


def _build_response_content(exc: Exception, config: ExceptionConfig) -> dict[str, Any]:
    """Build response content based on exception type."""
    content: dict[str, Any] = {"error": config.error_name}

    if isinstance(exc, RemoteError):
        content["message"] = "Backing store unavailable. Please try again later."
    elif config.include_detail:
        content["message"] = str(exc)

    if isinstance(exc, RecordNotFoundError):
        content["model"] = exc.model_name
        content["record_id"] = exc.record_id
    elif isinstance(exc, RelatedRecordNotFoundError):
        content["field"] = exc.field
        content["record_id"] = exc.record_id
    elif isinstance(exc, RuleViolationError):
        content["reason"] = exc.reason
        if isinstance(exc, SelectionRejectedError):
            content["violations"] = [
                {"reason": reason, "message": message}
                for reason, message in exc.violations
            ]

    return content


def _create_handler(
    config: ExceptionConfig,
) -> Callable[[Request, Exception], Any]:
    """Create exception handler function for given config."""

    async def handler(request: Request, exc: Exception) -> JSONResponse:
        _log_exception(exc, config)
        content = _build_response_content(exc, config)
        return JSONResponse(status_code=config.status_code, content=content)

    return handler


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Reject malformed request bodies and parameters."""
    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "errors": len(exc.errors())},
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "message": "Request data does not match the expected schema",
            "details": jsonable_encoder(exc.errors()),
        },
    )


async def unknown_route_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    logger.warning("Unknown route", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Not Found", "message": f"No route for {request.url.path}"},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "exception": type(exc).__name__},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": "Something went wrong on our side.",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on ``app``.

    Domain exceptions go through ``EXCEPTION_CONFIGS``; request validation,
    unknown routes and anything unexpected get their own handlers.
    """
    for exc_type, config in EXCEPTION_CONFIGS.items():
        app.add_exception_handler(exc_type, _create_handler(config))

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(404, unknown_route_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
