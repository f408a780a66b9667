"""Access control for the /api routes."""

import hmac
import logging
from typing import Callable, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from academia.config import get_settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-KEY"

CALLER_API_KEY = "api_key"
CALLER_SESSION = "session"

READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def has_valid_api_key(request: Request) -> bool:
    presented = request.headers.get(API_KEY_HEADER)
    return bool(presented) and hmac.compare_digest(presented, get_settings().API_KEY)


def session_may(method: str, path: str, student_id: str) -> bool:
    """Whether a signed-in student may call ``method`` on ``path``.

    Students read everything but only write their own record: the profile
    (PATCH), the selection and single-subject enrollment.
    """
    if method in READ_METHODS:
        return True
    parts = path.strip("/").split("/")[1:]
    if len(parts) < 2 or parts[0] != "students" or parts[1] != student_id:
        return False
    rest = parts[2:]
    if not rest:
        return method == "PATCH"
    if rest[0] == "selection":
        return True
    return rest[0] == "subjects" and len(rest) == 2 and method in ("POST", "DELETE")


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Guard every endpoint under /api.

    A request with a matching X-API-KEY header has full access. A signed-in
    student session (resolved earlier by ``SessionCookieMiddleware``) is
    limited by ``session_may``. Health, docs, root and /auth endpoints are
    public. The outcome is stored as ``request.state.caller``.
    """

    PROTECTED_PREFIX: str = "/api"

    @classmethod
    def is_protected_path(cls, path: str) -> bool:
        return path == cls.PROTECTED_PREFIX or path.startswith(
            f"{cls.PROTECTED_PREFIX}/"
        )

    @staticmethod
    def _caller(request: Request) -> Optional[str]:
        if has_valid_api_key(request):
            return CALLER_API_KEY
        if getattr(request.state, "student_id", None):
            return CALLER_SESSION
        return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        caller = self._caller(request)
        request.state.caller = caller
        if not self.is_protected_path(path):
            return await call_next(request)

        if caller is None:
            logger.warning(
                "Rejected unauthenticated request",
                extra={
                    "path": path,
                    "method": request.method,
                    "key_presented": API_KEY_HEADER.lower() in request.headers,
                },
            )
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={
                    "error": "Unauthorized",
                    "message": "Sign in or provide a valid API key",
                },
            )

        student_id = getattr(request.state, "student_id", None)
        if caller == CALLER_SESSION and not session_may(request.method, path, student_id):
            logger.warning(
                "Rejected student write outside own record",
                extra={"path": path, "method": request.method, "student_id": student_id},
            )
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={
                    "error": "Forbidden",
                    "message": "Students may only change their own record",
                },
            )

        return await call_next(request)
