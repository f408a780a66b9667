"""Signed session cookie identifying the signed-in student."""

import hashlib
import hmac
import logging
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from academia.config import get_settings

logger = logging.getLogger(__name__)

COOKIE_NAME = "academia_session"


def _signature(student_id: str, secret_key: str) -> str:
    return hmac.new(
        secret_key.encode(), student_id.encode(), hashlib.sha256
    ).hexdigest()


def generate_session_token(student_id: str, secret_key: str) -> str:
    """Build a cookie value carrying ``student_id``.

    Args:
        student_id: Id of the signed-in student.
        secret_key: Key used to sign the id.

    Returns:
        ``"<student_id>.<hex hmac>"``.
    """
    return f"{student_id}.{_signature(student_id, secret_key)}"


def read_session_token(token: str, secret_key: str) -> Optional[str]:
    """Return the student id of a valid token, ``None`` otherwise."""
    student_id, _, signature = token.rpartition(".")
    if not student_id or not signature:
        return None
    if not hmac.compare_digest(signature, _signature(student_id, secret_key)):
        return None
    return student_id


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """Resolve the session cookie into ``request.state.student_id``.

    Requests without a valid cookie get ``None``; tampered cookies are
    logged and ignored.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.student_id = None
        token = request.cookies.get(COOKIE_NAME)
        if token:
            student_id = read_session_token(token, get_settings().SECRET_KEY)
            if student_id is None:
                logger.warning(
                    "Rejected tampered session cookie",
                    extra={"path": request.url.path},
                )
            request.state.student_id = student_id
        return await call_next(request)
