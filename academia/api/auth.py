"""Session routes: sign a student in and out."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from academia.config import get_settings
from academia.exceptions import PermissionDeniedError, RecordNotFoundError
from academia.gateway import RemoteGateway
from academia.middleware.auth import has_valid_api_key
from academia.middleware.session import COOKIE_NAME, generate_session_token
from academia.schemas.auth import LoginRequest
from academia.schemas.student import StudentDocument
from academia.utils.dependencies import get_current_student, get_gateway

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = 86400 * 7  # 7 days

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    gateway: RemoteGateway = Depends(get_gateway),
) -> StudentDocument:
    """Open a session for the student registered with ``email``.

    Called by the trusted sign-in front end, which verifies the student's
    credentials first and proves itself with the API key.

    Raises:
        PermissionDeniedError: If the API key is missing or wrong.
        RecordNotFoundError: If no student uses that email.
    """
    if not has_valid_api_key(request):
        logger.warning("Login attempt without a valid API key")
        raise PermissionDeniedError("Sign-in must come through the trusted front end")

    student = await gateway.students.get_by_email(data.email)
    if student is None:
        logger.warning("Failed login attempt")
        raise RecordNotFoundError("Student", data.email)

    settings = get_settings()
    response.set_cookie(
        key=COOKIE_NAME,
        value=generate_session_token(student.id, settings.SECRET_KEY),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=SESSION_MAX_AGE,
    )
    logger.info("Student signed in", extra={"student_id": student.id})
    return student


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response) -> None:
    response.delete_cookie(key=COOKIE_NAME)
    logger.info("Student signed out")


@router.get("/me", response_model=None)
async def me(
    student: Optional[StudentDocument] = Depends(get_current_student),
) -> StudentDocument | JSONResponse:
    """Signed-in student resolved from the session cookie."""
    if student is None:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Unauthorized", "message": "Not signed in"},
        )
    return student
