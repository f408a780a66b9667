"""Dependency injection functions for FastAPI routes.

The gateway and its change feed are created once per application in the
lifespan handler and stored on ``app.state``; routes reach them through
these functions, which tests replace via ``app.dependency_overrides``.
"""

from typing import Optional

from fastapi import Depends, Request

from academia.enrollment.rules import EnrollmentLimits
from academia.exceptions import RecordNotFoundError
from academia.gateway import RemoteGateway
from academia.schemas.student import StudentDocument


def get_gateway(request: Request) -> RemoteGateway:
    """Application-wide gateway."""
    return request.app.state.gateway


def get_limits(gateway: RemoteGateway = Depends(get_gateway)) -> EnrollmentLimits:
    return gateway.limits


def get_session_student_id(request: Request) -> Optional[str]:
    """Student id carried by the session cookie, if any."""
    return getattr(request.state, "student_id", None)


async def get_current_student(
    student_id: Optional[str] = Depends(get_session_student_id),
    gateway: RemoteGateway = Depends(get_gateway),
) -> Optional[StudentDocument]:
    """Signed-in student, ``None`` for API-key callers.

    Raises:
        RecordNotFoundError: If the session points at a deleted student
    """
    if student_id is None:
        return None
    student = await gateway.students.get_by_id(student_id)
    if student is None:
        raise RecordNotFoundError("Student", student_id)
    return student


def get_caller(request: Request) -> Optional[str]:
    """``"api_key"``, ``"session"`` or ``None``, as resolved by the API key middleware."""
    return getattr(request.state, "caller", None)
