"""Session schemas."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Sign-in by the email a student registered with.

    Credentials are checked by the external identity provider before this
    call; the service only resolves the student and opens the session.
    """

    email: str = Field(..., min_length=3, max_length=255)
