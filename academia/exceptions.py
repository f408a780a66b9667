"""Application exceptions."""

from typing import Sequence


class AppError(Exception):
    """Base exception for application errors."""


class ModelError(AppError):
    """Base exception for model/database operations."""


class RecordNotFoundError(ModelError):
    """Raised when a record is not found in the database."""

    def __init__(self, model_name: str, record_id: str):
        self.model_name = model_name
        self.record_id = record_id
        super().__init__(f"{model_name} with id={record_id} not found")


class RelatedRecordNotFoundError(ModelError):
    """Raised when a related record (FK) is not found."""

    def __init__(self, field: str, record_id: str):
        self.field = field
        self.record_id = record_id
        super().__init__(f"Related record for '{field}' with id={record_id} not found")


class InvalidFilterError(ModelError):
    """Raised when invalid filter is provided."""


class RemoteError(AppError):
    """Base exception for failures of the backing stores (database, Redis)."""


class DatabaseConnectionError(RemoteError, ModelError):
    """Raised when database connection fails."""


class RedisConnectionError(RemoteError):
    """Raised when Redis connection fails."""


class ValidationError(AppError):
    """Raised when input is malformed or conflicts with existing data."""


class DuplicateRecordError(ValidationError):
    """Raised when a record with the same unique fields already exists."""

    def __init__(self, model_name: str, detail: str):
        self.model_name = model_name
        super().__init__(detail)


class RuleViolationError(AppError):
    """Raised when an enrollment or teaching rule rejects an action.

    Attributes:
        reason: Machine-readable reason code.
    """

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class TeachingLoadExceededError(RuleViolationError):
    """Raised when a professor already teaches the maximum number of subjects."""

    def __init__(self, professor_id: str, max_subjects: int):
        self.professor_id = professor_id
        self.max_subjects = max_subjects
        super().__init__(
            "TEACHING_LOAD_EXCEEDED",
            f"Professor {professor_id} already teaches the maximum of "
            f"{max_subjects} subjects",
        )


class SelectionRejectedError(RuleViolationError):
    """Raised when a submitted selection breaks one or more enrollment rules."""

    def __init__(self, violations: Sequence[tuple[str, str]]):
        self.violations = list(violations)
        reason, message = self.violations[0]
        super().__init__(reason, message)


class PermissionDeniedError(AppError):
    """Raised when a signed-in student acts outside their own record."""
