"""Enrollment rules and the selection controller."""

from academia.enrollment.rules import (
    DEFAULT_LIMITS,
    Decision,
    EnrollmentLimits,
    Reason,
)

__all__ = ["DEFAULT_LIMITS", "Decision", "EnrollmentLimits", "Reason"]
