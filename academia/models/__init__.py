"""Data models package."""

from academia.models.base import BaseModel
from academia.models.enrollment import Enrollment
from academia.models.professor import Professor
from academia.models.student import Student
from academia.models.subject import Subject

__all__ = [
    "BaseModel",
    "Enrollment",
    "Professor",
    "Student",
    "Subject",
]
