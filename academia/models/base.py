"""Base model class with string ids, timestamps and version tracking."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from academia.utils.db import Base


def generate_id() -> str:
    """Opaque document id assigned by the server."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseModel(Base):
    """Abstract base class for all persisted entities.

    Provides the columns every collection shares:
    - Opaque string primary key (id)
    - Timestamps (created_at, updated_at)
    - Monotonic version, bumped by the services on every write

    Usage:
        class Room(BaseModel):
            __tablename__ = "rooms"

            name: Mapped[str] = mapped_column(String(100))
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # Lets snapshot consumers drop copies older than the one they hold
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def bump_version(self) -> None:
        """Mark the entity as changed even when none of its columns changed."""
        self.version = (self.version or 0) + 1
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert model instance to dictionary.

        Returns:
            Dictionary representation of the model
        """
        return {
            column.name: getattr(self, column.name) for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        """String representation of the model."""
        attrs = ", ".join(
            f"{key}={repr(value)}"
            for key, value in self.to_dict().items()
            if key != "id"
        )
        return f"{self.__class__.__name__}(id={self.id!r}, {attrs})"
