"""Base service class with transaction management for database operations."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel as Schema
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from academia.exceptions import (
    DatabaseConnectionError,
    DuplicateRecordError,
    InvalidFilterError,
    RecordNotFoundError,
)
from academia.models.base import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class BaseService(Generic[T]):
    """Base service class managing database transactions for model operations.

    Write operations (create, update, delete) commit on success and roll back
    on any error; read operations never commit. Driver errors are logged and
    re-raised as ``DatabaseConnectionError``; unique-constraint violations
    become ``DuplicateRecordError``.

    Usage:
        class RoomService(BaseService[Room]):
            model = Room
            document_schema = RoomDocument

        service = RoomService(db_session)
        room = await service.create(name="A-101")

    Attributes:
        db: Database session for operations
        model: Model class this service manages
        document_schema: Pydantic schema the records are delivered as
    """

    model: type[T]
    document_schema: type[Schema]

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @property
    def model_name(self) -> str:
        return self.model.__name__

    def default_order(self) -> Sequence[ColumnElement]:
        """Stable ordering used by ``get_all``; subclasses override."""
        return (self.model.created_at.asc(),)

    @asynccontextmanager
    async def _db_errors(
        self, operation: str, rollback: bool = False, **context: Any
    ) -> AsyncIterator[None]:
        """Translate SQLAlchemy failures into application errors.

        Args:
            operation: Name used in the log line and error message.
            rollback: Whether to roll the session back on failure (writes).
            **context: Extra fields for the log record.
        """
        try:
            yield
        except IntegrityError as e:
            if rollback:
                await self.db.rollback()
            logger.warning(
                f"Integrity violation during {operation} of {self.model_name}",
                extra={"model": self.model_name, **context, "error": str(e.orig)},
            )
            raise DuplicateRecordError(
                self.model_name,
                f"{self.model_name} conflicts with an existing record",
            ) from e
        except SQLAlchemyError as e:
            if rollback:
                await self.db.rollback()
            logger.error(
                f"Failed to {operation} {self.model_name}",
                extra={"model": self.model_name, **context, "error": str(e)},
                exc_info=True,
            )
            raise DatabaseConnectionError(
                f"Database error during {operation}: {str(e)}"
            ) from e

    def _check_fields(self, fields: dict[str, Any]) -> None:
        for key in fields:
            if not hasattr(self.model, key):
                raise InvalidFilterError(
                    f"Invalid attribute '{key}' for model {self.model_name}"
                )

    async def to_documents(self, records: Sequence[T]) -> List[Schema]:
        """Convert records to client documents, adding derived fields."""
        return [self.document_schema.model_validate(record) for record in records]

    async def to_document(self, record: T) -> Schema:
        documents = await self.to_documents([record])
        return documents[0]

    async def create(self, **kwargs: Any) -> T:
        """Create a new record and commit transaction.

        Raises:
            InvalidFilterError: If an unknown attribute is provided
            DuplicateRecordError: If a unique constraint is violated
            DatabaseConnectionError: If database operation fails
        """
        self._check_fields(kwargs)
        async with self._db_errors("create", rollback=True):
            instance = self.model(**kwargs)
            self.db.add(instance)
            await self.db.flush()
            await self.db.refresh(instance)
            await self.db.commit()
        logger.debug(
            f"Created {self.model_name}",
            extra={"model": self.model_name, "id": instance.id},
        )
        return instance

    async def get_by_id(self, record_id: str) -> Optional[T]:
        """Retrieve a record by id; ``None`` when absent.

        Raises:
            DatabaseConnectionError: If database operation fails
        """
        async with self._db_errors("get", id=record_id):
            result = await self.db.execute(
                select(self.model).where(self.model.id == record_id)
            )
            return result.scalar_one_or_none()

    async def get_by_id_or_fail(self, record_id: str) -> T:
        """Retrieve a record by id.

        Raises:
            RecordNotFoundError: If record not found
            DatabaseConnectionError: If database operation fails
        """
        record = await self.get_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(self.model_name, record_id)
        return record

    async def get_many(self, record_ids: Sequence[str]) -> List[T]:
        """Retrieve the records with the given ids, in default order."""
        if not record_ids:
            return []
        async with self._db_errors("get_many"):
            result = await self.db.execute(
                select(self.model)
                .where(self.model.id.in_(list(record_ids)))
                .order_by(*self.default_order())
            )
            return list(result.scalars().all())

    async def get_all(
        self, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> List[T]:
        """Retrieve all records in the default order with optional pagination.

        Raises:
            DatabaseConnectionError: If database operation fails
        """
        async with self._db_errors("get_all"):
            query = select(self.model).order_by(*self.default_order())
            if offset:
                query = query.offset(offset)
            if limit:
                query = query.limit(limit)
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def find(self, **filters: Any) -> List[T]:
        """Find records whose fields equal the given values.

        Raises:
            InvalidFilterError: If invalid filter key provided
            DatabaseConnectionError: If database operation fails
        """
        self._check_fields(filters)
        async with self._db_errors("find", filters=filters):
            query = select(self.model).order_by(*self.default_order())
            for key, value in filters.items():
                query = query.where(getattr(self.model, key) == value)
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def count(self, **filters: Any) -> int:
        """Count records matching the given filters.

        Raises:
            InvalidFilterError: If invalid filter key provided
            DatabaseConnectionError: If database operation fails
        """
        self._check_fields(filters)
        async with self._db_errors("count", filters=filters):
            query = select(func.count(self.model.id))
            for key, value in filters.items():
                query = query.where(getattr(self.model, key) == value)
            result = await self.db.execute(query)
            return result.scalar_one()

    async def update(self, record_id: str, **kwargs: Any) -> T:
        """Merge fields into a record, bump its version and commit.

        Raises:
            RecordNotFoundError: If record not found
            InvalidFilterError: If invalid attribute provided
            DuplicateRecordError: If a unique constraint is violated
            DatabaseConnectionError: If database operation fails
        """
        self._check_fields(kwargs)
        record = await self.get_by_id_or_fail(record_id)
        async with self._db_errors("update", rollback=True, id=record_id):
            for key, value in kwargs.items():
                setattr(record, key, value)
            record.bump_version()
            await self.db.flush()
            await self.db.refresh(record)
            await self.db.commit()
        logger.debug(
            f"Updated {self.model_name}",
            extra={"model": self.model_name, "id": record_id, "version": record.version},
        )
        return record

    async def delete(self, record_id: str) -> None:
        """Delete a record and commit transaction.

        Raises:
            RecordNotFoundError: If record not found
            DatabaseConnectionError: If database operation fails
        """
        record = await self.get_by_id_or_fail(record_id)
        async with self._db_errors("delete", rollback=True, id=record_id):
            await self.db.delete(record)
            await self.db.flush()
            await self.db.commit()
        logger.debug(
            f"Deleted {self.model_name}",
            extra={"model": self.model_name, "id": record_id},
        )
