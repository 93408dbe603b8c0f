"""
Repository pattern implementation for the library circulation core.

Repositories are the persistence collaborator the circulation layer talks to.
They work on a session handed to them and never commit: the transaction
boundary belongs to ``DatabaseManager.run_atomic`` / ``session_scope`` so that
a book update and a loan insert can share one atomic unit.

Reads come in two flavours:

- ``get_row*``: the mapped ORM object, for code that is about to mutate it
- ``get_by_*``: a pydantic model, for read-only callers
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import asc, desc, func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .schema import Base
from .session import safe_query

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class RepositoryException(Exception):
    """Base exception for repository operations."""


class DuplicateError(RepositoryException):
    """Raised when a save collides with an existing unique key."""


class PaginationParams(BaseModel):
    """Standard pagination parameters for list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise ValueError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise ValueError("Page size must be between 1 and 100")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """Standard paginated response for list operations."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Abstract base repository providing keyed and unique-field access.

    Subclasses name the mapped class, the response schema and the key column.
    """

    key_field = "id"

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the pydantic response schema."""

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__.lower()

    def to_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to pydantic response model."""
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _key_column(self):
        return getattr(self.model_class, self.key_field)

    def _unique_column(self, field: str):
        """Resolve ``field`` to a column that is a primary key or declared unique."""
        columns = inspect(self.model_class).columns
        if field not in columns:
            raise ValueError(f"{self.model_class.__name__} has no field '{field}'")
        column = columns[field]
        if not (column.primary_key or column.unique):
            raise ValueError(f"{self.model_class.__name__}.{field} is not a unique field")
        return getattr(self.model_class, field)

    def get_row(self, key: Any, for_update: bool = False) -> ModelType | None:
        """
        Get the mapped row by key.

        Args:
            key: Primary key value
            for_update: Lock the row where the backend supports it
        """
        query = select(self.model_class).where(self._key_column() == key)
        if for_update:
            query = query.with_for_update()
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"get {self.entity_name}",
        )

    def get_by_id(self, key: Any) -> ResponseSchemaType | None:
        """Get entity by key, or None if not found."""
        db_obj = self.get_row(key)
        if db_obj is None:
            return None
        return self.to_model(db_obj)

    def get_row_by_unique_field(self, field: str, value: Any) -> ModelType | None:
        """Get the mapped row whose unique ``field`` equals ``value``."""
        column = self._unique_column(field)
        query = select(self.model_class).where(column == value)
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"get {self.entity_name} by {field}",
        )

    def get_by_unique_field(self, field: str, value: Any) -> ResponseSchemaType | None:
        """Get entity by a unique field, or None if not found."""
        db_obj = self.get_row_by_unique_field(field, value)
        if db_obj is None:
            return None
        return self.to_model(db_obj)

    def save(self, db_obj: ModelType) -> ModelType:
        """
        Insert or update a row and flush it, without committing.

        Flushing here surfaces version conflicts and constraint failures
        inside the caller's transaction.

        Raises:
            DuplicateError: If a unique key collides with an existing row
            RepositoryException: If another integrity constraint fails
        """
        self.session.add(db_obj)
        try:
            self.session.flush()
        except IntegrityError as e:
            message = str(e.orig)
            if "UNIQUE" in message.upper() or "DUPLICATE" in message.upper():
                raise DuplicateError(f"{self.entity_name} already exists: {message}") from e
            raise RepositoryException(f"Constraint failed for {self.entity_name}: {message}") from e
        return db_obj

    def delete(self, db_obj: ModelType) -> None:
        """
        Delete a row and flush, without committing.

        Raises:
            RepositoryException: If other rows still reference this one
        """
        self.session.delete(db_obj)
        try:
            self.session.flush()
        except IntegrityError as e:
            raise RepositoryException(f"Cannot delete {self.entity_name}: {e.orig}") from e

    def get_all(
        self,
        pagination: PaginationParams | None = None,
        order_by: str | None = None,
        order_desc: bool = False,
    ) -> list[ResponseSchemaType] | PaginatedResponse[ResponseSchemaType]:
        """
        Get all entities with optional pagination and sorting.

        Returns:
            List of entities, or a paginated response when ``pagination`` is given
        """
        query = select(self.model_class)

        order_field = self._key_column()
        if order_by and hasattr(self.model_class, order_by):
            order_field = getattr(self.model_class, order_by)
        query = query.order_by(desc(order_field) if order_desc else asc(order_field))

        if pagination:
            pagination.validate_params()

            count_query = select(func.count()).select_from(self.model_class)
            total = (
                safe_query(
                    self.session,
                    lambda s: s.execute(count_query).scalar(),
                    f"count {self.entity_name}",
                )
                or 0
            )

            query = query.offset(pagination.offset).limit(pagination.page_size)
            results = safe_query(
                self.session,
                lambda s: s.execute(query).scalars().all(),
                f"list {self.entity_name}",
            )

            return PaginatedResponse(
                items=[self.to_model(item) for item in results],
                total=total,
                page=pagination.page,
                page_size=pagination.page_size,
                total_pages=(total + pagination.page_size - 1) // pagination.page_size,
                has_next=pagination.page * pagination.page_size < total,
                has_previous=pagination.page > 1,
            )

        results = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            f"list {self.entity_name}",
        )
        return [self.to_model(item) for item in results]

    def exists(self, key: Any) -> bool:
        """Check if entity exists by key."""
        query = select(func.count()).select_from(self.model_class).where(self._key_column() == key)
        count = safe_query(self.session, lambda s: s.execute(query).scalar(), "check existence")
        return bool(count)
