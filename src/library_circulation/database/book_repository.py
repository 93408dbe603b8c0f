"""
Book repository implementation for the library circulation core.

Provides keyed access to inventory records plus the counts the circulation
layer needs to check the stock invariant.
"""

from pydantic import BaseModel
from sqlalchemy import func, select

from ..models.book import Book as BookModel
from ..models.enums import LoanStatus
from .repository import BaseRepository
from .schema import Book as BookDB
from .schema import Loan as LoanDB
from .session import safe_query


class BookCreateSchema(BookModel):
    """Schema for registering a new book - same as base model."""


class BookUpdateSchema(BaseModel):
    """Schema for a catalog edit - all fields optional."""

    title: str | None = None
    author: str | None = None
    publisher: str | None = None
    publication_year: int | None = None
    total_copies: int | None = None


class BookRepository(BaseRepository[BookDB, BookModel]):
    """Repository for book data access."""

    key_field = "isbn"

    @property
    def model_class(self):
        return BookDB

    @property
    def response_schema(self):
        return BookModel

    def get_for_update(self, isbn: str) -> BookDB | None:
        """Get a book row that the caller is about to change."""
        return self.get_row(isbn, for_update=True)

    def count_active_loans(self, isbn: str) -> int:
        """Number of active loans currently holding a copy of this book."""
        query = (
            select(func.count())
            .select_from(LoanDB)
            .where(LoanDB.book_isbn == isbn, LoanDB.status == LoanStatus.ACTIVE)
        )
        return (
            safe_query(self.session, lambda s: s.execute(query).scalar(), "count active loans")
            or 0
        )

    def count_loans(self, isbn: str) -> int:
        """Number of loans of any status that reference this book."""
        query = select(func.count()).select_from(LoanDB).where(LoanDB.book_isbn == isbn)
        return safe_query(self.session, lambda s: s.execute(query).scalar(), "count loans") or 0

    def stock_rows(self, isbn: str | None = None) -> list[tuple[BookDB, int]]:
        """
        Book rows paired with their active loan counts, ordered by ISBN.

        Counters and counts come from one statement, so they describe the same
        committed state even while other units are writing.
        """
        active = (
            select(LoanDB.book_isbn, func.count().label("active_loans"))
            .where(LoanDB.status == LoanStatus.ACTIVE)
            .group_by(LoanDB.book_isbn)
            .subquery()
        )
        query = (
            select(BookDB, func.coalesce(active.c.active_loans, 0))
            .outerjoin(active, active.c.book_isbn == BookDB.isbn)
            .order_by(BookDB.isbn)
        )
        if isbn is not None:
            query = query.where(BookDB.isbn == isbn)
        rows = safe_query(self.session, lambda s: s.execute(query).all(), "list book stock")
        return [(book, count) for book, count in rows]
