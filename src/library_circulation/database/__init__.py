"""
Database package for the library circulation core.

This package is the persistence collaborator:
- SQLAlchemy schema definitions (schema.py)
- Session and transaction management (session.py)
- Per-entity repositories with keyed and unique-field lookups
"""

from .book_repository import BookCreateSchema, BookRepository, BookUpdateSchema
from .loan_repository import LoanRepository, generate_loan_id
from .member_repository import MemberCreateSchema, MemberRepository, generate_member_id
from .repository import (
    BaseRepository,
    DuplicateError,
    PaginatedResponse,
    PaginationParams,
    RepositoryException,
)
from .schema import Base, Book, Loan, Member
from .session import (
    DatabaseManager,
    get_db_manager,
    reset_db_manager,
    safe_query,
)

__all__ = [
    "Base",
    "BaseRepository",
    "Book",
    "BookCreateSchema",
    "BookRepository",
    "BookUpdateSchema",
    "DatabaseManager",
    "DuplicateError",
    "Loan",
    "LoanRepository",
    "Member",
    "MemberCreateSchema",
    "MemberRepository",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "generate_loan_id",
    "generate_member_id",
    "get_db_manager",
    "reset_db_manager",
    "safe_query",
]
