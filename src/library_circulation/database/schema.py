"""
SQLAlchemy database schema for the library circulation core.

The tables mirror the pydantic models in ``library_circulation.models``:

- ``books``: inventory records with stock counters
- ``members``: membership records with eligibility status
- ``loans``: one row per loan, referencing a book and a member

``books`` and ``loans`` carry a version column used by SQLAlchemy's
optimistic concurrency check: an UPDATE only applies if the row still has the
version that was read, otherwise the flush raises ``StaleDataError``. This is
what stops two concurrent loans from taking the last copy of a book.
"""

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import declarative_base, relationship

from ..models.enums import LoanStatus, MemberRole, MemberStatus

Base = declarative_base()


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Book(Base):
    """
    Books table - the inventory side of circulation.

    ``available_copies`` is only changed by the loan coordinator (one copy per
    loan or return) or by an explicit catalog edit.
    """

    __tablename__ = "books"

    # ISBN as primary key (normalized without hyphens)
    isbn = Column(String(13), primary_key=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(200), nullable=False)
    publisher = Column(String(200), nullable=True)
    publication_year = Column(Integer, nullable=True)
    total_copies = Column(Integer, nullable=False)
    available_copies = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    loans = relationship("Loan", back_populates="book")

    __table_args__ = (
        Index("idx_book_availability", "available_copies"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
        CheckConstraint("total_copies > 0", name="check_total_copies_positive"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"Book(isbn={self.isbn!r}, title={self.title!r}, "
            f"stock={self.available_copies}/{self.total_copies})"
        )


class Member(Base):
    """Members table - borrowers and their eligibility status."""

    __tablename__ = "members"

    id = Column(String(50), primary_key=True)
    member_number = Column(String(20), nullable=False, unique=True)
    name = Column(String(200), nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(30), nullable=True)
    role = Column(
        Enum(MemberRole, name="member_role", values_callable=_enum_values),
        nullable=False,
        default=MemberRole.MEMBER,
    )
    status = Column(
        Enum(MemberStatus, name="member_status", values_callable=_enum_values),
        nullable=False,
        default=MemberStatus.ACTIVE,
    )
    registration_date = Column(Date, nullable=False, default=date.today)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    loans = relationship("Loan", back_populates="member")

    __table_args__ = (
        Index("idx_member_status", "status"),
        CheckConstraint("id LIKE 'member_%'", name="check_member_id_format"),
    )

    def __repr__(self) -> str:
        return f"Member(id={self.id!r}, number={self.member_number!r}, status={self.status})"


class Loan(Base):
    """
    Loans table - one row per copy lent out.

    The constraints repeat the lifecycle rules of the pydantic model so that a
    buggy writer cannot persist a half-returned loan.
    """

    __tablename__ = "loans"

    id = Column(String(50), primary_key=True)
    book_isbn = Column(String(13), ForeignKey("books.isbn"), nullable=False)
    member_id = Column(String(50), ForeignKey("members.id"), nullable=False)
    loan_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)
    status = Column(
        Enum(LoanStatus, name="loan_status", values_callable=_enum_values),
        nullable=False,
        default=LoanStatus.ACTIVE,
    )
    fine_assessed = Column(Float, nullable=False, default=0.0)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    book = relationship("Book", back_populates="loans")
    member = relationship("Member", back_populates="loans")

    __table_args__ = (
        Index("idx_loan_member", "member_id"),
        Index("idx_loan_book_status", "book_isbn", "status"),
        Index("idx_loan_status_due", "status", "due_date"),
        CheckConstraint("id LIKE 'loan_%'", name="check_loan_id_format"),
        CheckConstraint("due_date > loan_date", name="check_due_after_loan"),
        CheckConstraint(
            "return_date IS NULL OR return_date >= loan_date",
            name="check_return_not_before_loan",
        ),
        CheckConstraint(
            "(status = 'active' AND return_date IS NULL) OR "
            "(status = 'returned' AND return_date IS NOT NULL)",
            name="check_status_matches_return_date",
        ),
        CheckConstraint("fine_assessed >= 0", name="check_fine_non_negative"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"Loan(id={self.id!r}, book={self.book_isbn!r}, status={self.status})"
