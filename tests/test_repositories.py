"""
Tests for repository functionality.

Repositories work on a session they are given and never commit, so these
tests drive them directly against an in-memory database.
"""

from datetime import date

import pytest

from library_circulation.database import (
    BookRepository,
    DatabaseManager,
    DuplicateError,
    LoanRepository,
    MemberRepository,
    PaginationParams,
    RepositoryException,
    generate_loan_id,
    generate_member_id,
)
from library_circulation.database.schema import Book as BookDB
from library_circulation.database.schema import Loan as LoanDB
from library_circulation.database.schema import Member as MemberDB
from library_circulation.models import LoanStatus, MemberStatus


@pytest.fixture
def test_session():
    """Create a test database session."""
    manager = DatabaseManager("sqlite:///:memory:", lock_timeout=1.0)
    manager.init_database()
    session = manager.create_session()
    yield session
    session.close()
    manager.close()


@pytest.fixture
def repositories(test_session):
    """Create repository instances."""
    return {
        "book": BookRepository(test_session),
        "member": MemberRepository(test_session),
        "loan": LoanRepository(test_session),
    }


def _book(isbn="9780134685479", total=2, available=2):
    return BookDB(
        isbn=isbn,
        title="Effective Java",
        author="Joshua Bloch",
        total_copies=total,
        available_copies=available,
    )


def _member(number="1001", email="ada@example.com", status=MemberStatus.ACTIVE):
    return MemberDB(
        id=generate_member_id(),
        member_number=number,
        name="Ada Lovelace",
        email=email,
        status=status,
    )


def _loan(book_isbn, member_id, due, loan_date=date(2024, 3, 1)):
    return LoanDB(
        id=generate_loan_id(),
        book_isbn=book_isbn,
        member_id=member_id,
        loan_date=loan_date,
        due_date=due,
        status=LoanStatus.ACTIVE,
    )


def test_save_and_get_by_id(repositories):
    books = repositories["book"]
    books.save(_book())

    book = books.get_by_id("9780134685479")
    assert book is not None
    assert book.title == "Effective Java"
    assert book.available_copies == 2
    assert books.exists("9780134685479")
    assert books.get_by_id("9789999999999") is None


def test_version_column_starts_at_one(repositories):
    row = repositories["book"].save(_book())
    assert row.version == 1


def test_get_by_unique_field(repositories):
    members = repositories["member"]
    saved = members.save(_member())

    by_number = members.get_by_member_number("1001")
    assert by_number is not None
    assert by_number.id == saved.id

    by_email = members.get_by_unique_field("email", "ada@example.com")
    assert by_email.id == saved.id
    assert members.get_by_unique_field("email", "nobody@example.com") is None


def test_get_by_non_unique_field_rejected(repositories):
    with pytest.raises(ValueError, match="not a unique field"):
        repositories["member"].get_by_unique_field("name", "Ada Lovelace")

    with pytest.raises(ValueError, match="has no field"):
        repositories["book"].get_by_unique_field("shelf", "A1")


def test_duplicate_unique_key(repositories, test_session):
    members = repositories["member"]
    members.save(_member())

    with pytest.raises(DuplicateError):
        members.save(_member(email="other@example.com"))
    test_session.rollback()


def test_check_constraint_failure(repositories, test_session):
    with pytest.raises(RepositoryException):
        repositories["book"].save(_book(total=1, available=2))
    test_session.rollback()


def test_count_active_loans(repositories):
    books, members, loans = repositories["book"], repositories["member"], repositories["loan"]
    books.save(_book(total=3, available=1))
    books.save(_book(isbn="9780596007126", total=1, available=1))
    member = members.save(_member())

    loans.save(_loan("9780134685479", member.id, date(2024, 3, 15)))
    loans.save(_loan("9780134685479", member.id, date(2024, 3, 20)))

    assert books.count_active_loans("9780134685479") == 2
    assert books.count_active_loans("9780596007126") == 0
    assert [(book.isbn, count) for book, count in books.stock_rows()] == [
        ("9780134685479", 2),
        ("9780596007126", 0),
    ]
    assert [count for _, count in books.stock_rows("9780596007126")] == [0]


def test_find_overdue_batch_keyset(repositories):
    books, members, loans = repositories["book"], repositories["member"], repositories["loan"]
    books.save(_book(total=5, available=1))
    member = members.save(_member())
    for day in (10, 5, 12, 5):
        loans.save(_loan("9780134685479", member.id, date(2024, 3, day)))

    as_of = date(2024, 3, 11)
    first = loans.find_overdue_batch(as_of, limit=2)
    assert [loan.due_date.day for loan in first] == [5, 5]
    assert first[0].id < first[1].id

    last = first[-1]
    rest = loans.find_overdue_batch(as_of, limit=2, after=(last.due_date, last.id))
    assert [loan.due_date.day for loan in rest] == [10]


def test_list_active_for_member(repositories):
    books, members, loans = repositories["book"], repositories["member"], repositories["loan"]
    books.save(_book(total=2, available=0))
    member = members.save(_member())
    other = members.save(_member(number="1002", email="grace@example.com"))
    mine = loans.save(_loan("9780134685479", member.id, date(2024, 3, 15)))
    loans.save(_loan("9780134685479", other.id, date(2024, 3, 15)))

    assert [loan.id for loan in loans.list_active_for_member(member.id)] == [mine.id]


def test_list_by_status(repositories):
    members = repositories["member"]
    members.save(_member())
    members.save(_member(number="1002", email="grace@example.com", status=MemberStatus.SUSPENDED))

    suspended = members.list_by_status(MemberStatus.SUSPENDED)
    assert [m.member_number for m in suspended] == ["1002"]


def test_pagination(repositories):
    books = repositories["book"]
    for i in range(5):
        books.save(_book(isbn=f"978000000000{i}"))

    page = books.get_all(pagination=PaginationParams(page=2, page_size=2))
    assert page.total == 5
    assert page.total_pages == 3
    assert [b.isbn for b in page.items] == ["9780000000002", "9780000000003"]
    assert page.has_next is True
    assert page.has_previous is True

    with pytest.raises(ValueError):
        books.get_all(pagination=PaginationParams(page=0))
