"""
Loan lifecycle coordination.

``LoanLifecycleCoordinator`` is the only writer of circulation state. It owns
two operations that each touch two tables:

1. **create_loan**: take one copy off the shelf and record an active loan
2. **return_loan**: close the loan and put the copy back

Each runs as one atomic unit through ``DatabaseManager.run_atomic``: the book
update and the loan write commit together or not at all. Concurrent callers
are kept apart by the version columns on ``books`` and ``loans``. When two
units race for the same row, the loser's flush fails, its transaction rolls
back, and the coordinator re-runs the whole unit against fresh data. Business
rule failures are raised straight to the caller and never retried.
"""

import logging
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import TypeVar

from sqlalchemy.orm import Session

from ..config import CirculationConfig, get_config
from ..database.book_repository import BookRepository
from ..database.loan_repository import LoanRepository, generate_loan_id
from ..database.member_repository import MemberRepository
from ..database.repository import PaginatedResponse, PaginationParams
from ..database.schema import Book as BookDB
from ..database.schema import Loan as LoanDB
from ..database.session import DatabaseManager
from ..errors import (
    EntityNotFoundError,
    InvariantViolationError,
    LoanNotActiveError,
    TransientError,
)
from ..models.book import Book, normalize_isbn
from ..models.enums import LoanStatus
from ..models.loan import Loan
from .eligibility import EligibilityChecker, validate_loan_period
from .fines import FineCalculator
from .overdue import OverdueLoans, OverdueScanner

logger = logging.getLogger(__name__)

T = TypeVar("T")


def lookup_isbn(isbn: str) -> str:
    """
    Normalize an ISBN used to look up a stored book.

    Raises:
        EntityNotFoundError: The value is not a well-formed ISBN, so no book has it
    """
    try:
        return normalize_isbn(isbn)
    except ValueError:
        raise EntityNotFoundError("book", isbn) from None


def check_stock_bounds(book: BookDB) -> None:
    """
    Verify a stored book row satisfies ``0 <= available <= total``.

    Raises:
        InvariantViolationError: If the stored counters are already inconsistent
    """
    if book.total_copies < 1 or not (0 <= book.available_copies <= book.total_copies):
        raise InvariantViolationError(
            f"book '{book.isbn}' has {book.available_copies} available of "
            f"{book.total_copies} total copies",
            book_isbn=book.isbn,
            available=book.available_copies,
            total=book.total_copies,
        )


class LoanLifecycleCoordinator:
    """
    Creates and returns loans while keeping stock counts consistent.

    The coordinator holds no mutable state of its own; every call opens its
    own session, so one instance can be shared across threads.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        config: CirculationConfig | None = None,
        *,
        eligibility: EligibilityChecker | None = None,
        fine_calculator: FineCalculator | None = None,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db_manager = db_manager
        self.config = config or get_config()
        self.eligibility = eligibility or EligibilityChecker()
        self.fine_calculator = fine_calculator or FineCalculator(self.config.daily_fine_rate)
        self.overdue_scanner = OverdueScanner(
            db_manager, batch_size=self.config.overdue_batch_size, today=today
        )
        self._today = today
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create_loan(
        self, book_isbn: str, member_id: str, loan_period_days: int | None = None
    ) -> Loan:
        """
        Lend one copy of a book to a member.

        Args:
            book_isbn: ISBN of the book to lend
            member_id: ID of the borrowing member
            loan_period_days: Days until due; defaults to the configured period

        Returns:
            The persisted active loan

        Raises:
            InvalidLoanPeriodError: Period outside ``[1, max_loan_period_days]``
            EntityNotFoundError: Unknown book or member
            MemberNotEligibleError: Member is not active
            NoStockAvailableError: No copy left on the shelf
            InvariantViolationError: Stored stock counters are already broken
            ConcurrentModificationError: Conflicts persisted through every retry
            PersistenceUnavailableError: Store unavailable through every retry
        """
        if loan_period_days is None:
            loan_period_days = self.config.default_loan_period_days
        period = validate_loan_period(loan_period_days, self.config.max_loan_period_days)
        book_isbn = lookup_isbn(book_isbn)

        loan = self._run_with_retry(
            "create_loan",
            lambda session: self._create_loan_unit(session, book_isbn, member_id, period),
        )
        logger.info(
            "Loan %s created: book %s to member %s, due %s",
            loan.id,
            loan.book_isbn,
            loan.member_id,
            loan.due_date.isoformat(),
        )
        return loan

    def _create_loan_unit(
        self, session: Session, book_isbn: str, member_id: str, period: int
    ) -> Loan:
        books = BookRepository(session)
        members = MemberRepository(session)
        loans = LoanRepository(session)

        book_row = books.get_for_update(book_isbn)
        if book_row is None:
            raise EntityNotFoundError("book", book_isbn)

        member = members.get_by_id(member_id)
        if member is None:
            raise EntityNotFoundError("member", member_id)

        check_stock_bounds(book_row)
        book = books.to_model(book_row)

        allowed, reason = self.eligibility.can_borrow(member, book)
        if not allowed:
            self.eligibility.raise_for(reason, member, book)

        book_row.available_copies -= 1
        books.save(book_row)

        start = self._today()
        loan_row = LoanDB(
            id=generate_loan_id(),
            book_isbn=book_row.isbn,
            member_id=member.id,
            loan_date=start,
            due_date=start + timedelta(days=period),
            status=LoanStatus.ACTIVE,
            fine_assessed=0.0,
        )
        loans.save(loan_row)

        return loans.to_model(loan_row)

    def return_loan(self, loan_id: str) -> Loan:
        """
        Close an active loan and put the copy back on the shelf.

        The fine owed as of the return date is recorded on the loan.

        Returns:
            The updated, returned loan

        Raises:
            EntityNotFoundError: Unknown loan
            LoanNotActiveError: Loan was already returned
            InvariantViolationError: The copy cannot go back without exceeding
                the book's total, or the loan's book is missing
            ConcurrentModificationError: Conflicts persisted through every retry
            PersistenceUnavailableError: Store unavailable through every retry
        """
        loan = self._run_with_retry(
            "return_loan", lambda session: self._return_loan_unit(session, loan_id)
        )
        logger.info(
            "Loan %s returned on %s (fine assessed: %.2f)",
            loan.id,
            loan.return_date.isoformat(),
            loan.fine_assessed,
        )
        return loan

    def _return_loan_unit(self, session: Session, loan_id: str) -> Loan:
        books = BookRepository(session)
        loans = LoanRepository(session)

        loan_row = loans.get_row(loan_id, for_update=True)
        if loan_row is None:
            raise EntityNotFoundError("loan", loan_id)

        if loan_row.status != LoanStatus.ACTIVE:
            raise LoanNotActiveError(loan_id, LoanStatus(loan_row.status).value)

        returned_on = self._today()
        if returned_on < loan_row.loan_date:
            raise InvariantViolationError(
                f"loan '{loan_id}' starts on {loan_row.loan_date.isoformat()}, "
                f"after the return date {returned_on.isoformat()}",
                loan_id=loan_id,
            )

        fine = self.fine_calculator.calculate_fine(loans.to_model(loan_row), returned_on)

        # Close the loan before touching the book. A return that committed
        # since the read above fails this version check and the retry sees
        # the loan as returned.
        loan_row.status = LoanStatus.RETURNED
        loan_row.return_date = returned_on
        loan_row.fine_assessed = fine
        loans.save(loan_row)

        book_row = books.get_for_update(loan_row.book_isbn)
        if book_row is None:
            raise InvariantViolationError(
                f"loan '{loan_id}' references missing book '{loan_row.book_isbn}'",
                loan_id=loan_id,
                book_isbn=loan_row.book_isbn,
            )

        check_stock_bounds(book_row)
        if book_row.available_copies + 1 > book_row.total_copies:
            raise InvariantViolationError(
                f"returning loan '{loan_id}' would raise available copies of "
                f"'{book_row.isbn}' above {book_row.total_copies}",
                loan_id=loan_id,
                book_isbn=book_row.isbn,
                available=book_row.available_copies,
                total=book_row.total_copies,
            )

        book_row.available_copies += 1
        books.save(book_row)

        return loans.to_model(loan_row)

    def _run_with_retry(self, operation: str, unit: Callable[[Session], T]) -> T:
        """
        Run an atomic unit, re-running it after transient failures.

        Only ``TransientError`` is retried; the unit is rolled back before
        each retry, so every attempt starts from committed state.
        """
        attempts = self.config.max_transaction_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self.db_manager.run_atomic(unit, operation)
            except TransientError as e:
                if attempt == attempts:
                    logger.warning(
                        "%s failed after %d attempt(s): %s", operation, attempt, e.message
                    )
                    raise
                delay = self.config.retry_backoff_seconds * attempt
                logger.warning(
                    "%s attempt %d/%d hit %s; retrying in %.3fs",
                    operation,
                    attempt,
                    attempts,
                    e.kind,
                    delay,
                )
                if delay:
                    self._sleep(delay)
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_loan(self, loan_id: str) -> Loan:
        """
        Raises:
            EntityNotFoundError: Unknown loan
        """
        with self.db_manager.session_scope() as session:
            loan = LoanRepository(session).get_by_id(loan_id)
        if loan is None:
            raise EntityNotFoundError("loan", loan_id)
        return loan

    def get_book(self, book_isbn: str) -> Book:
        """
        Raises:
            EntityNotFoundError: Unknown book
        """
        book_isbn = lookup_isbn(book_isbn)
        with self.db_manager.session_scope() as session:
            book = BookRepository(session).get_by_id(book_isbn)
        if book is None:
            raise EntityNotFoundError("book", book_isbn)
        return book

    def list_loans(
        self, pagination: PaginationParams | None = None
    ) -> list[Loan] | PaginatedResponse[Loan]:
        """All loans ordered by loan date, newest first."""
        with self.db_manager.session_scope() as session:
            return LoanRepository(session).get_all(
                pagination=pagination, order_by="loan_date", order_desc=True
            )

    def list_active_loans_for_member(self, member_id: str) -> list[Loan]:
        """
        Raises:
            EntityNotFoundError: Unknown member
        """
        with self.db_manager.session_scope() as session:
            if not MemberRepository(session).exists(member_id):
                raise EntityNotFoundError("member", member_id)
            return LoanRepository(session).list_active_for_member(member_id)

    def calculate_fine(self, loan_id: str, as_of: date | datetime | None = None) -> float:
        """
        Fine currently owed on a loan.

        Args:
            loan_id: Loan to price
            as_of: Reference date, defaults to today

        Raises:
            EntityNotFoundError: Unknown loan
        """
        loan = self.get_loan(loan_id)
        reference = as_of if as_of is not None else self._today()
        return self.fine_calculator.calculate_fine(loan, reference)

    def find_overdue(self, as_of: date | datetime | None = None) -> OverdueLoans:
        """Active loans due before ``as_of`` (default today), earliest due first."""
        return self.overdue_scanner.find_overdue(as_of)
