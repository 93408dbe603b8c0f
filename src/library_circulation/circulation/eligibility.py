"""
Eligibility rules for originating a loan.

Everything here is pure: no I/O, no clock, no mutation. The coordinator feeds
in the member and book it resolved inside its transaction and turns a
negative answer into a typed error.
"""

from enum import Enum

from ..errors import InvalidLoanPeriodError, MemberNotEligibleError, NoStockAvailableError
from ..models.book import Book
from ..models.enums import MemberStatus
from ..models.member import Member


class FailureReason(str, Enum):
    """Why a member may not borrow a book right now."""

    MEMBER_NOT_ELIGIBLE = "member_not_eligible"
    NO_STOCK_AVAILABLE = "no_stock_available"


class EligibilityChecker:
    """Decides whether a member may take a copy of a book."""

    def can_borrow(self, member: Member, book: Book) -> tuple[bool, FailureReason | None]:
        """
        Check a prospective loan.

        Member status is checked before stock, so an inactive member asking
        for an out-of-stock book is reported as not eligible.

        Returns:
            ``(True, None)`` if the loan may proceed, else ``(False, reason)``
        """
        if member.status != MemberStatus.ACTIVE:
            return False, FailureReason.MEMBER_NOT_ELIGIBLE
        if book.available_copies <= 0:
            return False, FailureReason.NO_STOCK_AVAILABLE
        return True, None

    def raise_for(self, reason: FailureReason, member: Member, book: Book) -> None:
        """Raise the typed error matching a failed eligibility check."""
        if reason == FailureReason.MEMBER_NOT_ELIGIBLE:
            status = getattr(member.status, "value", member.status)
            raise MemberNotEligibleError(member.id, status)
        raise NoStockAvailableError(book.isbn, book.available_copies)


def validate_loan_period(value: object, max_days: int) -> int:
    """
    Validate a requested loan period.

    Raises:
        InvalidLoanPeriodError: Unless ``value`` is an int in ``[1, max_days]``
    """
    # bool is an int subclass; True is not a loan period
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidLoanPeriodError(value, max_days)
    if value < 1 or value > max_days:
        raise InvalidLoanPeriodError(value, max_days)
    return value
