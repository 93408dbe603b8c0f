"""Tests for loan eligibility rules and loan period validation."""

import pytest

from library_circulation.circulation import EligibilityChecker, FailureReason, validate_loan_period
from library_circulation.errors import (
    InvalidLoanPeriodError,
    MemberNotEligibleError,
    NoStockAvailableError,
)
from library_circulation.models import Book, Member, MemberStatus


def _member(status=MemberStatus.ACTIVE):
    return Member(
        id="member_test001",
        member_number="1001",
        name="Test Member",
        email="member@example.com",
        status=status,
    )


def _book(available=1, total=1):
    return Book(
        isbn="9780134685479",
        title="Test Book",
        author="Test Author",
        total_copies=total,
        available_copies=available,
    )


class TestCanBorrow:
    checker = EligibilityChecker()

    def test_active_member_with_stock(self):
        assert self.checker.can_borrow(_member(), _book()) == (True, None)

    @pytest.mark.parametrize("status", [MemberStatus.INACTIVE, MemberStatus.SUSPENDED])
    def test_inactive_member(self, status):
        assert self.checker.can_borrow(_member(status), _book()) == (
            False,
            FailureReason.MEMBER_NOT_ELIGIBLE,
        )

    def test_no_stock(self):
        assert self.checker.can_borrow(_member(), _book(available=0)) == (
            False,
            FailureReason.NO_STOCK_AVAILABLE,
        )

    def test_member_status_checked_before_stock(self):
        allowed, reason = self.checker.can_borrow(
            _member(MemberStatus.INACTIVE), _book(available=0)
        )
        assert allowed is False
        assert reason == FailureReason.MEMBER_NOT_ELIGIBLE

    def test_raise_for_member(self):
        with pytest.raises(MemberNotEligibleError) as exc_info:
            self.checker.raise_for(
                FailureReason.MEMBER_NOT_ELIGIBLE, _member(MemberStatus.SUSPENDED), _book()
            )
        assert exc_info.value.member_id == "member_test001"
        assert exc_info.value.status == "suspended"

    def test_raise_for_stock(self):
        with pytest.raises(NoStockAvailableError) as exc_info:
            self.checker.raise_for(FailureReason.NO_STOCK_AVAILABLE, _member(), _book(available=0))
        assert exc_info.value.to_dict() == {
            "kind": "no_stock_available",
            "message": exc_info.value.message,
            "book_isbn": "9780134685479",
            "available": 0,
        }


class TestValidateLoanPeriod:
    @pytest.mark.parametrize("days", [1, 14, 60])
    def test_valid_periods(self, days):
        assert validate_loan_period(days, 60) == days

    @pytest.mark.parametrize("days", [0, -3, 61, 1.5, "14", None, True])
    def test_invalid_periods(self, days):
        with pytest.raises(InvalidLoanPeriodError) as exc_info:
            validate_loan_period(days, 60)
        assert exc_info.value.max_days == 60
