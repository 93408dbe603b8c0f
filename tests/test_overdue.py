"""Tests for the overdue loan scan."""

from datetime import date, datetime
from itertools import islice

import pytest

from library_circulation.circulation import OverdueLoans, OverdueScanner
from library_circulation.models import LoanStatus


class CountingManager:
    """Counts the sessions a scan opens."""

    def __init__(self, inner):
        self.inner = inner
        self.sessions = 0

    def session_scope(self):
        self.sessions += 1
        return self.inner.session_scope()


@pytest.fixture
def loan_mix(coordinator, make_book, make_member, clock):
    """
    Loans created on 2024-03-01 and inspected on 2024-03-12.

    Due dates: 03-06, 03-04, 03-11, 03-12 (due today), 03-31 (future), and
    03-02 for a loan that has already been returned.
    """
    book = make_book(total_copies=10)
    member = make_member()
    loans = {
        days: coordinator.create_loan(book.isbn, member.id, days) for days in (5, 3, 10, 11, 30)
    }
    returned = coordinator.create_loan(book.isbn, member.id, 1)
    clock.advance(4)
    coordinator.return_loan(returned.id)
    clock.today = date(2024, 3, 12)
    return loans


class TestFindOverdue:
    def test_only_active_loans_past_due(self, coordinator, loan_mix):
        overdue = list(coordinator.find_overdue(date(2024, 3, 12)))

        assert [loan.id for loan in overdue] == [loan_mix[3].id, loan_mix[5].id, loan_mix[10].id]
        assert all(loan.status == LoanStatus.ACTIVE for loan in overdue)
        assert [loan.due_date for loan in overdue] == sorted(loan.due_date for loan in overdue)

    def test_defaults_to_today(self, coordinator, loan_mix):
        assert [loan.id for loan in coordinator.find_overdue()] == [
            loan_mix[3].id,
            loan_mix[5].id,
            loan_mix[10].id,
        ]

    def test_due_today_is_not_overdue(self, coordinator, loan_mix):
        overdue_ids = {loan.id for loan in coordinator.find_overdue(date(2024, 3, 12))}
        assert loan_mix[11].id not in overdue_ids
        next_day = {loan.id for loan in coordinator.find_overdue(date(2024, 3, 13))}
        assert loan_mix[11].id in next_day

    def test_nothing_overdue_early(self, coordinator, loan_mix):
        assert list(coordinator.find_overdue(date(2024, 3, 2))) == []

    def test_result_is_restartable(self, coordinator, loan_mix):
        overdue = coordinator.find_overdue(date(2024, 4, 15))
        first = [loan.id for loan in overdue]
        second = [loan.id for loan in overdue]
        assert first == second
        assert len(first) == 5

    def test_returns_after_scan_are_seen_on_next_iteration(self, coordinator, loan_mix):
        overdue = coordinator.find_overdue(date(2024, 3, 12))
        assert len(list(overdue)) == 3

        coordinator.return_loan(loan_mix[3].id)
        assert [loan.id for loan in overdue] == [loan_mix[5].id, loan_mix[10].id]


class TestOverdueBatching:
    def test_small_batches_give_the_same_order(self, db_manager, loan_mix):
        as_of = date(2024, 4, 15)
        everything = list(OverdueScanner(db_manager, batch_size=100).find_overdue(as_of))
        batched = list(OverdueScanner(db_manager, batch_size=2).find_overdue(as_of))

        assert [loan.id for loan in batched] == [loan.id for loan in everything]

    def test_scan_is_lazy(self, db_manager, loan_mix):
        counting = CountingManager(db_manager)
        overdue = OverdueScanner(counting, batch_size=2).find_overdue(date(2024, 4, 15))
        assert counting.sessions == 0

        assert len(list(islice(overdue, 2))) == 2
        assert counting.sessions == 1

        # Five loans in batches of two: 2 + 2 + 1
        assert len(list(overdue)) == 5
        assert counting.sessions == 4

    def test_datetime_reference_is_reduced_to_a_date(self, db_manager, loan_mix):
        overdue = OverdueScanner(db_manager).find_overdue(datetime(2024, 3, 12, 18, 30))
        assert overdue.as_of == date(2024, 3, 12)
        assert len(list(overdue)) == 3

    def test_batch_size_must_be_positive(self, db_manager):
        with pytest.raises(ValueError):
            OverdueLoans(db_manager, date(2024, 3, 12), batch_size=0)
