"""
Overdue fine calculation.
"""

from datetime import date, datetime

from ..models.loan import Loan


def as_date(value: date | datetime) -> date:
    """Reduce a datetime to its calendar date; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


class FineCalculator:
    """
    Computes the fine owed on a loan as of a given date.

    Only active loans accrue fines, and only for whole days past the due
    date. The reference date is always passed in so results do not depend on
    the wall clock.
    """

    def __init__(self, daily_rate: float = 1.0):
        if daily_rate < 0:
            raise ValueError("Daily fine rate cannot be negative")
        self.daily_rate = daily_rate

    def overdue_days(self, loan: Loan, as_of: date | datetime) -> int:
        """Whole days between the due date and ``as_of``, 0 if not overdue."""
        return loan.overdue_days(as_date(as_of))

    def calculate_fine(self, loan: Loan, as_of: date | datetime) -> float:
        """
        Fine owed on ``loan`` as of ``as_of``.

        Returns:
            ``overdue_days * daily_rate``; 0.0 for returned loans and for any
            ``as_of`` on or before the due date
        """
        days = self.overdue_days(loan, as_of)
        if days == 0:
            return 0.0
        return days * self.daily_rate
