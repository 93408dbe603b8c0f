"""
Overdue loan scanning.

``OverdueScanner.find_overdue`` returns an ``OverdueLoans`` iterable rather
than a list. Iterating it queries the store in keyset-paginated batches, each
in its own short session, so a large report never holds a connection open
between batches. Iterating again re-runs the query for the same reference
date, which gives the same logical result as long as no loan changed in
between.
"""

import logging
from collections.abc import Callable, Iterator
from datetime import date, datetime

from ..database.loan_repository import LoanRepository
from ..database.session import DatabaseManager
from ..models.loan import Loan
from .fines import as_date

logger = logging.getLogger(__name__)


class OverdueLoans:
    """Lazy, restartable sequence of loans overdue as of a fixed date."""

    def __init__(self, db_manager: DatabaseManager, as_of: date, batch_size: int = 100):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.db_manager = db_manager
        self.as_of = as_of
        self.batch_size = batch_size

    def __iter__(self) -> Iterator[Loan]:
        after: tuple[date, str] | None = None
        while True:
            with self.db_manager.session_scope() as session:
                batch = LoanRepository(session).find_overdue_batch(
                    self.as_of, self.batch_size, after
                )
            yield from batch
            if len(batch) < self.batch_size:
                return
            last = batch[-1]
            after = (last.due_date, last.id)

    def __repr__(self) -> str:
        return f"OverdueLoans(as_of={self.as_of.isoformat()})"


class OverdueScanner:
    """Read-only query for active loans past their due date."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        batch_size: int = 100,
        today: Callable[[], date] = date.today,
    ):
        self.db_manager = db_manager
        self.batch_size = batch_size
        self._today = today

    def find_overdue(self, as_of: date | datetime | None = None) -> OverdueLoans:
        """
        Loans with ``status=active`` and ``due_date < as_of``.

        Args:
            as_of: Reference date, defaults to today

        Returns:
            An iterable ordered by due date ascending, then loan ID
        """
        reference = as_date(as_of) if as_of is not None else self._today()
        logger.debug("Scanning for loans overdue as of %s", reference)
        return OverdueLoans(self.db_manager, reference, self.batch_size)
