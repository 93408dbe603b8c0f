"""
Loan repository implementation for the library circulation core.

Besides keyed access this repository owns the overdue query. Overdue loans are
read in keyset-paginated batches ordered by ``(due_date, id)`` so a scan can
resume after the last row it saw without holding a cursor open.
"""

import uuid
from datetime import date

from sqlalchemy import and_, or_, select

from ..models.enums import LoanStatus
from ..models.loan import Loan as LoanModel
from .repository import BaseRepository
from .schema import Loan as LoanDB
from .session import safe_query


def generate_loan_id() -> str:
    """New loan identifier, ``loan_`` followed by 16 hex characters."""
    return f"loan_{uuid.uuid4().hex[:16]}"


class LoanRepository(BaseRepository[LoanDB, LoanModel]):
    """Repository for loan data access."""

    @property
    def model_class(self):
        return LoanDB

    @property
    def response_schema(self):
        return LoanModel

    def list_active_for_member(self, member_id: str) -> list[LoanModel]:
        """Active loans held by a member, oldest due date first."""
        query = (
            select(LoanDB)
            .where(LoanDB.member_id == member_id, LoanDB.status == LoanStatus.ACTIVE)
            .order_by(LoanDB.due_date, LoanDB.id)
        )
        rows = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "list member loans"
        )
        return [self.to_model(row) for row in rows]

    def find_overdue_batch(
        self,
        as_of: date,
        limit: int,
        after: tuple[date, str] | None = None,
    ) -> list[LoanModel]:
        """
        Fetch the next batch of overdue loans.

        Args:
            as_of: Reference date; loans due strictly before it are overdue
            limit: Maximum rows to return
            after: ``(due_date, id)`` of the last row of the previous batch

        Returns:
            Active loans with ``due_date < as_of`` ordered by due date, then ID
        """
        conditions = [LoanDB.status == LoanStatus.ACTIVE, LoanDB.due_date < as_of]
        if after is not None:
            last_due, last_id = after
            conditions.append(
                or_(
                    LoanDB.due_date > last_due,
                    and_(LoanDB.due_date == last_due, LoanDB.id > last_id),
                )
            )

        query = (
            select(LoanDB)
            .where(and_(*conditions))
            .order_by(LoanDB.due_date, LoanDB.id)
            .limit(limit)
        )
        rows = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "find overdue loans"
        )
        return [self.to_model(row) for row in rows]
