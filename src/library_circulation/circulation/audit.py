"""
Inventory consistency audit.

Checks the conservation law between stock counters and loans:

    available_copies + active loans == total_copies
    0 <= available_copies <= total_copies

A healthy store never reports anything. A discrepancy means some write
bypassed the coordinator, and is the same condition that makes
``return_loan`` raise ``InvariantViolationError``.

Each book is read together with its active loan count in a single statement,
so the audit can run while loans are being created and returned.
"""

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database.book_repository import BookRepository


class InventoryDiscrepancy(BaseModel):
    """One book whose counters disagree with its loans."""

    isbn: str
    total_copies: int
    available_copies: int
    active_loans: int

    @property
    def expected_available(self) -> int:
        return self.total_copies - self.active_loans

    @property
    def description(self) -> str:
        return (
            f"{self.isbn}: available={self.available_copies}, total={self.total_copies}, "
            f"active loans={self.active_loans} (expected available={self.expected_available})"
        )


def audit_inventory(session: Session, isbn: str | None = None) -> list[InventoryDiscrepancy]:
    """
    Report books that break the stock invariants.

    Args:
        session: Session to read from; nothing is written
        isbn: Restrict the audit to one book

    Returns:
        Discrepancies ordered by ISBN; empty when the inventory is consistent
    """
    discrepancies = []
    for row, on_loan in BookRepository(session).stock_rows(isbn):
        in_bounds = 0 <= row.available_copies <= row.total_copies
        if not in_bounds or row.available_copies + on_loan != row.total_copies:
            discrepancies.append(
                InventoryDiscrepancy(
                    isbn=row.isbn,
                    total_copies=row.total_copies,
                    available_copies=row.available_copies,
                    active_loans=on_loan,
                )
            )
    return discrepancies
