"""
Pydantic models for the library circulation core.

- Book: inventory record (catalog identity and stock counters)
- Member: membership record (borrower identity and eligibility)
- Loan: binding of one copy to one member over a date range
"""

from .book import Book, normalize_isbn
from .enums import LoanStatus, MemberRole, MemberStatus
from .loan import Loan
from .member import Member

__all__ = [
    "Book",
    "Loan",
    "LoanStatus",
    "Member",
    "MemberRole",
    "MemberStatus",
    "normalize_isbn",
]
