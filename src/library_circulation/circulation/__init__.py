"""
Loan lifecycle and inventory consistency engine.

- eligibility: who may borrow what, and valid loan periods
- fines: overdue fine calculation
- overdue: lazy overdue loan scanning
- coordinator: atomic create/return of loans
- catalog: registration and administrative edits
- audit: stock conservation check
"""

from .audit import InventoryDiscrepancy, audit_inventory
from .catalog import CatalogService
from .coordinator import LoanLifecycleCoordinator
from .eligibility import EligibilityChecker, FailureReason, validate_loan_period
from .fines import FineCalculator
from .overdue import OverdueLoans, OverdueScanner

__all__ = [
    "CatalogService",
    "EligibilityChecker",
    "FailureReason",
    "FineCalculator",
    "InventoryDiscrepancy",
    "LoanLifecycleCoordinator",
    "OverdueLoans",
    "OverdueScanner",
    "audit_inventory",
    "validate_loan_period",
]
