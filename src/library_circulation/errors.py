"""
Typed failures raised by the circulation core.

Every error carries a stable ``kind`` string and a ``details`` mapping with
the identifiers and numbers involved, so a caller (tool handler, API layer)
can render a precise message without the core knowing about presentation.

The hierarchy separates three families:

1. **BusinessRuleError**: valid business outcomes (unknown entity, ineligible
   member, no stock, bad loan period, loan already returned). Never retried.
2. **TransientError**: persistence trouble or an optimistic-lock conflict.
   The coordinator retries the whole atomic unit a bounded number of times.
3. **InvariantViolationError**: stored data already breaks a consistency
   rule. Always surfaced, never retried or corrected.
"""

from typing import Any


class CirculationError(Exception):
    """Base class for all circulation failures."""

    kind = "circulation_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Structured form for responses and logs."""
        return {"kind": self.kind, "message": self.message, **self.details}


class BusinessRuleError(CirculationError):
    """A rule of the library rejected the request."""


class TransientError(CirculationError):
    """A failure that may succeed if the whole operation is retried."""


class EntityNotFoundError(BusinessRuleError):
    kind = "entity_not_found"

    def __init__(self, entity_kind: str, entity_id: Any):
        super().__init__(
            f"{entity_kind.capitalize()} with identifier '{entity_id}' not found",
            entity=entity_kind,
            id=entity_id,
        )
        self.entity_kind = entity_kind
        self.entity_id = entity_id


class MemberNotEligibleError(BusinessRuleError):
    kind = "member_not_eligible"

    def __init__(self, member_id: str, status: str):
        super().__init__(
            f"Member '{member_id}' cannot borrow books (status: {status})",
            member_id=member_id,
            status=status,
        )
        self.member_id = member_id
        self.status = status


class NoStockAvailableError(BusinessRuleError):
    kind = "no_stock_available"

    def __init__(self, book_isbn: str, available: int):
        super().__init__(
            f"Insufficient stock for the book with ISBN '{book_isbn}'. Available: {available}",
            book_isbn=book_isbn,
            available=available,
        )
        self.book_isbn = book_isbn
        self.available = available


class InvalidLoanPeriodError(BusinessRuleError):
    kind = "invalid_loan_period"

    def __init__(self, value: Any, max_days: int):
        super().__init__(
            f"Loan period must be a whole number of days between 1 and {max_days}, got {value!r}",
            value=value,
            max_days=max_days,
        )
        self.value = value
        self.max_days = max_days


class LoanNotActiveError(BusinessRuleError):
    kind = "loan_not_active"

    def __init__(self, loan_id: str, status: str):
        super().__init__(
            f"Loan '{loan_id}' is not active (current status: {status})",
            loan_id=loan_id,
            status=status,
        )
        self.loan_id = loan_id
        self.status = status


class InvalidRecordError(BusinessRuleError):
    """Catalog or membership data failed validation."""

    kind = "invalid_record"

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        super().__init__("Validation errors: " + ", ".join(errors), errors=list(errors))
        self.errors = list(errors)


class InvalidMemberNumberError(BusinessRuleError):
    kind = "invalid_member_number"

    def __init__(self, member_number: str):
        super().__init__(
            f"Invalid member number '{member_number}'. "
            "Member numbers must contain only numeric characters.",
            member_number=member_number,
        )
        self.member_number = member_number


class DuplicateRecordError(BusinessRuleError):
    kind = "duplicate_record"

    def __init__(self, entity_kind: str, key: Any):
        super().__init__(
            f"{entity_kind.capitalize()} '{key}' already exists",
            entity=entity_kind,
            key=key,
        )
        self.entity_kind = entity_kind
        self.key = key


class ActiveLoansExistError(BusinessRuleError):
    kind = "active_loans_exist"

    def __init__(self, book_isbn: str, active_loans: int):
        super().__init__(
            f"Book '{book_isbn}' still has {active_loans} active loan(s)",
            book_isbn=book_isbn,
            active_loans=active_loans,
        )
        self.book_isbn = book_isbn
        self.active_loans = active_loans


class InvariantViolationError(CirculationError):
    kind = "invariant_violation"

    def __init__(self, detail: str, **context: Any):
        super().__init__(f"Invariant violation: {detail}", detail=detail, **context)
        self.detail = detail


class PersistenceUnavailableError(TransientError):
    kind = "persistence_unavailable"

    def __init__(self, operation: str, reason: str | None = None):
        message = f"Persistence unavailable during '{operation}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, operation=operation)
        self.operation = operation


class ConcurrentModificationError(TransientError):
    kind = "concurrent_modification"

    def __init__(self, operation: str):
        super().__init__(
            f"A concurrent update conflicted with '{operation}'; the operation can be retried",
            operation=operation,
        )
        self.operation = operation
