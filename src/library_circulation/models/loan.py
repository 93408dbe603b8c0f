"""
Loan model for the library circulation core.

A loan binds one copy of a book to one member between ``loan_date`` and
``due_date``. Its lifecycle is ``active -> returned``; once returned it
never changes again. The model enforces the date and status rules so that a
record read back from storage can be trusted by the fine calculator and the
overdue scanner.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import LoanStatus


class Loan(BaseModel):
    """Represents a book loan."""

    id: str = Field(
        ...,
        description="Unique identifier for the loan",
        pattern=r"^loan_[a-zA-Z0-9]{6,}$",
        examples=["loan_5f2c9a1b7d3e"],
    )

    book_isbn: str = Field(
        ...,
        description="ISBN of the borrowed book",
    )

    member_id: str = Field(
        ...,
        description="ID of the borrowing member",
    )

    loan_date: date = Field(
        ...,
        description="Date the copy left the library",
    )

    due_date: date = Field(
        ...,
        description="Date the copy has to be back",
    )

    return_date: date | None = Field(
        None,
        description="Date the copy was returned",
    )

    status: LoanStatus = Field(
        default=LoanStatus.ACTIVE,
        description="Lifecycle state of the loan",
    )

    fine_assessed: float = Field(
        default=0.0,
        description="Fine computed when the loan was returned",
        ge=0.0,
    )

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def validate_lifecycle(self) -> "Loan":
        """Validate date relationships and status/return-date agreement."""
        if self.due_date <= self.loan_date:
            raise ValueError("Due date must be after loan date")

        if self.return_date is not None and self.return_date < self.loan_date:
            raise ValueError("Return date cannot be before loan date")

        if self.status == LoanStatus.ACTIVE and self.return_date is not None:
            raise ValueError("An active loan cannot have a return date")
        if self.status == LoanStatus.RETURNED and self.return_date is None:
            raise ValueError("A returned loan must have a return date")

        return self

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    @property
    def loan_period_days(self) -> int:
        """Calculate the loan period in days."""
        return (self.due_date - self.loan_date).days

    def is_overdue(self, as_of: date) -> bool:
        """Check if the loan is still out after its due date."""
        return self.is_active and self.due_date < as_of

    def overdue_days(self, as_of: date) -> int:
        """Whole days past the due date, 0 if not overdue."""
        if not self.is_overdue(as_of):
            return 0
        return (as_of - self.due_date).days

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "loan_5f2c9a1b7d3e",
                "book_isbn": "9780134685479",
                "member_id": "member_a1b2c3d4e5f6",
                "loan_date": "2024-03-01",
                "due_date": "2024-03-15",
                "return_date": None,
                "status": "active",
                "fine_assessed": 0.0,
            }
        },
    )
