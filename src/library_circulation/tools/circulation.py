"""
Circulation tools for the library circulation server.

These MCP tools are the caller-facing side of the loan coordinator:

1. create_loan: lend a copy of a book to a member
2. return_loan: close a loan and restock the copy
3. calculate_fine: price an overdue loan as of a date
4. find_overdue: list overdue loans, earliest due first

Every handler validates its arguments with a pydantic schema, runs the
blocking coordinator call in a worker thread, and answers with the MCP
``content`` list plus structured ``data``. Failures come back with
``isError`` and the typed error's ``to_dict()`` under ``error`` so a client
can tell "no stock" from "try again later" without parsing text.
"""

import asyncio
import logging
from datetime import date
from itertools import islice
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..circulation.coordinator import LoanLifecycleCoordinator
from ..config import get_config
from ..database.session import get_db_manager
from ..errors import BusinessRuleError, CirculationError, TransientError
from ..models.book import normalize_isbn
from ..models.loan import Loan

logger = logging.getLogger(__name__)


def get_coordinator() -> LoanLifecycleCoordinator:
    """Coordinator bound to the process-wide database manager and config."""
    return LoanLifecycleCoordinator(get_db_manager(), get_config())


def _error_response(text: str, error: dict[str, Any]) -> dict[str, Any]:
    return {
        "isError": True,
        "content": [{"type": "text", "text": text}],
        "error": error,
    }


def _invalid_arguments(tool: str, e: ValidationError) -> dict[str, Any]:
    logger.warning("Invalid %s parameters: %s", tool, e)
    return _error_response(
        f"Invalid {tool} parameters: {e}",
        {
            "kind": "invalid_arguments",
            "message": str(e),
            "errors": e.errors(include_url=False, include_context=False),
        },
    )


def _circulation_failure(tool: str, e: CirculationError) -> dict[str, Any]:
    if isinstance(e, BusinessRuleError):
        logger.info("%s rejected - %s: %s", tool, e.kind, e.message)
    elif isinstance(e, TransientError):
        logger.warning("%s unavailable - %s: %s", tool, e.kind, e.message)
    else:
        logger.error("%s aborted - %s: %s", tool, e.kind, e.message)
    return _error_response(e.message, e.to_dict())


def _unexpected_failure(tool: str, e: Exception) -> dict[str, Any]:
    logger.exception("Unexpected error in %s tool", tool)
    return _error_response(
        f"An unexpected error occurred: {e!s}",
        {"kind": "internal_error", "message": str(e)},
    )


def _loan_data(loan: Loan) -> dict[str, Any]:
    data = loan.model_dump(mode="json", exclude={"created_at", "updated_at"})
    data["loan_period_days"] = loan.loan_period_days
    return data


# =============================================================================
# CREATE LOAN
# =============================================================================


class CreateLoanInput(BaseModel):
    """Input schema for the create_loan tool."""

    book_isbn: str = Field(
        ...,
        description="ISBN of the book to lend (hyphens allowed)",
        examples=["9780134685479", "978-0-13-468547-9"],
    )

    member_id: str = Field(
        ...,
        description="ID of the borrowing member",
        pattern=r"^member_[a-zA-Z0-9_]{6,}$",
        examples=["member_a1b2c3d4e5f6"],
    )

    loan_period_days: int | None = Field(
        default=None,
        description="Days until the book is due. Defaults to the library's standard period",
        examples=[14, 21],
    )

    @field_validator("book_isbn")
    @classmethod
    def validate_isbn(cls, v: str) -> str:
        return normalize_isbn(v)


async def create_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the create_loan tool.

    Args:
        arguments: Raw arguments from the tools/call request

    Returns:
        Loan details, or a structured error
    """
    try:
        params = CreateLoanInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid_arguments("create_loan", e)

    try:
        loan = await asyncio.to_thread(
            get_coordinator().create_loan,
            params.book_isbn,
            params.member_id,
            params.loan_period_days,
        )
    except CirculationError as e:
        return _circulation_failure("create_loan", e)
    except Exception as e:
        return _unexpected_failure("create_loan", e)

    message = (
        f"Loaned book '{loan.book_isbn}' to member '{loan.member_id}'. "
        f"Due date: {loan.due_date.strftime('%B %d, %Y')} ({loan.loan_period_days}-day loan)"
    )
    return {
        "content": [{"type": "text", "text": message}],
        "data": {"loan": _loan_data(loan)},
    }


# =============================================================================
# RETURN LOAN
# =============================================================================


class ReturnLoanInput(BaseModel):
    """Input schema for the return_loan tool."""

    loan_id: str = Field(
        ...,
        description="ID of the loan being returned",
        pattern=r"^loan_[a-zA-Z0-9]{6,}$",
        examples=["loan_5f2c9a1b7d3e4a6b"],
    )


async def return_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the return_loan tool."""
    try:
        params = ReturnLoanInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid_arguments("return_loan", e)

    try:
        loan = await asyncio.to_thread(get_coordinator().return_loan, params.loan_id)
    except CirculationError as e:
        return _circulation_failure("return_loan", e)
    except Exception as e:
        return _unexpected_failure("return_loan", e)

    message = f"Loan '{loan.id}' returned on {loan.return_date.strftime('%B %d, %Y')}."
    if loan.fine_assessed > 0:
        message += f" Late fine assessed: {loan.fine_assessed:.2f}"
    else:
        message += " Returned on time."

    return {
        "content": [{"type": "text", "text": message}],
        "data": {"loan": _loan_data(loan)},
    }


# =============================================================================
# CALCULATE FINE
# =============================================================================


class CalculateFineInput(BaseModel):
    """Input schema for the calculate_fine tool."""

    loan_id: str = Field(
        ...,
        description="ID of the loan to price",
        pattern=r"^loan_[a-zA-Z0-9]{6,}$",
    )

    as_of: date | None = Field(
        default=None,
        description="Reference date for the fine. Defaults to today",
        examples=["2024-03-20"],
    )


async def calculate_fine_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the calculate_fine tool."""
    try:
        params = CalculateFineInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid_arguments("calculate_fine", e)

    coordinator = get_coordinator()
    as_of = params.as_of or date.today()
    try:
        fine = await asyncio.to_thread(coordinator.calculate_fine, params.loan_id, as_of)
    except CirculationError as e:
        return _circulation_failure("calculate_fine", e)
    except Exception as e:
        return _unexpected_failure("calculate_fine", e)

    return {
        "content": [
            {
                "type": "text",
                "text": f"Fine owed on loan '{params.loan_id}' as of {as_of.isoformat()}: "
                f"{fine:.2f}",
            }
        ],
        "data": {
            "loan_id": params.loan_id,
            "as_of": as_of.isoformat(),
            "fine": fine,
            "daily_rate": coordinator.fine_calculator.daily_rate,
        },
    }


# =============================================================================
# FIND OVERDUE
# =============================================================================


class FindOverdueInput(BaseModel):
    """Input schema for the find_overdue tool."""

    as_of: date | None = Field(
        default=None,
        description="Reference date. Loans due before it are overdue. Defaults to today",
    )

    limit: int = Field(
        default=50,
        description="Maximum number of loans to include",
        ge=1,
        le=500,
    )


async def find_overdue_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the find_overdue tool."""
    try:
        params = FindOverdueInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid_arguments("find_overdue", e)

    coordinator = get_coordinator()
    as_of = params.as_of or date.today()

    def collect() -> list[Loan]:
        # One extra row tells us whether the listing was cut short
        return list(islice(coordinator.find_overdue(as_of), params.limit + 1))

    try:
        loans = await asyncio.to_thread(collect)
    except CirculationError as e:
        return _circulation_failure("find_overdue", e)
    except Exception as e:
        return _unexpected_failure("find_overdue", e)

    truncated = len(loans) > params.limit
    loans = loans[: params.limit]

    items = []
    for loan in loans:
        item = _loan_data(loan)
        item["days_overdue"] = coordinator.fine_calculator.overdue_days(loan, as_of)
        item["fine"] = coordinator.fine_calculator.calculate_fine(loan, as_of)
        items.append(item)

    if items:
        text = f"{len(items)} overdue loan(s) as of {as_of.isoformat()}"
        if truncated:
            text += f" (showing the first {params.limit})"
    else:
        text = f"No overdue loans as of {as_of.isoformat()}"

    return {
        "content": [{"type": "text", "text": text}],
        "data": {"as_of": as_of.isoformat(), "loans": items, "truncated": truncated},
    }


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

create_loan = {
    "name": "create_loan",
    "description": (
        "Lend one copy of a book to a member. Checks that the member is active and a copy "
        "is available, then takes the copy off the shelf and records the loan in one step."
    ),
    "inputSchema": CreateLoanInput.model_json_schema(),
    "handler": create_loan_handler,
}

return_loan = {
    "name": "return_loan",
    "description": (
        "Return a loaned book. Closes the loan, puts the copy back on the shelf and "
        "records any late fine."
    ),
    "inputSchema": ReturnLoanInput.model_json_schema(),
    "handler": return_loan_handler,
}

calculate_fine = {
    "name": "calculate_fine",
    "description": "Calculate the late fine currently owed on a loan, as of an optional date.",
    "inputSchema": CalculateFineInput.model_json_schema(),
    "handler": calculate_fine_handler,
}

find_overdue = {
    "name": "find_overdue",
    "description": "List active loans past their due date, earliest due first, with fines.",
    "inputSchema": FindOverdueInput.model_json_schema(),
    "handler": find_overdue_handler,
}
