"""Status and role enumerations shared by the pydantic models and the schema."""

from enum import Enum


class MemberStatus(str, Enum):
    """Eligibility status of a membership."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class MemberRole(str, Enum):
    """Role of the person holding a membership."""

    ADMIN = "admin"
    ASSISTANT = "assistant"
    LIBRARIAN = "librarian"
    MEMBER = "member"


class LoanStatus(str, Enum):
    """Lifecycle state of a loan. ``RETURNED`` is terminal."""

    ACTIVE = "active"
    RETURNED = "returned"
