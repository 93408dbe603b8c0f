"""
Member model for the library circulation core.

A member is the borrower side of a loan. The circulation rules only look at
``status``: active members may originate loans, inactive and suspended ones
may not. A loan keeps pointing at its member even after the member is
deactivated. ``role`` replaces the old user class hierarchy; nothing in the
core dispatches on it.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .enums import MemberRole, MemberStatus


class Member(BaseModel):
    """Represents a library member who can borrow books."""

    id: str = Field(
        ...,
        description="Unique identifier for the member",
        pattern=r"^member_[a-zA-Z0-9_]{6,}$",
        examples=["member_a1b2c3d4e5f6"],
    )

    member_number: str = Field(
        ...,
        description="Library card number; digits only",
        pattern=r"^\d{1,20}$",
        examples=["1001", "20240015"],
    )

    name: str = Field(
        ...,
        description="Full name of the member",
        min_length=2,
        max_length=200,
    )

    email: EmailStr = Field(
        ...,
        description="Email address for notices",
    )

    phone: str | None = Field(
        None,
        description="Contact phone number",
        pattern=r"^\+?[\d\s\-\(\)]+$",
    )

    role: MemberRole = Field(
        default=MemberRole.MEMBER,
        description="Role of the person holding the membership",
    )

    status: MemberStatus = Field(
        default=MemberStatus.ACTIVE,
        description="Eligibility status of the membership",
    )

    registration_date: date = Field(
        default_factory=date.today,
        description="Date the member registered",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @property
    def is_active(self) -> bool:
        """Only active members may originate new loans."""
        return self.status == MemberStatus.ACTIVE

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "member_a1b2c3d4e5f6",
                "member_number": "1001",
                "name": "Jane Doe",
                "email": "jane.doe@example.com",
                "role": "member",
                "status": "active",
                "registration_date": "2024-01-15",
            }
        },
    )
