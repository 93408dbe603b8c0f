"""
Member repository implementation for the library circulation core.
"""

import uuid

from pydantic import BaseModel, EmailStr
from sqlalchemy import select

from ..models.enums import MemberRole, MemberStatus
from ..models.member import Member as MemberModel
from .repository import BaseRepository
from .schema import Member as MemberDB
from .session import safe_query


def generate_member_id() -> str:
    """New member identifier, ``member_`` followed by 12 hex characters."""
    return f"member_{uuid.uuid4().hex[:12]}"


class MemberCreateSchema(BaseModel):
    """Schema for registering a member. The ID is generated on save."""

    member_number: str
    name: str
    email: EmailStr
    phone: str | None = None
    role: MemberRole = MemberRole.MEMBER


class MemberRepository(BaseRepository[MemberDB, MemberModel]):
    """Repository for member data access."""

    @property
    def model_class(self):
        return MemberDB

    @property
    def response_schema(self):
        return MemberModel

    def get_by_member_number(self, member_number: str) -> MemberModel | None:
        """Look a member up by library card number."""
        return self.get_by_unique_field("member_number", member_number)

    def list_by_status(self, status: MemberStatus) -> list[MemberModel]:
        """All members in the given status, ordered by name."""
        query = select(MemberDB).where(MemberDB.status == status).order_by(MemberDB.name)
        rows = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "list members by status"
        )
        return [self.to_model(row) for row in rows]
