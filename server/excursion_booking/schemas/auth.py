"""Authenticated caller schema."""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.profile import UserRole


class CurrentUser(BaseModel):
    """Identity taken from a verified bearer token."""

    id: UUID = Field(..., description="Profile id (token subject)")
    email: Optional[str] = Field(None)
    first_name: Optional[str] = Field(None)
    last_name: Optional[str] = Field(None)
    roles: List[str] = Field(default_factory=list)

    def has_role(self, *roles: UserRole) -> bool:
        """Admins hold every role."""
        if UserRole.ADMIN.value in self.roles:
            return True
        return any(role.value in self.roles for role in roles)

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email or str(self.id)
