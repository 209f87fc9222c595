"""Bearer-token identity resolution backed by the users table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from models.db import get_user_by_token
from services.errors import Unauthenticated


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str
    name: str = ""
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def has_role(self, *roles: str) -> bool:
        return self.role in roles

    def can_manage(self, organizer_id: str) -> bool:
        """Admins manage everything; organizers manage what they created."""
        return self.is_admin or self.user_id == organizer_id


def parse_bearer(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_identity(token: Optional[str]) -> Identity:
    if not token:
        raise Unauthenticated()
    row = get_user_by_token(token)
    if row is None:
        raise Unauthenticated("Invalid token")
    if not row["is_active"]:
        raise Unauthenticated("User account is inactive")
    return Identity(user_id=row["id"], role=row["role"], name=row["name"], email=row["email"])
