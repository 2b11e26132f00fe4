"""Authenticated callers of the admin API."""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """A bearer-token holder resolved to a role."""

    role: Role
    name: str

    def __repr__(self) -> str:
        # Never include the token itself
        return f"Principal(role={self.role.value!r}, name={self.name!r})"
