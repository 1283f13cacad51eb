from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class User:
    """Read-only view of an account and its profile."""

    id: int
    email: str
    confirmed_at: datetime | None
    first_name: str | None = None
    last_name: str | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_at is not None

    @property
    def display_name(self) -> str:
        if self.first_name:
            return self.first_name
        local_part = self.email.split("@", 1)[0]
        return local_part or f"User {self.id}"

    @property
    def full_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.display_name


def display_name_for(user: User | None, user_id: int) -> str:
    """Display name with a fallback for accounts that could not be loaded."""
    if user is None:
        return f"User {user_id}"
    return user.display_name
