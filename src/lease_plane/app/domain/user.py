"""Identity-provider user as seen by the lease plane."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, slots=True)
class IsbUser:
    email: str
    user_id: str | None = None
    display_name: str | None = None
    user_name: str | None = None

    def __post_init__(self) -> None:
        if not self.email:
            raise ValueError('email is required')


class GroupRole(str, Enum):
    """Account-wide groups assigned on registration and revoked on ejection."""

    MANAGER = 'Manager'
    ADMIN = 'Admin'

    def __str__(self) -> str:
        return self.value
