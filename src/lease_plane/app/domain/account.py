"""Sandbox account record and container state machine.

Container flow:
  Entry -> CleanUp -> Available -> Active -> CleanUp (loop)
  Active -> Frozen -> CleanUp
  any non-CleanUp container -> Quarantine -> CleanUp
  any non-CleanUp container -> Exit (record deleted)

An account's stored ``status`` always mirrors the container it was last
moved into. Entry and Exit are containers only; they are never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType


class Container(str, Enum):
    """External grouping an account currently belongs to."""

    ENTRY = 'Entry'
    AVAILABLE = 'Available'
    ACTIVE = 'Active'
    FROZEN = 'Frozen'
    CLEANUP = 'CleanUp'
    QUARANTINE = 'Quarantine'
    EXIT = 'Exit'

    def __str__(self) -> str:
        return self.value


# Containers that may be persisted as SandboxAccount.status.
ACCOUNT_STATUSES = frozenset(
    {
        Container.AVAILABLE,
        Container.ACTIVE,
        Container.FROZEN,
        Container.CLEANUP,
        Container.QUARANTINE,
    }
)

ALLOWED_CONTAINER_MOVES = MappingProxyType(
    {
        Container.ENTRY: frozenset({Container.CLEANUP, Container.QUARANTINE, Container.EXIT}),
        Container.CLEANUP: frozenset({Container.AVAILABLE, Container.QUARANTINE}),
        Container.AVAILABLE: frozenset({Container.ACTIVE, Container.QUARANTINE, Container.EXIT}),
        Container.ACTIVE: frozenset(
            {Container.FROZEN, Container.CLEANUP, Container.QUARANTINE, Container.EXIT}
        ),
        Container.FROZEN: frozenset({Container.CLEANUP, Container.QUARANTINE, Container.EXIT}),
        Container.QUARANTINE: frozenset({Container.CLEANUP, Container.EXIT}),
        Container.EXIT: frozenset(),
    }
)


def is_allowed_move(source: Container, destination: Container) -> bool:
    """Return True if the container state machine permits the move.

    Reverse moves performed by saga compensation are not checked here.
    """
    return destination in ALLOWED_CONTAINER_MOVES.get(source, frozenset())


@dataclass(frozen=True, slots=True)
class SandboxAccount:
    """Row-level representation of one pooled sandbox account."""

    aws_account_id: str
    status: Container
    email: str | None = None
    name: str | None = None
    drift_at_last_scan: bool = False

    def __post_init__(self) -> None:
        if not self.aws_account_id:
            raise ValueError('aws_account_id is required')
        if self.status not in ACCOUNT_STATUSES:
            raise ValueError(f'{self.status} is not a storable account status')

    def with_status(self, status: Container) -> SandboxAccount:
        return replace(self, status=status)


@dataclass(frozen=True, slots=True)
class DirectoryAccount:
    """Account as described by the account directory."""

    account_id: str
    email: str | None = None
    name: str | None = None
