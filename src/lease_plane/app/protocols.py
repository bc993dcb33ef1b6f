"""Collaborator protocol interfaces for dependency injection.

These protocols define the contracts the orchestrator, allocator, and
monitoring scan depend on. Concrete adapters (cloud directory, identity
center, document stores, event bus, billing) live outside this package;
``inmemory`` provides implementations for tests and local runs.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Mapping, Protocol, runtime_checkable

from .data.paging import Page
from .domain.account import Container, DirectoryAccount, SandboxAccount
from .domain.events import IsbEvent
from .domain.lease import Lease, LeaseKey, LeaseStatus
from .domain.user import GroupRole, IsbUser

if TYPE_CHECKING:
    from .monitoring.cost_report import AccountsCostReport


@runtime_checkable
class AccountDirectory(Protocol):
    """Organizational directory holding the account containers."""

    async def describe_account(self, account_id: str) -> DirectoryAccount | None: ...

    async def move_account(
        self, account_id: str, source: Container, destination: Container,
    ) -> None:
        """Move conditionally; raise AccountMoveConflict if not in ``source``."""
        ...

    async def list_accounts_in_container(
        self,
        container: Container,
        page_size: int | None = None,
        page_identifier: str | None = None,
    ) -> Page[DirectoryAccount]: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """User lookup and per-account access grants."""

    async def get_user_by_email(self, email: str) -> IsbUser | None: ...
    async def get_user_by_username(self, user_name: str) -> IsbUser | None: ...
    async def grant_user_access(self, account_id: str, user: IsbUser) -> None: ...
    async def revoke_user_access(self, account_id: str, user: IsbUser) -> None: ...
    async def assign_group_access(self, account_id: str, role: GroupRole) -> None: ...
    async def revoke_group_access(self, account_id: str, role: GroupRole) -> None: ...
    async def revoke_all_user_access(self, account_id: str) -> None: ...


@runtime_checkable
class LeaseStore(Protocol):
    """Lease records keyed by (user_email, uuid)."""

    async def get(self, key: LeaseKey) -> Lease | None: ...
    async def create(self, lease: Lease) -> Lease: ...
    async def update(self, lease: Lease) -> Lease: ...
    async def delete(self, key: LeaseKey) -> None: ...

    async def find_by_status(
        self,
        status: LeaseStatus,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[Lease]: ...

    async def find_by_user_email(
        self,
        user_email: str,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[Lease]: ...

    async def find_by_status_and_account(
        self,
        status: LeaseStatus,
        account_id: str,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[Lease]: ...


@runtime_checkable
class AccountStore(Protocol):
    """Sandbox account records keyed by account id."""

    async def get(self, account_id: str) -> SandboxAccount | None: ...
    async def put(self, account: SandboxAccount) -> SandboxAccount: ...
    async def delete(self, account_id: str) -> None: ...

    async def find_by_status(
        self,
        status: Container,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[SandboxAccount]: ...

    async def find_all(
        self,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[SandboxAccount]: ...


@runtime_checkable
class EventBus(Protocol):
    """Fire-and-forget event publication."""

    async def publish(self, *events: IsbEvent) -> None: ...


@runtime_checkable
class CostMeter(Protocol):
    """Per-account spend since each lease started."""

    async def get_cost_for_leases(
        self, account_start_dates: Mapping[str, datetime], as_of: datetime,
    ) -> AccountsCostReport: ...


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime: ...
