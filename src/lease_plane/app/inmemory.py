"""In-memory collaborator implementations for tests and local runs.

These satisfy the protocol interfaces but keep everything in dicts (no
persistence across restarts). Each fake records the calls it receives in
``calls`` and accepts ``*_fails`` flags to inject failures.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Mapping, Sequence, TypeVar

from .data.paging import Page
from .domain.account import Container, DirectoryAccount, SandboxAccount
from .domain.events import IsbEvent
from .domain.lease import Lease, LeaseKey, LeaseStatus
from .domain.user import GroupRole, IsbUser
from .errors import AccountMoveConflict
from .monitoring.cost_report import AccountsCostReport
from .timeutils import require_aware_datetime

T = TypeVar('T')

DEFAULT_PAGE_SIZE = 100


def _paginate(
    items: Sequence[T], page_identifier: str | None, page_size: int | None,
) -> Page[T]:
    size = page_size or DEFAULT_PAGE_SIZE
    start = int(page_identifier) if page_identifier else 0
    end = start + size
    next_identifier = str(end) if end < len(items) else None
    return Page(items=tuple(items[start:end]), next_page_identifier=next_identifier)


class InMemoryAccountDirectory:
    def __init__(self, *, describe_fails: bool = False) -> None:
        self.describe_fails = describe_fails
        self.fail_moves_to: set[Container] = set()
        self.calls: list[tuple] = []
        self._accounts: dict[str, DirectoryAccount] = {}
        self._containers: dict[str, Container] = {}

    def add_account(
        self, account: DirectoryAccount, container: Container = Container.ENTRY,
    ) -> None:
        self._accounts[account.account_id] = account
        self._containers[account.account_id] = container

    def container_of(self, account_id: str) -> Container | None:
        return self._containers.get(account_id)

    async def describe_account(self, account_id: str) -> DirectoryAccount | None:
        self.calls.append(('describe_account', account_id))
        if self.describe_fails:
            raise RuntimeError('directory unavailable')
        return self._accounts.get(account_id)

    async def move_account(
        self, account_id: str, source: Container, destination: Container,
    ) -> None:
        self.calls.append(('move_account', account_id, source, destination))
        if destination in self.fail_moves_to:
            raise RuntimeError(f'move to {destination} failed')
        actual = self._containers.get(account_id)
        if actual is not source:
            raise AccountMoveConflict(
                account_id, str(source), str(actual) if actual else None,
            )
        self._containers[account_id] = destination

    async def list_accounts_in_container(
        self,
        container: Container,
        page_size: int | None = None,
        page_identifier: str | None = None,
    ) -> Page[DirectoryAccount]:
        matching = [
            self._accounts[account_id]
            for account_id, current in self._containers.items()
            if current is container
        ]
        return _paginate(matching, page_identifier, page_size)


class InMemoryIdentityProvider:
    def __init__(
        self,
        *,
        grant_fails: bool = False,
        revoke_all_fails: bool = False,
    ) -> None:
        self.grant_fails = grant_fails
        self.revoke_all_fails = revoke_all_fails
        self.fail_group_roles: set[GroupRole] = set()
        self.calls: list[tuple] = []
        self._users: dict[str, IsbUser] = {}
        self.user_access: dict[str, set[str]] = {}
        self.group_access: dict[str, set[GroupRole]] = {}

    def add_user(self, user: IsbUser) -> None:
        self._users[user.email] = user

    async def get_user_by_email(self, email: str) -> IsbUser | None:
        return self._users.get(email)

    async def get_user_by_username(self, user_name: str) -> IsbUser | None:
        for user in self._users.values():
            if user.user_name == user_name:
                return user
        return None

    async def grant_user_access(self, account_id: str, user: IsbUser) -> None:
        self.calls.append(('grant_user_access', account_id, user.email))
        if self.grant_fails:
            raise RuntimeError('grant failed')
        self.user_access.setdefault(account_id, set()).add(user.email)

    async def revoke_user_access(self, account_id: str, user: IsbUser) -> None:
        self.calls.append(('revoke_user_access', account_id, user.email))
        self.user_access.get(account_id, set()).discard(user.email)

    async def assign_group_access(self, account_id: str, role: GroupRole) -> None:
        self.calls.append(('assign_group_access', account_id, role))
        if role in self.fail_group_roles:
            raise RuntimeError(f'assign {role} failed')
        self.group_access.setdefault(account_id, set()).add(role)

    async def revoke_group_access(self, account_id: str, role: GroupRole) -> None:
        self.calls.append(('revoke_group_access', account_id, role))
        self.group_access.get(account_id, set()).discard(role)

    async def revoke_all_user_access(self, account_id: str) -> None:
        self.calls.append(('revoke_all_user_access', account_id))
        if self.revoke_all_fails:
            raise RuntimeError('revoke all failed')
        self.user_access.pop(account_id, None)


class InMemoryLeaseStore:
    def __init__(self, *, update_fails: bool = False, create_fails: bool = False) -> None:
        self.update_fails = update_fails
        self.create_fails = create_fails
        self.calls: list[tuple] = []
        self._leases: dict[LeaseKey, Lease] = {}

    async def get(self, key: LeaseKey) -> Lease | None:
        return self._leases.get(key)

    async def create(self, lease: Lease) -> Lease:
        self.calls.append(('create', lease.key))
        if self.create_fails:
            raise RuntimeError('lease create failed')
        if lease.key in self._leases:
            raise ValueError(f'lease {lease.uuid} already exists')
        self._leases[lease.key] = lease
        return lease

    async def update(self, lease: Lease) -> Lease:
        self.calls.append(('update', lease.key, lease.status))
        if self.update_fails:
            raise RuntimeError('lease update failed')
        if lease.key not in self._leases:
            raise KeyError(f'lease {lease.uuid} does not exist')
        self._leases[lease.key] = lease
        return lease

    async def delete(self, key: LeaseKey) -> None:
        self.calls.append(('delete', key))
        self._leases.pop(key, None)

    async def find_by_status(
        self,
        status: LeaseStatus,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[Lease]:
        matching = [lease for lease in self._leases.values() if lease.status is status]
        return _paginate(matching, page_identifier, page_size)

    async def find_by_user_email(
        self,
        user_email: str,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[Lease]:
        matching = [
            lease for lease in self._leases.values() if lease.user_email == user_email
        ]
        return _paginate(matching, page_identifier, page_size)

    async def find_by_status_and_account(
        self,
        status: LeaseStatus,
        account_id: str,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[Lease]:
        matching = [
            lease
            for lease in self._leases.values()
            if lease.status is status
            and getattr(lease, 'aws_account_id', None) == account_id
        ]
        return _paginate(matching, page_identifier, page_size)


class InMemoryAccountStore:
    def __init__(self, *, put_fails: bool = False) -> None:
        self.put_fails = put_fails
        self.calls: list[tuple] = []
        self._accounts: dict[str, SandboxAccount] = {}

    async def get(self, account_id: str) -> SandboxAccount | None:
        return self._accounts.get(account_id)

    async def put(self, account: SandboxAccount) -> SandboxAccount:
        self.calls.append(('put', account.aws_account_id, account.status))
        if self.put_fails:
            raise RuntimeError('account put failed')
        self._accounts[account.aws_account_id] = account
        return account

    async def delete(self, account_id: str) -> None:
        self.calls.append(('delete', account_id))
        self._accounts.pop(account_id, None)

    async def find_by_status(
        self,
        status: Container,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[SandboxAccount]:
        matching = [a for a in self._accounts.values() if a.status is status]
        return _paginate(matching, page_identifier, page_size)

    async def find_all(
        self,
        page_identifier: str | None = None,
        page_size: int | None = None,
    ) -> Page[SandboxAccount]:
        return _paginate(list(self._accounts.values()), page_identifier, page_size)


class InMemoryEventBus:
    def __init__(self, *, publish_fails: bool = False) -> None:
        self.publish_fails = publish_fails
        self.published: list[IsbEvent] = []

    async def publish(self, *events: IsbEvent) -> None:
        if self.publish_fails:
            raise RuntimeError('event bus unavailable')
        self.published.extend(events)

    def of_type(self, event_type: type[T]) -> list[T]:
        return [event for event in self.published if isinstance(event, event_type)]


class InMemoryCostMeter:
    def __init__(self, *, fails: bool = False) -> None:
        self.fails = fails
        self.costs: dict[str, float] = {}
        self.requests: list[tuple[dict[str, datetime], datetime]] = []

    def set_cost(self, account_id: str, cost: float) -> None:
        self.costs[account_id] = cost

    async def get_cost_for_leases(
        self, account_start_dates: Mapping[str, datetime], as_of: datetime,
    ) -> AccountsCostReport:
        self.requests.append((dict(account_start_dates), as_of))
        if self.fails:
            raise RuntimeError('cost explorer unavailable')
        return AccountsCostReport(
            {
                account_id: self.costs[account_id]
                for account_id in account_start_dates
                if account_id in self.costs
            }
        )


class FixedClock:
    """Clock pinned to a settable instant."""

    def __init__(self, now: datetime | None = None) -> None:
        self._now = require_aware_datetime(now or datetime(2025, 1, 1, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = require_aware_datetime(now)

    def advance(self, **kwargs: float) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now
