"""Shared in-memory collaborators for lease plane tests."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from lease_plane.app.domain.account import Container, DirectoryAccount, SandboxAccount
from lease_plane.app.domain.global_config import GlobalConfig, load_global_config
from lease_plane.app.domain.lease import LeaseStatus, MonitoredLease
from lease_plane.app.domain.lease_template import BudgetThreshold, DurationThreshold
from lease_plane.app.domain.user import IsbUser
from lease_plane.app.inmemory import (
    FixedClock,
    InMemoryAccountDirectory,
    InMemoryAccountStore,
    InMemoryEventBus,
    InMemoryIdentityProvider,
    InMemoryLeaseStore,
)
from lease_plane.app.leasing.allocator import AccountAllocator
from lease_plane.app.leasing.orchestrator import LeaseOrchestrator

UTC = timezone.utc
NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

USER_EMAIL = 'dev@example.com'
ADMIN_EMAIL = 'admin@example.com'


def make_global_config(**lease_overrides) -> GlobalConfig:
    leases = {'maxLeasesPerUser': 3, 'ttl': 30, **lease_overrides}
    return load_global_config({'maintenanceMode': False, 'leases': leases})


@dataclass
class LeasePlaneWorld:
    directory: InMemoryAccountDirectory = field(default_factory=InMemoryAccountDirectory)
    identity: InMemoryIdentityProvider = field(default_factory=InMemoryIdentityProvider)
    leases: InMemoryLeaseStore = field(default_factory=InMemoryLeaseStore)
    accounts: InMemoryAccountStore = field(default_factory=InMemoryAccountStore)
    bus: InMemoryEventBus = field(default_factory=InMemoryEventBus)
    clock: FixedClock = field(default_factory=lambda: FixedClock(NOW))
    config: GlobalConfig = field(default_factory=make_global_config)
    rng: random.Random = field(default_factory=lambda: random.Random(7))
    move_conflict_retries: int = 3

    def __post_init__(self) -> None:
        self.identity.add_user(IsbUser(email=USER_EMAIL, user_id='u-dev'))
        self.identity.add_user(IsbUser(email=ADMIN_EMAIL, user_id='u-admin'))
        self.allocator = AccountAllocator(self.accounts, rng=self.rng)
        self.orchestrator = self.build_orchestrator()

    def build_orchestrator(self) -> LeaseOrchestrator:
        return LeaseOrchestrator(
            account_directory=self.directory,
            identity_provider=self.identity,
            lease_store=self.leases,
            account_store=self.accounts,
            event_bus=self.bus,
            global_config=self.config,
            allocator=self.allocator,
            clock=self.clock,
            move_conflict_retries=self.move_conflict_retries,
        )

    def add_account(
        self, account_id: str, status: Container = Container.AVAILABLE,
    ) -> SandboxAccount:
        """Seed an account in the directory and the store with matching status."""
        self.directory.add_account(
            DirectoryAccount(account_id=account_id, email=f'{account_id}@pool.example.com'),
            status,
        )
        account = SandboxAccount(
            aws_account_id=account_id,
            status=status,
            email=f'{account_id}@pool.example.com',
        )
        self.accounts._accounts[account_id] = account
        return account

    def add_monitored_lease(
        self,
        account_id: str,
        *,
        uuid: str = 'lease-1',
        status: LeaseStatus = LeaseStatus.ACTIVE,
        user_email: str = USER_EMAIL,
        max_spend: float | None = 100.0,
        duration_hours: float | None = 24.0,
        total_cost: float = 0.0,
        started_hours_ago: float = 1.0,
        budget_thresholds: tuple[BudgetThreshold, ...] = (),
        duration_thresholds: tuple[DurationThreshold, ...] = (),
    ) -> MonitoredLease:
        """Seed a monitored lease plus its account in the matching container."""
        container = Container.ACTIVE if status is LeaseStatus.ACTIVE else Container.FROZEN
        if account_id not in self.accounts._accounts:
            self.add_account(account_id, container)
        start = self.clock.now() - timedelta(hours=started_hours_ago)
        lease = MonitoredLease(
            user_email=user_email,
            uuid=uuid,
            original_lease_template_uuid='tpl-1',
            original_lease_template_name='Standard',
            lease_duration_in_hours=duration_hours,
            max_spend=max_spend,
            budget_thresholds=budget_thresholds,
            duration_thresholds=duration_thresholds,
            status=status,
            aws_account_id=account_id,
            approved_by=ADMIN_EMAIL,
            start_date=start,
            expiration_date=start + timedelta(hours=duration_hours) if duration_hours else None,
            last_checked_date=start,
            total_cost_accrued=total_cost,
        )
        self.leases._leases[lease.key] = lease
        return lease


@pytest.fixture
def world() -> LeasePlaneWorld:
    return LeasePlaneWorld()
