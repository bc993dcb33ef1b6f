"""Lease plane factory.

create_lease_plane() is the single entry point for wiring the orchestrator,
lifecycle manager and monitoring scan over their collaborators.

Usage:
    # Local development (in-memory collaborators, default policy)
    from lease_plane.app.main import create_lease_plane
    plane = create_lease_plane()

    # Non-local (real collaborators injected)
    settings = LeasePlaneSettings.from_env()
    plane = create_lease_plane(settings, account_directory=..., ...)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from .domain.global_config import GlobalConfig, load_global_config
from .errors import ConfigError
from .leasing.allocator import AccountAllocator
from .leasing.lifecycle_manager import AccountLifecycleManager
from .leasing.orchestrator import LeaseOrchestrator
from .monitoring.scan import MonitoringScan
from .observability.logging import configure_logging
from .protocols import (
    AccountDirectory,
    AccountStore,
    Clock,
    CostMeter,
    EventBus,
    IdentityProvider,
    LeaseStore,
)
from .settings import LeasePlaneSettings

logger = logging.getLogger(__name__)

# Policy used locally when no GlobalConfig document is configured.
LOCAL_GLOBAL_CONFIG = {
    'maintenanceMode': False,
    'leases': {'maxLeasesPerUser': 3, 'ttl': 30},
}


@dataclass(frozen=True)
class LeasePlane:
    """The wired services plus the configuration they were built from."""

    settings: LeasePlaneSettings
    global_config: GlobalConfig
    orchestrator: LeaseOrchestrator
    lifecycle_manager: AccountLifecycleManager
    monitoring_scan: MonitoringScan


def _load_policy(settings: LeasePlaneSettings) -> GlobalConfig:
    if settings.global_config_path:
        return load_global_config(settings.global_config_path)
    return load_global_config(LOCAL_GLOBAL_CONFIG)


def create_lease_plane(
    settings: LeasePlaneSettings | None = None,
    *,
    account_directory: AccountDirectory | None = None,
    identity_provider: IdentityProvider | None = None,
    lease_store: LeaseStore | None = None,
    account_store: AccountStore | None = None,
    event_bus: EventBus | None = None,
    cost_meter: CostMeter | None = None,
    global_config: GlobalConfig | None = None,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> LeasePlane:
    """Build a configured lease plane.

    Local mode fills any missing collaborator with its in-memory fake.
    Non-local mode requires every collaborator to be provided.

    Raises:
        ConfigError: If settings validation fails, the policy document is
            invalid, or a non-local environment is missing collaborators.
    """
    if settings is None:
        settings = LeasePlaneSettings()
    settings.require_valid()
    configure_logging(settings.log_level)

    collaborators = {
        'account_directory': account_directory,
        'identity_provider': identity_provider,
        'lease_store': lease_store,
        'account_store': account_store,
        'event_bus': event_bus,
        'cost_meter': cost_meter,
    }
    if settings.is_local:
        from .inmemory import (
            InMemoryAccountDirectory,
            InMemoryAccountStore,
            InMemoryCostMeter,
            InMemoryEventBus,
            InMemoryIdentityProvider,
            InMemoryLeaseStore,
        )

        defaults = {
            'account_directory': InMemoryAccountDirectory,
            'identity_provider': InMemoryIdentityProvider,
            'lease_store': InMemoryLeaseStore,
            'account_store': InMemoryAccountStore,
            'event_bus': InMemoryEventBus,
            'cost_meter': InMemoryCostMeter,
        }
        for name, factory in defaults.items():
            if collaborators[name] is None:
                collaborators[name] = factory()
    else:
        missing = [name for name, value in collaborators.items() if value is None]
        if missing:
            raise ConfigError(
                f'Non-local environment ({settings.environment}) requires all '
                f'collaborators to be explicitly provided. Missing: {", ".join(missing)}'
            )

    if global_config is None:
        global_config = _load_policy(settings)

    allocator = AccountAllocator(
        collaborators['account_store'],
        page_size=settings.allocation_page_size,
        rng=rng,
    )
    orchestrator = LeaseOrchestrator(
        account_directory=collaborators['account_directory'],
        identity_provider=collaborators['identity_provider'],
        lease_store=collaborators['lease_store'],
        account_store=collaborators['account_store'],
        event_bus=collaborators['event_bus'],
        global_config=global_config,
        allocator=allocator,
        clock=clock,
        move_conflict_retries=settings.move_conflict_retries,
    )
    plane = LeasePlane(
        settings=settings,
        global_config=global_config,
        orchestrator=orchestrator,
        lifecycle_manager=AccountLifecycleManager(
            orchestrator=orchestrator,
            lease_store=collaborators['lease_store'],
            account_store=collaborators['account_store'],
        ),
        monitoring_scan=MonitoringScan(
            lease_store=collaborators['lease_store'],
            cost_meter=collaborators['cost_meter'],
            event_bus=collaborators['event_bus'],
            clock=clock,
        ),
    )
    logger.info(
        'Lease plane ready (environment=%s, maintenance_mode=%s)',
        settings.environment,
        global_config.maintenance_mode,
    )
    return plane
