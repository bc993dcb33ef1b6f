"""Route inbound lifecycle events to orchestrator operations.

Handles one event per call. Payloads are validated with the same event
models the monitoring scan and cleanup workflow publish.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping

from ..domain.account import Container
from ..domain.events import (
    AccountCleanupFailed,
    AccountCleanupSucceeded,
    AccountDriftDetected,
    IsbEvent,
    LeaseBudgetExceededAlert,
    LeaseExpiredAlert,
    LeaseFreezingThresholdBreachedAlert,
    LeaseId,
)
from ..domain.lease import Lease, LeaseKey, LeaseStatus, is_active, is_monitored
from ..errors import LeaseNotFound, UnexpectedLeaseState, UnsupportedEvent
from ..protocols import AccountStore, LeaseStore
from .orchestrator import LeaseOrchestrator

logger = logging.getLogger(__name__)


class AccountLifecycleManager:
    def __init__(
        self,
        *,
        orchestrator: LeaseOrchestrator,
        lease_store: LeaseStore,
        account_store: AccountStore,
    ) -> None:
        self._orchestrator = orchestrator
        self._leases = lease_store
        self._accounts = account_store
        self._handlers: Mapping[str, tuple[type[IsbEvent], Callable[[Any], Awaitable[None]]]] = {
            LeaseBudgetExceededAlert.DETAIL_TYPE: (
                LeaseBudgetExceededAlert, self._on_budget_exceeded,
            ),
            LeaseExpiredAlert.DETAIL_TYPE: (LeaseExpiredAlert, self._on_expired),
            LeaseFreezingThresholdBreachedAlert.DETAIL_TYPE: (
                LeaseFreezingThresholdBreachedAlert, self._on_freezing_threshold,
            ),
            AccountCleanupSucceeded.DETAIL_TYPE: (
                AccountCleanupSucceeded, self._on_cleanup_succeeded,
            ),
            AccountCleanupFailed.DETAIL_TYPE: (
                AccountCleanupFailed, self._on_cleanup_failed,
            ),
            AccountDriftDetected.DETAIL_TYPE: (
                AccountDriftDetected, self._on_drift_detected,
            ),
        }

    @property
    def tracked_detail_types(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def handle(self, detail_type: str, detail: Mapping[str, Any]) -> None:
        try:
            event_type, handler = self._handlers[detail_type]
        except KeyError:
            raise UnsupportedEvent(detail_type) from None
        logger.debug('Processing %s', detail_type)
        await handler(event_type.parse(detail))

    async def _load_lease(self, lease_id: LeaseId) -> Lease:
        lease = await self._leases.get(LeaseKey(lease_id.user_email, lease_id.uuid))
        if lease is None:
            raise LeaseNotFound(lease_id.user_email, lease_id.uuid)
        return lease

    async def _on_budget_exceeded(self, event: LeaseBudgetExceededAlert) -> None:
        lease = await self._load_lease(event.lease_id)
        if not is_monitored(lease):
            raise UnexpectedLeaseState(event.DETAIL_TYPE, lease.uuid, str(lease.status))
        await self._orchestrator.terminate_lease(lease, LeaseStatus.BUDGET_EXCEEDED)

    async def _on_expired(self, event: LeaseExpiredAlert) -> None:
        lease = await self._load_lease(event.lease_id)
        if not is_monitored(lease):
            raise UnexpectedLeaseState(event.DETAIL_TYPE, lease.uuid, str(lease.status))
        await self._orchestrator.terminate_lease(lease, LeaseStatus.EXPIRED)

    async def _on_freezing_threshold(
        self, event: LeaseFreezingThresholdBreachedAlert,
    ) -> None:
        lease = await self._load_lease(event.lease_id)
        if not is_active(lease):
            raise UnexpectedLeaseState(event.DETAIL_TYPE, lease.uuid, str(lease.status))
        await self._orchestrator.freeze_lease(lease, event.reason)

    async def _on_cleanup_succeeded(self, event: AccountCleanupSucceeded) -> None:
        logger.info('Account cleanup succeeded for account (%s)', event.account_id)
        await self._orchestrator.complete_cleanup(event.account_id)

    async def _on_cleanup_failed(self, event: AccountCleanupFailed) -> None:
        logger.info('Account cleanup failed for account (%s)', event.account_id)
        await self._orchestrator.quarantine_account(
            event.account_id, Container.CLEANUP, 'Cleanup Failed',
        )

    async def _on_drift_detected(self, event: AccountDriftDetected) -> None:
        if event.actual_ou is None:
            await self._accounts.delete(event.account_id)
            logger.warning(
                'Account %s deleted from the account store: it was expected in '
                'the %s container but has been removed from the pool completely',
                event.account_id,
                event.expected_ou,
            )
            return
        await self._orchestrator.quarantine_account(
            event.account_id,
            event.actual_ou,
            f'Drift Detected: {{expectedOU: {event.expected_ou}, '
            f'actualOU: {event.actual_ou}}}',
        )
