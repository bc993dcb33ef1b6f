"""Periodic monitoring scan over every Active and Frozen lease.

One scan fetches costs for all monitored accounts in a single cost-meter
call, evaluates each lease, publishes every resulting event, and only then
persists the refreshed watermarks. A cost-meter failure aborts the scan
before anything is published or persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..data.paging import collect
from ..domain.events import IsbEvent
from ..domain.lease import LeaseStatus, MonitoredLease
from ..errors import CostReportUnavailable
from ..observability.logging import searchable_lease_properties
from ..protocols import Clock, CostMeter, EventBus, LeaseStore
from ..timeutils import SystemClock
from .thresholds import LeaseEvaluation, evaluate_lease

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScanReport:
    scanned_at: datetime
    evaluations: tuple[LeaseEvaluation, ...] = ()
    events: tuple[IsbEvent, ...] = ()

    @property
    def leases_scanned(self) -> int:
        return len(self.evaluations)

    def summary(self) -> str:
        return (
            f'completed lease monitoring scan for {self.leases_scanned} leases '
            f'and generated {len(self.events)} events'
        )


class MonitoringScan:
    def __init__(
        self,
        *,
        lease_store: LeaseStore,
        cost_meter: CostMeter,
        event_bus: EventBus,
        clock: Clock | None = None,
    ) -> None:
        self._leases = lease_store
        self._cost_meter = cost_meter
        self._events = event_bus
        self._clock = clock or SystemClock()

    async def _monitored_leases(self) -> list[MonitoredLease]:
        leases: list[MonitoredLease] = []
        for status in (LeaseStatus.ACTIVE, LeaseStatus.FROZEN):
            for lease in await collect(
                lambda page, status=status: self._leases.find_by_status(status, page)
            ):
                if not isinstance(lease, MonitoredLease):
                    logger.warning(
                        'Lease store returned an unmonitored lease (%s) for status %s',
                        lease.uuid,
                        status,
                    )
                    continue
                leases.append(lease)
        return leases

    async def run(self) -> ScanReport:
        leases = await self._monitored_leases()
        account_start_dates = {lease.aws_account_id: lease.start_date for lease in leases}
        logger.debug(
            'Running cost monitoring for %s',
            [(lease.aws_account_id, lease.uuid) for lease in leases],
        )

        now = self._clock.now()
        try:
            costs = await self._cost_meter.get_cost_for_leases(account_start_dates, now)
        except Exception as exc:
            raise CostReportUnavailable(exc) from exc

        evaluations: list[LeaseEvaluation] = []
        events: list[IsbEvent] = []
        for lease in leases:
            evaluation = evaluate_lease(lease, costs.get_cost(lease.aws_account_id), now)
            evaluations.append(evaluation)
            if not evaluation.events:
                logger.info(
                    'no new lease events detected for lease %s',
                    lease.uuid,
                    extra=searchable_lease_properties(lease),
                )
            events.extend(evaluation.events)

        if events:
            await self._events.publish(*events)

        for evaluation in evaluations:
            await self._leases.update(evaluation.updated_lease)

        report = ScanReport(
            scanned_at=now, evaluations=tuple(evaluations), events=tuple(events),
        )
        logger.info(report.summary())
        return report
