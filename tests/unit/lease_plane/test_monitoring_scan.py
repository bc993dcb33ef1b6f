"""Monitoring scan tests.

Validates:
  - Active and Frozen leases are scanned in one cost-meter call
  - Events from every lease are published before watermarks persist
  - A cost-meter failure aborts the scan with nothing persisted
  - A publish failure leaves every watermark unwritten
  - Accrued cost is non-decreasing across consecutive scans
  - ScanReport aggregates are correct
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from lease_plane.app.domain.events import (
    LeaseBudgetExceededAlert,
    LeaseBudgetThresholdBreachedAlert,
)
from lease_plane.app.domain.lease import LeaseKey, LeaseStatus
from lease_plane.app.domain.lease_template import BudgetThreshold, ThresholdAction
from lease_plane.app.errors import CostReportUnavailable
from lease_plane.app.inmemory import InMemoryCostMeter
from lease_plane.app.monitoring.scan import MonitoringScan

DEV = 'dev@example.com'


def _make_scan(world, meter: InMemoryCostMeter) -> MonitoringScan:
    return MonitoringScan(
        lease_store=world.leases,
        cost_meter=meter,
        event_bus=world.bus,
        clock=world.clock,
    )


class TestMonitoringScan:

    @pytest.mark.asyncio
    async def test_scans_active_and_frozen_leases(self, world):
        active = world.add_monitored_lease('111111111111', uuid='l-1')
        frozen = world.add_monitored_lease(
            '222222222222', uuid='l-2', status=LeaseStatus.FROZEN,
        )
        meter = InMemoryCostMeter()
        report = await _make_scan(world, meter).run()

        assert report.leases_scanned == 2
        assert len(meter.requests) == 1
        start_dates, as_of = meter.requests[0]
        assert start_dates == {
            '111111111111': active.start_date,
            '222222222222': frozen.start_date,
        }
        assert as_of == world.clock.now()

    @pytest.mark.asyncio
    async def test_publishes_events_and_persists_watermarks(self, world):
        world.add_monitored_lease(
            '111111111111',
            uuid='l-1',
            max_spend=100,
            budget_thresholds=(
                BudgetThreshold(dollars_spent=50, action=ThresholdAction.ALERT),
            ),
        )
        world.add_monitored_lease('222222222222', uuid='l-2', max_spend=100)
        meter = InMemoryCostMeter()
        meter.set_cost('111111111111', 55)
        meter.set_cost('222222222222', 120)

        report = await _make_scan(world, meter).run()

        kinds = sorted(type(e).__name__ for e in world.bus.published)
        assert kinds == ['LeaseBudgetExceededAlert', 'LeaseBudgetThresholdBreachedAlert']
        assert len(report.events) == 2
        first = await world.leases.get(LeaseKey(DEV, 'l-1'))
        assert first.total_cost_accrued == 55
        assert first.last_checked_date == world.clock.now()

    @pytest.mark.asyncio
    async def test_cost_meter_failure_aborts_without_persisting(self, world):
        lease = world.add_monitored_lease('111111111111', uuid='l-1')
        meter = InMemoryCostMeter(fails=True)
        with pytest.raises(CostReportUnavailable) as excinfo:
            await _make_scan(world, meter).run()
        assert isinstance(excinfo.value.cause, RuntimeError)
        assert world.bus.published == []
        assert world.leases.calls == []
        assert await world.leases.get(lease.key) == lease

    @pytest.mark.asyncio
    async def test_publish_failure_leaves_watermarks_unwritten(self, world):
        over_budget = world.add_monitored_lease('111111111111', uuid='l-1')
        quiet = world.add_monitored_lease('222222222222', uuid='l-2')
        world.bus.publish_fails = True
        meter = InMemoryCostMeter()
        meter.set_cost('111111111111', 150)
        meter.set_cost('222222222222', 5)

        with pytest.raises(RuntimeError, match='event bus unavailable'):
            await _make_scan(world, meter).run()

        assert world.leases.calls == []
        assert await world.leases.get(over_budget.key) == over_budget
        assert await world.leases.get(quiet.key) == quiet

    @pytest.mark.asyncio
    async def test_cost_is_non_decreasing_across_scans(self, world):
        world.add_monitored_lease('111111111111', uuid='l-1', max_spend=None)
        meter = InMemoryCostMeter()
        scan = _make_scan(world, meter)
        observed = []
        for cost in (10, 30, 25, 40):
            meter.set_cost('111111111111', cost)
            world.clock.advance(minutes=15)
            await scan.run()
            observed.append((await world.leases.get(LeaseKey(DEV, 'l-1'))).total_cost_accrued)
        assert observed == [10, 30, 30, 40]

    @pytest.mark.asyncio
    async def test_threshold_fires_once_over_repeated_scans(self, world):
        world.add_monitored_lease(
            '111111111111',
            uuid='l-1',
            max_spend=None,
            budget_thresholds=(
                BudgetThreshold(dollars_spent=50, action=ThresholdAction.ALERT),
            ),
        )
        meter = InMemoryCostMeter()
        scan = _make_scan(world, meter)
        for cost in (40, 55, 60, 70):
            meter.set_cost('111111111111', cost)
            world.clock.advance(minutes=15)
            await scan.run()
        assert len(world.bus.of_type(LeaseBudgetThresholdBreachedAlert)) == 1

    @pytest.mark.asyncio
    async def test_empty_scan(self, world):
        meter = InMemoryCostMeter()
        report = await _make_scan(world, meter).run()
        assert report.leases_scanned == 0
        assert report.events == ()
        assert world.bus.published == []
        assert report.summary() == (
            'completed lease monitoring scan for 0 leases and generated 0 events'
        )

    @pytest.mark.asyncio
    async def test_unknown_account_cost_is_zero(self, world):
        world.add_monitored_lease('111111111111', uuid='l-1', total_cost=0)
        await _make_scan(world, InMemoryCostMeter()).run()
        lease = await world.leases.get(LeaseKey(DEV, 'l-1'))
        assert lease.total_cost_accrued == 0
        assert not world.bus.of_type(LeaseBudgetExceededAlert)
