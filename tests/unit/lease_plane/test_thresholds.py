"""Threshold evaluation tests.

Validates:
  - Max spend overrides every other event (cost 80 -> 110 on max 100)
  - Expiration overrides threshold events
  - A newly crossed freeze threshold supersedes lower alerts (40 -> 90)
  - Budget alert uses the largest crossed threshold
  - Duration alert uses the soonest (smallest hours remaining) threshold
  - Each threshold fires exactly once under monotonically rising cost
  - The watermark keeps the larger of previous and current cost
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from lease_plane.app.domain.events import (
    FrozenByBudget,
    FrozenByDuration,
    LeaseBudgetExceededAlert,
    LeaseBudgetThresholdBreachedAlert,
    LeaseDurationThresholdBreachedAlert,
    LeaseExpiredAlert,
    LeaseFreezingThresholdBreachedAlert,
)
from lease_plane.app.domain.lease_template import (
    BudgetThreshold,
    DurationThreshold,
    ThresholdAction,
)
from lease_plane.app.monitoring.thresholds import evaluate_lease

ALERT = ThresholdAction.ALERT
FREEZE = ThresholdAction.FREEZE_ACCOUNT


def _budget(*pairs) -> tuple[BudgetThreshold, ...]:
    return tuple(BudgetThreshold(dollars_spent=d, action=a) for d, a in pairs)


def _duration(*pairs) -> tuple[DurationThreshold, ...]:
    return tuple(DurationThreshold(hours_remaining=h, action=a) for h, a in pairs)


class TestOverrides:

    def test_budget_exceeded_suppresses_threshold_alerts(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            max_spend=100,
            total_cost=80,
            budget_thresholds=_budget((90, ALERT), (95, FREEZE)),
        )
        evaluation = evaluate_lease(lease, 110, world.clock.now())
        assert len(evaluation.events) == 1
        event = evaluation.events[0]
        assert isinstance(event, LeaseBudgetExceededAlert)
        assert event.budget == 100
        assert event.total_spend == 110

    def test_cost_equal_to_max_spend_is_exceeded(self, world):
        lease = world.add_monitored_lease('111111111111', max_spend=100, total_cost=50)
        evaluation = evaluate_lease(lease, 100, world.clock.now())
        assert [type(e) for e in evaluation.events] == [LeaseBudgetExceededAlert]

    def test_expired_lease_emits_only_expired(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            duration_hours=24,
            started_hours_ago=25,
            duration_thresholds=_duration((2, ALERT)),
        )
        evaluation = evaluate_lease(lease, 10, world.clock.now())
        assert len(evaluation.events) == 1
        assert isinstance(evaluation.events[0], LeaseExpiredAlert)
        assert evaluation.events[0].lease_expiration_date == lease.expiration_date

    def test_budget_exceeded_wins_over_expired(self, world):
        lease = world.add_monitored_lease(
            '111111111111', max_spend=100, duration_hours=24, started_hours_ago=30,
        )
        evaluation = evaluate_lease(lease, 150, world.clock.now())
        assert [type(e) for e in evaluation.events] == [LeaseBudgetExceededAlert]

    def test_no_limits_means_no_override(self, world):
        lease = world.add_monitored_lease(
            '111111111111', max_spend=None, duration_hours=None,
        )
        assert evaluate_lease(lease, 10_000, world.clock.now()).events == ()


class TestBudgetThresholds:

    def test_freeze_supersedes_lower_alert(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            max_spend=None,
            total_cost=40,
            budget_thresholds=_budget((60, ALERT), (80, FREEZE)),
        )
        evaluation = evaluate_lease(lease, 90, world.clock.now())
        assert len(evaluation.events) == 1
        event = evaluation.events[0]
        assert isinstance(event, LeaseFreezingThresholdBreachedAlert)
        assert isinstance(event.reason, FrozenByBudget)
        assert event.reason.triggered_budget_threshold == 80
        assert event.reason.total_spend == 90

    def test_largest_crossed_alert_is_reported(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            max_spend=200,
            total_cost=10,
            budget_thresholds=_budget((50, ALERT), (75, ALERT)),
        )
        evaluation = evaluate_lease(lease, 80, world.clock.now())
        assert len(evaluation.events) == 1
        event = evaluation.events[0]
        assert isinstance(event, LeaseBudgetThresholdBreachedAlert)
        assert event.budget_threshold_triggered == 75
        assert event.budget == 200
        assert event.action_requested is ALERT

    def test_alert_above_freeze_reports_both(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            max_spend=None,
            total_cost=0,
            budget_thresholds=_budget((50, FREEZE), (70, ALERT)),
        )
        evaluation = evaluate_lease(lease, 75, world.clock.now())
        kinds = [type(e) for e in evaluation.events]
        assert kinds == [LeaseFreezingThresholdBreachedAlert, LeaseBudgetThresholdBreachedAlert]

    def test_smallest_crossed_freeze_is_the_trigger(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            max_spend=None,
            budget_thresholds=_budget((90, FREEZE), (60, FREEZE)),
        )
        evaluation = evaluate_lease(lease, 95, world.clock.now())
        assert evaluation.events[0].reason.triggered_budget_threshold == 60

    def test_previously_crossed_threshold_does_not_refire(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            max_spend=None,
            total_cost=55,
            budget_thresholds=_budget((50, ALERT)),
        )
        assert evaluate_lease(lease, 60, world.clock.now()).events == ()

    def test_each_threshold_fires_exactly_once(self, world):
        thresholds = _budget((20, ALERT), (40, ALERT), (60, ALERT))
        lease = world.add_monitored_lease(
            '111111111111', max_spend=None, budget_thresholds=thresholds,
        )
        fired: list[tuple[float, float]] = []
        now = world.clock.now()
        for cost in (5, 15, 20, 25, 39, 45, 61, 70, 80):
            now += timedelta(minutes=30)
            evaluation = evaluate_lease(lease, cost, now)
            for event in evaluation.events:
                fired.append((cost, event.budget_threshold_triggered))
            lease = evaluation.updated_lease
        assert fired == [(20, 20), (45, 40), (61, 60)]


class TestDurationThresholds:

    def test_soonest_crossed_alert_is_reported(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            duration_hours=24,
            started_hours_ago=23,
            duration_thresholds=_duration((12, ALERT), (4, ALERT)),
        )
        evaluation = evaluate_lease(lease, 0, world.clock.now())
        assert len(evaluation.events) == 1
        event = evaluation.events[0]
        assert isinstance(event, LeaseDurationThresholdBreachedAlert)
        assert event.triggered_duration_threshold == 4
        assert event.lease_duration_in_hours == 24

    def test_duration_freeze(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            duration_hours=24,
            started_hours_ago=23,
            duration_thresholds=_duration((2, FREEZE), (6, FREEZE)),
        )
        evaluation = evaluate_lease(lease, 0, world.clock.now())
        assert len(evaluation.events) == 1
        reason = evaluation.events[0].reason
        assert isinstance(reason, FrozenByDuration)
        assert reason.triggered_duration_threshold == 6

    def test_budget_freeze_takes_priority_over_duration_freeze(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            max_spend=None,
            duration_hours=24,
            started_hours_ago=23,
            budget_thresholds=_budget((10, FREEZE)),
            duration_thresholds=_duration((2, FREEZE)),
        )
        evaluation = evaluate_lease(lease, 15, world.clock.now())
        freezes = [e for e in evaluation.events if isinstance(e, LeaseFreezingThresholdBreachedAlert)]
        assert len(freezes) == 1
        assert isinstance(freezes[0].reason, FrozenByBudget)

    def test_duration_threshold_fires_once_across_scans(self, world):
        lease = world.add_monitored_lease(
            '111111111111',
            duration_hours=24,
            started_hours_ago=10,
            duration_thresholds=_duration((12, ALERT)),
        )
        now = world.clock.now()
        first = evaluate_lease(lease, 0, now + timedelta(hours=3))
        second = evaluate_lease(first.updated_lease, 0, now + timedelta(hours=4))
        assert len(first.events) == 1
        assert second.events == ()


class TestWatermark:

    def test_updated_lease_carries_scan_time_and_max_cost(self, world):
        lease = world.add_monitored_lease('111111111111', max_spend=None, total_cost=30)
        scan_time = world.clock.now() + timedelta(minutes=5)
        evaluation = evaluate_lease(lease, 25, scan_time)
        assert evaluation.updated_lease.total_cost_accrued == 30
        assert evaluation.updated_lease.last_checked_date == scan_time
        assert evaluation.current_cost == 25

    def test_rejects_naive_now(self, world):
        lease = world.add_monitored_lease('111111111111')
        with pytest.raises(ValueError):
            evaluate_lease(lease, 0, world.clock.now().replace(tzinfo=None))
