"""Pure threshold evaluation for one monitored lease.

A threshold fires only on the scan that first crosses it: a budget
threshold T when ``previous_cost < T <= current_cost``, a duration
threshold H when ``last_checked < expiration - H <= now``. Hard limits
(max spend, expiration) override every threshold event for that scan.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..domain.events import (
    FrozenByBudget,
    FrozenByDuration,
    IsbEvent,
    LeaseBudgetExceededAlert,
    LeaseBudgetThresholdBreachedAlert,
    LeaseDurationThresholdBreachedAlert,
    LeaseExpiredAlert,
    LeaseFreezingThresholdBreachedAlert,
    lease_id_of,
)
from ..domain.lease import MonitoredLease, record_scan
from ..domain.lease_template import BudgetThreshold, DurationThreshold, ThresholdAction
from ..timeutils import require_aware_datetime


@dataclass(frozen=True, slots=True)
class LeaseEvaluation:
    """Events raised for one lease plus its refreshed watermark."""

    lease: MonitoredLease
    updated_lease: MonitoredLease
    current_cost: float
    events: tuple[IsbEvent, ...] = ()


def newly_crossed_budget_thresholds(
    lease: MonitoredLease, current_cost: float,
) -> list[BudgetThreshold]:
    previous_cost = lease.total_cost_accrued
    return [
        t
        for t in lease.budget_thresholds
        if previous_cost < t.dollars_spent <= current_cost
    ]


def newly_crossed_duration_thresholds(
    lease: MonitoredLease, now: datetime,
) -> list[DurationThreshold]:
    if lease.expiration_date is None:
        return []
    crossed = []
    for t in lease.duration_thresholds:
        threshold_date = lease.expiration_date - timedelta(hours=t.hours_remaining)
        if lease.last_checked_date < threshold_date <= now:
            crossed.append(t)
    return crossed


def evaluate_lease(
    lease: MonitoredLease, current_cost: float, now: datetime,
) -> LeaseEvaluation:
    require_aware_datetime(now)
    updated = record_scan(lease, current_cost=current_cost, checked_at=now)
    lease_id = lease_id_of(lease)
    account_id = lease.aws_account_id

    if lease.max_spend is not None and current_cost >= lease.max_spend:
        event: IsbEvent = LeaseBudgetExceededAlert(
            lease_id=lease_id,
            account_id=account_id,
            budget=lease.max_spend,
            total_spend=current_cost,
        )
        return LeaseEvaluation(lease, updated, current_cost, (event,))

    if lease.expiration_date is not None and now > lease.expiration_date:
        event = LeaseExpiredAlert(
            lease_id=lease_id,
            account_id=account_id,
            lease_expiration_date=lease.expiration_date,
        )
        return LeaseEvaluation(lease, updated, current_cost, (event,))

    budget_crossed = newly_crossed_budget_thresholds(lease, current_cost)
    duration_crossed = newly_crossed_duration_thresholds(lease, now)
    events: list[IsbEvent] = []

    budget_freezes = [
        t for t in budget_crossed if t.action is ThresholdAction.FREEZE_ACCOUNT
    ]
    duration_freezes = [
        t for t in duration_crossed if t.action is ThresholdAction.FREEZE_ACCOUNT
    ]
    if budget_freezes:
        trigger = min(budget_freezes, key=lambda t: t.dollars_spent)
        events.append(
            LeaseFreezingThresholdBreachedAlert(
                lease_id=lease_id,
                account_id=account_id,
                reason=FrozenByBudget(
                    triggered_budget_threshold=trigger.dollars_spent,
                    budget=lease.max_spend,
                    total_spend=current_cost,
                ),
            )
        )
    elif duration_freezes:
        trigger_hours = max(duration_freezes, key=lambda t: t.hours_remaining)
        events.append(
            LeaseFreezingThresholdBreachedAlert(
                lease_id=lease_id,
                account_id=account_id,
                reason=FrozenByDuration(
                    triggered_duration_threshold=trigger_hours.hours_remaining,
                    lease_duration_in_hours=lease.lease_duration_in_hours,
                ),
            )
        )

    # Most severe crossed threshold per axis; a freeze there supersedes alerts.
    if budget_crossed:
        largest = max(budget_crossed, key=lambda t: t.dollars_spent)
        if largest.action is ThresholdAction.ALERT:
            events.append(
                LeaseBudgetThresholdBreachedAlert(
                    lease_id=lease_id,
                    account_id=account_id,
                    budget=lease.max_spend,
                    total_spend=current_cost,
                    budget_threshold_triggered=largest.dollars_spent,
                    action_requested=largest.action,
                )
            )
    if duration_crossed:
        soonest = min(duration_crossed, key=lambda t: t.hours_remaining)
        if soonest.action is ThresholdAction.ALERT:
            events.append(
                LeaseDurationThresholdBreachedAlert(
                    lease_id=lease_id,
                    account_id=account_id,
                    triggered_duration_threshold=soonest.hours_remaining,
                    lease_duration_in_hours=lease.lease_duration_in_hours,
                    action_requested=soonest.action,
                )
            )

    return LeaseEvaluation(lease, updated, current_cost, tuple(events))
