"""Lease records as a tagged union, plus the lease state machine.

Lease flow:
  PendingApproval --approve--> Active --freeze--> Frozen
  PendingApproval --deny--> ApprovalDenied (terminal)
  {Active, Frozen} --terminate--> Expired | BudgetExceeded |
      ManuallyTerminated | AccountQuarantined | Ejected (terminal)

Each variant carries only the fields valid for its stage, so a monitored
lease without an assigned account cannot be constructed. Transitions are
plain functions returning a new frozen record.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Union

from ..errors import InvalidLeaseTransition
from ..timeutils import require_aware_datetime
from .lease_template import BudgetThreshold, DurationThreshold, LeaseTemplate

AUTO_APPROVED = 'AUTO_APPROVED'


class LeaseStatus(str, Enum):
    PENDING_APPROVAL = 'PendingApproval'
    APPROVAL_DENIED = 'ApprovalDenied'
    ACTIVE = 'Active'
    FROZEN = 'Frozen'
    EXPIRED = 'Expired'
    BUDGET_EXCEEDED = 'BudgetExceeded'
    MANUALLY_TERMINATED = 'ManuallyTerminated'
    ACCOUNT_QUARANTINED = 'AccountQuarantined'
    EJECTED = 'Ejected'

    def __str__(self) -> str:
        return self.value


MONITORED_STATUSES = frozenset({LeaseStatus.ACTIVE, LeaseStatus.FROZEN})

EXPIRED_STATUSES = frozenset(
    {
        LeaseStatus.EXPIRED,
        LeaseStatus.BUDGET_EXCEEDED,
        LeaseStatus.MANUALLY_TERMINATED,
        LeaseStatus.ACCOUNT_QUARANTINED,
        LeaseStatus.EJECTED,
    }
)

# Leases counted against GlobalConfig.leases.max_leases_per_user.
OPEN_STATUSES = frozenset(
    {LeaseStatus.PENDING_APPROVAL, LeaseStatus.ACTIVE, LeaseStatus.FROZEN}
)

TERMINAL_STATUSES = EXPIRED_STATUSES | {LeaseStatus.APPROVAL_DENIED}

ALLOWED_LEASE_TRANSITIONS = MappingProxyType(
    {
        LeaseStatus.PENDING_APPROVAL: frozenset(
            {LeaseStatus.ACTIVE, LeaseStatus.APPROVAL_DENIED}
        ),
        LeaseStatus.ACTIVE: frozenset({LeaseStatus.FROZEN}) | EXPIRED_STATUSES,
        LeaseStatus.FROZEN: EXPIRED_STATUSES,
        **{status: frozenset() for status in TERMINAL_STATUSES},
    }
)


def assert_lease_transition(from_status: LeaseStatus, to_status: LeaseStatus) -> None:
    if to_status not in ALLOWED_LEASE_TRANSITIONS.get(from_status, frozenset()):
        raise InvalidLeaseTransition(str(from_status), str(to_status))


# ── Records ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class LeaseKey:
    user_email: str
    uuid: str


@dataclass(frozen=True, slots=True, kw_only=True)
class _LeaseBase:
    user_email: str
    uuid: str
    original_lease_template_uuid: str
    original_lease_template_name: str
    lease_duration_in_hours: float | None = None
    max_spend: float | None = None
    budget_thresholds: tuple[BudgetThreshold, ...] = ()
    duration_thresholds: tuple[DurationThreshold, ...] = ()
    comments: str | None = None

    @property
    def key(self) -> LeaseKey:
        return LeaseKey(self.user_email, self.uuid)


@dataclass(frozen=True, slots=True, kw_only=True)
class PendingLease(_LeaseBase):
    """Requested, awaiting approval or denial."""

    status: LeaseStatus = LeaseStatus.PENDING_APPROVAL

    def __post_init__(self) -> None:
        if self.status is not LeaseStatus.PENDING_APPROVAL:
            raise ValueError(f'PendingLease cannot have status {self.status}')


@dataclass(frozen=True, slots=True, kw_only=True)
class ApprovalDeniedLease(_LeaseBase):
    approved_by: str
    ttl: int
    status: LeaseStatus = LeaseStatus.APPROVAL_DENIED

    def __post_init__(self) -> None:
        if self.status is not LeaseStatus.APPROVAL_DENIED:
            raise ValueError(f'ApprovalDeniedLease cannot have status {self.status}')


@dataclass(frozen=True, slots=True, kw_only=True)
class _AssignedLease(_LeaseBase):
    aws_account_id: str
    approved_by: str
    start_date: datetime
    last_checked_date: datetime
    expiration_date: datetime | None = None
    total_cost_accrued: float = 0.0

    def _check_assignment(self) -> None:
        if not self.aws_account_id:
            raise ValueError('aws_account_id is required once a lease is approved')
        require_aware_datetime(self.start_date, 'start_date')
        require_aware_datetime(self.last_checked_date, 'last_checked_date')


@dataclass(frozen=True, slots=True, kw_only=True)
class MonitoredLease(_AssignedLease):
    """Active or Frozen lease; subject to the periodic monitoring scan."""

    status: LeaseStatus

    def __post_init__(self) -> None:
        if self.status not in MONITORED_STATUSES:
            raise ValueError(f'MonitoredLease cannot have status {self.status}')
        self._check_assignment()


@dataclass(frozen=True, slots=True, kw_only=True)
class ExpiredLease(_AssignedLease):
    """Terminated lease kept until its ttl purges it."""

    status: LeaseStatus
    end_date: datetime
    ttl: int

    def __post_init__(self) -> None:
        if self.status not in EXPIRED_STATUSES:
            raise ValueError(f'ExpiredLease cannot have status {self.status}')
        self._check_assignment()


Lease = Union[PendingLease, ApprovalDeniedLease, MonitoredLease, ExpiredLease]


# ── Construction & transitions ───────────────────────────────────────


def new_pending_lease(
    template: LeaseTemplate,
    *,
    user_email: str,
    uuid: str,
    comments: str | None = None,
) -> PendingLease:
    """Snapshot the template's policy onto a fresh pending lease."""
    return PendingLease(
        user_email=user_email,
        uuid=uuid,
        original_lease_template_uuid=template.uuid,
        original_lease_template_name=template.name,
        lease_duration_in_hours=template.lease_duration_in_hours,
        max_spend=template.max_spend,
        budget_thresholds=tuple(template.budget_thresholds),
        duration_thresholds=tuple(template.duration_thresholds),
        comments=comments,
    )


def _base_fields(lease: _LeaseBase) -> dict:
    return {
        'user_email': lease.user_email,
        'uuid': lease.uuid,
        'original_lease_template_uuid': lease.original_lease_template_uuid,
        'original_lease_template_name': lease.original_lease_template_name,
        'lease_duration_in_hours': lease.lease_duration_in_hours,
        'max_spend': lease.max_spend,
        'budget_thresholds': lease.budget_thresholds,
        'duration_thresholds': lease.duration_thresholds,
        'comments': lease.comments,
    }


def approve(
    lease: PendingLease,
    *,
    aws_account_id: str,
    approved_by: str,
    now: datetime,
) -> MonitoredLease:
    """PendingApproval -> Active, starting the lease clock at ``now``."""
    require_aware_datetime(now)
    assert_lease_transition(lease.status, LeaseStatus.ACTIVE)
    expiration = (
        now + timedelta(hours=lease.lease_duration_in_hours)
        if lease.lease_duration_in_hours
        else None
    )
    return MonitoredLease(
        **_base_fields(lease),
        status=LeaseStatus.ACTIVE,
        aws_account_id=aws_account_id,
        approved_by=approved_by,
        start_date=now,
        expiration_date=expiration,
        last_checked_date=now,
        total_cost_accrued=0.0,
    )


def deny(lease: PendingLease, *, denied_by: str, ttl: int) -> ApprovalDeniedLease:
    assert_lease_transition(lease.status, LeaseStatus.APPROVAL_DENIED)
    return ApprovalDeniedLease(**_base_fields(lease), approved_by=denied_by, ttl=ttl)


def freeze(lease: MonitoredLease) -> MonitoredLease:
    assert_lease_transition(lease.status, LeaseStatus.FROZEN)
    return replace(lease, status=LeaseStatus.FROZEN)


def terminate(
    lease: MonitoredLease,
    *,
    status: LeaseStatus,
    end_date: datetime,
    ttl: int,
) -> ExpiredLease:
    require_aware_datetime(end_date, 'end_date')
    assert_lease_transition(lease.status, status)
    return ExpiredLease(
        **_base_fields(lease),
        status=status,
        aws_account_id=lease.aws_account_id,
        approved_by=lease.approved_by,
        start_date=lease.start_date,
        expiration_date=lease.expiration_date,
        last_checked_date=lease.last_checked_date,
        total_cost_accrued=lease.total_cost_accrued,
        end_date=end_date,
        ttl=ttl,
    )


def record_scan(
    lease: MonitoredLease,
    *,
    current_cost: float,
    checked_at: datetime,
) -> MonitoredLease:
    """Advance the monitoring watermark; accrued cost never decreases."""
    require_aware_datetime(checked_at, 'checked_at')
    return replace(
        lease,
        total_cost_accrued=max(lease.total_cost_accrued, current_cost),
        last_checked_date=checked_at,
    )


# ── Type guards ──────────────────────────────────────────────────────


def is_monitored(lease: Lease) -> bool:
    return isinstance(lease, MonitoredLease)


def is_active(lease: Lease) -> bool:
    return isinstance(lease, MonitoredLease) and lease.status is LeaseStatus.ACTIVE
