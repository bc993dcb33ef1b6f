"""Domain events published on, and consumed from, the event bus.

Each event is a frozen pydantic model with a ``DETAIL_TYPE`` class
constant. ``to_detail()`` renders the camelCase wire payload and
``parse()`` validates an inbound payload back into the event.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .account import Container
from .lease import LeaseStatus, MonitoredLease, _LeaseBase
from .lease_template import ThresholdAction


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class LeaseId(_Payload):
    user_email: str
    uuid: str


def lease_id_of(lease: _LeaseBase) -> LeaseId:
    return LeaseId(user_email=lease.user_email, uuid=lease.uuid)


class IsbEvent(_Payload):
    """Base class for bus events."""

    DETAIL_TYPE: ClassVar[str] = ''

    @property
    def detail_type(self) -> str:
        return self.DETAIL_TYPE

    def to_detail(self) -> dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)

    @classmethod
    def parse(cls, detail: Any):
        return cls.model_validate(detail)


# ── Freeze / termination reasons ─────────────────────────────────────


class FrozenByBudget(_Payload):
    type: Literal['BudgetExceeded'] = 'BudgetExceeded'
    triggered_budget_threshold: float = Field(gt=0)
    budget: float | None = None
    total_spend: float


class FrozenByDuration(_Payload):
    type: Literal['Expired'] = 'Expired'
    triggered_duration_threshold: float = Field(gt=0)
    lease_duration_in_hours: float = Field(gt=0)


class FrozenManually(_Payload):
    type: Literal['ManuallyFrozen'] = 'ManuallyFrozen'
    comment: str


FreezeReason = Annotated[
    Union[FrozenByBudget, FrozenByDuration, FrozenManually],
    Field(discriminator='type'),
]


class TerminatedByDuration(_Payload):
    type: Literal['Expired'] = 'Expired'
    lease_duration_in_hours: float = Field(gt=0)


class TerminatedByBudget(_Payload):
    type: Literal['BudgetExceeded'] = 'BudgetExceeded'
    budget: float | None = None
    total_spend: float


class TerminatedWithComment(_Payload):
    type: Literal['ManuallyTerminated', 'AccountQuarantined', 'Ejected']
    comment: str


TerminationReason = Annotated[
    Union[TerminatedByDuration, TerminatedByBudget, TerminatedWithComment],
    Field(discriminator='type'),
]

_TERMINATION_COMMENTS = {
    LeaseStatus.MANUALLY_TERMINATED: 'Terminated by admin',
    LeaseStatus.ACCOUNT_QUARANTINED: 'Account quarantined by admin',
    LeaseStatus.EJECTED: 'Account ejected by admin',
}


def terminated_reason_for(
    expired_status: LeaseStatus,
    lease: MonitoredLease,
) -> TerminatedByDuration | TerminatedByBudget | TerminatedWithComment:
    """Derive the LeaseTerminated reason from the terminal status."""
    if expired_status is LeaseStatus.EXPIRED:
        if lease.lease_duration_in_hours is None:
            raise ValueError('lease duration is required to terminate as Expired')
        return TerminatedByDuration(lease_duration_in_hours=lease.lease_duration_in_hours)
    if expired_status is LeaseStatus.BUDGET_EXCEEDED:
        return TerminatedByBudget(
            budget=lease.max_spend,
            total_spend=lease.total_cost_accrued,
        )
    comment = _TERMINATION_COMMENTS.get(expired_status)
    if comment is None:
        raise ValueError(f'{expired_status} is not a terminal lease status')
    return TerminatedWithComment(type=expired_status.value, comment=comment)


# ── Lease lifecycle events ───────────────────────────────────────────


class LeaseRequested(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseRequested'

    lease_id: LeaseId
    user_email: str
    requires_manual_approval: bool
    comments: str | None = None


class LeaseApproved(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseApproved'

    lease_id: str
    user_email: str
    approved_by: str


class LeaseDenied(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseDenied'

    lease_id: str
    user_email: str
    denied_by: str


class LeaseFrozen(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseFrozen'

    lease_id: LeaseId
    account_id: str
    reason: FreezeReason


class LeaseTerminated(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseTerminated'

    lease_id: LeaseId
    account_id: str
    reason: TerminationReason


# ── Account lifecycle events ─────────────────────────────────────────


class CleanAccountRequest(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'CleanAccountRequest'

    account_id: str
    reason: str


class AccountQuarantined(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'AccountQuarantined'

    aws_account_id: str
    reason: str


class CleanupExecutionContext(_Payload):
    state_machine_execution_arn: str
    state_machine_execution_start_time: str


class AccountCleanupSucceeded(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'AccountCleanupSucceeded'

    account_id: str
    cleanup_execution_context: CleanupExecutionContext | None = None


class AccountCleanupFailed(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'AccountCleanupFailed'

    account_id: str
    cleanup_execution_context: CleanupExecutionContext | None = None


class AccountDriftDetected(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'AccountDriftDetected'

    account_id: str
    actual_ou: Container | None = None
    expected_ou: Container | None = None


# ── Monitoring alerts ────────────────────────────────────────────────


class LeaseBudgetThresholdBreachedAlert(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseBudgetThresholdAlert'

    lease_id: LeaseId
    account_id: str
    budget: float | None = None
    total_spend: float
    budget_threshold_triggered: float
    action_requested: ThresholdAction


class LeaseDurationThresholdBreachedAlert(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseDurationThresholdAlert'

    lease_id: LeaseId
    account_id: str
    triggered_duration_threshold: float = Field(gt=0)
    lease_duration_in_hours: float = Field(gt=0)
    action_requested: ThresholdAction


class LeaseFreezingThresholdBreachedAlert(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseFreezingThresholdAlert'

    lease_id: LeaseId
    account_id: str
    reason: FreezeReason


class LeaseBudgetExceededAlert(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseBudgetExceeded'

    lease_id: LeaseId
    account_id: str
    budget: float
    total_spend: float


class LeaseExpiredAlert(IsbEvent):
    DETAIL_TYPE: ClassVar[str] = 'LeaseExpired'

    lease_id: LeaseId
    account_id: str
    lease_expiration_date: datetime
