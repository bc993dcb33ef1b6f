"""Lease templates: named budget/duration/approval policy presets.

Templates arrive from the template store or an admin request, so they are
validated with pydantic. Field names accept both snake_case and the
camelCase used by the stored documents.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ThresholdAction(str, Enum):
    ALERT = 'ALERT'
    FREEZE_ACCOUNT = 'FREEZE_ACCOUNT'


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra='forbid',
    )


class BudgetThreshold(_Document):
    """Trip point on accrued spend."""

    dollars_spent: float = Field(gt=0)
    action: ThresholdAction


class DurationThreshold(_Document):
    """Trip point on hours left before the lease expires."""

    hours_remaining: float = Field(gt=0)
    action: ThresholdAction


class LeaseTemplate(_Document):
    uuid: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=50)
    description: str | None = None
    requires_approval: bool
    created_by: str = ''
    max_spend: float | None = Field(default=None, gt=0)
    budget_thresholds: tuple[BudgetThreshold, ...] = ()
    lease_duration_in_hours: float | None = Field(default=None, gt=0)
    duration_thresholds: tuple[DurationThreshold, ...] = ()
