"""Lease plane domain records, state machines, and events."""

from .account import (
    ALLOWED_CONTAINER_MOVES,
    Container,
    DirectoryAccount,
    SandboxAccount,
    is_allowed_move,
)
from .global_config import GlobalConfig, load_global_config
from .lease import (
    ALLOWED_LEASE_TRANSITIONS,
    AUTO_APPROVED,
    ApprovalDeniedLease,
    ExpiredLease,
    Lease,
    LeaseKey,
    LeaseStatus,
    MonitoredLease,
    PendingLease,
    assert_lease_transition,
)
from .lease_template import (
    BudgetThreshold,
    DurationThreshold,
    LeaseTemplate,
    ThresholdAction,
)
from .user import GroupRole, IsbUser

__all__ = [
    'ALLOWED_CONTAINER_MOVES',
    'ALLOWED_LEASE_TRANSITIONS',
    'AUTO_APPROVED',
    'ApprovalDeniedLease',
    'BudgetThreshold',
    'Container',
    'DirectoryAccount',
    'DurationThreshold',
    'ExpiredLease',
    'GlobalConfig',
    'GroupRole',
    'IsbUser',
    'Lease',
    'LeaseKey',
    'LeaseStatus',
    'LeaseTemplate',
    'MonitoredLease',
    'PendingLease',
    'SandboxAccount',
    'ThresholdAction',
    'assert_lease_transition',
    'is_allowed_move',
    'load_global_config',
]
