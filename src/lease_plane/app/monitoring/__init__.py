"""Lease cost/duration monitoring."""

from .cost_report import AccountsCostReport
from .scan import MonitoringScan, ScanReport
from .thresholds import LeaseEvaluation, evaluate_lease

__all__ = [
    'AccountsCostReport',
    'LeaseEvaluation',
    'MonitoringScan',
    'ScanReport',
    'evaluate_lease',
]
