"""Lease/account orchestration."""

from .allocator import AccountAllocator
from .lifecycle_manager import AccountLifecycleManager
from .orchestrator import LeaseOrchestrator, log_errors

__all__ = [
    'AccountAllocator',
    'AccountLifecycleManager',
    'LeaseOrchestrator',
    'log_errors',
]
