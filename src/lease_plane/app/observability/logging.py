"""Structured JSON logging for the lease plane.

Orchestrator and scan log calls attach lease/account context through
``extra=``; the formatter lifts those fields into the JSON record.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from ..domain.account import SandboxAccount
from ..domain.lease import Lease

# LogRecord attributes the formatter copies into the JSON payload when set.
_CONTEXT_FIELDS = (
    'operation',
    'user_email',
    'lease_uuid',
    'lease_status',
    'aws_account_id',
    'account_status',
    'start_date',
    'expiration_date',
    'total_cost_accrued',
    'max_spend',
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON with standard fields."""

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = dt.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'

        log_data: dict[str, Any] = {
            'timestamp': timestamp,
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str | int = logging.INFO) -> None:
    """Install the JSON formatter on the root logger once."""
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)


def searchable_lease_properties(lease: Lease) -> dict[str, Any]:
    props: dict[str, Any] = {
        'user_email': lease.user_email,
        'lease_uuid': lease.uuid,
        'lease_status': str(lease.status),
        'max_spend': lease.max_spend,
    }
    for name in ('aws_account_id', 'start_date', 'expiration_date', 'total_cost_accrued'):
        value = getattr(lease, name, None)
        if value is not None:
            props[name] = value
    return props


def searchable_account_properties(account: SandboxAccount) -> dict[str, Any]:
    return {
        'aws_account_id': account.aws_account_id,
        'account_status': str(account.status),
    }
