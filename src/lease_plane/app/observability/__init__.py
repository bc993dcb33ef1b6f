from .logging import (
    JSONFormatter,
    configure_logging,
    searchable_account_properties,
    searchable_lease_properties,
)

__all__ = [
    'JSONFormatter',
    'configure_logging',
    'searchable_account_properties',
    'searchable_lease_properties',
]
