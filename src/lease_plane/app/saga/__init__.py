from .steps import (
    assign_group_access_step,
    grant_user_access_step,
    move_account_step,
    update_lease_step,
)
from .transaction import Transaction, TransactionStep

__all__ = [
    'Transaction',
    'TransactionStep',
    'assign_group_access_step',
    'grant_user_access_step',
    'move_account_step',
    'update_lease_step',
]
