"""Pick one Available account for a lease being approved.

The pick is random across a small page of candidates to spread concurrent
approvals over different accounts. It is not a lock: two approvals can
still choose the same account, and the directory's conditional move
(AccountMoveConflict) decides which one wins.
"""

from __future__ import annotations

import logging
import random

from ..domain.account import Container, SandboxAccount
from ..errors import NoAccountsAvailable
from ..protocols import AccountStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


class AccountAllocator:
    def __init__(
        self,
        account_store: AccountStore,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        rng: random.Random | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError('page_size must be >= 1')
        self._account_store = account_store
        self._page_size = page_size
        self._rng = rng or random.Random()

    async def acquire(self) -> SandboxAccount:
        page = await self._account_store.find_by_status(
            Container.AVAILABLE, page_size=self._page_size,
        )
        candidates = page.items[: self._page_size]
        if not candidates:
            raise NoAccountsAvailable()
        account = self._rng.choice(candidates)
        logger.debug(
            'Allocated account %s from %d candidate(s)',
            account.aws_account_id,
            len(candidates),
        )
        return account
