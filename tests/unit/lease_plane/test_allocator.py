"""Account allocator tests.

Validates:
  - NoAccountsAvailable when the Available pool is empty
  - Only Available accounts are candidates
  - Selection is roughly uniform across a fixed pool
  - At most page_size candidates are considered
"""

from __future__ import annotations

import random
from collections import Counter

import pytest

from lease_plane.app.domain.account import Container, SandboxAccount
from lease_plane.app.errors import NoAccountsAvailable
from lease_plane.app.inmemory import InMemoryAccountStore
from lease_plane.app.leasing.allocator import AccountAllocator


def _make_store(statuses: dict[str, Container]) -> InMemoryAccountStore:
    store = InMemoryAccountStore()
    for account_id, status in statuses.items():
        store._accounts[account_id] = SandboxAccount(aws_account_id=account_id, status=status)
    return store


class TestAccountAllocator:

    @pytest.mark.asyncio
    async def test_empty_pool_raises(self):
        allocator = AccountAllocator(_make_store({'1': Container.ACTIVE}))
        with pytest.raises(NoAccountsAvailable):
            await allocator.acquire()

    @pytest.mark.asyncio
    async def test_only_available_accounts_are_picked(self):
        store = _make_store({
            'a': Container.ACTIVE,
            'b': Container.AVAILABLE,
            'c': Container.CLEANUP,
        })
        allocator = AccountAllocator(store, rng=random.Random(1))
        for _ in range(20):
            assert (await allocator.acquire()).aws_account_id == 'b'

    @pytest.mark.asyncio
    async def test_selection_is_roughly_uniform(self):
        pool = {str(i): Container.AVAILABLE for i in range(5)}
        allocator = AccountAllocator(_make_store(pool), rng=random.Random(42))
        counts = Counter()
        draws = 5000
        for _ in range(draws):
            counts[(await allocator.acquire()).aws_account_id] += 1
        assert set(counts) == set(pool)
        expected = draws / len(pool)
        for count in counts.values():
            assert abs(count - expected) < expected * 0.15

    @pytest.mark.asyncio
    async def test_candidates_limited_to_page_size(self):
        pool = {f'{i:02d}': Container.AVAILABLE for i in range(30)}
        allocator = AccountAllocator(_make_store(pool), page_size=10, rng=random.Random(3))
        seen = {(await allocator.acquire()).aws_account_id for _ in range(500)}
        assert len(seen) <= 10

    def test_rejects_invalid_page_size(self):
        with pytest.raises(ValueError):
            AccountAllocator(InMemoryAccountStore(), page_size=0)
