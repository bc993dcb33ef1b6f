"""Per-account cost totals returned by the cost meter."""

from __future__ import annotations

from typing import Iterator, Mapping


class AccountsCostReport:
    """Accumulates spend per account id. Unknown accounts cost 0."""

    def __init__(self, costs: Mapping[str, float] | None = None) -> None:
        self._costs: dict[str, float] = {}
        for account_id, cost in (costs or {}).items():
            self.add_cost(account_id, cost)

    def add_cost(self, account_id: str, cost: float) -> None:
        self._costs[account_id] = self._costs.get(account_id, 0.0) + cost

    def get_cost(self, account_id: str) -> float:
        return self._costs.get(account_id, 0.0)

    def merge(self, other: AccountsCostReport) -> AccountsCostReport:
        """Add every cost from ``other`` into this report and return it."""
        for account_id, cost in other.items():
            self.add_cost(account_id, cost)
        return self

    def total_cost(self) -> float:
        return sum(self._costs.values())

    def items(self) -> Iterator[tuple[str, float]]:
        return iter(self._costs.items())

    def __len__(self) -> int:
        return len(self._costs)

    def __repr__(self) -> str:
        return f'AccountsCostReport({self._costs!r})'
