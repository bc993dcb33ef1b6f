"""Compensating transactions across independently failing collaborators.

A Transaction runs its steps strictly in order. If step k fails, the
compensations of steps k-1..1 run in reverse order and the original
failure is raised as ``TransactionFailed``. Compensation failures are
logged and never replace the original error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar, overload

from ..errors import TransactionFailed

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True, slots=True)
class TransactionStep(Generic[T]):
    """One unit of work plus its optional undo.

    ``compensate`` receives the value ``perform`` returned.
    """

    perform: Callable[[], Awaitable[T]]
    compensate: Callable[[T], Awaitable[Any]] | None = None
    name: str = 'step'


class Transaction(Generic[T]):
    """Saga over its steps, typed on the final step's result."""

    @overload
    def __init__(self: Transaction[T], step: TransactionStep[T], /) -> None: ...

    @overload
    def __init__(
        self: Transaction[T],
        first: TransactionStep[Any],
        last: TransactionStep[T],
        /,
    ) -> None: ...

    @overload
    def __init__(
        self: Transaction[T],
        first: TransactionStep[Any],
        second: TransactionStep[Any],
        last: TransactionStep[T],
        /,
    ) -> None: ...

    @overload
    def __init__(self: Transaction[Any], *steps: TransactionStep[Any]) -> None: ...

    def __init__(self, *steps: TransactionStep[Any]) -> None:
        if not steps:
            raise ValueError('a transaction needs at least one step')
        self._steps = steps

    async def complete(self) -> T:
        """Run every step and return the final step's result."""
        completed: list[tuple[TransactionStep[Any], Any]] = []
        result: Any = None
        for step in self._steps:
            try:
                result = await step.perform()
            except Exception as exc:
                logger.info(
                    'Step %s failed, rolling back %d completed step(s)',
                    step.name,
                    len(completed),
                )
                await self._rollback(completed)
                raise TransactionFailed(exc) from exc
            completed.append((step, result))
        return result

    async def _rollback(self, completed: list[tuple[TransactionStep[Any], Any]]) -> None:
        for step, result in reversed(completed):
            if step.compensate is None:
                continue
            try:
                await step.compensate(result)
            except Exception as exc:
                logger.warning('Compensation for step %s failed: %s', step.name, exc)
