"""Paged query results and helpers to walk them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Generic, TypeVar

T = TypeVar('T')


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One page of a store query. ``next_page_identifier`` is None on the last page."""

    items: tuple[T, ...] = field(default_factory=tuple)
    next_page_identifier: str | None = None


PageFetcher = Callable[[str | None], Awaitable[Page[T]]]


async def stream(fetch: PageFetcher[T], *, max_items: int | None = None) -> AsyncIterator[T]:
    """Yield items across pages until exhausted or ``max_items`` is reached."""
    page_identifier: str | None = None
    yielded = 0
    while True:
        page = await fetch(page_identifier)
        for item in page.items:
            if max_items is not None and yielded >= max_items:
                return
            yield item
            yielded += 1
        if page.next_page_identifier is None:
            return
        page_identifier = page.next_page_identifier


async def collect(fetch: PageFetcher[T], *, max_items: int | None = None) -> list[T]:
    return [item async for item in stream(fetch, max_items=max_items)]
