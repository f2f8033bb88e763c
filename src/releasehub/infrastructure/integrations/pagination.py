"""Pagination drainer for Spotify collection endpoints.

Hey future me - Spotify has THREE ways of saying "there's more":
- offset/limit pages (artist albums, album tracks) with a "next" URL
- absolute "next" links we just follow (playlist tracks, embedded album tracks)
- cursor pages ("cursors": {"after": ...}) for the followed-artists list

The drainer itself doesn't care. Each fetch function returns a Page with the items and an
opaque next cursor (offset int, URL string or "after" id), None means done. The page
adapters below turn raw Spotify JSON into Pages so the services don't re-implement that.

A result is only complete once the drainer says so - don't hand out half-drained lists.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

Cursor = int | str | None


@dataclass
class Page[T]:
    """One fetched page: its items plus the cursor for the next one (None = last page)."""

    items: list[T]
    next_cursor: Cursor = None

    @property
    def has_next(self) -> bool:
        """Check if there are more pages."""
        return self.next_cursor is not None


async def iter_pages[T](
    fetch_page: Callable[[Cursor], Awaitable[Page[T]]],
    first_cursor: Cursor = None,
    max_pages: int | None = None,
) -> AsyncIterator[Page[T]]:
    """Yield pages until there is no next cursor or max_pages is reached.

    Args:
        fetch_page: Fetches the page for a cursor (first call gets first_cursor)
        first_cursor: Cursor of the first page
        max_pages: Upper bound on fetched pages, None = drain everything
    """
    cursor = first_cursor
    fetched = 0
    while True:
        page = await fetch_page(cursor)
        fetched += 1
        yield page
        if not page.has_next or (max_pages is not None and fetched >= max_pages):
            return
        # Guard against a server repeating the same cursor forever
        if page.next_cursor == cursor:
            return
        cursor = page.next_cursor


async def drain[T](
    fetch_page: Callable[[Cursor], Awaitable[Page[T]]],
    first_cursor: Cursor = None,
    max_pages: int | None = None,
) -> list[T]:
    """Fetch every page and return all items in page order."""
    items: list[T] = []
    async for page in iter_pages(fetch_page, first_cursor, max_pages):
        items.extend(page.items)
    return items


async def fold[T, A](
    fetch_page: Callable[[Cursor], Awaitable[Page[T]]],
    initial: A,
    step: Callable[[A, T], A],
    first_cursor: Cursor = None,
    max_pages: int | None = None,
) -> A:
    """Drain pages and fold every item into an accumulator (e.g. artist frequency counts)."""
    acc = initial
    async for page in iter_pages(fetch_page, first_cursor, max_pages):
        for item in page.items:
            acc = step(acc, item)
    return acc


# ------------------------------------------------------------------ page adapters


def offset_page(data: dict[str, Any] | None, offset: int, limit: int) -> Page[dict[str, Any]]:
    """Page for offset/limit endpoints; next cursor is the next offset."""
    data = data or {}
    items = [item for item in data.get("items", []) if item]
    has_more = bool(data.get("next")) and len(data.get("items", [])) > 0
    return Page(items=items, next_cursor=offset + limit if has_more else None)


def next_link_page(data: dict[str, Any] | None) -> Page[dict[str, Any]]:
    """Page for endpoints where we follow the absolute "next" URL."""
    data = data or {}
    items = [item for item in data.get("items", []) if item]
    return Page(items=items, next_cursor=data.get("next") or None)


def cursor_page(data: dict[str, Any] | None) -> Page[dict[str, Any]]:
    """Page for cursor endpoints (followed artists); next cursor is the "after" id."""
    data = data or {}
    items = [item for item in data.get("items", []) if item]
    after = (data.get("cursors") or {}).get("after")
    return Page(items=items, next_cursor=after if data.get("next") and after else None)


__all__ = [
    "Cursor",
    "Page",
    "cursor_page",
    "drain",
    "fold",
    "iter_pages",
    "next_link_page",
    "offset_page",
]
