"""
Cursor pagination over Bunq listing endpoints.

Bunq returns listings newest first and a ``Pagination`` object with
``newer_url``/``older_url`` cursors. The caller's decision function looks at
each page and says whether to keep walking and in which direction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from .errors import PaginationLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PageDirection(str, Enum):
    STOP = "stop"
    NEWER = "newer"
    OLDER = "older"


class _Page(Protocol):
    items: list[Any]
    pagination: Any


async def paginate(
    fetch: Callable[[str], Awaitable[_Page]],
    endpoint: str,
    decide: Callable[[list[T]], PageDirection],
    parse: Callable[[Any], T],
    max_pages: Optional[int] = None,
) -> list[T]:
    """
    Walk a listing until decide() says stop or the server has no cursor left.

    Items are accumulated in server order. Any failure propagates and the
    accumulated items are dropped, so callers never see a partial history.
    Exceeding max_pages raises PaginationLimitError.
    """
    collected: list[T] = []
    url: Optional[str] = endpoint
    pages = 0

    while url is not None:
        if max_pages is not None and pages >= max_pages:
            logger.warning("Pagination guard hit after %d pages at %s", pages, url)
            raise PaginationLimitError(max_pages)

        page = await fetch(url)
        pages += 1
        items = [parse(raw) for raw in page.items]
        collected.extend(items)

        direction = decide(items)
        url = _next_url(page.pagination, direction)
        logger.debug("Page %d: %d items, next=%s", pages, len(items), direction.value if url else "none")

    return collected


def _next_url(pagination: Any, direction: PageDirection) -> Optional[str]:
    if pagination is None or direction is PageDirection.STOP:
        return None
    if direction is PageDirection.OLDER:
        return pagination.older_url
    return pagination.newer_url


def older_until(cutoff: datetime) -> Callable[[list[Any]], PageDirection]:
    """
    Keep paging older while the page's oldest item is at or after cutoff.

    Relies on pages being sorted newest first: the last item is the oldest.
    If the server ordering ever changes this predicate must change with it.
    """

    def decide(items: list[Any]) -> PageDirection:
        if not items:
            return PageDirection.STOP
        oldest = items[-1].created_at
        logger.debug("Oldest payment on page is %s", oldest.isoformat())
        if oldest >= cutoff:
            return PageDirection.OLDER
        return PageDirection.STOP

    return decide
