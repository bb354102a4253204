"""Map an arbitrary ``skip`` offset onto the upstream's fixed-size pages."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import List, Optional, Tuple

from src.tmdb import TMDBError

from .models import ListItem, PageResult

__all__ = ["FetchPage", "compute_window", "page_span"]

logger = logging.getLogger(__name__)

FetchPage = Callable[[int], Awaitable[PageResult]]


def page_span(skip: int, limit: int, page_size: int) -> Tuple[int, int]:
    """Return the inclusive 1-based ``(start_page, end_page)`` covering ``[skip, skip + limit)``."""

    if skip < 0:
        raise ValueError("skip must be >= 0")
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    start_page = skip // page_size + 1
    end_page = -(-(skip + limit) // page_size)
    return start_page, end_page


async def compute_window(
    skip: int,
    limit: int,
    page_size: int,
    fetch_page: FetchPage,
    *,
    strict: bool = False,
    max_page: Optional[int] = None,
) -> List[ListItem]:
    """Fetch the pages spanning ``[skip, skip + limit)`` and slice out exactly that window.

    Pages are awaited one at a time in ascending order; fetching stops as soon
    as a page reports itself as the upstream's last page, so a page known to
    lie beyond the end is never requested. ``max_page`` caps the walk for
    lists the upstream truncates.

    Fetch failures are lenient by default: the error is logged and treated as
    the end of the list, and whatever was already fetched is windowed. Pass
    ``strict=True`` to propagate the :class:`~src.tmdb.TMDBError` instead.

    The result never holds more than ``limit`` items and is empty when ``skip``
    lies past the last available item.
    """

    start_page, end_page = page_span(skip, limit, page_size)
    if max_page is not None:
        end_page = min(end_page, max_page)

    collected: List[ListItem] = []
    for page_number in range(start_page, end_page + 1):
        try:
            page = await fetch_page(page_number)
        except TMDBError as exc:
            if strict:
                raise
            logger.warning(
                "Page %d fetch failed; returning %d accumulated item(s): %s",
                page_number,
                len(collected),
                exc,
            )
            break
        collected.extend(page.items)
        if page.is_last:
            break

    local_offset = skip % page_size
    return collected[local_offset : local_offset + limit]
