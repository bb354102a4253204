"""Catalog rails: windowed upstream lists reshaped into meta previews."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, cast

from src.datatypes import AppConfig
from src.tmdb import TMDBClient, TMDBError

from .identifiers import ResolvedIdentifier, is_imdb_id, resolve_native_ref, resolve_public_ids
from .manifest import (
    CATALOG_ON_AIR,
    CATALOG_POPULAR_MOVIES,
    CATALOG_POPULAR_SERIES,
    CATALOG_RECS_MOVIE,
    CATALOG_RECS_SERIES,
    UserConfig,
)
from .metas import preview_meta
from .models import ListItem, MediaType, NativeRef, PageResult, PaginationRequest
from .windowing import compute_window

__all__ = ["handle_catalog", "resolve_query"]

logger = logging.getLogger(__name__)

# catalog id -> (expected type, upstream list, publish IMDb ids when known)
_LIST_RAILS = {
    CATALOG_ON_AIR: (MediaType.SERIES, "on_the_air", True),
    CATALOG_POPULAR_SERIES: (MediaType.SERIES, "popular", False),
    CATALOG_POPULAR_MOVIES: (MediaType.MOVIE, "popular", False),
}

_SEARCH_RAILS = {
    CATALOG_RECS_MOVIE: MediaType.MOVIE,
    CATALOG_RECS_SERIES: MediaType.SERIES,
}


async def resolve_query(client: TMDBClient, query: str) -> Optional[NativeRef]:
    """Pick the title a search box entry refers to.

    An IMDb id is looked up directly. Free text is searched as both movie and
    series; the more popular top hit wins, ties going to the movie.
    """

    text = (query or "").strip()
    if not text:
        return None
    if is_imdb_id(text):
        return await resolve_native_ref(client, text)
    results = await asyncio.gather(
        client.search_by_title(MediaType.MOVIE, text),
        client.search_by_title(MediaType.SERIES, text),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    movies, shows = cast(List[PageResult], results)
    movie_top = movies.items[0] if movies.items else None
    show_top = shows.items[0] if shows.items else None
    if movie_top and show_top:
        return movie_top.ref if movie_top.popularity >= show_top.popularity else show_top.ref
    if movie_top:
        return movie_top.ref
    if show_top:
        return show_top.ref
    return None


def _synthetic_ids(items: List[ListItem]) -> List[ResolvedIdentifier]:
    return [ResolvedIdentifier.synthetic(item.media_type, item.tmdb_id) for item in items]


async def _publish(
    client: TMDBClient,
    config: AppConfig,
    items: List[ListItem],
    *,
    resolve_external: bool,
) -> List[Dict[str, Any]]:
    if resolve_external:
        public_ids = await resolve_public_ids(client, items)
    else:
        public_ids = _synthetic_ids(items)
    return [
        preview_meta(item, resolved.value, image_base=config.tmdb.image_base_url)
        for item, resolved in zip(items, public_ids)
    ]


async def _list_rail(
    client: TMDBClient,
    config: AppConfig,
    list_name: str,
    media_type: MediaType,
    request: PaginationRequest,
    *,
    resolve_external: bool,
) -> List[Dict[str, Any]]:
    async def fetch(page: int) -> PageResult:
        return await client.fetch_paged_list(list_name, media_type, page)

    window = await compute_window(
        request.skip,
        request.limit,
        config.catalog.page_size,
        fetch,
        strict=config.catalog.strict_paging,
    )
    return await _publish(client, config, window, resolve_external=resolve_external)


async def _search_rail(
    client: TMDBClient,
    config: AppConfig,
    want: MediaType,
    query: str,
    request: PaginationRequest,
) -> List[Dict[str, Any]]:
    try:
        resolved = await resolve_query(client, query)
    except TMDBError as exc:
        logger.warning("Search for %r failed: %s", query, exc)
        return []
    if resolved is None or resolved.media_type is not want:
        return []

    async def fetch(page: int) -> PageResult:
        return await client.fetch_recommendations(resolved.media_type, resolved.tmdb_id, page)

    window = await compute_window(
        request.skip,
        request.limit,
        config.catalog.page_size,
        fetch,
        strict=config.catalog.strict_paging,
        max_page=config.catalog.search_max_pages,
    )
    # series recommendations keep synthetic ids
    return await _publish(client, config, window, resolve_external=want is MediaType.MOVIE)


async def handle_catalog(
    client: TMDBClient,
    config: AppConfig,
    media_type: str,
    catalog_id: str,
    extra: Mapping[str, Any],
    user_config: UserConfig | None = None,
) -> Dict[str, Any]:
    """Serve one catalog request; unknown or disabled rails yield no metas."""

    user_cfg = user_config or UserConfig()
    if not user_cfg.catalog_enabled(catalog_id):
        return {"metas": []}
    try:
        requested_type = MediaType.parse(media_type)
    except ValueError:
        return {"metas": []}

    rail = _LIST_RAILS.get(catalog_id)
    if rail is not None:
        rail_type, list_name, resolve_external = rail
        if requested_type is not rail_type:
            return {"metas": []}
        request = PaginationRequest.from_extra(extra, ceiling=config.catalog.max_return)
        metas = await _list_rail(
            client, config, list_name, rail_type, request, resolve_external=resolve_external
        )
        return {"metas": metas}

    want = _SEARCH_RAILS.get(catalog_id)
    if want is not None and requested_type is want:
        request = PaginationRequest.from_extra(extra, ceiling=config.catalog.search_page_size)
        query = str(extra.get("search") or "")
        return {"metas": await _search_rail(client, config, want, query, request)}

    return {"metas": []}
