"""Meta pages: the add-on's own ``tmdb:`` pages and ``recs:`` "see more" pages."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from src.datatypes import AppConfig
from src.tmdb import TMDBClient, TMDBError

from .identifiers import is_imdb_id, parse_recs_id, parse_synthetic_id, resolve_native_ref, resolve_public_ids
from .metas import RECOMMENDATIONS_SEASON, detail_meta, recommendation_videos, standard_page_links
from .models import MediaType, NativeRef

__all__ = ["handle_meta"]

logger = logging.getLogger(__name__)


async def _external_id_or_none(client: TMDBClient, ref: NativeRef) -> Optional[str]:
    try:
        return await client.fetch_external_id(ref.media_type, ref.tmdb_id)
    except TMDBError as exc:
        logger.debug("External id lookup failed for %s: %s", ref, exc)
        return None


async def _recommendation_videos(client: TMDBClient, config: AppConfig, ref: NativeRef) -> List[Dict[str, Any]]:
    limit = config.catalog.recommendations_limit
    if limit <= 0:
        return []
    try:
        page = await client.fetch_recommendations(ref.media_type, ref.tmdb_id, 1)
    except TMDBError as exc:
        logger.warning("Recommendations for %s/%s unavailable: %s", ref.media_type.tmdb_path, ref.tmdb_id, exc)
        return []
    items = list(page.items[:limit])
    public_ids = await resolve_public_ids(client, items)
    return recommendation_videos(items, public_ids, image_base=config.tmdb.image_base_url)


async def _own_page(client: TMDBClient, config: AppConfig, meta_id: str, ref: NativeRef) -> Dict[str, Any]:
    try:
        details, imdb_id = await asyncio.gather(
            client.fetch_details(ref.media_type, ref.tmdb_id),
            _external_id_or_none(client, ref),
        )
    except TMDBError as exc:
        logger.warning("Details for %s unavailable: %s", meta_id, exc)
        return {}
    meta = detail_meta(
        meta_id,
        ref.media_type,
        details,
        imdb_id=imdb_id,
        image_base=config.tmdb.image_base_url,
        backdrop_base=config.tmdb.backdrop_base_url,
    )
    meta["videos"] = await _recommendation_videos(client, config, ref)
    return meta


async def _recs_page(
    client: TMDBClient,
    config: AppConfig,
    meta_id: str,
    kind: MediaType,
    target: str,
) -> Dict[str, Any]:
    imdb_id: Optional[str] = None
    ref: Optional[NativeRef]
    if is_imdb_id(target):
        imdb_id = target
        ref = await resolve_native_ref(client, target, prefer=kind)
    else:
        ref = parse_synthetic_id(target, default_type=kind)

    base_title = ""
    if ref is not None:
        try:
            details = await client.fetch_details(ref.media_type, ref.tmdb_id)
        except TMDBError as exc:
            logger.debug("Details for recs target %s unavailable: %s", target, exc)
        else:
            raw_title = details.get("title") or details.get("name") or ""
            base_title = raw_title.strip() if isinstance(raw_title, str) else ""
            if imdb_id is None:
                imdb_id = await _external_id_or_none(client, ref)

    noun = "movies" if kind is MediaType.MOVIE else "shows"
    meta: Dict[str, Any] = {
        "id": meta_id,
        "type": kind.value,
        "name": f"More recommendations for: {base_title}" if base_title else "More recommendations",
        "description": f"Additional related {noun} based on TMDB.",
        "seasons": [dict(RECOMMENDATIONS_SEASON)],
        "links": standard_page_links(kind, imdb_id),
    }
    meta["videos"] = await _recommendation_videos(client, config, ref) if ref is not None else []
    return meta


async def handle_meta(client: TMDBClient, config: AppConfig, meta_id: str) -> Dict[str, Any]:
    """Serve one meta request; ids this add-on does not own get an empty meta."""

    own = parse_synthetic_id(meta_id)
    if own is not None:
        return {"meta": await _own_page(client, config, meta_id, own)}

    recs = parse_recs_id(meta_id)
    if recs is not None:
        kind, target = recs
        return {"meta": await _recs_page(client, config, meta_id, kind, target)}

    return {"meta": {}}
