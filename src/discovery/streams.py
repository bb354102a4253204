"""Stream rows: shortcuts into recommendations rather than playable media."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from src.tmdb import TMDBClient, TMDBError

from .identifiers import format_recs_id, is_imdb_id, parse_recs_id, parse_synthetic_id, resolve_native_ref
from .manifest import UserConfig
from .models import MediaType, NativeRef

__all__ = ["handle_stream", "web_detail_url", "web_search_url"]

logger = logging.getLogger(__name__)

WEB_BASE = "https://web.stremio.com/#"


def web_search_url(query: str) -> str:
    return f"{WEB_BASE}/search?search={quote(query, safe='')}"


def web_detail_url(media_type: MediaType, item_id: str) -> str:
    return f"{WEB_BASE}/detail/{media_type.value}/{quote(item_id, safe='')}"


def app_search_url(query: str) -> str:
    return f"stremio://search?search={quote(query, safe='')}"


def app_detail_url(media_type: MediaType, item_id: str) -> str:
    return f"stremio://detail/{media_type.value}/{quote(item_id, safe='')}"


def _row(name: str, description: str, url: str, yt_id: Optional[str] = None) -> Dict[str, Any]:
    row: Dict[str, Any] = {"name": name, "description": description, "externalUrl": url}
    if yt_id:
        row["ytId"] = yt_id
    return row


def _recs_rows(kind: MediaType, target: str) -> List[Dict[str, Any]]:
    recs_id = format_recs_id(kind, target)
    return [
        _row("Open details", "Open this title's page.", app_detail_url(kind, target)),
        _row("Open details (web)", "Open this title's page in the browser.", web_detail_url(kind, target)),
        _row(
            "See more recommendations",
            "Open a list of titles related to this one.",
            app_detail_url(kind, recs_id),
        ),
        _row(
            "See more recommendations (web)",
            "Open a list of titles related to this one in the browser.",
            web_detail_url(kind, recs_id),
        ),
    ]


async def _resolve_ref(client: TMDBClient, media_type: MediaType, stream_id: str) -> Optional[NativeRef]:
    head = stream_id.split(":", 1)[0] if stream_id.lower().startswith("tt") else stream_id
    if is_imdb_id(head):
        return await resolve_native_ref(client, head, prefer=media_type)
    return parse_synthetic_id(stream_id)


async def _title_and_trailer(client: TMDBClient, ref: NativeRef) -> Tuple[str, Optional[str]]:
    try:
        details = await client.fetch_details(ref.media_type, ref.tmdb_id)
    except TMDBError as exc:
        logger.debug("Details for stream %s unavailable: %s", ref, exc)
        return "", None
    raw_title = details.get("title") or details.get("name") or ""
    title = raw_title.strip() if isinstance(raw_title, str) else ""
    try:
        yt_id = await client.fetch_trailer_key(ref.media_type, ref.tmdb_id)
    except TMDBError as exc:
        logger.debug("Trailer lookup for %s failed: %s", ref, exc)
        yt_id = None
    return title, yt_id


async def handle_stream(
    client: TMDBClient,
    media_type: str,
    stream_id: str,
    user_config: UserConfig | None = None,
) -> Dict[str, Any]:
    """Serve one stream request with recommendation shortcut rows."""

    user_cfg = user_config or UserConfig()
    if not user_cfg.enable_streams_recs:
        return {"streams": []}

    recs = parse_recs_id(stream_id)
    if recs is not None:
        kind, target = recs
        return {"streams": _recs_rows(kind, target)}

    try:
        requested_type = MediaType.parse(media_type)
    except ValueError:
        return {"streams": []}
    ref = await _resolve_ref(client, requested_type, stream_id)
    if ref is None:
        return {"streams": []}
    title, yt_id = await _title_and_trailer(client, ref)
    if not title:
        return {"streams": []}
    description = "Open Search to view related titles."
    return {
        "streams": [
            _row("Recommendations", description, app_search_url(title), yt_id),
            _row("Recommendations (web)", description, web_search_url(title)),
        ]
    }
