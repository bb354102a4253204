"""Pure builders turning upstream data into the add-on's meta shapes."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .identifiers import ResolvedIdentifier, format_recs_id
from .models import ListItem, MediaType

RECOMMENDATIONS_SEASON = {"season": 0, "name": "Recommendations"}


def image_url(path: Optional[str], base: str) -> Optional[str]:
    return f"{base}{path}" if path else None


def _drop_none(mapping: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in mapping.items() if value is not None}


def preview_meta(item: ListItem, public_id: str, *, image_base: str) -> Dict[str, Any]:
    """Catalog preview for *item* published under *public_id*.

    An item with no title at all is named after its public id.
    """

    return _drop_none(
        {
            "id": public_id,
            "type": item.media_type.value,
            "name": item.title or public_id,
            "poster": image_url(item.poster_path, image_base),
            "posterShape": "poster",
            "description": item.overview,
            "releaseInfo": item.date[:4],
            "year": item.year,
        }
    )


def standard_page_links(media_type: MediaType, imdb_id: Optional[str]) -> List[Dict[str, str]]:
    """Deep link to the client's standard page for an IMDb-known title."""

    if not imdb_id:
        return []
    label = "Open standard movie page" if media_type is MediaType.MOVIE else "Open standard series page"
    return [{"name": label, "url": f"stremio://detail/{media_type.value}/{imdb_id}"}]


def detail_meta(
    meta_id: str,
    media_type: MediaType,
    details: Mapping[str, Any],
    *,
    imdb_id: Optional[str],
    image_base: str,
    backdrop_base: str,
) -> Dict[str, Any]:
    """Full meta for one of the add-on's own ``tmdb:`` pages.

    Malformed details degrade field by field; with no title at all the page
    is named after its id.
    """

    title = ""
    for key in ("title", "name", "original_title", "original_name"):
        value = details.get(key)
        if isinstance(value, str) and value.strip():
            title = value.strip()
            break
    date = details.get("release_date") or details.get("first_air_date") or ""
    overview = details.get("overview")
    return _drop_none(
        {
            "id": meta_id,
            "type": media_type.value,
            "name": title or meta_id,
            "description": overview if isinstance(overview, str) else "",
            "poster": image_url(details.get("poster_path"), image_base),
            "background": image_url(details.get("backdrop_path"), backdrop_base),
            "releaseInfo": str(date)[:4],
            "links": standard_page_links(media_type, imdb_id),
            "seasons": [dict(RECOMMENDATIONS_SEASON)],
        }
    )


def recommendation_videos(
    items: Sequence[ListItem],
    public_ids: Sequence[ResolvedIdentifier],
    *,
    image_base: str,
) -> List[Dict[str, Any]]:
    """Render recommendations as season-0 "episodes" linking to their recs pages."""

    videos: List[Dict[str, Any]] = []
    for index, (item, resolved) in enumerate(zip(items, public_ids)):
        title = item.title or f"Recommendation {index + 1}"
        year = item.date[:4]
        videos.append(
            _drop_none(
                {
                    "season": 0,
                    "episode": index + 1,
                    "id": format_recs_id(item.media_type, resolved.value),
                    "title": f"{title} ({year})" if year else title,
                    "overview": item.overview,
                    "thumbnail": image_url(item.poster_path, image_base),
                }
            )
        )
    return videos
