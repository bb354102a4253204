"""Data models shared by the windowing, identifier and handler modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple


class MediaType(str, Enum):
    """Add-on media types and their upstream path segment."""

    SERIES = "series"
    MOVIE = "movie"

    @property
    def tmdb_path(self) -> str:
        return "tv" if self is MediaType.SERIES else "movie"

    @classmethod
    def parse(cls, value: str) -> "MediaType":
        """Accept both add-on (``series``) and upstream (``tv``) spellings."""

        normalized = str(value or "").strip().lower()
        if normalized in {"series", "tv"}:
            return cls.SERIES
        if normalized == "movie":
            return cls.MOVIE
        raise ValueError(f"Unknown media type: {value!r}")


@dataclass(frozen=True)
class NativeRef:
    """An upstream (type, numeric id) pair."""

    media_type: MediaType
    tmdb_id: int


def _clean_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


@dataclass(frozen=True)
class ListItem:
    """One show or movie taken from an upstream paged list."""

    tmdb_id: int
    media_type: MediaType
    title: str
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    date: str = ""
    popularity: float = 0.0

    @property
    def ref(self) -> NativeRef:
        return NativeRef(self.media_type, self.tmdb_id)

    @property
    def year(self) -> Optional[int]:
        head = self.date[:4]
        return int(head) if head.isdigit() else None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], media_type: MediaType) -> Optional["ListItem"]:
        """Build an item from an upstream result entry; ``None`` when it has no usable id."""

        try:
            tmdb_id = int(payload.get("id"))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        title = ""
        for key in ("title", "name", "original_title", "original_name"):
            title = _clean_text(payload.get(key))
            if title:
                break
        date = _clean_text(payload.get("release_date")) or _clean_text(payload.get("first_air_date"))
        try:
            popularity = float(payload.get("popularity") or 0.0)
        except (TypeError, ValueError):
            popularity = 0.0
        return cls(
            tmdb_id=tmdb_id,
            media_type=media_type,
            title=title,
            overview=_clean_text(payload.get("overview")),
            poster_path=_clean_text(payload.get("poster_path")) or None,
            backdrop_path=_clean_text(payload.get("backdrop_path")) or None,
            date=date,
            popularity=popularity,
        )


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class PageResult:
    """One fetched upstream page. ``total_pages`` may be absent."""

    page: int
    items: Tuple[ListItem, ...] = ()
    total_pages: Optional[int] = None
    total_results: Optional[int] = None

    @property
    def is_last(self) -> bool:
        """True when the upstream reports no pages after this one.

        A missing ``total_pages`` counts as last: the upstream only omits it
        when the list is not paginated.
        """

        if self.total_pages is None:
            return True
        return self.page >= self.total_pages

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        media_type: MediaType,
        requested_page: int,
    ) -> "PageResult":
        raw_results = payload.get("results")
        items: List[ListItem] = []
        if isinstance(raw_results, list):
            for entry in raw_results:
                if not isinstance(entry, dict):
                    continue
                item = ListItem.from_payload(entry, media_type)
                if item is not None:
                    items.append(item)
        page = _optional_int(payload.get("page"))
        return cls(
            page=page if page and page > 0 else requested_page,
            items=tuple(items),
            total_pages=_optional_int(payload.get("total_pages")),
            total_results=_optional_int(payload.get("total_results")),
        )


def _extra_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class PaginationRequest:
    """Caller-visible offset and window ceiling."""

    skip: int = 0
    limit: int = 100

    def __post_init__(self) -> None:
        if self.skip < 0:
            raise ValueError("skip must be >= 0")
        if self.limit < 1:
            raise ValueError("limit must be >= 1")

    @classmethod
    def from_extra(cls, extra: Mapping[str, Any], *, ceiling: int) -> "PaginationRequest":
        """Read the ``skip`` and ``limit`` extras.

        Junk or negative ``skip`` falls back to 0. ``limit`` defaults to
        *ceiling* and is clamped into ``1..ceiling``.
        """

        skip = _extra_int(extra.get("skip"))
        limit = _extra_int(extra.get("limit"))
        return cls(
            skip=max(0, skip or 0),
            limit=ceiling if limit is None else min(max(1, limit), ceiling),
        )

