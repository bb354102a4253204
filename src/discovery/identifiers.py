"""Public identifier resolution for upstream items.

Items are published under their IMDb id when the upstream cross-references
one, and under a synthetic ``tmdb:{tv|movie}:{id}`` id otherwise. Synthetic
ids are a pure function of the native (type, id) pair, so they round-trip
through :func:`parse_synthetic_id`. The legacy hyphenated spellings
(``tmdb-tv-123``, and ``tmdb-123`` where the type comes from context) are
accepted on read and never produced.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from src.tmdb import TMDBClient, TMDBError

from .models import ListItem, MediaType, NativeRef

__all__ = [
    "SYNTHETIC_NAMESPACE",
    "RECS_NAMESPACE",
    "ResolvedIdentifier",
    "format_recs_id",
    "format_synthetic_id",
    "is_imdb_id",
    "parse_recs_id",
    "parse_synthetic_id",
    "resolve_native_ref",
    "resolve_public_id",
    "resolve_public_ids",
]

logger = logging.getLogger(__name__)

SYNTHETIC_NAMESPACE = "tmdb"
RECS_NAMESPACE = "recs"

_IMDB_RE = re.compile(r"^tt\d+$", re.IGNORECASE)
_SYNTHETIC_RE = re.compile(r"^tmdb:(movie|tv|series):(\d+)$", re.IGNORECASE)
_LEGACY_TYPED_RE = re.compile(r"^tmdb-(movie|tv|series)-(\d+)$", re.IGNORECASE)
_LEGACY_BARE_RE = re.compile(r"^tmdb-(\d+)$", re.IGNORECASE)
_RECS_RE = re.compile(r"^recs:(movie|series):(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class ResolvedIdentifier:
    """Exactly one of ``external_id`` or ``synthetic_id`` is set."""

    external_id: Optional[str] = None
    synthetic_id: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.external_id is None) == (self.synthetic_id is None):
            raise ValueError("ResolvedIdentifier needs exactly one of external_id or synthetic_id")

    @classmethod
    def external(cls, external_id: str) -> "ResolvedIdentifier":
        return cls(external_id=external_id)

    @classmethod
    def synthetic(cls, media_type: MediaType, tmdb_id: int) -> "ResolvedIdentifier":
        return cls(synthetic_id=format_synthetic_id(media_type, tmdb_id))

    @property
    def is_external(self) -> bool:
        return self.external_id is not None

    @property
    def value(self) -> str:
        if self.external_id is not None:
            return self.external_id
        return self.synthetic_id or ""


def is_imdb_id(text: str) -> bool:
    return bool(_IMDB_RE.match(str(text or "").strip()))


def format_synthetic_id(media_type: MediaType, tmdb_id: int) -> str:
    return f"{SYNTHETIC_NAMESPACE}:{media_type.tmdb_path}:{int(tmdb_id)}"


def parse_synthetic_id(text: str, *, default_type: Optional[MediaType] = None) -> Optional[NativeRef]:
    """Recover the native pair from a synthetic id; ``None`` when *text* is not one.

    The bare legacy form carries no type and only parses when *default_type*
    is given.
    """

    candidate = str(text or "").strip()
    match = _SYNTHETIC_RE.match(candidate) or _LEGACY_TYPED_RE.match(candidate)
    if match:
        return NativeRef(MediaType.parse(match.group(1)), int(match.group(2)))
    bare = _LEGACY_BARE_RE.match(candidate)
    if bare and default_type is not None:
        return NativeRef(default_type, int(bare.group(1)))
    return None


def format_recs_id(media_type: MediaType, public_id: str) -> str:
    """Identifier of the "more recommendations" page for *public_id*."""

    return f"{RECS_NAMESPACE}:{media_type.value}:{public_id}"


def parse_recs_id(text: str) -> Optional[Tuple[MediaType, str]]:
    """Split a recommendations-page id into its kind and target public id.

    Legacy targets ``tt:tt123`` and ``tmdb-123`` are normalised to ``tt123``
    and the canonical synthetic form respectively.
    """

    match = _RECS_RE.match(str(text or "").strip())
    if not match:
        return None
    kind = MediaType.parse(match.group(1))
    target = match.group(2)
    if target.lower().startswith("tt:"):
        target = target[3:]
    if is_imdb_id(target):
        return kind, target
    ref = parse_synthetic_id(target, default_type=kind)
    if ref is None:
        return None
    return kind, format_synthetic_id(ref.media_type, ref.tmdb_id)


async def resolve_public_id(client: TMDBClient, item: ListItem) -> ResolvedIdentifier:
    """Return the item's IMDb id, or its synthetic id when none can be found.

    Never raises for upstream trouble: a failed cross-reference lookup is
    logged and degrades to the synthetic form.
    """

    try:
        external_id = await client.fetch_external_id(item.media_type, item.tmdb_id)
    except TMDBError as exc:
        logger.debug(
            "External id lookup failed for %s/%s; using synthetic id: %s",
            item.media_type.tmdb_path,
            item.tmdb_id,
            exc,
        )
        external_id = None
    if external_id:
        return ResolvedIdentifier.external(external_id)
    return ResolvedIdentifier.synthetic(item.media_type, item.tmdb_id)


async def resolve_public_ids(client: TMDBClient, items: Iterable[ListItem]) -> List[ResolvedIdentifier]:
    """Resolve a batch concurrently; the result order matches *items*."""

    return list(await asyncio.gather(*(resolve_public_id(client, item) for item in items)))


async def resolve_native_ref(
    client: TMDBClient,
    external_id: str,
    *,
    prefer: MediaType = MediaType.MOVIE,
) -> Optional[NativeRef]:
    """Map an IMDb id back to its native pair.

    Movie matches are tried before series matches (reversed when *prefer* is
    ``SERIES``). No match and upstream failure both return ``None``.
    """

    try:
        matches = await client.find_by_external_id(external_id)
    except TMDBError as exc:
        logger.debug("Find by external id %s failed: %s", external_id, exc)
        return None
    order = (prefer, MediaType.SERIES if prefer is MediaType.MOVIE else MediaType.MOVIE)
    for media_type in order:
        ids = matches.get(media_type) or []
        if ids:
            return NativeRef(media_type, ids[0])
    return None
