"""Manifest construction and per-install user configuration."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping
from urllib.parse import parse_qsl, unquote

from src.datatypes import AddonConfig

logger = logging.getLogger(__name__)

CATALOG_ON_AIR = "tmdb-on-air"
CATALOG_POPULAR_SERIES = "tmdb-popular-series"
CATALOG_POPULAR_MOVIES = "tmdb-popular-movies"
CATALOG_RECS_MOVIE = "tmdb-recs-movie"
CATALOG_RECS_SERIES = "tmdb-recs-series"

_ENABLED_VALUES = {"checked", "on", "true", "1", "yes"}

# manifest key -> UserConfig attribute
CONFIG_FIELDS: Dict[str, str] = {
    "enableOnAir": "enable_on_air",
    "enableRecsTv": "enable_recs_tv",
    "enableRecsMovie": "enable_recs_movie",
    "enableStreamsRecs": "enable_streams_recs",
}

_CONFIG_TITLES: Dict[str, str] = {
    "enableOnAir": "Enable “On the air” rail (TV)",
    "enableRecsTv": "Enable “Recommendations” rail (TV)",
    "enableRecsMovie": "Enable “Recommendations” rail (Movies)",
    "enableStreamsRecs": "Enable “Recommendations” button in Streams",
}


@dataclass(frozen=True)
class UserConfig:
    """Rail toggles chosen on the configure page; everything is on by default."""

    enable_on_air: bool = True
    enable_recs_tv: bool = True
    enable_recs_movie: bool = True
    enable_streams_recs: bool = True

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "UserConfig":
        flags: Dict[str, bool] = {}
        for key, attr in CONFIG_FIELDS.items():
            if key not in values:
                continue
            raw = values[key]
            if isinstance(raw, bool):
                flags[attr] = raw
            else:
                flags[attr] = str(raw).strip().lower() in _ENABLED_VALUES
        return cls(**flags)

    @classmethod
    def from_path_segment(cls, segment: str | None) -> "UserConfig":
        """Decode the config segment the client embeds in add-on URLs.

        Both URL-encoded JSON and ``key=value&...`` forms are understood; an
        unreadable segment falls back to the defaults.
        """

        if not segment:
            return cls()
        text = unquote(segment).strip()
        if text.startswith("{"):
            try:
                decoded = json.loads(text)
            except ValueError:
                logger.debug("Ignoring malformed config segment %r", segment)
                return cls()
            if not isinstance(decoded, dict):
                return cls()
            return cls.from_mapping(decoded)
        return cls.from_mapping(dict(parse_qsl(text, keep_blank_values=True)))

    def to_mapping(self) -> Dict[str, bool]:
        return {key: bool(getattr(self, attr)) for key, attr in CONFIG_FIELDS.items()}

    def catalog_enabled(self, catalog_id: str) -> bool:
        if catalog_id == CATALOG_ON_AIR:
            return self.enable_on_air
        if catalog_id == CATALOG_RECS_SERIES:
            return self.enable_recs_tv
        if catalog_id == CATALOG_RECS_MOVIE:
            return self.enable_recs_movie
        return True


def _skip_extra() -> Dict[str, Any]:
    return {"name": "skip", "isRequired": False}


def _catalogs() -> List[Dict[str, Any]]:
    search_extra = [{"name": "search", "isRequired": True}, _skip_extra()]
    return [
        {"type": "series", "id": CATALOG_ON_AIR, "name": "On The Air (TMDB)", "extra": [_skip_extra()]},
        {
            "type": "series",
            "id": CATALOG_POPULAR_SERIES,
            "name": "Popular series recommendations",
            "extra": [_skip_extra()],
        },
        {
            "type": "movie",
            "id": CATALOG_POPULAR_MOVIES,
            "name": "Popular movies recommendations",
            "extra": [_skip_extra()],
        },
        {"type": "movie", "id": CATALOG_RECS_MOVIE, "name": "TMDB Recommendations", "extra": list(search_extra)},
        {"type": "series", "id": CATALOG_RECS_SERIES, "name": "TMDB Recommendations", "extra": list(search_extra)},
    ]


def build_manifest(addon: AddonConfig) -> Dict[str, Any]:
    """Return the add-on manifest advertised to the media client."""

    return {
        "id": addon.id,
        "version": addon.version,
        "name": addon.name,
        "description": addon.description,
        "behaviorHints": {"configurable": True, "configurationRequired": False},
        "config": [
            {"key": key, "type": "checkbox", "default": "checked", "title": title}
            for key, title in _CONFIG_TITLES.items()
        ],
        "resources": [
            "catalog",
            {"name": "meta", "types": ["movie", "series"], "idPrefixes": ["tmdb", "recs"]},
            "stream",
        ],
        "types": ["series", "movie"],
        "idPrefixes": ["tt", "tmdb", "recs"],
        "catalogs": _catalogs(),
    }
