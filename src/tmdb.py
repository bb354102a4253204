"""Async client for the TMDB endpoints the discovery add-on reads."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Dict, List, Mapping, Optional, cast

import httpx

from .config_loader import require_api_key
from .datatypes import TMDBConfig
from .discovery import net
from .discovery.models import MediaType, PageResult

logger = logging.getLogger(__name__)

LIST_NAMES = frozenset({"on_the_air", "popular"})


class TMDBError(RuntimeError):
    """Raised when an upstream read cannot complete."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _ensure_dict(value: object, *, context: str) -> Dict[str, Any]:
    if isinstance(value, dict) and all(isinstance(key, str) for key in value):
        return cast(Dict[str, Any], value)
    raise TMDBError(f"{context} was not a JSON object")


def _dict_entries(value: object) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    entries: List[Dict[str, Any]] = []
    for item in value:
        if isinstance(item, dict) and all(isinstance(key, str) for key in item):
            entries.append(cast(Dict[str, Any], item))
    return entries


def _entry_ids(value: object) -> List[int]:
    ids: List[int] = []
    for entry in _dict_entries(value):
        raw = entry.get("id")
        if isinstance(raw, bool):
            continue
        try:
            ids.append(int(raw))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            continue
    return ids


class TMDBClient:
    """Thin wrapper over an ``httpx.AsyncClient`` pointed at the TMDB v3 API.

    Every read goes through :func:`net.httpx_get_with_backoff`. Any failure
    (transport error, exhausted retries, non-2xx status, non-object JSON)
    surfaces as :class:`TMDBError`; callers decide whether that is fatal.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        policy: net.RetryPolicy | None = None,
        timeout: float | httpx.Timeout | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.http = http
        self.policy = policy or net.RetryPolicy()
        self.timeout = timeout if timeout is not None else net.DEFAULT_HTTP_TIMEOUT
        self._sleep = sleep or asyncio.sleep

    async def __aenter__(self) -> "TMDBClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        query = dict(params or {})
        redacted_host = net.redact_url_for_logs(str(getattr(self.http, "base_url", "")) or path)

        async def _on_backoff(delay: float, attempt_index: int) -> None:
            net.log_backoff_attempt(redacted_host, attempt_index, delay)

        try:
            response = await net.httpx_get_with_backoff(
                self.http,
                path,
                query,
                policy=self.policy,
                sleep=self._sleep,
                on_backoff=_on_backoff,
                timeout=self.timeout,
            )
        except httpx.RequestError as exc:
            raise TMDBError(f"TMDB request failed after retries: {exc}") from exc
        except net.BackoffError as exc:
            raise TMDBError("TMDB request failed after retries", status_code=exc.status_code) from exc

        status = response.status_code
        if status >= 400:
            raise TMDBError(
                f"TMDB request failed for {path} (status={status}): {response.text[:200]}",
                status_code=status,
            )
        try:
            payload_obj = response.json()
        except (ValueError, json.JSONDecodeError) as exc:
            raise TMDBError("TMDB returned invalid JSON") from exc
        return _ensure_dict(payload_obj, context=f"{path} response")

    async def fetch_paged_list(self, list_name: str, media_type: MediaType, page: int) -> PageResult:
        """Read one page of a named list such as ``/tv/on_the_air``."""

        if list_name not in LIST_NAMES:
            raise ValueError(f"Unknown TMDB list: {list_name}")
        payload = await self.get_json(f"{media_type.tmdb_path}/{list_name}", {"page": str(page)})
        return PageResult.from_payload(payload, media_type, page)

    async def fetch_external_id(self, media_type: MediaType, tmdb_id: int) -> Optional[str]:
        """Return the IMDb id cross-referenced to the item, if the upstream knows one."""

        payload = await self.get_json(f"{media_type.tmdb_path}/{tmdb_id}/external_ids")
        imdb_id = payload.get("imdb_id")
        if isinstance(imdb_id, str) and imdb_id.strip():
            return imdb_id.strip()
        return None

    async def find_by_external_id(self, external_id: str) -> Dict[MediaType, List[int]]:
        """Return the native ids matching an IMDb id, grouped by media type."""

        payload = await self.get_json(f"find/{external_id}", {"external_source": "imdb_id"})
        return {
            MediaType.MOVIE: _entry_ids(payload.get("movie_results")),
            MediaType.SERIES: _entry_ids(payload.get("tv_results")),
        }

    async def fetch_recommendations(self, media_type: MediaType, tmdb_id: int, page: int = 1) -> PageResult:
        payload = await self.get_json(
            f"{media_type.tmdb_path}/{tmdb_id}/recommendations", {"page": str(page)}
        )
        return PageResult.from_payload(payload, media_type, page)

    async def search_by_title(self, media_type: MediaType, query: str, page: int = 1) -> PageResult:
        payload = await self.get_json(
            f"search/{media_type.tmdb_path}",
            {"query": query, "page": str(page), "include_adult": "false"},
        )
        return PageResult.from_payload(payload, media_type, page)

    async def fetch_details(self, media_type: MediaType, tmdb_id: int) -> Dict[str, Any]:
        return await self.get_json(f"{media_type.tmdb_path}/{tmdb_id}")

    async def fetch_trailer_key(self, media_type: MediaType, tmdb_id: int) -> Optional[str]:
        """Return a YouTube key: an official trailer first, then any trailer or teaser."""

        payload = await self.get_json(f"{media_type.tmdb_path}/{tmdb_id}/videos")
        videos = [entry for entry in _dict_entries(payload.get("results")) if entry.get("site") == "YouTube"]
        for entry in videos:
            if entry.get("type") == "Trailer" and entry.get("official") and entry.get("key"):
                return str(entry["key"])
        for entry in videos:
            if entry.get("type") in {"Trailer", "Teaser"} and entry.get("key"):
                return str(entry["key"])
        return None


def open_client(config: TMDBConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> TMDBClient:
    """Build a :class:`TMDBClient` from *config*; the API key must be set."""

    api_key = require_api_key(config)
    timeout = net.build_timeout(config.timeout_seconds, config.connect_timeout_seconds)
    http = httpx.AsyncClient(
        base_url=config.base_url.rstrip("/") + "/",
        timeout=timeout,
        params={"api_key": api_key, "language": config.language},
        transport=transport,
    )
    policy = net.RetryPolicy(
        retries=config.retries,
        initial_backoff=config.initial_backoff,
        max_backoff=config.max_backoff,
    )
    return TMDBClient(http, policy=policy, timeout=timeout)


__all__ = [
    "LIST_NAMES",
    "TMDBClient",
    "TMDBError",
    "open_client",
]
