from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, cast

import pytest

from src.discovery.identifiers import (
    ResolvedIdentifier,
    format_recs_id,
    format_synthetic_id,
    is_imdb_id,
    parse_recs_id,
    parse_synthetic_id,
    resolve_native_ref,
    resolve_public_id,
    resolve_public_ids,
)
from src.discovery.models import ListItem, MediaType, NativeRef
from src.tmdb import TMDBClient, TMDBError


class StubClient:
    """Answers cross-reference lookups from dictionaries, optionally with delays."""

    def __init__(
        self,
        external: Optional[Dict[int, Optional[str]]] = None,
        *,
        failing: tuple[int, ...] = (),
        delays: Optional[Dict[int, float]] = None,
        finds: Optional[Dict[str, Dict[MediaType, List[int]]]] = None,
        find_fails: bool = False,
    ) -> None:
        self.external = external or {}
        self.failing = set(failing)
        self.delays = delays or {}
        self.finds = finds or {}
        self.find_fails = find_fails

    async def fetch_external_id(self, media_type: MediaType, tmdb_id: int) -> Optional[str]:
        await asyncio.sleep(self.delays.get(tmdb_id, 0))
        if tmdb_id in self.failing:
            raise TMDBError("lookup failed", status_code=503)
        return self.external.get(tmdb_id)

    async def find_by_external_id(self, external_id: str) -> Dict[MediaType, List[int]]:
        if self.find_fails:
            raise TMDBError("find failed")
        return self.finds.get(external_id, {MediaType.MOVIE: [], MediaType.SERIES: []})


def _item(tmdb_id: int, media_type: MediaType = MediaType.SERIES) -> ListItem:
    return ListItem(tmdb_id=tmdb_id, media_type=media_type, title=f"Item {tmdb_id}")


def _client(stub: StubClient) -> TMDBClient:
    return cast(TMDBClient, stub)


def test_synthetic_id_format() -> None:
    assert format_synthetic_id(MediaType.SERIES, 1396) == "tmdb:tv:1396"
    assert format_synthetic_id(MediaType.MOVIE, 949) == "tmdb:movie:949"


@pytest.mark.parametrize("media_type", [MediaType.SERIES, MediaType.MOVIE])
@pytest.mark.parametrize("tmdb_id", [1, 42, 1396, 987654321])
def test_synthetic_id_round_trips(media_type: MediaType, tmdb_id: int) -> None:
    assert parse_synthetic_id(format_synthetic_id(media_type, tmdb_id)) == NativeRef(media_type, tmdb_id)


def test_parse_synthetic_accepts_legacy_forms() -> None:
    assert parse_synthetic_id("tmdb-tv-1396") == NativeRef(MediaType.SERIES, 1396)
    assert parse_synthetic_id("tmdb-movie-949") == NativeRef(MediaType.MOVIE, 949)
    assert parse_synthetic_id("tmdb:series:7") == NativeRef(MediaType.SERIES, 7)
    assert parse_synthetic_id("tmdb-1396") is None
    assert parse_synthetic_id("tmdb-1396", default_type=MediaType.SERIES) == NativeRef(MediaType.SERIES, 1396)


@pytest.mark.parametrize("text", ["", "tt0903747", "tmdb:tv:", "tmdb:book:1", "recs:movie:tt1", "tmdb:tv:12a"])
def test_parse_synthetic_rejects_other_ids(text: str) -> None:
    assert parse_synthetic_id(text) is None


def test_is_imdb_id() -> None:
    assert is_imdb_id("tt0903747")
    assert not is_imdb_id("tt")
    assert not is_imdb_id("tmdb:tv:1")
    assert not is_imdb_id("tt0903747:1:2")


def test_recs_ids_round_trip_and_normalise_legacy_targets() -> None:
    assert format_recs_id(MediaType.MOVIE, "tt0113277") == "recs:movie:tt0113277"
    assert parse_recs_id("recs:movie:tt0113277") == (MediaType.MOVIE, "tt0113277")
    assert parse_recs_id("recs:series:tmdb:tv:1396") == (MediaType.SERIES, "tmdb:tv:1396")
    assert parse_recs_id("recs:movie:tt:tt0113277") == (MediaType.MOVIE, "tt0113277")
    assert parse_recs_id("recs:series:tmdb-1396") == (MediaType.SERIES, "tmdb:tv:1396")
    assert parse_recs_id("recs:series:nonsense") is None
    assert parse_recs_id("tmdb:tv:1396") is None


def test_resolved_identifier_requires_exactly_one_value() -> None:
    with pytest.raises(ValueError):
        ResolvedIdentifier()
    with pytest.raises(ValueError):
        ResolvedIdentifier(external_id="tt1", synthetic_id="tmdb:tv:1")
    assert ResolvedIdentifier.external("tt1").value == "tt1"
    assert ResolvedIdentifier.synthetic(MediaType.SERIES, 5).value == "tmdb:tv:5"


def test_resolve_public_id_prefers_external() -> None:
    stub = StubClient({1396: "tt0903747"})

    resolved = asyncio.run(resolve_public_id(_client(stub), _item(1396)))

    assert resolved.is_external
    assert resolved.value == "tt0903747"


def test_resolve_public_id_falls_back_to_synthetic_when_unknown() -> None:
    resolved = asyncio.run(resolve_public_id(_client(StubClient()), _item(1396)))

    assert not resolved.is_external
    assert resolved.value == "tmdb:tv:1396"


def test_resolve_public_id_falls_back_when_lookup_fails() -> None:
    stub = StubClient({1396: "tt0903747"}, failing=(1396,))

    resolved = asyncio.run(resolve_public_id(_client(stub), _item(1396)))

    assert resolved.value == "tmdb:tv:1396"


def test_resolve_public_ids_preserves_input_order_under_uneven_latency() -> None:
    items = [_item(tmdb_id) for tmdb_id in (1, 2, 3, 4)]
    stub = StubClient(
        {1: "tt0000001", 3: "tt0000003"},
        failing=(4,),
        delays={1: 0.03, 2: 0.02, 3: 0.01, 4: 0.0},
    )

    resolved = asyncio.run(resolve_public_ids(_client(stub), items))

    assert [entry.value for entry in resolved] == ["tt0000001", "tmdb:tv:2", "tt0000003", "tmdb:tv:4"]


def test_resolve_native_ref_prefers_movie_then_series() -> None:
    stub = StubClient(
        finds={
            "tt1": {MediaType.MOVIE: [10], MediaType.SERIES: [20]},
            "tt2": {MediaType.MOVIE: [], MediaType.SERIES: [30, 31]},
        }
    )
    client = _client(stub)

    assert asyncio.run(resolve_native_ref(client, "tt1")) == NativeRef(MediaType.MOVIE, 10)
    assert asyncio.run(resolve_native_ref(client, "tt1", prefer=MediaType.SERIES)) == NativeRef(MediaType.SERIES, 20)
    assert asyncio.run(resolve_native_ref(client, "tt2")) == NativeRef(MediaType.SERIES, 30)
    assert asyncio.run(resolve_native_ref(client, "tt3")) is None


def test_resolve_native_ref_returns_none_on_upstream_failure() -> None:
    assert asyncio.run(resolve_native_ref(_client(StubClient(find_fails=True)), "tt1")) is None
