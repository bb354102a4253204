from __future__ import annotations

from typing import Any, Dict

import pytest

from src.datatypes import AppConfig
from src.discovery.catalog import handle_catalog, resolve_query
from src.discovery.manifest import UserConfig
from src.discovery.models import MediaType, NativeRef
from src.tmdb import TMDBError
from tests.helpers.fake_tmdb import FakeTMDB, make_config, make_entries, run_with_client


def _catalog(
    config: AppConfig,
    fake: FakeTMDB,
    media_type: str,
    catalog_id: str,
    extra: Dict[str, Any] | None = None,
    user_config: UserConfig | None = None,
) -> Dict[str, Any]:
    return run_with_client(
        config,
        fake,
        lambda client: handle_catalog(client, config, media_type, catalog_id, extra or {}, user_config),
    )


def test_on_air_publishes_imdb_ids_when_known(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.lists[("tv", "on_the_air")] = make_entries(1, 45, kind="tv")
    fake_tmdb.external_ids[("tv", 21)] = "tt0000021"

    response = _catalog(app_config, fake_tmdb, "series", "tmdb-on-air", {"skip": "20"})

    metas = response["metas"]
    assert len(metas) == 25
    assert metas[0]["id"] == "tt0000021"
    assert metas[1]["id"] == "tmdb:tv:22"
    assert metas[0] == {
        "id": "tt0000021",
        "type": "series",
        "name": "Title 21",
        "poster": "https://image.tmdb.org/t/p/w500/p21.jpg",
        "posterShape": "poster",
        "description": "Overview 21",
        "releaseInfo": "2020",
        "year": 2020,
    }
    assert fake_tmdb.pages_requested("tv/on_the_air") == [2, 3]


def test_popular_rails_publish_synthetic_ids_without_lookups(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.lists[("movie", "popular")] = make_entries(100, 150)

    response = _catalog(app_config, fake_tmdb, "movie", "tmdb-popular-movies", {"skip": "10"})

    ids = [meta["id"] for meta in response["metas"]]
    assert len(ids) == 100
    assert ids[0] == "tmdb:movie:110"
    assert ids[-1] == "tmdb:movie:209"
    assert not any(path.endswith("external_ids") for path in fake_tmdb.paths())


def test_popular_series_rail(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.lists[("tv", "popular")] = make_entries(1, 3, kind="tv")

    response = _catalog(app_config, fake_tmdb, "series", "tmdb-popular-series")

    assert [meta["id"] for meta in response["metas"]] == ["tmdb:tv:1", "tmdb:tv:2", "tmdb:tv:3"]


@pytest.mark.parametrize(
    ("media_type", "catalog_id"),
    [
        ("movie", "tmdb-on-air"),
        ("series", "tmdb-popular-movies"),
        ("series", "unknown-rail"),
        ("book", "tmdb-on-air"),
        ("series", "tmdb-recs-movie"),
    ],
)
def test_mismatched_or_unknown_rails_are_empty(
    app_config: AppConfig, fake_tmdb: FakeTMDB, media_type: str, catalog_id: str
) -> None:
    response = _catalog(app_config, fake_tmdb, media_type, catalog_id, {"search": "Heat"})

    assert response == {"metas": []}
    assert fake_tmdb.calls == []


def test_disabled_rail_is_empty(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.lists[("tv", "on_the_air")] = make_entries(1, 5, kind="tv")

    response = _catalog(
        app_config, fake_tmdb, "series", "tmdb-on-air", user_config=UserConfig(enable_on_air=False)
    )

    assert response == {"metas": []}
    assert fake_tmdb.calls == []


def test_junk_skip_is_treated_as_zero(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.lists[("tv", "popular")] = make_entries(1, 3, kind="tv")

    response = _catalog(app_config, fake_tmdb, "series", "tmdb-popular-series", {"skip": "abc"})

    assert len(response["metas"]) == 3


def test_lenient_paging_returns_partial_window(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.lists[("tv", "popular")] = make_entries(1, 100, kind="tv")
    fake_tmdb.failing.add("tv/popular")

    assert _catalog(app_config, fake_tmdb, "series", "tmdb-popular-series") == {"metas": []}


def test_strict_paging_propagates_failure(fake_tmdb: FakeTMDB) -> None:
    config = make_config(strict_paging=True)
    fake_tmdb.failing.add("tv/popular")

    with pytest.raises(TMDBError):
        _catalog(config, fake_tmdb, "series", "tmdb-popular-series")


def test_movie_recommendations_from_search(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.searches[("movie", "Heat")] = make_entries(949, 1, popularity=50.0)
    fake_tmdb.searches[("tv", "Heat")] = make_entries(5000, 1, kind="tv", popularity=10.0)
    fake_tmdb.recommendations[("movie", 949)] = make_entries(1, 30)
    fake_tmdb.external_ids[("movie", 2)] = "tt0000002"

    response = _catalog(app_config, fake_tmdb, "movie", "tmdb-recs-movie", {"search": "Heat"})

    ids = [meta["id"] for meta in response["metas"]]
    assert len(ids) == 30
    assert ids[:3] == ["tmdb:movie:1", "tt0000002", "tmdb:movie:3"]
    assert fake_tmdb.pages_requested("movie/949/recommendations") == [1, 2]


def test_series_rail_ignores_query_resolving_to_movie(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.searches[("movie", "Heat")] = make_entries(949, 1, popularity=50.0)
    fake_tmdb.searches[("tv", "Heat")] = make_entries(5000, 1, kind="tv", popularity=10.0)

    response = _catalog(app_config, fake_tmdb, "series", "tmdb-recs-series", {"search": "Heat"})

    assert response == {"metas": []}
    assert not any("recommendations" in path for path in fake_tmdb.paths())


def test_series_recommendations_from_imdb_id_use_synthetic_ids(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.finds["tt0903747"] = {"tv_results": [{"id": 1396}]}
    fake_tmdb.recommendations[("tv", 1396)] = make_entries(60000, 70, kind="tv")

    response = _catalog(
        app_config, fake_tmdb, "series", "tmdb-recs-series", {"search": "tt0903747", "skip": "50"}
    )

    ids = [meta["id"] for meta in response["metas"]]
    assert ids == [f"tmdb:tv:{tmdb_id}" for tmdb_id in range(60050, 60070)]
    assert fake_tmdb.pages_requested("tv/1396/recommendations") == [3, 4]


def test_recommendations_rail_respects_max_pages(fake_tmdb: FakeTMDB) -> None:
    config = make_config(search_max_pages=2)
    fake_tmdb.searches[("movie", "Heat")] = make_entries(949, 1)
    fake_tmdb.recommendations[("movie", 949)] = make_entries(1, 200)

    response = _catalog(config, fake_tmdb, "movie", "tmdb-recs-movie", {"search": "Heat"})

    assert len(response["metas"]) == 40
    assert fake_tmdb.pages_requested("movie/949/recommendations") == [1, 2]


def test_failed_search_yields_no_metas(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.failing.add("search/movie")

    response = _catalog(app_config, fake_tmdb, "movie", "tmdb-recs-movie", {"search": "Heat"})

    assert response == {"metas": []}


def test_empty_search_yields_no_metas(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    assert _catalog(app_config, fake_tmdb, "movie", "tmdb-recs-movie", {"search": "  "}) == {"metas": []}
    assert fake_tmdb.calls == []


def test_resolve_query_prefers_movie_on_equal_popularity(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.searches[("movie", "Dune")] = make_entries(438631, 1, popularity=20.0)
    fake_tmdb.searches[("tv", "Dune")] = make_entries(90228, 1, kind="tv", popularity=20.0)

    ref = run_with_client(app_config, fake_tmdb, lambda client: resolve_query(client, "Dune"))

    assert ref == NativeRef(MediaType.MOVIE, 438631)


def test_resolve_query_picks_more_popular_series(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.searches[("movie", "The Office")] = make_entries(1, 1, popularity=1.0)
    fake_tmdb.searches[("tv", "The Office")] = make_entries(2316, 1, kind="tv", popularity=90.0)

    ref = run_with_client(app_config, fake_tmdb, lambda client: resolve_query(client, "The Office"))

    assert ref == NativeRef(MediaType.SERIES, 2316)


def test_untitled_items_are_named_after_their_public_id(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.lists[("tv", "popular")] = [
        {"id": 7, "overview": "x"},
        {"id": 8, "original_name": "Original Eight"},
    ]

    response = _catalog(app_config, fake_tmdb, "series", "tmdb-popular-series")

    metas = response["metas"]
    assert [meta["name"] for meta in metas] == ["tmdb:tv:7", "Original Eight"]
    assert metas[0]["description"] == "x"
    assert metas[1]["description"] == ""


def test_resolve_query_waits_for_both_searches_before_failing(app_config: AppConfig, fake_tmdb: FakeTMDB) -> None:
    fake_tmdb.failing.update({"search/movie", "search/tv"})

    with pytest.raises(TMDBError):
        run_with_client(app_config, fake_tmdb, lambda client: resolve_query(client, "Heat"))

    assert sorted(fake_tmdb.paths()) == ["search/movie", "search/tv"]
    assert _catalog(app_config, fake_tmdb, "movie", "tmdb-recs-movie", {"search": "Heat"}) == {"metas": []}
