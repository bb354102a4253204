"""CLI runner fixtures.

General-purpose fixtures live in tests/conftest.py.
"""

from __future__ import annotations

import pytest

from src import tmdb
from src.datatypes import TMDBConfig
from src.discovery import cli_entry
from tests.helpers.fake_tmdb import FakeTMDB


@pytest.fixture
def patched_upstream(monkeypatch: pytest.MonkeyPatch, fake_tmdb: FakeTMDB) -> FakeTMDB:
    """Route CLI upstream calls to the in-memory fake."""

    def _open(config: TMDBConfig) -> tmdb.TMDBClient:
        return tmdb.open_client(config, transport=fake_tmdb.transport())

    monkeypatch.setattr(cli_entry, "open_client", _open)
    return fake_tmdb
