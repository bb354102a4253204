from __future__ import annotations

import pytest
from click.testing import CliRunner

from src.datatypes import AppConfig
from tests.helpers.fake_tmdb import FakeTMDB, make_config


@pytest.fixture
def fake_tmdb() -> FakeTMDB:
    """Provide an empty in-memory TMDB upstream for each test."""

    return FakeTMDB()


@pytest.fixture
def app_config() -> AppConfig:
    """Provide an AppConfig with a test API key and retries disabled."""

    return make_config()


@pytest.fixture
def runner() -> CliRunner:
    """Provide a Click runner configured for CLI smoke tests."""

    return CliRunner()
