"""Public shim exposing the tmdb_discovery CLI and library surface."""

from __future__ import annotations

from typing import Callable, cast

import src.discovery.cli_entry as _cli_entry
import src.discovery.identifiers as _identifiers
import src.discovery.server as _server
import src.discovery.windowing as _windowing
from src.config_loader import ConfigError, load_config
from src.discovery.cli_runtime import CLIAppError
from src.tmdb import TMDBClient, TMDBError, open_client

create_app = _server.create_app
compute_window = _windowing.compute_window
page_span = _windowing.page_span
resolve_public_id = _identifiers.resolve_public_id
resolve_native_ref = _identifiers.resolve_native_ref
format_synthetic_id = _identifiers.format_synthetic_id
parse_synthetic_id = _identifiers.parse_synthetic_id

__all__ = (
    "main",
    "create_app",
    "compute_window",
    "page_span",
    "resolve_public_id",
    "resolve_native_ref",
    "format_synthetic_id",
    "parse_synthetic_id",
    "load_config",
    "open_client",
    "TMDBClient",
    "TMDBError",
    "ConfigError",
    "CLIAppError",
)


main = _cli_entry.main


if __name__ == "__main__":
    _entry_point = cast(Callable[[], None], main)
    _entry_point()
