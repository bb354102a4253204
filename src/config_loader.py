"""Configuration loader that parses and validates the optional TOML file."""

from __future__ import annotations

import logging
import math
import os
import tomllib
from dataclasses import fields
from typing import Any, Dict, Mapping, Optional

from .datatypes import AddonConfig, AppConfig, CatalogConfig, ServerConfig, TMDBConfig

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "TMDB_API_KEY"
CONFIG_ENV_VAR = "TMDB_DISCOVERY_CONFIG"


class ConfigError(ValueError):
    """Raised when the configuration file is malformed or fails validation."""


def _coerce_bool(value: Any, dotted_key: str) -> bool:
    """Return a bool, coercing simple 0/1 representations when necessary."""

    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"0", "1"}:
            return normalized == "1"
        if normalized in {"true", "false"}:
            return normalized == "true"
    raise ConfigError(f"{dotted_key} must be a boolean (use true/false).")


def _sanitize_section(raw: Any, name: str, cls):
    """
    Coerce a raw TOML table into an instance of ``cls`` with cleaned booleans.

    Parameters:
        raw: Raw TOML section data.
        name (str): Section name used when reporting validation errors.
        cls: Dataclass type used to construct the section object.

    Returns:
        Any: Instantiated dataclass populated with values from ``raw``.

    Raises:
        ConfigError: If the section is not a table or contains invalid keys or values.
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a table")
    cleaned: Dict[str, Any] = {}
    cls_fields = {field.name: field for field in fields(cls)}
    bool_fields = {name for name, field in cls_fields.items() if field.type is bool}
    float_fields = {name for name, field in cls_fields.items() if field.type is float}
    for key, value in raw.items():
        if key not in cls_fields:
            raise ConfigError(f"Invalid keys in [{name}]: unknown key '{key}'")
        if key in bool_fields:
            cleaned[key] = _coerce_bool(value, f"{name}.{key}")
        elif key in float_fields:
            cleaned[key] = _normalize_float(value, f"{name}.{key}")
        else:
            cleaned[key] = value
    try:
        return cls(**cleaned)
    except TypeError as exc:
        raise ConfigError(f"Invalid keys in [{name}]: {exc}") from exc


def _normalize_float(value: Any, dotted_key: str) -> float:
    """Return ``value`` as a finite float, raising ConfigError otherwise."""

    if isinstance(value, bool):
        raise ConfigError(f"{dotted_key} must be a number")
    try:
        numeric = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{dotted_key} must be a number") from exc
    if not math.isfinite(numeric):
        raise ConfigError(f"{dotted_key} must be a finite number")
    return numeric


def _require_int(value: Any, dotted_key: str, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{dotted_key} must be an integer")
    if value < minimum:
        raise ConfigError(f"{dotted_key} must be >= {minimum}")


def _validate(app: AppConfig) -> None:
    _require_int(app.tmdb.retries, "tmdb.retries", minimum=0)
    if app.tmdb.initial_backoff <= 0:
        raise ConfigError("tmdb.initial_backoff must be > 0")
    if app.tmdb.max_backoff < app.tmdb.initial_backoff:
        raise ConfigError("tmdb.max_backoff must be >= tmdb.initial_backoff")
    if app.tmdb.timeout_seconds <= 0:
        raise ConfigError("tmdb.timeout_seconds must be > 0")
    if app.tmdb.connect_timeout_seconds <= 0:
        raise ConfigError("tmdb.connect_timeout_seconds must be > 0")
    if not str(app.tmdb.base_url).strip():
        raise ConfigError("tmdb.base_url must be set")

    _require_int(app.catalog.page_size, "catalog.page_size", minimum=1)
    _require_int(app.catalog.max_return, "catalog.max_return", minimum=1)
    _require_int(app.catalog.search_page_size, "catalog.search_page_size", minimum=1)
    _require_int(app.catalog.search_max_pages, "catalog.search_max_pages", minimum=1)
    _require_int(app.catalog.recommendations_limit, "catalog.recommendations_limit", minimum=0)

    _require_int(app.server.port, "server.port", minimum=1)
    if app.server.port > 65535:
        raise ConfigError("server.port must be <= 65535")
    level = str(app.server.log_level).strip().lower()
    if level not in {"critical", "error", "warning", "info", "debug"}:
        raise ConfigError("server.log_level must be one of critical, error, warning, info, debug")
    app.server.log_level = level
    if not isinstance(app.server.cors_origins, list) or not all(
        isinstance(origin, str) for origin in app.server.cors_origins
    ):
        raise ConfigError("server.cors_origins must be a list of strings")

    if not str(app.addon.id).strip():
        raise ConfigError("addon.id must be set")


def load_config(path: Optional[str] = None, *, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load and validate the application configuration.

    When ``path`` is omitted the ``TMDB_DISCOVERY_CONFIG`` environment variable is
    consulted; with neither present the built-in defaults are used. The
    ``TMDB_API_KEY`` environment variable always wins over ``[tmdb].api_key``.

    Raises:
        ConfigError: If the file is not UTF-8, TOML parsing fails, or any validation rule is violated.
    """

    env = os.environ if environ is None else environ
    config_path = path or env.get(CONFIG_ENV_VAR) or None

    raw: Dict[str, Any] = {}
    if config_path:
        with open(config_path, "rb") as handle:
            raw_bytes = handle.read()
        if raw_bytes.startswith(b"\xef\xbb\xbf"):
            raw_bytes = raw_bytes[3:]
        try:
            raw = tomllib.loads(raw_bytes.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise ConfigError("Configuration file must be UTF-8 encoded") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Failed to parse TOML: {exc}") from exc

    unknown = sorted(set(raw) - {"tmdb", "catalog", "server", "addon"})
    if unknown:
        logger.warning("Config: ignoring unknown sections %s", ", ".join(unknown))

    app = AppConfig(
        tmdb=_sanitize_section(raw.get("tmdb", {}), "tmdb", TMDBConfig),
        catalog=_sanitize_section(raw.get("catalog", {}), "catalog", CatalogConfig),
        server=_sanitize_section(raw.get("server", {}), "server", ServerConfig),
        addon=_sanitize_section(raw.get("addon", {}), "addon", AddonConfig),
    )

    env_key = (env.get(API_KEY_ENV_VAR) or "").strip()
    if env_key:
        app.tmdb.api_key = env_key
    app.tmdb.api_key = str(app.tmdb.api_key or "").strip()

    _validate(app)
    return app


def require_api_key(config: TMDBConfig) -> str:
    """Return the configured API key or raise when it is missing."""

    if not config.api_key:
        raise ConfigError(f"Missing {API_KEY_ENV_VAR} in environment (or [tmdb].api_key in the config file)")
    return config.api_key
