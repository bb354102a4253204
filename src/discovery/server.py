"""FastAPI application exposing the add-on protocol routes."""

from __future__ import annotations

import html
import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from src.datatypes import AppConfig
from src.tmdb import TMDBClient, TMDBError, open_client

from .catalog import handle_catalog
from .manifest import CONFIG_FIELDS, UserConfig, build_manifest
from .meta_handler import handle_meta
from .streams import handle_stream

__all__ = ["create_app", "parse_extra"]

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_extra(segment: Optional[str]) -> Dict[str, str]:
    """Parse a catalog ``extra`` path segment (``search=...&skip=...``).

    The router has already percent-decoded the segment, so values are taken
    verbatim: a literal ``+`` stays a plus.
    """

    if not segment:
        return {}
    parsed: Dict[str, str] = {}
    for pair in segment.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        parsed[key] = value
    return parsed


def get_client(request: Request) -> TMDBClient:
    """Dependency provider for the shared upstream client."""
    return request.app.state.tmdb


def get_config(request: Request) -> AppConfig:
    """Dependency provider for the loaded configuration."""
    return request.app.state.config


ClientDep = Annotated[TMDBClient, Depends(get_client)]
ConfigDep = Annotated[AppConfig, Depends(get_config)]


@router.get("/manifest.json")
@router.get("/{user_config}/manifest.json")
async def manifest(config: ConfigDep, user_config: Optional[str] = None) -> Dict[str, Any]:
    return build_manifest(config.addon)


@router.get("/catalog/{media_type}/{catalog_id}.json")
@router.get("/catalog/{media_type}/{catalog_id}/{extra}.json")
@router.get("/{user_config}/catalog/{media_type}/{catalog_id}.json")
@router.get("/{user_config}/catalog/{media_type}/{catalog_id}/{extra}.json")
async def catalog(
    client: ClientDep,
    config: ConfigDep,
    media_type: str,
    catalog_id: str,
    extra: Optional[str] = None,
    user_config: Optional[str] = None,
) -> Dict[str, Any]:
    return await handle_catalog(
        client,
        config,
        media_type,
        catalog_id,
        parse_extra(extra),
        UserConfig.from_path_segment(user_config),
    )


@router.get("/meta/{media_type}/{meta_id}.json")
@router.get("/{user_config}/meta/{media_type}/{meta_id}.json")
async def meta(
    client: ClientDep,
    config: ConfigDep,
    media_type: str,
    meta_id: str,
    user_config: Optional[str] = None,
) -> Dict[str, Any]:
    return await handle_meta(client, config, meta_id)


@router.get("/stream/{media_type}/{stream_id}.json")
@router.get("/{user_config}/stream/{media_type}/{stream_id}.json")
async def stream(
    client: ClientDep,
    media_type: str,
    stream_id: str,
    user_config: Optional[str] = None,
) -> Dict[str, Any]:
    return await handle_stream(client, media_type, stream_id, UserConfig.from_path_segment(user_config))


_CONFIGURE_TEMPLATE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>{name}</title></head>
<body>
<h1>{name}</h1>
<p>{description}</p>
<form id="cfg">
{checkboxes}
</form>
<p><a id="install" href="#">Install</a></p>
<script>
function installUrl() {{
  const cfg = {{}};
  document.querySelectorAll('#cfg input').forEach(el => {{ cfg[el.name] = el.checked ? 'checked' : 'off'; }});
  const seg = encodeURIComponent(JSON.stringify(cfg));
  return 'stremio://' + window.location.host + '/' + seg + '/manifest.json';
}}
document.getElementById('install').addEventListener('click', e => {{ e.preventDefault(); window.location = installUrl(); }});
</script>
</body>
</html>
"""


@router.get("/configure", response_class=HTMLResponse)
@router.get("/{user_config}/configure", response_class=HTMLResponse)
async def configure(config: ConfigDep, user_config: Optional[str] = None) -> str:
    current = UserConfig.from_path_segment(user_config).to_mapping()
    manifest_cfg = {entry["key"]: entry["title"] for entry in build_manifest(config.addon)["config"]}
    checkboxes = "\n".join(
        f'<label><input type="checkbox" name="{key}"{" checked" if current[key] else ""}> '
        f"{html.escape(manifest_cfg.get(key, key))}</label><br>"
        for key in CONFIG_FIELDS
    )
    return _CONFIGURE_TEMPLATE.format(
        name=html.escape(config.addon.name),
        description=html.escape(config.addon.description),
        checkboxes=checkboxes,
    )


@router.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


async def _tmdb_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Upstream failure while serving %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Upstream metadata source unavailable"})


def create_app(config: AppConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the add-on application around *config*.

    The upstream client is opened in the lifespan and shared by every request.
    *transport* lets tests substitute a mock upstream.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        tmdb_client = open_client(config.tmdb, transport=transport)
        app.state.tmdb = tmdb_client
        logger.info("Serving add-on %s %s", config.addon.id, config.addon.version)
        try:
            yield
        finally:
            await tmdb_client.aclose()

    app = FastAPI(
        title=config.addon.name,
        description=config.addon.description,
        version=config.addon.version,
        lifespan=lifespan,
    )
    app.state.config = config
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.server.cors_origins),
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_exception_handler(TMDBError, _tmdb_error_handler)
    app.include_router(router)
    return app
