"""Click CLI wiring and entry points for tmdb_discovery."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional, cast

import click
from rich.console import Console
from rich.markup import escape

from src.config_loader import ConfigError, load_config
from src.datatypes import AppConfig
from src.tmdb import TMDBError, open_client

from .catalog import handle_catalog
from .cli_runtime import CLIAppError, configure_logging, render_metas
from .identifiers import is_imdb_id, parse_recs_id, parse_synthetic_id, resolve_native_ref
from .models import MediaType, NativeRef


def _load(params: Dict[str, Any]) -> AppConfig:
    try:
        return load_config(params.get("config_path"))
    except FileNotFoundError as exc:
        raise CLIAppError(f"Config file not found: {exc.filename}") from exc
    except ConfigError as exc:
        raise CLIAppError(f"Config error: {exc}", rich_message=f"[red]Config error:[/red] {escape(str(exc))}") from exc


def _exit_with(exc: CLIAppError) -> None:
    Console(stderr=True).print(exc.rich_message)
    raise click.exceptions.Exit(exc.code) from exc


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Optional path to a TOML config file (defaults to $TMDB_DISCOVERY_CONFIG, then built-in defaults).",
)
@click.option("--verbose", is_flag=True, help="Log debug output, including degraded upstream lookups.")
@click.option("--quiet", is_flag=True, help="Only log warnings and errors.")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool, quiet: bool) -> None:
    """TMDB discovery add-on: serve the add-on or inspect its catalogs."""

    if verbose and quiet:
        raise click.ClickException("Cannot combine --verbose with --quiet.")
    configure_logging(verbose=verbose, quiet=quiet)
    params = cast(Dict[str, Any], ctx.ensure_object(dict))
    params["config_path"] = config_path


@main.command("serve")
@click.option("--host", default=None, help="Override [server].host.")
@click.option("--port", default=None, type=int, help="Override [server].port.")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Run the add-on HTTP server."""

    import uvicorn

    from .server import create_app

    params = cast(Dict[str, Any], ctx.ensure_object(dict))
    try:
        config = _load(params)
        if not config.tmdb.api_key:
            raise CLIAppError("Missing TMDB_API_KEY in environment")
    except CLIAppError as exc:
        _exit_with(exc)
        return
    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.server.log_level,
    )


@main.command("catalog")
@click.argument("media_type", type=click.Choice(["movie", "series"]))
@click.argument("catalog_id")
@click.option("--skip", default=0, type=click.IntRange(min=0), help="Offset into the catalog.")
@click.option("--search", default=None, help="Search text for the recommendations rails.")
@click.option("--json", "json_mode", is_flag=True, help="Emit the raw catalog response as JSON.")
@click.pass_context
def catalog_command(
    ctx: click.Context,
    media_type: str,
    catalog_id: str,
    skip: int,
    search: Optional[str],
    json_mode: bool,
) -> None:
    """Print one catalog window as the media client would receive it."""

    params = cast(Dict[str, Any], ctx.ensure_object(dict))
    extra: Dict[str, Any] = {"skip": skip}
    if search:
        extra["search"] = search

    async def _run(config: AppConfig) -> Dict[str, Any]:
        async with open_client(config.tmdb) as client:
            return await handle_catalog(client, config, media_type, catalog_id, extra)

    try:
        config = _load(params)
        response = asyncio.run(_run(config))
    except ConfigError as exc:
        _exit_with(CLIAppError(str(exc)))
        return
    except TMDBError as exc:
        _exit_with(CLIAppError(f"TMDB request failed: {exc}", code=3))
        return
    except CLIAppError as exc:
        _exit_with(exc)
        return

    if json_mode:
        click.echo(json.dumps(response, separators=(",", ":")))
        return
    render_metas(Console(), f"{media_type}/{catalog_id}", response["metas"], skip=skip)


@main.command("resolve")
@click.argument("identifier")
@click.option(
    "--type",
    "media_type",
    default="movie",
    type=click.Choice(["movie", "series"]),
    help="Type to prefer when an IMDb id matches both.",
)
@click.pass_context
def resolve_command(ctx: click.Context, identifier: str, media_type: str) -> None:
    """Map an IMDb, synthetic or recommendations id to its native TMDB reference."""

    params = cast(Dict[str, Any], ctx.ensure_object(dict))
    prefer = MediaType.parse(media_type)
    target = identifier.strip()
    recs = parse_recs_id(target)
    if recs is not None:
        prefer, target = recs

    ref: Optional[NativeRef] = parse_synthetic_id(target)
    if ref is None and is_imdb_id(target):

        async def _run(config: AppConfig) -> Optional[NativeRef]:
            async with open_client(config.tmdb) as client:
                return await resolve_native_ref(client, target, prefer=prefer)

        try:
            ref = asyncio.run(_run(_load(params)))
        except ConfigError as exc:
            _exit_with(CLIAppError(str(exc)))
            return
        except CLIAppError as exc:
            _exit_with(exc)
            return

    if ref is None:
        _exit_with(CLIAppError(f"No TMDB match for {identifier}", code=2))
        return
    click.echo(f"{ref.media_type.value} {ref.media_type.tmdb_path}/{ref.tmdb_id}")
