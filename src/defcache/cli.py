from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Optional

import typer

from .logging import setup_logging
from .settings import get_cache_settings
from .stores import store_from_settings

app = typer.Typer(no_args_is_help=True, add_completion=False)

logger = logging.getLogger(__name__)


@app.callback()
def main(
        log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
        log_format: Optional[str] = typer.Option(None, help="plain or json; defaults by environment"),
):
    """Inspect defcache configuration and check the configured store."""
    setup_logging(level=log_level, fmt=log_format)


@app.command("settings")
def show_settings():
    """Print the resolved settings as JSON."""
    typer.echo(json.dumps(get_cache_settings().model_dump(), indent=2))


async def _probe(store) -> None:
    key = f"defcache:probe:{uuid.uuid4().hex}"
    await store.set(key, {"ok": True}, 5)
    value = await store.get(key)
    await store.delete(key)
    if value != {"ok": True}:
        raise RuntimeError(f"probe read back {value!r}")


@app.command("probe")
def probe(
        store: Optional[str] = typer.Option(None, help="memory, null or redis; defaults to DEFCACHE_STORE"),
        redis_url: Optional[str] = typer.Option(None, help="Override DEFCACHE_REDIS_URL"),
        namespace: Optional[str] = typer.Option(None, help="Override DEFCACHE_NAMESPACE"),
):
    """Round-trip a value through the configured store."""
    settings = get_cache_settings(store=store, redis_url=redis_url, namespace=namespace)
    adapter = store_from_settings(settings)
    if settings.store == "null":
        typer.echo(f"{adapter}: nothing to probe")
        return
    try:
        asyncio.run(_probe(adapter))
    except Exception as exc:
        logger.debug("probe failed", exc_info=True)
        typer.secho(f"{adapter}: FAILED ({exc})", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho(f"{adapter}: OK", fg=typer.colors.GREEN)
