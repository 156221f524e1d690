"""Main CLI application.

Click commands for forumwiki: serve, init-db, contributors, revisions,
graph.
"""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import click

from forumwiki import __version__
from forumwiki.config.loader import load_config
from forumwiki.core.errors import ConfigError, ForumError
from forumwiki.core.log import configure_logging

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from forumwiki.config.schema import ForumWikiConfig
    from forumwiki.service.forum import ForumService


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> ForumWikiConfig:
    """Load config with user-friendly error handling."""
    try:
        config = load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy
    configure_logging(config.logging)
    return config


def _build_service(
    config: ForumWikiConfig, factory: async_sessionmaker[AsyncSession]
) -> ForumService:
    from forumwiki.core.retry import RetryConfig
    from forumwiki.service.forum import ForumService
    from forumwiki.storage.uniqid import IdentifierGenerator

    ids = IdentifierGenerator(
        factory,
        retry=RetryConfig(
            max_attempts=config.identifiers.max_attempts,
            base_delay=config.identifiers.base_delay,
        ),
    )
    return ForumService(factory, ids, config.forum)


# ── Main group ───────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="forumwiki")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """forumwiki - Forum with collaborative wiki merges."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── init-db ──────────────────────────────────────────────────────


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create any missing tables in the configured database."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_init_db_async(config))
    except ForumError as e:
        _error(str(e))


async def _init_db_async(config: ForumWikiConfig) -> None:
    from forumwiki.storage.database import create_db

    _, engine = await create_db(config.database, create_tables=True)
    await engine.dispose()
    click.echo(f"Schema ready at {engine.url.render_as_string(hide_password=True)}")


# ── contributors ─────────────────────────────────────────────────


@cli.command()
@click.argument("topic_id")
@click.pass_context
def contributors(ctx: click.Context, topic_id: str) -> None:
    """Show summed contribution weights for TOPIC_ID."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_contributors_async(config, topic_id))
    except ForumError as e:
        _error(str(e))


async def _contributors_async(config: ForumWikiConfig, topic_id: str) -> None:
    from forumwiki.cli.display import ForumDisplay
    from forumwiki.storage.database import create_db

    factory, engine = await create_db(config.database)
    try:
        stats = await _build_service(config, factory).list_contributors(topic_id)
    finally:
        await engine.dispose()

    ForumDisplay().contributors(topic_id, stats)


# ── revisions ────────────────────────────────────────────────────


@cli.command()
@click.argument("topic_id")
@click.pass_context
def revisions(ctx: click.Context, topic_id: str) -> None:
    """List wiki revisions of TOPIC_ID, newest first."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_revisions_async(config, topic_id))
    except ForumError as e:
        _error(str(e))


async def _revisions_async(config: ForumWikiConfig, topic_id: str) -> None:
    from forumwiki.cli.display import ForumDisplay
    from forumwiki.storage.database import create_db

    factory, engine = await create_db(config.database)
    try:
        history = await _build_service(config, factory).list_wiki_revisions(
            topic_id
        )
    finally:
        await engine.dispose()

    ForumDisplay().revisions(topic_id, history)


# ── graph ────────────────────────────────────────────────────────


@cli.command()
@click.argument("topic_id")
@click.option(
    "--depth",
    type=int,
    default=None,
    help="Link hops to follow (default 2, capped at 5).",
)
@click.pass_context
def graph(ctx: click.Context, topic_id: str, depth: int | None) -> None:
    """Show topics linked from TOPIC_ID."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_graph_async(config, topic_id, depth))
    except ForumError as e:
        _error(str(e))


async def _graph_async(
    config: ForumWikiConfig, topic_id: str, depth: int | None
) -> None:
    from forumwiki.cli.display import ForumDisplay
    from forumwiki.storage.database import create_db

    factory, engine = await create_db(config.database)
    service = _build_service(config, factory)
    try:
        doc_graph = await service.get_doc_graph(topic_id, depth)
    finally:
        await engine.dispose()

    ForumDisplay().graph(topic_id, service.graph_depth(depth), doc_graph)


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Host to bind to.")
@click.option("--port", type=int, default=None, help="Port to listen on.")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload (dev).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    from forumwiki.api.app import create_app

    config = _load_config(ctx.obj["config_path"])

    effective_host = host or config.api.host
    effective_port = port or config.api.port
    click.echo(f"API: http://{effective_host}:{effective_port}/api")

    app = create_app(config)
    uvicorn.run(
        app,
        host=effective_host,
        port=effective_port,
        reload=reload,
    )
