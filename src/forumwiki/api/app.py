"""FastAPI application factory for the forumwiki REST API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from forumwiki.core.errors import (
    ForbiddenError,
    ForumError,
    NotFoundError,
    StorageError,
    ValidationFailedError,
    WorkflowError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from forumwiki.config.schema import ForumWikiConfig

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan handler: set up DB + service on startup, tear down on shutdown."""
    from forumwiki.core.retry import RetryConfig
    from forumwiki.service.forum import ForumService
    from forumwiki.storage.database import create_db
    from forumwiki.storage.uniqid import IdentifierGenerator

    config: ForumWikiConfig = app.state.config
    factory, engine = await create_db(config.database)
    ids = IdentifierGenerator(
        factory,
        retry=RetryConfig(
            max_attempts=config.identifiers.max_attempts,
            base_delay=config.identifiers.base_delay,
        ),
    )

    app.state.db_factory = factory
    app.state.engine = engine
    app.state.forum_service = ForumService(factory, ids, config.forum)

    yield

    await engine.dispose()


def _status_for(exc: ForumError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ForbiddenError):
        return 403
    if isinstance(exc, ValidationFailedError):
        return 422
    if isinstance(exc, WorkflowError):
        return 409
    if isinstance(exc, StorageError):
        return 503
    return 500


async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    """Translate forumwiki errors into JSON error bodies."""
    status = _status_for(exc)
    body: dict[str, object] = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, WorkflowError):
        body["current_state"] = exc.current_state
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content=body)


def create_app(config: ForumWikiConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    from forumwiki import __version__
    from forumwiki.config.loader import load_config

    if config is None:
        config = load_config()

    app = FastAPI(
        title="forumwiki",
        description="Forum with collaborative wiki merges",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ForumError, forum_error_handler)  # type: ignore[arg-type]

    from forumwiki.api.health import router as health_router
    from forumwiki.api.routes.forum import router as forum_router
    from forumwiki.api.routes.wiki import router as wiki_router

    app.include_router(health_router)
    app.include_router(forum_router)
    app.include_router(wiki_router)

    return app
