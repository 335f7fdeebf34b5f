"""ASGI application factory for packhub.

``create_app`` wires the storage core (resolver, chunk assembler, garbage
collector and their shared per-filename locks) into ``app.state`` and mounts
the API controllers under ``settings.api_url``.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from advanced_alchemy.config import EngineConfig
from advanced_alchemy.extensions.litestar import (
    AsyncSessionConfig,
    SQLAlchemyAsyncConfig,
    SQLAlchemyPlugin,
)
from litestar import Litestar, Router
from litestar.exceptions import NotFoundException
from litestar.middleware import DefineMiddleware
from litestar.static_files import create_static_files_router
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packhub.auth.api_key import ensure_api_token
from packhub.config import Settings, get_settings
from packhub.controllers import AuthController, PackController, UploadController, UsernameController
from packhub.db import models  # noqa: F401 - register models on Base
from packhub.db.base import Base
from packhub.db.services.pack_service import count_asset_references
from packhub.lib import observability
from packhub.lib.exceptions import EXCEPTION_HANDLERS
from packhub.lib.logging_cfg import configure_logging
from packhub.lib.storage import BlobPathResolver, ChunkAssembler, GarbageCollector, KeyedLock
from packhub.lib.storage.base import STAGING_DIRNAME
from packhub.middleware.rate_limit import RateLimitMiddleware
from packhub.middleware.request_log import RequestLogMiddleware

logger = logging.getLogger(__name__)


def build_db_config(settings: Settings) -> SQLAlchemyAsyncConfig:
    """Build the SQLAlchemy async database configuration."""
    if "sqlite" in settings.db.url:
        engine_config = EngineConfig(echo=settings.db.echo)
    else:
        engine_config = EngineConfig(
            pool_size=settings.db.pool_size,
            max_overflow=settings.db.pool_overflow,
            pool_timeout=settings.db.pool_timeout,
            pool_pre_ping=settings.db.pool_pre_ping,
            echo=settings.db.echo,
        )

    return SQLAlchemyAsyncConfig(
        connection_string=settings.db.url,
        metadata=Base.metadata,
        create_all=True,
        session_config=AsyncSessionConfig(expire_on_commit=False),
        engine_config=engine_config,
    )


def make_reference_counter(session_maker: async_sessionmaker[AsyncSession]):
    """Reference counter for the collector, using its own short-lived session."""

    async def count(filename: str) -> int:
        async with session_maker() as session:
            return await count_asset_references(session, filename)

    return count


def build_storage(settings: Settings, session_maker: async_sessionmaker[AsyncSession]):
    """Create the resolver, assembler and collector sharing one lock registry."""
    resolver = BlobPathResolver(Path(settings.storage.base_path))
    resolver.ensure_layout()
    locks = KeyedLock()
    assembler = ChunkAssembler(resolver, locks)
    collector = GarbageCollector(resolver, make_reference_counter(session_maker), locks)
    return resolver, locks, assembler, collector


async def _sweep_loop(assembler: ChunkAssembler, interval: int, max_age: int) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await assembler.sweep_staging(max_age)
        except OSError:
            logger.warning("Staging sweep failed", exc_info=True)


def staging_sweeper(settings: Settings):
    """Lifespan hook running the periodic staging sweep."""

    @asynccontextmanager
    async def lifespan(app: Litestar) -> AsyncIterator[None]:
        interval = settings.storage.sweep_interval
        task = None
        if interval > 0:
            task = asyncio.create_task(
                _sweep_loop(app.state.assembler, interval, settings.storage.staging_max_age)
            )
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    return lifespan


def build_middleware(settings: Settings) -> list:
    middleware = []
    if settings.logging.request_log:
        middleware.append(DefineMiddleware(RequestLogMiddleware))
    if settings.rate_limit.enabled:
        api_url = settings.api_url.rstrip("/")
        middleware.append(
            DefineMiddleware(
                RateLimitMiddleware,
                paths=[f"{api_url}{p}" for p in settings.rate_limit.paths],
                requests=settings.rate_limit.requests,
                window=settings.rate_limit.window,
            )
        )
    return middleware


UPLOADS_PATH = "/uploads"


def _add_cors_resource_policy(response):
    response.set_header("Cross-Origin-Resource-Policy", "cross-origin")
    return response


def _hide_staging(connection, _) -> None:
    """Keep in-progress chunk uploads out of the static file tree."""
    relative = connection.scope["path"][len(UPLOADS_PATH):]
    top = posixpath.normpath("/" + relative).lstrip("/").split("/", 1)[0]
    if top == STAGING_DIRNAME:
        raise NotFoundException()


def create_app(settings: Settings | None = None) -> Litestar:
    settings = settings or get_settings()
    configure_logging(settings)
    observability.configure(settings)

    db_config = build_db_config(settings)
    session_maker = db_config.create_session_maker()
    resolver, locks, assembler, collector = build_storage(settings, session_maker)

    api = Router(
        path=settings.api_url,
        route_handlers=[PackController, UploadController, UsernameController, AuthController],
    )
    uploads = create_static_files_router(
        path=UPLOADS_PATH,
        directories=[resolver.base_path],
        guards=[_hide_staging],
        after_request=_add_cors_resource_policy,
    )

    app = Litestar(
        route_handlers=[api, uploads],
        plugins=[SQLAlchemyPlugin(config=db_config)],
        middleware=build_middleware(settings),
        exception_handlers=EXCEPTION_HANDLERS,
        lifespan=[staging_sweeper(settings)],
        request_max_body_size=settings.storage.max_request_size,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.resolver = resolver
    app.state.locks = locks
    app.state.assembler = assembler
    app.state.collector = collector
    app.state.api_token = ensure_api_token(Path(settings.auth.token_path))
    app.state.api_key_header = settings.auth.header

    if observability.is_available():
        observability.instrument_sqlalchemy(db_config.get_engine())
    return app
