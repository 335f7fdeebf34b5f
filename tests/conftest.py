"""Shared pytest fixtures."""

import pytest
from litestar.testing import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import packhub.db.models  # noqa: F401 - register all models on Base
from packhub.config import AuthConfig, DatabaseConfig, LoggingConfig, Settings, StorageConfig
from packhub.db.base import Base
from packhub.lib.storage import BlobPathResolver, KeyedLock


@pytest.fixture
def resolver(tmp_path):
    """Resolver over an empty upload tree."""
    resolver = BlobPathResolver(tmp_path / "uploads")
    resolver.ensure_layout()
    return resolver


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
async def session_maker(tmp_path):
    """Session factory bound to a fresh SQLite database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def settings(tmp_path):
    """Settings pointing every path into the test's temp directory."""
    return Settings(
        db=DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}"),
        storage=StorageConfig(base_path=str(tmp_path / "uploads"), sweep_interval=0),
        auth=AuthConfig(token_path=str(tmp_path / "apiToken" / "apiToken.json")),
        logging=LoggingConfig(request_log=None),
    )


@pytest.fixture
def app(settings):
    from packhub.asgi import create_app

    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers(app):
    return {"x-api-key": app.state.api_token}
