import asyncio
import os

# Must be set before the app is imported so the module-level engine uses SQLite
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_board.db")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from bulletin.database import get_db
from bulletin.main import app
from bulletin.models import Base
from bulletin.services.file_service import PostFileService, get_file_service
from bulletin.services.file_storage import FileStorageConfig, LocalFileStorage

TEST_DB_URL = "sqlite+aiosqlite:///./test_board.db"

# Every TestClient request runs on a fresh event loop, so connections are never pooled
engine = create_async_engine(TEST_DB_URL, poolclass=NullPool)
TestingSession = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def override_get_db():
    async with TestingSession() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


async def _create_all():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _drop_all():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def setup_db():
    asyncio.run(_create_all())
    yield
    asyncio.run(_drop_all())


@pytest.fixture(autouse=True)
def upload_dir(tmp_path):
    """Attachments go to a per-test directory."""
    directory = tmp_path / "uploads"
    service = PostFileService(LocalFileStorage(FileStorageConfig(upload_dir=str(directory))))
    app.dependency_overrides[get_file_service] = lambda: service
    yield directory
    app.dependency_overrides.pop(get_file_service, None)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def run_db():
    """Run `fn(session)` on its own session and event loop, returning its result."""

    def _run(fn):
        async def _inner():
            async with TestingSession() as session:
                return await fn(session)

        return asyncio.run(_inner())

    return _run


def create_post(client, title="Hello", content="First post", author="alice", **extra) -> dict:
    resp = client.post("/api/posts", json={"title": title, "content": content, "author": author, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_notice(client, title="Notice", content="Read me", author="admin", **extra) -> dict:
    resp = client.post("/api/notices", json={"title": title, "content": content, "author": author, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()
