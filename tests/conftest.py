"""
Shared fixtures: fake blob store, SQLite (aiosqlite) database, wired-up engine components.
"""

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from app.db.base import Base, create_engine_for, create_session_factory
from app.db import models  # noqa: F401 - register tables
from app.services.blob_persistence import BlobPersistence
from app.services.garbage_collector import GarbageCollector
from app.services.project_store import ProjectStore
from app.services.relational_sync import RelationalSync
from fakes import FakeBlobStore


@pytest.fixture
def store():
    return FakeBlobStore()


@pytest.fixture
def codec(store):
    return store.codec


@pytest_asyncio.fixture
async def session_factory():
    engine = create_engine_for("sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def relational(session_factory):
    return RelationalSync(session_factory)


@pytest.fixture
def persistence(store, tmp_path):
    return BlobPersistence(store, media_root=str(tmp_path))


@pytest.fixture
def collector(store):
    return GarbageCollector(store, batch_size=1000, page_size=100)


@pytest.fixture
def project_store(relational, persistence, collector):
    return ProjectStore(sync=relational, persistence=persistence, collector=collector)
