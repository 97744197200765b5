from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from snaptrack.db import Base
from snaptrack.models.snapshot import Snapshot
from snaptrack.store import SqlSnapshotStore


@pytest.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        session.add(
            Snapshot(
                id="abc123",
                title="Example Domain",
                url="https://example.com",
                favicon=True,
                ready=True,
                files=3,
                size=204800,
                created_at=datetime(2024, 5, 1, 12, 0, 0, 250000, tzinfo=timezone.utc),
            )
        )
        await session.commit()
    yield factory
    await engine.dispose()


async def test_find_by_id_returns_record(session_factory) -> None:
    store = SqlSnapshotStore(session_factory)
    record = await store.find_by_id("abc123")
    assert record is not None
    assert record.ready is True
    assert record.size == 204800
    assert record.favicon is True
    assert record.created_at == datetime(2024, 5, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)


async def test_find_by_id_missing_returns_none(session_factory) -> None:
    store = SqlSnapshotStore(session_factory)
    assert await store.find_by_id("missing") is None


async def test_delete_by_id(session_factory) -> None:
    store = SqlSnapshotStore(session_factory)
    assert await store.delete_by_id("abc123") is True
    assert await store.find_by_id("abc123") is None
    assert await store.delete_by_id("abc123") is False


async def test_new_rows_get_uuid_ids(session_factory) -> None:
    async with session_factory() as session:
        row = Snapshot(title="Pending", url="https://example.org", created_at=datetime.now(timezone.utc))
        session.add(row)
        await session.commit()
    assert len(row.id) == 36
    record = await SqlSnapshotStore(session_factory).find_by_id(row.id)
    assert record is not None
    assert record.ready is False
    assert record.size is None
