"""Snapshot store — persistent lookup/delete by id.

The tracker only depends on the `SnapshotStore` protocol; the SQL
implementation backs the FastAPI routes.
"""
from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from snaptrack.models.snapshot import Snapshot
from snaptrack.schemas.snapshot import SnapshotRecord

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    async def find_by_id(self, snapshot_id: str) -> SnapshotRecord | None: ...

    async def delete_by_id(self, snapshot_id: str) -> bool: ...


class SqlSnapshotStore:
    """`SnapshotStore` over the async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_by_id(self, snapshot_id: str) -> SnapshotRecord | None:
        async with self._session_factory() as session:
            row = (
                await session.execute(select(Snapshot).where(Snapshot.id == snapshot_id).limit(1))
            ).scalar()
        if row is None:
            return None
        return SnapshotRecord.model_validate(row)

    async def delete_by_id(self, snapshot_id: str) -> bool:
        """Delete the row; returns `False` when nothing matched."""
        async with self._session_factory() as session:
            result = await session.execute(delete(Snapshot).where(Snapshot.id == snapshot_id))
            await session.commit()
        deleted = bool(result.rowcount)
        if deleted:
            logger.info("Snapshot deleted", extra={"snapshot_id": snapshot_id})
        return deleted
