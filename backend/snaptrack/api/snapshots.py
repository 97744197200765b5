"""Snapshot API — bootstrap page data, status lookup and delete action."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from snaptrack.bootstrap import bootstrap_snapshot
from snaptrack.db import async_session_factory
from snaptrack.schemas.snapshot import encode_snapshot
from snaptrack.store import SnapshotStore, SqlSnapshotStore

router = APIRouter(tags=["snapshots"])
logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Snapshot not found."


def get_store() -> SnapshotStore:
    """FastAPI dependency — overridden in tests."""
    return SqlSnapshotStore(async_session_factory)


class DeletePayload(BaseModel):
    uuid: str | None = None


@router.get("/snapshot/{slug}")
async def snapshot_page_data(slug: str, store: SnapshotStore = Depends(get_store)) -> Any:
    """Server-side bootstrap: seed payload for the detail page, or 404."""
    result = await bootstrap_snapshot(store, slug)
    if not result.found:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    return {"snapshot": result.payload}


@router.get("/api/snapshot/{snapshot_id}")
async def get_snapshot(snapshot_id: str, store: SnapshotStore = Depends(get_store)) -> Any:
    """Current snapshot state, polled by clients while it is processing."""
    record = await store.find_by_id(snapshot_id)
    if record is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    return encode_snapshot(record)


@router.post("/api/action/delete")
async def delete_snapshot(payload: DeletePayload, store: SnapshotStore = Depends(get_store)) -> Any:
    snapshot_id = (payload.uuid or "").strip()
    if not snapshot_id:
        raise HTTPException(status_code=400, detail="Missing snapshot uuid.")
    try:
        deleted = await store.delete_by_id(snapshot_id)
    except Exception as exc:
        logger.error("Delete failed for snapshot %s: %s", snapshot_id, exc)
        raise HTTPException(status_code=500, detail="Failed to delete the snapshot.") from exc
    if not deleted:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    return {"message": "Deleted."}
