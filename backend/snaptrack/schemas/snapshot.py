"""Snapshot transport schema.

`SnapshotRecord` is the shape shared by the lookup API, the bootstrap
payload and the client cache. The wire form uses camelCase for
`createdAt`, everything else keeps its column name.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SnapshotRecord(BaseModel):
    """Immutable client-side view of a snapshot row."""

    model_config = ConfigDict(
        frozen=True,
        from_attributes=True,
        populate_by_name=True,
    )

    id: str
    title: str
    url: str
    favicon: bool = False
    ready: bool = False
    # `files` is unreliable and `size` absent until `ready` is true.
    files: int = Field(default=0, ge=0)
    size: int | None = Field(default=None, ge=0)
    created_at: datetime = Field(alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        # Some drivers (sqlite) hand back naive values for timezone columns.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


def encode_snapshot(record: SnapshotRecord) -> dict[str, Any]:
    """JSON-safe payload; datetimes keep microsecond precision and offset."""
    return record.model_dump(mode="json", by_alias=True)


def decode_snapshot(payload: dict[str, Any]) -> SnapshotRecord:
    return SnapshotRecord.model_validate(payload)
