"""Snapshot model — archived web page record."""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from snaptrack.db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Snapshot(Base):
    """Archived page. `ready` flips once the archiver finishes, never back."""

    __tablename__ = "snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False, index=True)
    favicon: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ready: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    files: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    size: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True, comment="Total bytes, set when ready"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Snapshot id={self.id} ready={self.ready} url={self.url[:60]!r}>"
