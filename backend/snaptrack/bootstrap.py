"""Initial-state bootstrap.

One lookup per navigation, run server-side before the first render. The
encoded payload seeds the client's polling entry so the page never shows a
loading flash, and a missing snapshot is resolved to 404 up front.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from snaptrack.errors import BootstrapError
from snaptrack.metrics import BOOTSTRAP_LOOKUPS_TOTAL
from snaptrack.schemas.snapshot import SnapshotRecord, decode_snapshot, encode_snapshot

if TYPE_CHECKING:
    from snaptrack.store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapResult:
    found: bool
    payload: dict[str, Any] | None = None

    def record(self) -> SnapshotRecord | None:
        if self.payload is None:
            return None
        return decode_snapshot(self.payload)


async def bootstrap_snapshot(store: SnapshotStore, slug: str) -> BootstrapResult:
    """Look the snapshot up exactly once. No retries."""
    try:
        record = await store.find_by_id(slug)
    except Exception as exc:
        BOOTSTRAP_LOOKUPS_TOTAL.labels(outcome="error").inc()
        logger.error("Bootstrap lookup failed for %s: %s", slug, exc)
        raise BootstrapError(f"Snapshot lookup failed for {slug!r}") from exc

    if record is None:
        BOOTSTRAP_LOOKUPS_TOTAL.labels(outcome="not_found").inc()
        return BootstrapResult(found=False)

    BOOTSTRAP_LOOKUPS_TOTAL.labels(outcome="found").inc()
    return BootstrapResult(found=True, payload=encode_snapshot(record))
