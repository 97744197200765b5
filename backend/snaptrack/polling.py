"""Polling cache entry — per-snapshot state with an adaptive refetch timer.

Each entry owns one `loop.call_later` timer that is re-armed after every
completed fetch. The delay is chosen from the data just observed: short
while the archive is still processing, long once it is ready (the long
poll only catches out-of-band changes). Errors never stop the loop.

Everything runs on the event loop thread; the only concurrency guard
needed is "one fetch task per entry".
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

from snaptrack.config import settings
from snaptrack.errors import SnapshotNotFound, TransientFetchError
from snaptrack.metrics import POLL_FETCH_LATENCY_SECONDS, POLL_FETCHES_TOTAL
from snaptrack.schemas.snapshot import SnapshotRecord

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[SnapshotRecord]]


class EntryStatus(str, enum.Enum):
    SEEDED = "seeded"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    # A poll answered 404: the snapshot was removed by someone else.
    DELETED = "deleted"


@dataclass(frozen=True)
class EntryState:
    """What subscribers see. `data` survives errors."""

    snapshot_id: str
    status: EntryStatus
    data: SnapshotRecord | None
    error: Exception | None = None
    is_fetching: bool = False
    updated_at: datetime | None = None

    @property
    def is_success(self) -> bool:
        return self.data is not None and self.status in (EntryStatus.SEEDED, EntryStatus.SUCCESS)


Listener = Callable[[EntryState], None]


def refetch_interval(
    data: SnapshotRecord | None,
    *,
    short_s: float | None = None,
    long_s: float | None = None,
) -> float:
    """Seconds until the next poll given the last known data."""
    if data is None or not data.ready:
        return settings.POLL_SHORT_INTERVAL_S if short_s is None else short_s
    return settings.POLL_LONG_INTERVAL_S if long_s is None else long_s


class PollingEntry:
    """Last known state of one snapshot plus the timer that keeps it fresh."""

    def __init__(
        self,
        snapshot_id: str,
        fetcher: Fetcher,
        *,
        seed: SnapshotRecord | None = None,
        short_interval_s: float | None = None,
        long_interval_s: float | None = None,
    ):
        self.snapshot_id = snapshot_id
        self._fetcher = fetcher
        self._loop = asyncio.get_running_loop()
        self._short_s = short_interval_s
        self._long_s = long_interval_s

        self._data = seed
        self._error: Exception | None = None
        self._status = EntryStatus.SEEDED if seed is not None else EntryStatus.PENDING
        self._updated_at: datetime | None = datetime.now(timezone.utc) if seed is not None else None

        self._listeners: list[Listener] = []
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._started = False
        self._closed = False

        self.last_interval: float | None = None
        self.fetch_count = 0

    # ── lifecycle ──

    def start(self) -> None:
        """Begin polling. A seeded entry waits one interval; an empty one fetches now."""
        if self._started or self._closed:
            return
        self._started = True
        if self._status is EntryStatus.SEEDED:
            self._schedule()
        else:
            self.tick()

    def close(self) -> None:
        """Cancel the pending timer; a fetch still in flight will be discarded."""
        if self._closed:
            return
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._listeners.clear()
        logger.debug("Polling entry %s closed", self.snapshot_id)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_fetching(self) -> bool:
        return self._task is not None

    @property
    def has_pending_tick(self) -> bool:
        return self._timer is not None

    # ── subscribers ──

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> int:
        """Detach `listener`; returns how many listeners remain."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass
        return len(self._listeners)

    @property
    def state(self) -> EntryState:
        return EntryState(
            snapshot_id=self.snapshot_id,
            status=self._status,
            data=self._data,
            error=self._error,
            is_fetching=self.is_fetching,
            updated_at=self._updated_at,
        )

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Listener failed for snapshot %s", self.snapshot_id)

    # ── scheduling ──

    def tick(self) -> None:
        """Start a fetch unless one is already running (coalesced, not queued)."""
        if self._closed or self._task is not None:
            return
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._status is not EntryStatus.DELETED:
            self._status = EntryStatus.PENDING
        self._task = self._loop.create_task(self._fetch())

    def _schedule(self) -> None:
        if self._closed or self._status is EntryStatus.DELETED:
            return
        interval = refetch_interval(self._data, short_s=self._short_s, long_s=self._long_s)
        self.last_interval = interval
        self._timer = self._loop.call_later(interval, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.tick()

    async def _fetch(self) -> None:
        started = self._loop.time()
        self.fetch_count += 1
        try:
            record = await self._fetcher(self.snapshot_id)
        except SnapshotNotFound:
            self._task = None
            if self._closed:
                return
            POLL_FETCHES_TOTAL.labels(outcome="not_found").inc()
            self._on_not_found()
            return
        except asyncio.CancelledError:
            self._task = None
            raise
        except Exception as exc:
            self._task = None
            if self._closed:
                return
            POLL_FETCHES_TOTAL.labels(outcome="error").inc()
            self._on_error(exc)
            return
        finally:
            POLL_FETCH_LATENCY_SECONDS.observe(self._loop.time() - started)

        self._task = None
        if self._closed:
            return
        POLL_FETCHES_TOTAL.labels(outcome="success").inc()
        self._on_success(record)

    def _on_success(self, record: SnapshotRecord) -> None:
        if self._data is not None and self._data.ready and not record.ready:
            # Stores must keep `ready` monotonic; the client just follows the flag.
            logger.warning("Snapshot %s reported ready=false after ready=true", self.snapshot_id)
        self._data = record
        self._error = None
        self._status = EntryStatus.SUCCESS
        self._updated_at = datetime.now(timezone.utc)
        self._schedule()
        self._notify()

    def _on_error(self, exc: Exception) -> None:
        if not isinstance(exc, TransientFetchError):
            logger.error("Unexpected error polling snapshot %s", self.snapshot_id, exc_info=exc)
            exc = TransientFetchError(str(exc) or type(exc).__name__)
        else:
            logger.warning("Polling snapshot %s failed: %s", self.snapshot_id, exc)
        self._error = exc
        self._status = EntryStatus.ERROR
        self._schedule()
        self._notify()

    def _on_not_found(self) -> None:
        logger.info("Snapshot %s no longer exists; polling stopped", self.snapshot_id)
        self._error = SnapshotNotFound(self.snapshot_id)
        self._status = EntryStatus.DELETED
        self._notify()
