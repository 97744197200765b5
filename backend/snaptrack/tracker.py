"""Snapshot tracker — the API the presentation layer talks to.

`subscribe` hands out a `Subscription` backed by a shared `PollingEntry`
per snapshot id; the entry lives while at least one subscription is open.
`delete` layers the one-shot delete mutation on the same entries and
invalidates the shared `QueryCache` listing on success.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Literal

from snaptrack.bootstrap import BootstrapResult
from snaptrack.config import settings
from snaptrack.errors import MutationError, PreconditionError, SnaptrackError
from snaptrack.metrics import ACTIVE_POLLING_ENTRIES, SNAPSHOT_DELETES_TOTAL
from snaptrack.polling import EntryState, Listener, PollingEntry
from snaptrack.query_cache import SNAPSHOTS_KEY, QueryCache
from snaptrack.remote import SnapshotApiClient
from snaptrack.schemas.snapshot import SnapshotRecord

logger = logging.getLogger(__name__)

HOME_PATH = "/"
MISSING_SNAPSHOT_TEXT = "The snapshot doesn't seem to exist."
GENERIC_DELETE_FAILURE_TEXT = "Failed to delete the snapshot."
GENERIC_DELETE_SUCCESS_TEXT = "Deleted."


@dataclass(frozen=True)
class Toast:
    text: str
    kind: Literal["success", "error"] = "success"
    delay_s: float | None = None


@dataclass(frozen=True)
class DeleteOutcome:
    ok: bool
    message: str
    redirect_to: str | None = None
    error: SnaptrackError | None = None


def _log_toast(toast: Toast) -> None:
    log = logger.info if toast.kind == "success" else logger.warning
    log("Toast: %s", toast.text, extra={"toast_kind": toast.kind})


def _log_navigation(path: str) -> None:
    logger.info("Navigate to %s", path)


_CLOSED = object()


class Subscription:
    """Handle on one snapshot's polling entry.

    Use `state` for the current value, `listener` or `async for` for updates,
    and `unsubscribe()` (or the context manager) to detach.
    """

    def __init__(self, tracker: "SnapshotTracker", entry: PollingEntry, listener: Listener | None):
        self._tracker = tracker
        self._entry = entry
        self._listener = listener
        self._queue: asyncio.Queue[object] | None = None
        self.active = True

    @property
    def snapshot_id(self) -> str:
        return self._entry.snapshot_id

    @property
    def state(self) -> EntryState:
        return self._entry.state

    def _deliver(self, state: EntryState) -> None:
        # Queue first so a raising listener cannot drop the update from the stream.
        if self._queue is not None:
            self._queue.put_nowait(state)
        if self._listener is not None:
            self._listener(state)

    def _detach(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._queue is not None:
            self._queue.put_nowait(_CLOSED)

    def unsubscribe(self) -> None:
        if self.active:
            self._tracker._release(self)

    async def updates(self) -> AsyncIterator[EntryState]:
        """Yield each state the entry publishes until this subscription ends."""
        if self._queue is None:
            self._queue = asyncio.Queue()
            if not self.active:
                return
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]

    def __aiter__(self) -> AsyncIterator[EntryState]:
        return self.updates()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class SnapshotTracker:
    """Registry of polling entries keyed by snapshot id."""

    def __init__(
        self,
        client: SnapshotApiClient,
        cache: QueryCache,
        *,
        notify: Callable[[Toast], None] | None = None,
        navigate: Callable[[str], None] | None = None,
        short_interval_s: float | None = None,
        long_interval_s: float | None = None,
    ):
        self._client = client
        self._cache = cache
        self._notify = notify or _log_toast
        self._navigate = navigate or _log_navigation
        self._short_s = short_interval_s
        self._long_s = long_interval_s
        self._entries: dict[str, PollingEntry] = {}
        self._subscriptions: dict[str, list[Subscription]] = {}

    def __contains__(self, snapshot_id: str) -> bool:
        return snapshot_id in self._entries

    def entry(self, snapshot_id: str) -> PollingEntry | None:
        return self._entries.get(snapshot_id)

    def state(self, snapshot_id: str) -> EntryState | None:
        entry = self._entries.get(snapshot_id)
        return entry.state if entry else None

    def subscribe(
        self,
        snapshot_id: str,
        listener: Listener | None = None,
        *,
        seed: SnapshotRecord | None = None,
    ) -> Subscription:
        """Attach to the entry for `snapshot_id`, creating it on first use.

        `seed` only matters when the entry is created; later subscribers
        share whatever the entry already holds.
        """
        entry = self._entries.get(snapshot_id)
        created = entry is None
        if entry is None:
            entry = PollingEntry(
                snapshot_id,
                self._client.get_snapshot,
                seed=seed,
                short_interval_s=self._short_s,
                long_interval_s=self._long_s,
            )
            self._entries[snapshot_id] = entry
            ACTIVE_POLLING_ENTRIES.inc()

        sub = Subscription(self, entry, listener)
        entry.add_listener(sub._deliver)
        self._subscriptions.setdefault(snapshot_id, []).append(sub)
        if created:
            entry.start()
        return sub

    def open(self, bootstrap: BootstrapResult, listener: Listener | None = None) -> Subscription | None:
        """Subscribe from a bootstrap result; `None` means render the 404 state."""
        record = bootstrap.record() if bootstrap.found else None
        if record is None:
            return None
        return self.subscribe(record.id, listener, seed=record)

    def _release(self, sub: Subscription) -> None:
        snapshot_id = sub.snapshot_id
        sub._detach()
        subs = self._subscriptions.get(snapshot_id, [])
        if sub in subs:
            subs.remove(sub)
        entry = self._entries.get(snapshot_id)
        if entry is None:
            return
        if entry.remove_listener(sub._deliver) == 0:
            self._teardown(snapshot_id)

    def _teardown(self, snapshot_id: str) -> None:
        entry = self._entries.pop(snapshot_id, None)
        for sub in self._subscriptions.pop(snapshot_id, []):
            sub._detach()
        if entry is not None:
            entry.close()
            ACTIVE_POLLING_ENTRIES.dec()

    def close(self) -> None:
        """Tear down every entry, e.g. on client shutdown."""
        for snapshot_id in list(self._entries):
            self._teardown(snapshot_id)

    async def delete(self, snapshot_id: str) -> DeleteOutcome:
        """Delete a snapshot the user is currently viewing.

        Rejected locally when the entry holds no data. On success the
        snapshot listing is marked stale, the entry is torn down and the
        presentation layer is sent home. On failure nothing changes.
        """
        state = self.state(snapshot_id)
        if state is None or state.data is None:
            err = PreconditionError(MISSING_SNAPSHOT_TEXT)
            SNAPSHOT_DELETES_TOTAL.labels(outcome="precondition").inc()
            self._notify(Toast(MISSING_SNAPSHOT_TEXT, kind="error"))
            return DeleteOutcome(ok=False, message=MISSING_SNAPSHOT_TEXT, error=err)

        try:
            server_message = await self._client.delete_snapshot(snapshot_id)
        except MutationError as exc:
            text = exc.message or GENERIC_DELETE_FAILURE_TEXT
            SNAPSHOT_DELETES_TOTAL.labels(outcome="error").inc()
            logger.warning("Delete of snapshot %s failed: %s", snapshot_id, text)
            self._notify(Toast(text, kind="error", delay_s=settings.TOAST_DELAY_S))
            return DeleteOutcome(ok=False, message=text, error=exc)

        message = server_message or GENERIC_DELETE_SUCCESS_TEXT
        SNAPSHOT_DELETES_TOTAL.labels(outcome="success").inc()
        self._notify(Toast(message, delay_s=settings.TOAST_DELAY_S))
        self._cache.invalidate(SNAPSHOTS_KEY)
        self._teardown(snapshot_id)
        self._navigate(HOME_PATH)
        return DeleteOutcome(ok=True, message=message, redirect_to=HOME_PATH)
