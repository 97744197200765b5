"""Error taxonomy for snapshot tracking.

Transient fetch errors are recovered by the polling loop; not-found and
mutation errors are surfaced to the user; precondition errors never reach
the network.
"""
from __future__ import annotations


class SnaptrackError(Exception):
    """Base class for every error raised by this package."""


class SnapshotNotFound(SnaptrackError):
    """Lookup found no snapshot for the id."""

    def __init__(self, snapshot_id: str):
        super().__init__(f"Snapshot {snapshot_id!r} not found")
        self.snapshot_id = snapshot_id


class TransientFetchError(SnaptrackError):
    """A status poll failed (network, timeout, 5xx, bad payload)."""


class MutationError(SnaptrackError):
    """A delete request failed. `message` is the server text when one was sent."""

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        super().__init__(message or "Mutation request failed")
        self.message = message
        self.status_code = status_code


class PreconditionError(SnaptrackError):
    """An action was attempted without the cached data it requires."""


class BootstrapError(SnaptrackError):
    """The snapshot store failed during server-side bootstrap."""
