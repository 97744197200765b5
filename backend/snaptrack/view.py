"""View-model helpers: what the snapshot page should show for a given state."""
from __future__ import annotations

import enum
from datetime import datetime, tzinfo

from snaptrack.config import settings
from snaptrack.polling import EntryState, EntryStatus
from snaptrack.schemas.snapshot import SnapshotRecord

_BYTE_UNITS = ("B", "kB", "MB", "GB", "TB", "PB")


class PageState(str, enum.Enum):
    NOT_FOUND = "not_found"
    PROCESSING = "processing"
    READY = "ready"
    FETCH_ERROR = "fetch_error"


def page_state(state: EntryState | None) -> PageState:
    """`None` is the bootstrap not-found case: no entry was ever created."""
    if state is None or state.status is EntryStatus.DELETED:
        return PageState.NOT_FOUND
    if state.data is None:
        # Only reachable before the first fetch lands, or when it failed.
        return PageState.FETCH_ERROR if state.status is EntryStatus.ERROR else PageState.PROCESSING
    return PageState.READY if state.data.ready else PageState.PROCESSING


def page_title(state: EntryState | None) -> str:
    if state is None or state.data is None or state.status is EntryStatus.DELETED:
        return "404"
    return state.data.title


def files_label(files: int) -> str:
    return f"{files} file{'' if files == 1 else 's'}"


def created_label(created_at: datetime, tz: tzinfo | None = None) -> str:
    """Long date plus short time, e.g. `May 1, 2024 at 12:00 PM`.

    Rendered in `tz` when given, otherwise in the timestamp's own offset.
    """
    local = created_at.astimezone(tz) if tz is not None else created_at
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local:%B} {local.day}, {local.year} at {hour}:{local.minute:02d} {meridiem}"


def size_label(size: int | None) -> str:
    """Human readable byte count, decimal units, three significant digits (`205 kB`)."""
    if size is None:
        return "-"
    if abs(size) < 1000:
        return f"{size} B"
    value = float(size)
    for unit in _BYTE_UNITS[1:]:
        value /= 1000
        rounded = float(f"{value:.3g}")
        if abs(rounded) < 1000 or unit == _BYTE_UNITS[-1]:
            return f"{rounded:g} {unit}"
    return f"{size} B"


def preview_urls(record: SnapshotRecord, static_url: str | None = None) -> dict[str, str]:
    base = (static_url or settings.STATIC_URL).rstrip("/")
    urls = {
        "view": f"{base}/view/{record.id}",
        "screenshot": f"{base}/ext/{record.id}/screenshot.png",
    }
    if record.favicon:
        urls["favicon"] = f"{base}/ext/{record.id}/favicon.ico"
    return urls
