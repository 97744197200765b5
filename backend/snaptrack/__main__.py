"""Watch a snapshot from the command line.

    python -m snaptrack watch <snapshot-id> [--base-url URL] [--until-ready]

Bootstraps from the page route, then follows the polling entry and logs
every state change as JSON.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from snaptrack.config import settings
from snaptrack.errors import BootstrapError
from snaptrack.logging_config import setup_logging
from snaptrack.polling import EntryState
from snaptrack.query_cache import QueryCache
from snaptrack.remote import SnapshotApiClient
from snaptrack.tracker import SnapshotTracker
from snaptrack.view import PageState, page_state

logger = logging.getLogger("snaptrack.cli")

EXIT_READY = 0
EXIT_FAILED = 1
EXIT_NOT_FOUND = 2


def _log_state(state: EntryState) -> None:
    data = state.data
    logger.info(
        "Snapshot state",
        extra={
            "snapshot_id": state.snapshot_id,
            "status": state.status.value,
            "page": page_state(state).value,
            "ready": data.ready if data else None,
            "files": data.files if data and data.ready else None,
            "size": data.size if data and data.ready else None,
            "error": str(state.error) if state.error else None,
        },
    )


async def watch(
    client: SnapshotApiClient,
    snapshot_id: str,
    *,
    until_ready: bool,
    short_interval_s: float | None = None,
) -> int:
    try:
        bootstrap = await client.fetch_page_data(snapshot_id)
    except BootstrapError as exc:
        logger.error("Bootstrap failed for %s: %s", snapshot_id, exc)
        return EXIT_FAILED

    tracker = SnapshotTracker(client, QueryCache(), short_interval_s=short_interval_s)
    sub = tracker.open(bootstrap)
    if sub is None:
        logger.error("Snapshot %s not found", snapshot_id)
        return EXIT_NOT_FOUND

    try:
        with sub:
            _log_state(sub.state)
            if until_ready and page_state(sub.state) is PageState.READY:
                return EXIT_READY
            async for state in sub:
                _log_state(state)
                current = page_state(state)
                if current is PageState.NOT_FOUND:
                    return EXIT_NOT_FOUND
                if until_ready and current is PageState.READY:
                    return EXIT_READY
    finally:
        tracker.close()
    return EXIT_READY


async def _run(args: argparse.Namespace) -> int:
    async with SnapshotApiClient(args.base_url) as client:
        return await watch(client, args.snapshot_id, until_ready=args.until_ready)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="snaptrack", description="Snapshot status tracker")
    sub = parser.add_subparsers(dest="command", required=True)
    watch_p = sub.add_parser("watch", help="Follow a snapshot until interrupted")
    watch_p.add_argument("snapshot_id")
    watch_p.add_argument("--base-url", default=settings.API_BASE_URL)
    watch_p.add_argument("--until-ready", action="store_true", help="Exit once the snapshot is ready")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    setup_logging(stream=sys.stderr)
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return EXIT_READY


if __name__ == "__main__":
    raise SystemExit(main())
