"""HTTP adapters for snapshot status polling and deletion."""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from snaptrack.bootstrap import BootstrapResult
from snaptrack.config import settings
from snaptrack.errors import BootstrapError, MutationError, SnapshotNotFound, TransientFetchError
from snaptrack.schemas.snapshot import SnapshotRecord, decode_snapshot

logger = logging.getLogger(__name__)

DELETE_PATH = "/api/action/delete"


def _snapshot_path(snapshot_id: str) -> str:
    return f"/api/snapshot/{snapshot_id}"


def _page_path(slug: str) -> str:
    return f"/snapshot/{slug}"


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


class SnapshotApiClient:
    """Stateless wrapper over the snapshot API. Owns its httpx client unless one is passed."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout_s: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout_s if timeout_s is not None else settings.HTTP_TIMEOUT_S,
        )

    async def get_snapshot(self, snapshot_id: str) -> SnapshotRecord:
        """Current state of one snapshot.

        Raises `SnapshotNotFound` on 404 and `TransientFetchError` for any
        other failure, timeouts included.
        """
        try:
            resp = await self._client.get(_snapshot_path(snapshot_id))
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code == 404:
            raise SnapshotNotFound(snapshot_id)
        try:
            resp.raise_for_status()
            return decode_snapshot(resp.json())
        except (httpx.HTTPStatusError, ValueError, ValidationError) as exc:
            raise TransientFetchError(f"{type(exc).__name__}: {exc}") from exc

    async def fetch_page_data(self, slug: str) -> BootstrapResult:
        """Bootstrap payload from the server-side page route."""
        try:
            resp = await self._client.get(_page_path(slug))
        except httpx.HTTPError as exc:
            raise BootstrapError(f"{type(exc).__name__}: {exc}") from exc
        if resp.status_code == 404:
            return BootstrapResult(found=False)
        try:
            resp.raise_for_status()
            payload = resp.json()["snapshot"]
            decode_snapshot(payload)
        except (httpx.HTTPStatusError, ValueError, KeyError, TypeError, ValidationError) as exc:
            raise BootstrapError(f"{type(exc).__name__}: {exc}") from exc
        return BootstrapResult(found=True, payload=payload)

    async def delete_snapshot(self, snapshot_id: str) -> str | None:
        """Issue one delete request; returns the server's success message, if it sent one."""
        payload: dict[str, Any] = {"uuid": snapshot_id}
        try:
            resp = await self._client.post(DELETE_PATH, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Delete request for %s failed: %s", snapshot_id, exc)
            raise MutationError(None) from exc

        message = _server_message(resp)
        if resp.is_error:
            raise MutationError(message, status_code=resp.status_code)
        return message

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SnapshotApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
