from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from snaptrack.errors import BootstrapError, MutationError, SnapshotNotFound, TransientFetchError
from snaptrack.remote import SnapshotApiClient
from snaptrack.schemas.snapshot import SnapshotRecord, encode_snapshot

CREATED = datetime(2024, 5, 1, 12, 30, 15, 987654, tzinfo=timezone.utc)


def _payload(**overrides) -> dict:
    record = SnapshotRecord(
        id="abc123",
        title="Example Domain",
        url="https://example.com",
        ready=True,
        files=3,
        size=204800,
        created_at=CREATED,
    )
    data = encode_snapshot(record)
    data.update(overrides)
    return data


def _client(handler) -> SnapshotApiClient:
    http = httpx.AsyncClient(base_url="http://api.test", transport=httpx.MockTransport(handler))
    return SnapshotApiClient(client=http)


async def test_get_snapshot_decodes_record() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json=_payload())

    record = await _client(handler).get_snapshot("abc123")
    assert seen == ["/api/snapshot/abc123"]
    assert record.ready is True
    assert record.size == 204800
    assert record.created_at == CREATED


async def test_get_snapshot_404_raises_not_found() -> None:
    client = _client(lambda request: httpx.Response(404, json={"message": "Snapshot not found."}))
    with pytest.raises(SnapshotNotFound) as exc_info:
        await client.get_snapshot("missing")
    assert exc_info.value.snapshot_id == "missing"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="upstream down"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"id": "abc123"}),
    ],
)
async def test_get_snapshot_failures_are_transient(response: httpx.Response) -> None:
    client = _client(lambda request: response)
    with pytest.raises(TransientFetchError):
        await client.get_snapshot("abc123")


async def test_get_snapshot_timeout_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransientFetchError):
        await _client(handler).get_snapshot("abc123")


async def test_delete_posts_uuid_and_returns_server_message() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/action/delete"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"message": "Deleted."})

    assert await _client(handler).delete_snapshot("abc123") == "Deleted."
    assert bodies == [{"uuid": "abc123"}]


async def test_delete_without_server_message_returns_none() -> None:
    client = _client(lambda request: httpx.Response(200, text=""))
    assert await client.delete_snapshot("abc123") is None


async def test_delete_error_carries_server_message() -> None:
    client = _client(lambda request: httpx.Response(403, json={"message": "Forbidden."}))
    with pytest.raises(MutationError) as exc_info:
        await client.delete_snapshot("abc123")
    assert exc_info.value.message == "Forbidden."
    assert exc_info.value.status_code == 403


async def test_delete_error_without_message() -> None:
    client = _client(lambda request: httpx.Response(502, text="Bad Gateway"))
    with pytest.raises(MutationError) as exc_info:
        await client.delete_snapshot("abc123")
    assert exc_info.value.message is None


async def test_delete_transport_error_is_mutation_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(MutationError):
        await _client(handler).delete_snapshot("abc123")


async def test_fetch_page_data_found_and_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/snapshot/abc123":
            return httpx.Response(200, json={"snapshot": _payload(ready=False, size=None)})
        return httpx.Response(404, json={"message": "Snapshot not found."})

    client = _client(handler)
    found = await client.fetch_page_data("abc123")
    assert found.found
    assert found.record().ready is False
    assert found.record().created_at == CREATED

    missing = await client.fetch_page_data("missing")
    assert not missing.found
    assert missing.record() is None


async def test_fetch_page_data_server_error_raises_bootstrap_error() -> None:
    client = _client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(BootstrapError):
        await client.fetch_page_data("abc123")


async def test_owned_client_is_closed_on_exit() -> None:
    async with SnapshotApiClient("http://api.test") as client:
        assert not client._client.is_closed
    assert client._client.is_closed
