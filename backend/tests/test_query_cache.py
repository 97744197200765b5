from __future__ import annotations

import asyncio

import pytest

from snaptrack.query_cache import SNAPSHOTS_KEY, QueryCache


class CountingFetcher:
    def __init__(self, *pages):
        self.pages = list(pages)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.pages[min(self.calls, len(self.pages)) - 1]


async def test_fresh_key_is_served_from_cache() -> None:
    cache = QueryCache()
    fetch = CountingFetcher(["abc123", "def456"])
    assert await cache.fetch(SNAPSHOTS_KEY, fetch) == ["abc123", "def456"]
    assert await cache.fetch(SNAPSHOTS_KEY, fetch) == ["abc123", "def456"]
    assert fetch.calls == 1
    assert not cache.is_stale(SNAPSHOTS_KEY)


async def test_invalidate_forces_refetch_on_next_access() -> None:
    cache = QueryCache()
    fetch = CountingFetcher(["abc123", "def456"], ["def456"])
    await cache.fetch(SNAPSHOTS_KEY, fetch)

    assert cache.invalidate(SNAPSHOTS_KEY) == 1
    assert cache.is_stale(SNAPSHOTS_KEY)
    assert await cache.fetch(SNAPSHOTS_KEY, fetch) == ["def456"]
    assert fetch.calls == 2


async def test_invalidate_matches_key_prefix_only() -> None:
    cache = QueryCache()
    cache.set_data(("snapshots",), [])
    cache.set_data(("snapshots", "page", 2), [])
    cache.set_data(("snapshot", "abc123"), {})

    assert cache.invalidate(("snapshots",)) == 2
    assert cache.is_stale(("snapshots", "page", 2))
    assert not cache.is_stale(("snapshot", "abc123"))


async def test_invalidate_before_first_read_registers_stale_key() -> None:
    cache = QueryCache()
    assert cache.invalidate(SNAPSHOTS_KEY) == 1
    assert SNAPSHOTS_KEY in cache
    assert cache.is_stale(SNAPSHOTS_KEY)


async def test_concurrent_reads_share_one_fetch() -> None:
    cache = QueryCache()
    gate = asyncio.Event()
    calls = 0

    async def slow_fetch():
        nonlocal calls
        calls += 1
        await gate.wait()
        return ["abc123"]

    first = asyncio.create_task(cache.fetch(SNAPSHOTS_KEY, slow_fetch))
    second = asyncio.create_task(cache.fetch(SNAPSHOTS_KEY, slow_fetch))
    await asyncio.sleep(0)
    gate.set()
    assert await first == ["abc123"]
    assert await second == ["abc123"]
    assert calls == 1


async def test_invalidation_during_fetch_keeps_key_stale() -> None:
    cache = QueryCache()
    gate = asyncio.Event()

    async def slow_fetch():
        await gate.wait()
        return ["abc123"]

    task = asyncio.create_task(cache.fetch(SNAPSHOTS_KEY, slow_fetch))
    await asyncio.sleep(0)
    cache.invalidate(SNAPSHOTS_KEY)
    gate.set()
    assert await task == ["abc123"]
    assert cache.is_stale(SNAPSHOTS_KEY)


async def test_read_after_invalidation_does_not_join_earlier_fetch() -> None:
    cache = QueryCache()
    gate = asyncio.Event()
    pages = [["abc123", "def456"], ["def456"]]
    calls = 0

    async def listing():
        nonlocal calls
        page = pages[calls]
        calls += 1
        await gate.wait()
        return page

    before = asyncio.create_task(cache.fetch(SNAPSHOTS_KEY, listing))
    await asyncio.sleep(0)
    cache.invalidate(SNAPSHOTS_KEY)
    after = asyncio.create_task(cache.fetch(SNAPSHOTS_KEY, listing))
    await asyncio.sleep(0)
    gate.set()

    assert await before == ["abc123", "def456"]
    assert await after == ["def456"]
    assert calls == 2
    assert cache.get_data(SNAPSHOTS_KEY) == ["def456"]
    assert not cache.is_stale(SNAPSHOTS_KEY)


async def test_failed_fetch_propagates_and_leaves_key_stale() -> None:
    cache = QueryCache()

    async def broken():
        raise ConnectionError("offline")

    with pytest.raises(ConnectionError):
        await cache.fetch(SNAPSHOTS_KEY, broken)
    assert cache.is_stale(SNAPSHOTS_KEY)

    fetch = CountingFetcher([])
    assert await cache.fetch(SNAPSHOTS_KEY, fetch) == []


def test_remove_drops_key() -> None:
    cache = QueryCache()
    cache.set_data(("snapshot", "abc123"), {"id": "abc123"})
    assert cache.get_data(("snapshot", "abc123")) == {"id": "abc123"}
    cache.remove(("snapshot", "abc123"))
    assert ("snapshot", "abc123") not in cache
    assert cache.get_data(("snapshot", "abc123")) is None
