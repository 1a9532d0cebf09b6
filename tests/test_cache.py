"""
Tests for the reactive cache.

Loaders are plain coroutines; asyncio.Event gates keep requests in flight
for as long as a test needs.
"""

import asyncio

import pytest

from spendsync.cache import CacheError, default_stale_after_ms
from spendsync.cache.keys import account_keys, category_keys, home_keys, make_key, statistics_keys, transaction_keys
from spendsync.config import CacheSettings
from spendsync.models.audit import AuditEventType
from spendsync.models.query import CacheStatus
from spendsync.services.errors import NetworkError


LIST_KEY = make_key("transactions", "list", {"accountId": "a1"})


def counting_loader(results):
    """Loader returning (or raising) the given results in order."""
    calls = []

    async def loader():
        calls.append(1)
        result = results[min(len(calls), len(results)) - 1]
        if isinstance(result, Exception):
            raise result
        return result

    return loader, calls


class TestFetch:
    """Reads, freshness and coalescing."""

    async def test_first_fetch_loads_and_stores(self, cache):
        loader, calls = counting_loader(["page-1"])
        assert await cache.fetch(LIST_KEY, loader) == "page-1"

        entry = cache.get(LIST_KEY)
        assert entry.status == CacheStatus.SUCCESS
        assert entry.has_data is True
        assert entry.data == "page-1"
        assert len(calls) == 1

    async def test_concurrent_fetches_share_one_request(self, cache):
        """Two readers of the same key while a request is in flight cause one call."""
        gate = asyncio.Event()
        calls = []

        async def loader():
            calls.append(1)
            await gate.wait()
            return ["t1", "t2"]

        first = asyncio.ensure_future(cache.fetch(LIST_KEY, loader))
        second = asyncio.ensure_future(cache.fetch(LIST_KEY, loader))
        await asyncio.sleep(0)
        assert cache.is_fetching(LIST_KEY)

        gate.set()
        assert await first == ["t1", "t2"]
        assert await second == ["t1", "t2"]
        assert len(calls) == 1

    async def test_fresh_entry_is_served_without_loading(self, cache, clock):
        loader, calls = counting_loader(["v1", "v2"])
        await cache.fetch(LIST_KEY, loader, stale_after_ms=60_000)

        clock.advance(59_000)
        assert await cache.fetch(LIST_KEY, loader) == "v1"
        await cache.drain()
        assert len(calls) == 1

    async def test_stale_entry_is_served_then_revalidated(self, cache, clock):
        loader, calls = counting_loader(["v1", "v2"])
        await cache.fetch(LIST_KEY, loader, stale_after_ms=60_000)

        clock.advance(60_000)
        assert await cache.fetch(LIST_KEY, loader) == "v1"
        await cache.drain()

        assert len(calls) == 2
        assert cache.get_data(LIST_KEY) == "v2"

    async def test_zero_stale_time_revalidates_every_read(self, cache):
        loader, calls = counting_loader(["v1", "v2"])
        await cache.fetch(LIST_KEY, loader, stale_after_ms=0)
        assert await cache.fetch(LIST_KEY, loader) == "v1"
        await cache.drain()
        assert len(calls) == 2

    async def test_force_waits_for_new_data(self, cache, clock):
        loader, calls = counting_loader(["v1", "v2"])
        await cache.fetch(LIST_KEY, loader, stale_after_ms=60_000)
        assert await cache.fetch(LIST_KEY, loader, force=True) == "v2"
        assert len(calls) == 2

    async def test_none_is_legitimate_data(self, cache, clock):
        loader, calls = counting_loader([None])
        assert await cache.fetch(LIST_KEY, loader, stale_after_ms=60_000) is None
        assert cache.get(LIST_KEY).has_data is True
        assert await cache.fetch(LIST_KEY, loader) is None
        assert len(calls) == 1


class TestRetries:
    """Reads are retried; failures never drop good data."""

    async def test_read_is_retried_until_success(self, cache, audit):
        error = NetworkError("offline", code="NETWORK_ERROR")
        loader, calls = counting_loader([error, error, "ok"])

        assert await cache.fetch(LIST_KEY, loader) == "ok"
        assert len(calls) == 3
        assert len(audit.events_of(AuditEventType.FETCH_RETRIED)) == 2
        assert audit.events_of(AuditEventType.FETCH_SUCCEEDED)[-1].details["attempts"] == 3

    async def test_exhausted_retries_raise_and_record_error(self, cache, audit):
        error = NetworkError("offline", code="NETWORK_ERROR")
        loader, calls = counting_loader([error])

        with pytest.raises(NetworkError):
            await cache.fetch(LIST_KEY, loader)

        entry = cache.get(LIST_KEY)
        assert len(calls) == 3
        assert entry.status == CacheStatus.ERROR
        assert entry.error is error
        assert entry.has_data is False
        assert audit.events_of(AuditEventType.FETCH_FAILED)[-1].details["kept_last_good_data"] is False

    async def test_failed_refresh_keeps_last_good_data(self, cache, audit):
        error = NetworkError("offline", code="NETWORK_ERROR")
        loader, _ = counting_loader(["v1", error])
        await cache.fetch(LIST_KEY, loader)

        assert await cache.fetch(LIST_KEY, loader) == "v1"
        await cache.drain()

        entry = cache.get(LIST_KEY)
        assert entry.status == CacheStatus.ERROR
        assert entry.data == "v1"
        assert entry.has_data is True
        assert audit.events_of(AuditEventType.FETCH_FAILED)[-1].details["kept_last_good_data"] is True

    async def test_no_retries_when_disabled(self, audit, clock):
        from spendsync.cache import ReactiveCache

        cache = ReactiveCache(CacheSettings(read_retries=0, retry_min_wait_seconds=0), audit, clock=clock)
        loader, calls = counting_loader([NetworkError("offline")])
        with pytest.raises(NetworkError):
            await cache.fetch(LIST_KEY, loader)
        assert len(calls) == 1


class TestGenerations:
    """Responses for superseded keys are discarded."""

    async def test_response_arriving_after_patch_is_discarded(self, cache, audit):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return {"id": "t1", "amount": 10}

        pending = asyncio.ensure_future(cache.fetch(LIST_KEY, slow))
        await asyncio.sleep(0)

        cache.patch(LIST_KEY, {"id": "t1", "amount": 25})
        gate.set()

        assert await pending == {"id": "t1", "amount": 10}
        assert cache.get_data(LIST_KEY) == {"id": "t1", "amount": 25}
        assert audit.events_of(AuditEventType.FETCH_DISCARDED)

    async def test_response_for_evicted_key_is_not_written(self, cache):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return "late"

        pending = asyncio.ensure_future(cache.fetch(LIST_KEY, slow))
        await asyncio.sleep(0)
        assert cache.evict(LIST_KEY) is True

        gate.set()
        await pending
        assert LIST_KEY not in cache

    async def test_invalidation_bumps_generation(self, cache):
        loader, _ = counting_loader(["v1"])
        await cache.fetch(LIST_KEY, loader)
        before = cache.generation(LIST_KEY)
        cache.invalidate(transaction_keys.lists())
        assert cache.generation(LIST_KEY) > before

    async def test_evict_drops_generation(self, cache):
        cache.patch(LIST_KEY, "v")
        assert cache.generation(LIST_KEY) > 0

        cache.evict(LIST_KEY)
        assert cache.generation(LIST_KEY) == 0

        other = make_key("transactions", "list", {"accountId": "a2"})
        cache.patch(other, "v")
        assert cache.garbage_collect(now_ms=float("inf")) == [other]
        assert cache.generation(other) == 0

    async def test_recreated_entry_ignores_fetch_started_before_evict(self, cache):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return "old"

        stale = asyncio.ensure_future(cache.fetch(LIST_KEY, slow))
        await asyncio.sleep(0)
        cache.evict(LIST_KEY)

        loader, calls = counting_loader(["new"])
        assert await cache.fetch(LIST_KEY, loader) == "new"

        gate.set()
        assert await stale == "old"
        assert cache.get_data(LIST_KEY) == "new"
        assert len(calls) == 1


class TestInvalidation:
    """Invalidation marks entries stale and refetches observed ones."""

    async def test_observed_entry_is_refetched(self, cache):
        loader, calls = counting_loader(["v1", "v2"])
        await cache.fetch(LIST_KEY, loader, stale_after_ms=60_000)
        cache.subscribe(LIST_KEY, lambda entry: None)

        assert cache.invalidate(transaction_keys.lists()) == [LIST_KEY]
        await cache.drain()

        assert len(calls) == 2
        assert cache.get_data(LIST_KEY) == "v2"
        assert cache.is_stale(LIST_KEY) is False

    async def test_unobserved_entry_is_only_marked_stale(self, cache):
        loader, calls = counting_loader(["v1", "v2"])
        await cache.fetch(LIST_KEY, loader, stale_after_ms=60_000)
        assert cache.is_stale(LIST_KEY) is False

        cache.invalidate(transaction_keys.lists())
        await cache.drain()

        assert len(calls) == 1
        assert cache.is_stale(LIST_KEY) is True
        assert cache.get_data(LIST_KEY) == "v1"

    async def test_invalidation_only_touches_matching_keys(self, cache):
        other = make_key("transactions", "list", {"accountId": "a2"})
        loader, _ = counting_loader(["v"])
        await cache.fetch(LIST_KEY, loader, stale_after_ms=60_000)
        await cache.fetch(other, loader, stale_after_ms=60_000)

        matched = cache.invalidate(transaction_keys.lists({"accountId": "a1"}))

        assert matched == [LIST_KEY]
        assert cache.is_stale(other) is False

    async def test_remove_evicts_region(self, cache):
        loader, _ = counting_loader(["v"])
        await cache.fetch(home_keys.daily({"accountId": "a1"}), loader)
        await cache.fetch(home_keys.week({"accountId": "a1"}), loader)
        await cache.fetch(home_keys.week({"accountId": "a2"}), loader)

        removed = cache.remove(home_keys.scoped("a1"))

        assert len(removed) == 2
        assert cache.keys() == [home_keys.week({"accountId": "a2"})]


class TestSubscriptions:
    """Listeners see every change, as copies."""

    async def test_listener_sees_loading_then_success(self, cache):
        statuses = []
        cache.subscribe(LIST_KEY, lambda entry: statuses.append(entry.status))
        loader, _ = counting_loader(["v1"])

        await cache.fetch(LIST_KEY, loader)

        assert statuses == [CacheStatus.LOADING, CacheStatus.SUCCESS]

    async def test_listener_receives_copy(self, cache):
        def tamper(entry):
            entry.status = CacheStatus.ERROR

        cache.subscribe(LIST_KEY, tamper)
        loader, _ = counting_loader(["v1"])
        await cache.fetch(LIST_KEY, loader)

        assert cache.get(LIST_KEY).status == CacheStatus.SUCCESS

    async def test_failing_listener_does_not_break_others(self, cache):
        seen = []

        def broken(entry):
            raise RuntimeError("boom")

        cache.subscribe(LIST_KEY, broken)
        cache.subscribe(LIST_KEY, lambda entry: seen.append(entry.status))
        cache.patch(LIST_KEY, "v")
        assert seen == [CacheStatus.SUCCESS]

    async def test_unsubscribe_does_not_cancel_fetch(self, cache):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return "done"

        unsubscribe = cache.subscribe(LIST_KEY, lambda entry: None)
        pending = asyncio.ensure_future(cache.fetch(LIST_KEY, slow))
        await asyncio.sleep(0)
        unsubscribe()

        gate.set()
        assert await pending == "done"
        assert cache.get_data(LIST_KEY) == "done"
        assert cache.has_listeners(LIST_KEY) is False

    async def test_cancelling_one_waiter_keeps_shared_fetch(self, cache):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return "shared"

        first = asyncio.ensure_future(cache.fetch(LIST_KEY, slow))
        second = asyncio.ensure_future(cache.fetch(LIST_KEY, slow))
        await asyncio.sleep(0)

        first.cancel()
        gate.set()

        assert await second == "shared"
        with pytest.raises(asyncio.CancelledError):
            await first

    async def test_evict_notifies_with_idle_entry(self, cache):
        cache.patch(LIST_KEY, "v")
        seen = []
        cache.subscribe(LIST_KEY, seen.append)

        assert cache.evict(LIST_KEY) is True
        assert seen[-1].status == CacheStatus.IDLE
        assert seen[-1].has_data is False
        assert cache.evict(LIST_KEY) is False


class TestMaintenance:
    """Garbage collection and misuse."""

    async def test_idle_unobserved_entries_are_collected(self, cache, clock, cache_settings):
        loader, _ = counting_loader(["v"])
        await cache.fetch(LIST_KEY, loader)
        observed = make_key("transactions", "list", {"accountId": "a2"})
        await cache.fetch(observed, loader)
        cache.subscribe(observed, lambda entry: None)

        clock.advance(cache_settings.gc_time_ms)
        assert cache.garbage_collect() == [LIST_KEY]
        assert LIST_KEY not in cache
        assert observed in cache

    async def test_recent_entries_survive_collection(self, cache, clock):
        loader, _ = counting_loader(["v"])
        await cache.fetch(LIST_KEY, loader)
        clock.advance(1_000)
        assert cache.garbage_collect() == []

    async def test_refresh_without_loader_raises(self, cache):
        with pytest.raises(CacheError):
            cache.refresh(LIST_KEY)

    async def test_refresh_reuses_last_loader(self, cache):
        loader, calls = counting_loader(["v1", "v2"])
        await cache.fetch(LIST_KEY, loader)
        assert await cache.refresh(LIST_KEY) == "v2"
        assert len(calls) == 2

    async def test_clear(self, cache):
        cache.patch(LIST_KEY, "v")
        cache.clear()
        assert len(cache) == 0


class TestStalePolicy:
    """Freshness windows per domain."""

    def test_windows(self):
        settings = CacheSettings()
        assert default_stale_after_ms(home_keys.daily({"accountId": "a"}), settings) == settings.summary_stale_after_ms
        assert default_stale_after_ms(statistics_keys.overview(), settings) == settings.summary_stale_after_ms
        assert default_stale_after_ms(statistics_keys.presets(), settings) == settings.preset_stale_after_ms
        assert default_stale_after_ms(category_keys.icons(), settings) == settings.reference_stale_after_ms
        assert default_stale_after_ms(account_keys.list(), settings) == settings.default_stale_after_ms


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
