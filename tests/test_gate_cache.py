"""tests for the per-process gate cache"""
import asyncio

from conftest import FakeStore
from maintenance_gate import schemas
from maintenance_gate.core.gate_cache import GateCache


def enabled_state(revision=1, message="Upgrading"):
    return schemas.MaintenanceState(enabled=True, message=message, revision=revision)


def test_miss_loads_from_store_then_hits(fake_clock):
    """test first read loads, later reads within the TTL do not touch the store"""
    store = FakeStore(enabled_state())
    cache = GateCache(store, ttl=5.0, clock=fake_clock)

    async def scenario():
        first = await cache.read()
        fake_clock.advance(4.9)
        second = await cache.read()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.enabled is True
    assert second == first
    assert store.get_calls == 1


def test_expired_entry_is_reloaded(fake_clock):
    """test reads after the TTL go back to the store"""
    store = FakeStore()
    cache = GateCache(store, ttl=5.0, clock=fake_clock)

    async def scenario():
        await cache.read()
        store.state = enabled_state()
        fake_clock.advance(5.1)
        return await cache.read()

    state = asyncio.run(scenario())
    assert state.enabled is True
    assert store.get_calls == 2


def test_concurrent_misses_share_one_store_read():
    """test N concurrent misses => exactly one store read"""
    store = FakeStore(enabled_state(), delay=0.05)
    cache = GateCache(store, ttl=5.0)

    async def scenario():
        return await asyncio.gather(*(cache.read() for _ in range(25)))

    results = asyncio.run(scenario())
    assert store.get_calls == 1
    assert all(state == results[0] for state in results)


def test_invalidate_overwrites_and_resets_ttl(fake_clock):
    """test a pushed state replaces the cached one without a store read"""
    store = FakeStore()
    cache = GateCache(store, ttl=5.0, clock=fake_clock)

    async def scenario():
        await cache.read()
        fake_clock.advance(4.0)
        assert cache.invalidate(enabled_state(revision=1)) is True
        fake_clock.advance(4.0)
        return await cache.read()

    state = asyncio.run(scenario())
    assert state.enabled is True
    assert store.get_calls == 1


def test_invalidate_ignores_older_revision():
    """test an out-of-order push cannot roll the cache back"""
    cache = GateCache(FakeStore(), ttl=5.0)
    cache.invalidate(enabled_state(revision=4))

    assert cache.invalidate(schemas.MaintenanceState(enabled=False, revision=3)) is False
    assert cache.snapshot().state.revision == 4
    assert cache.invalidate(schemas.MaintenanceState(enabled=False, revision=5)) is True
    assert cache.snapshot().state.enabled is False


def test_load_does_not_regress_newer_push(fake_clock):
    """test a store read older than the cached revision keeps the cached state"""
    store = FakeStore(schemas.MaintenanceState(enabled=False, revision=2))
    cache = GateCache(store, ttl=5.0, clock=fake_clock)
    cache.invalidate(enabled_state(revision=3))
    fake_clock.advance(6.0)

    state = asyncio.run(cache.read())
    assert state.revision == 3
    assert state.enabled is True


def test_store_failure_serves_last_known(fake_clock):
    """test store outage => last cached state keeps being served"""
    store = FakeStore(enabled_state())
    cache = GateCache(store, ttl=5.0, failure_ttl=1.0, clock=fake_clock)

    async def scenario():
        await cache.read()
        store.fail_reads = True
        fake_clock.advance(6.0)
        during_outage = await cache.read()
        #the fallback is held for failure_ttl before retrying
        fake_clock.advance(0.5)
        await cache.read()
        return during_outage

    state = asyncio.run(scenario())
    assert state.enabled is True
    assert state.message == "Upgrading"
    assert store.get_calls == 2


def test_store_failure_without_cache_fails_open():
    """test store outage on a cold cache => default disabled state"""
    store = FakeStore()
    store.fail_reads = True
    cache = GateCache(store, fail_open=True)

    state = asyncio.run(cache.read())
    assert state.enabled is False
    assert state.message == schemas.DEFAULT_MAINTENANCE_MESSAGE


def test_store_failure_without_cache_fails_closed():
    """test fail-closed policy => gate treated as enabled"""
    store = FakeStore()
    store.fail_reads = True
    cache = GateCache(store, fail_open=False)

    state = asyncio.run(cache.read())
    assert state.enabled is True


def test_store_timeout_falls_back(fake_clock):
    """test a slow store read is abandoned after the timeout"""
    store = FakeStore(enabled_state(), delay=0.5)
    cache = GateCache(store, ttl=5.0, store_timeout=0.05, clock=fake_clock)
    cache.invalidate(schemas.MaintenanceState(enabled=False, revision=1))
    fake_clock.advance(6.0)

    state = asyncio.run(cache.read())
    assert state.enabled is False
    assert state.revision == 1


def test_clear_forces_reload():
    """test clear drops the cached entry"""
    store = FakeStore()
    cache = GateCache(store)

    asyncio.run(cache.read())
    cache.clear()
    assert cache.snapshot() is None
    asyncio.run(cache.read())
    assert store.get_calls == 2
