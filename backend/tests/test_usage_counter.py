import asyncio

import pytest

from backend.siloe.core.errors import StorageError
from backend.siloe.services.usage import UsageCounter
from backend.siloe.stores.device_storage import InMemoryDeviceStorage, SqlDeviceStorage


class YieldingStorage(InMemoryDeviceStorage):
    """Gives up the loop between read and write so concurrent increments race."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.cas_calls = 0

    async def get(self, key):
        value = await super().get(key)
        await asyncio.sleep(0)
        return value

    async def compare_and_set(self, key, expected, new):
        self.cas_calls += 1
        return await super().compare_and_set(key, expected, new)


class BrokenStorage:
    async def get(self, key):
        raise StorageError("disk unavailable")

    async def set(self, key, value):
        raise StorageError("disk unavailable")

    async def compare_and_set(self, key, expected, new):
        raise StorageError("disk unavailable")


class AlwaysLosesStorage(InMemoryDeviceStorage):
    async def compare_and_set(self, key, expected, new):
        return False


@pytest.mark.anyio
async def test_missing_key_reads_as_zero():
    counter = UsageCounter(InMemoryDeviceStorage())
    assert await counter.get() == 0


@pytest.mark.anyio
async def test_increment_from_empty_then_twice_more():
    storage = InMemoryDeviceStorage()
    counter = UsageCounter(storage)
    assert await counter.increment() == 1
    assert await counter.get() == 1
    await counter.increment()
    await counter.increment()
    assert await counter.get() == 3
    # Stored as a decimal string under the well-known key
    assert await storage.get("@study_count") == "3"


@pytest.mark.anyio
async def test_read_failure_fails_open_to_zero():
    counter = UsageCounter(BrokenStorage())
    assert await counter.get() == 0


@pytest.mark.anyio
async def test_increment_failure_propagates():
    counter = UsageCounter(BrokenStorage())
    with pytest.raises(StorageError):
        await counter.increment()


@pytest.mark.anyio
async def test_corrupt_value_reads_as_zero_and_increment_restarts():
    storage = InMemoryDeviceStorage({"@study_count": "not-a-number"})
    counter = UsageCounter(storage)
    assert await counter.get() == 0
    assert await counter.increment() == 1
    assert await storage.get("@study_count") == "1"


@pytest.mark.anyio
async def test_concurrent_increments_lose_no_updates():
    storage = YieldingStorage()
    counter = UsageCounter(storage)
    results = await asyncio.gather(*(counter.increment() for _ in range(10)))
    assert sorted(results) == list(range(1, 11))
    assert await counter.get() == 10
    # Interleaving forced at least one retry
    assert storage.cas_calls > 10


@pytest.mark.anyio
async def test_increment_gives_up_after_max_attempts():
    counter = UsageCounter(AlwaysLosesStorage(), max_attempts=3)
    with pytest.raises(StorageError):
        await counter.increment()


@pytest.mark.anyio
async def test_sql_device_storage_compare_and_set(session_factory):
    storage = SqlDeviceStorage(session_factory, "device-a")
    assert await storage.get("@study_count") is None

    assert await storage.compare_and_set("@study_count", None, "1") is True
    # Key now exists, so an insert-if-absent loses
    assert await storage.compare_and_set("@study_count", None, "1") is False
    assert await storage.compare_and_set("@study_count", "7", "8") is False
    assert await storage.compare_and_set("@study_count", "1", "2") is True
    assert await storage.get("@study_count") == "2"

    await storage.set("@study_count", "5")
    assert await storage.get("@study_count") == "5"


@pytest.mark.anyio
async def test_sql_device_storage_is_scoped_per_device(session_factory):
    a = UsageCounter(SqlDeviceStorage(session_factory, "device-a"))
    b = UsageCounter(SqlDeviceStorage(session_factory, "device-b"))
    await a.increment()
    await a.increment()
    assert await a.get() == 2
    assert await b.get() == 0
