from __future__ import annotations

import math
from datetime import timedelta

import pytest
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from src.instances_api.errors import StoreError
from src.instances_api.schemas.common import utc_now
from src.instances_api.services.uptime_store import (
    MongoUptimeStore,
    compute_uptime_ratio,
    drain_pending_writes,
    record_sample_detached,
)
from tests.fakes import FakeUptimeStore


class _FakeCollection:
    """Just enough of pymongo's Collection for insert_one/count_documents on the uptime schema."""

    def __init__(self, fail: bool = False):
        self.docs: list[dict] = []
        self.fail = fail

    def insert_one(self, doc: dict) -> None:
        if self.fail:
            raise ServerSelectionTimeoutError("no servers")
        self.docs.append(dict(doc))

    def count_documents(self, flt: dict) -> int:
        if self.fail:
            raise PyMongoError("auth failed")
        since = flt["ts"]["$gte"]
        return sum(
            1
            for d in self.docs
            if d["apiUrl"] == flt["apiUrl"] and d["status"] == flt["status"] and d["ts"] >= since
        )


class _FakeMongo:
    def __init__(self, collection: _FakeCollection):
        self.collection = collection

    def uptime(self) -> _FakeCollection:
        return self.collection


def test_ratio_three_successes_one_failure():
    assert compute_uptime_ratio(3, 1) == 75.0


def test_ratio_without_samples_is_no_data():
    ratio = compute_uptime_ratio(0, 0)
    assert ratio is None


def test_ratio_bounds():
    assert compute_uptime_ratio(0, 4) == 0.0
    assert compute_uptime_ratio(7, 0) == 100.0
    assert math.isfinite(compute_uptime_ratio(1, 2))


@pytest.mark.anyio
async def test_mongo_store_counts_only_samples_inside_window():
    col = _FakeCollection()
    store = MongoUptimeStore(_FakeMongo(col))
    api = "https://api.one.example"

    now = utc_now()
    for _ in range(3):
        await store.record(api, True, ts=now - timedelta(hours=1))
    await store.record(api, False, ts=now - timedelta(hours=2))
    # Outside the 24h window; counted for 7 days only.
    await store.record(api, False, ts=now - timedelta(days=3))
    # Another instance never leaks into this one's ratio.
    await store.record("https://api.two.example", False, ts=now)

    assert await store.success_ratio(api, 24) == 75.0
    assert await store.success_ratio(api, 7 * 24) == 60.0
    assert await store.success_ratio("https://never.example", 24) is None


@pytest.mark.anyio
async def test_mongo_store_wraps_driver_errors():
    store = MongoUptimeStore(_FakeMongo(_FakeCollection(fail=True)))

    with pytest.raises(StoreError):
        await store.record("https://api.one.example", True)
    with pytest.raises(StoreError):
        await store.success_ratio("https://api.one.example", 24)


@pytest.mark.anyio
async def test_detached_write_failure_is_swallowed():
    store = FakeUptimeStore(fail_writes=True)

    task = record_sample_detached(store, "https://api.one.example", False)
    await drain_pending_writes()

    assert task.done()
    assert task.exception() is None
    assert store.records == []


@pytest.mark.anyio
async def test_detached_write_lands_in_store():
    store = FakeUptimeStore()
    record_sample_detached(store, "https://api.one.example", True)
    await drain_pending_writes()
    assert store.records == [("https://api.one.example", True)]
