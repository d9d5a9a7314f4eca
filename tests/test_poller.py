from __future__ import annotations

import asyncio

import httpx
import pytest

from src.instances_api.db.mongo import MongoManager
from src.instances_api.services.poller import poll_loop, run_cycle
from src.instances_api.services.published import PublishedState
from src.instances_api.services.uptime_store import drain_pending_writes
from src.instances_api.state import AppState
from tests.fakes import FakeInstance, FakeNetwork, FakeUptimeStore, make_config, roster_markdown


def _state(network: FakeNetwork, store: FakeUptimeStore, **config) -> AppState:
    cfg = make_config(**config)
    return AppState(
        config=cfg,
        mongo=MongoManager(cfg.mongo_uri, cfg.uptime_db_name),
        store=store,
        http=network.client(),
    )


def _network(*instances: FakeInstance, sha: str = "0f9e8dabc123ff00aa") -> FakeNetwork:
    network = FakeNetwork(*instances)
    network.routes["docs.example"] = lambda request: httpx.Response(200, text=roster_markdown(*instances))
    network.routes["api.github.example"] = lambda request: httpx.Response(200, json=[{"sha": sha}])
    return network


@pytest.mark.anyio
async def test_cycle_publishes_snapshot_and_both_inactive_sets():
    healthy = FakeInstance("a.example")
    dead = FakeInstance("dead.example", down=True)
    store = FakeUptimeStore(
        {
            (dead.api_url, 168): 0.0,
            (dead.api_url, 720): 12.5,
        }
    )
    state = _state(_network(healthy, dead), store)

    assert state.published.inactive(168) is None

    assert await run_cycle(state, asyncio.Event()) is True
    await drain_pending_writes()

    assert [r.api_url for r in state.published.snapshot()] == [healthy.api_url]
    assert state.published.snapshot()[0].up_to_date is True
    assert [d.api_url for d in state.published.inactive(168)] == [dead.api_url]
    assert state.published.inactive(720) == ()
    assert state.published.cycles_completed == 1
    assert state.published.last_cycle_at is not None


@pytest.mark.anyio
async def test_roster_failure_keeps_previous_snapshot():
    inst = FakeInstance("a.example")
    network = _network(inst)
    state = _state(network, FakeUptimeStore())

    assert await run_cycle(state, asyncio.Event()) is True
    previous = state.published.snapshot()

    network.routes["docs.example"] = lambda request: httpx.Response(503)
    assert await run_cycle(state, asyncio.Event()) is False
    await drain_pending_writes()

    # Stale-but-available: the exact same published tuple is still served.
    assert state.published.snapshot() is previous
    assert state.published.cycles_completed == 1


@pytest.mark.anyio
async def test_reference_fetch_retries_after_backoff():
    inst = FakeInstance("a.example")
    network = _network(inst)
    calls = {"n": 0}

    def flaky_github(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(502)
        return httpx.Response(200, json=[{"sha": "abc123"}])

    network.routes["api.github.example"] = flaky_github
    state = _state(network, FakeUptimeStore())

    assert await run_cycle(state, asyncio.Event()) is True
    await drain_pending_writes()

    assert calls["n"] == 2
    # The roster was fetched once: the retry does not restart the cycle.
    assert len([r for r in network.requests if r.url.host == "docs.example"]) == 1
    assert len(state.published.snapshot()) == 1


@pytest.mark.anyio
async def test_reference_retry_stops_on_shutdown():
    network = _network(FakeInstance("a.example"))
    network.routes["api.github.example"] = lambda request: httpx.Response(500)
    state = _state(network, FakeUptimeStore())

    shutdown = asyncio.Event()
    shutdown.set()
    assert await run_cycle(state, shutdown) is False
    assert state.published.snapshot() == ()


@pytest.mark.anyio
async def test_poll_loop_runs_until_shutdown():
    inst = FakeInstance("a.example")
    state = _state(_network(inst), FakeUptimeStore())
    shutdown = asyncio.Event()

    task = asyncio.create_task(poll_loop(state, shutdown))
    for _ in range(200):
        if state.published.cycles_completed:
            break
        await asyncio.sleep(0.01)
    shutdown.set()
    await asyncio.wait_for(task, timeout=5)
    await drain_pending_writes()

    assert state.published.cycles_completed == 1
    assert len(state.published.snapshot()) == 1


def test_published_snapshot_is_replaced_not_mutated():
    published = PublishedState()
    first = ("cycle-1-a", "cycle-1-b")
    published.publish_snapshot(first)
    reader_view = published.snapshot()

    published.publish_snapshot(["cycle-2-a"])

    # A reader holding the old value still sees one whole cycle.
    assert reader_view == first
    assert published.snapshot() == ("cycle-2-a",)
    assert isinstance(published.snapshot(), tuple)


def test_published_inactive_windows_are_independent():
    published = PublishedState()
    published.publish_inactive(168, ["x"])
    view = published._inactive

    published.publish_inactive(720, [])

    assert published.inactive(168) == ("x",)
    assert published.inactive(720) == ()
    assert 720 not in view
