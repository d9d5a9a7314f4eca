from __future__ import annotations

import asyncio
import logging
from typing import Optional

from src.instances_api.errors import MonitorError
from src.instances_api.services.fanout import probe_roster
from src.instances_api.services.inactive import classify_inactive
from src.instances_api.services.reference_version import fetch_latest_commit
from src.instances_api.services.roster_source import fetch_roster
from src.instances_api.services.uptime_store import HOURS_MONTH, HOURS_WEEK
from src.instances_api.state import AppState

logger = logging.getLogger(__name__)

INACTIVE_WINDOWS_HOURS = (HOURS_WEEK, HOURS_MONTH)


async def _wait_or_shutdown(shutdown_event: asyncio.Event, seconds: float) -> bool:
    """Sleep up to `seconds`; returns True when shutdown was requested meanwhile."""
    try:
        await asyncio.wait_for(shutdown_event.wait(), timeout=seconds)
        return True
    except asyncio.TimeoutError:
        return False


async def _fetch_reference_with_retry(state: AppState, shutdown_event: asyncio.Event) -> Optional[str]:
    """Fetch the reference commit, retrying on a short backoff until it succeeds or shutdown."""
    cfg = state.config
    assert state.http is not None
    while not shutdown_event.is_set():
        try:
            return await fetch_latest_commit(
                state.http,
                cfg.reference_repo_owner,
                cfg.reference_repo_name,
                api_url=cfg.github_api_url,
                token=cfg.github_token,
            )
        except MonitorError as e:
            logger.warning("Reference version fetch failed, retrying in %ss: %s", cfg.reference_retry_backoff_sec, e)
        if await _wait_or_shutdown(shutdown_event, cfg.reference_retry_backoff_sec):
            break
    return None


# PUBLIC_INTERFACE
async def run_cycle(state: AppState, shutdown_event: asyncio.Event) -> bool:
    """
    Run one poll cycle: roster -> reference version -> fan-out -> publish snapshot -> inactive sets.

    Returns False when the cycle was aborted before publishing; the previous snapshot then
    stays published.
    """
    cfg = state.config
    assert state.http is not None

    try:
        roster = await fetch_roster(state.http, cfg.roster_url)
    except MonitorError as e:
        logger.warning("Roster fetch failed, waiting for next tick: %s", e)
        return False

    latest = await _fetch_reference_with_retry(state, shutdown_event)
    if latest is None:
        return False

    records = await probe_roster(
        roster,
        latest,
        http=state.http,
        store=state.store,
        reference_video_id=cfg.playability_video_id,
    )
    state.published.publish_snapshot(records)

    for window_hours in INACTIVE_WINDOWS_HOURS:
        inactive = await classify_inactive(roster, state.store, window_hours)
        state.published.publish_inactive(window_hours, inactive)

    state.published.mark_cycle_complete()
    logger.info("Poll cycle complete: %d/%d instances healthy (latest=%s)", len(records), len(roster), latest[:12])
    return True


# PUBLIC_INTERFACE
async def poll_loop(state: AppState, shutdown_event: asyncio.Event) -> None:
    """
    Background loop that polls the whole roster once per interval, forever.

    The wait between cycles is the full interval regardless of how long a cycle took.
    Errors are logged and non-fatal; the next tick retries from the roster fetch.
    """
    interval = max(1, int(state.config.poll_interval_sec))

    logger.info(
        "Instance poller started (interval=%ss, max_concurrency=%s)",
        interval,
        state.config.probe_max_concurrency or "unlimited",
    )

    while not shutdown_event.is_set():
        try:
            await run_cycle(state, shutdown_event)
        except Exception:
            logger.exception("Poll cycle failed")

        if await _wait_or_shutdown(shutdown_event, interval):
            break

    logger.info("Instance poller stopped")
