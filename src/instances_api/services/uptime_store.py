from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol, Set

from pymongo.errors import PyMongoError

from src.instances_api.db.mongo import MongoManager
from src.instances_api.errors import StoreError
from src.instances_api.schemas.common import utc_now

logger = logging.getLogger(__name__)

HOURS_24 = 24
HOURS_WEEK = 7 * 24
HOURS_MONTH = 30 * 24


class UptimeStore(Protocol):
    """Boolean outcome samples per instance plus success ratios over trailing windows."""

    async def record(self, api_url: str, success: bool, ts: Optional[datetime] = None) -> None: ...

    async def success_ratio(self, api_url: str, window_hours: int) -> Optional[float]: ...


# PUBLIC_INTERFACE
def compute_uptime_ratio(success_count: int, failure_count: int) -> Optional[float]:
    """
    Return the success percentage in [0, 100], or None when there are no samples.

    0/0 is reported as "no data" instead of NaN so consumers never see non-finite values.
    """
    total = int(success_count) + int(failure_count)
    if total <= 0:
        return None
    return float(success_count) / float(total) * 100.0


async def _run_in_thread(func, *args, **kwargs):
    """Run blocking pymongo calls in a worker thread."""
    return await asyncio.to_thread(func, *args, **kwargs)


class MongoUptimeStore:
    """
    UptimeStore backed by the `uptime` collection.

    Documents: {apiUrl, ts, status}. One document per poll attempt per instance.
    """

    def __init__(self, mongo: MongoManager):
        self._mongo = mongo

    async def record(self, api_url: str, success: bool, ts: Optional[datetime] = None) -> None:
        doc = {"apiUrl": api_url, "ts": ts or utc_now(), "status": bool(success)}
        try:
            await _run_in_thread(self._mongo.uptime().insert_one, doc)
        except PyMongoError as e:
            raise StoreError(f"Failed to record uptime sample for {api_url}: {e}") from e

    def _count(self, api_url: str, status: bool, since: datetime) -> int:
        return int(self._mongo.uptime().count_documents({"apiUrl": api_url, "status": status, "ts": {"$gte": since}}))

    async def success_ratio(self, api_url: str, window_hours: int) -> Optional[float]:
        since = utc_now() - timedelta(hours=int(window_hours))
        try:
            ok, failed = await asyncio.gather(
                _run_in_thread(self._count, api_url, True, since),
                _run_in_thread(self._count, api_url, False, since),
            )
        except PyMongoError as e:
            raise StoreError(f"Failed to query uptime for {api_url} over {window_hours}h: {e}") from e
        return compute_uptime_ratio(ok, failed)


# Detached sample writes; references are kept so the tasks are not garbage collected mid-flight.
_pending_writes: Set[asyncio.Task] = set()


async def _record_best_effort(store: UptimeStore, api_url: str, success: bool) -> None:
    try:
        await store.record(api_url, success)
    except StoreError:
        logger.exception("Uptime sample write failed for apiUrl=%s", api_url)
    except Exception:
        logger.exception("Unexpected error writing uptime sample for apiUrl=%s", api_url)


# PUBLIC_INTERFACE
def record_sample_detached(store: UptimeStore, api_url: str, success: bool) -> asyncio.Task:
    """Schedule an uptime sample write that never blocks or fails the caller."""
    task = asyncio.create_task(_record_best_effort(store, api_url, success))
    _pending_writes.add(task)
    task.add_done_callback(_pending_writes.discard)
    return task


# PUBLIC_INTERFACE
async def drain_pending_writes(timeout: float = 5.0) -> None:
    """Wait (bounded) for in-flight sample writes, used at shutdown and by tests."""
    pending = list(_pending_writes)
    if not pending:
        return
    _done, not_done = await asyncio.wait(pending, timeout=timeout)
    if not_done:
        logger.warning("Dropping %d uptime sample writes still in flight", len(not_done))
