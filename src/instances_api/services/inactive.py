from __future__ import annotations

import asyncio
from typing import Sequence, Tuple

from src.instances_api.schemas.instances import InstanceDescriptor
from src.instances_api.services.probes import fetch_uptime
from src.instances_api.services.uptime_store import UptimeStore


# PUBLIC_INTERFACE
async def classify_inactive(
    roster: Sequence[InstanceDescriptor],
    store: UptimeStore,
    window_hours: int,
) -> Tuple[InstanceDescriptor, ...]:
    """
    Return the roster entries with exactly 0% uptime over the window, in roster order.

    An entry without samples (None) is not inactive: missing data is not evidence of downtime.
    A store failure is logged and treated like missing data.
    """
    ratios = await asyncio.gather(*(fetch_uptime(store, d.api_url, window_hours) for d in roster))
    return tuple(d for d, ratio in zip(roster, ratios) if ratio is not None and ratio == 0)
