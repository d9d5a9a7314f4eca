from __future__ import annotations

import asyncio
import logging
from typing import Dict, Sequence, Tuple

from src.instances_api.errors import MonitorError
from src.instances_api.schemas.instances import InstanceDescriptor, InstanceRecord
from src.instances_api.services.http_client import ProbeHttpClient
from src.instances_api.services.instance_prober import probe_instance
from src.instances_api.services.uptime_store import UptimeStore

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def probe_roster(
    roster: Sequence[InstanceDescriptor],
    latest: str,
    *,
    http: ProbeHttpClient,
    store: UptimeStore,
    reference_video_id: str,
) -> Tuple[InstanceRecord, ...]:
    """
    Probe every roster entry concurrently and return the healthy records in roster order.

    Failed instances are logged and left out; the outbound request cap lives in `http`.
    """
    results: Dict[int, InstanceRecord] = {}

    async def _probe_one(index: int, descriptor: InstanceDescriptor) -> None:
        try:
            results[index] = await probe_instance(
                descriptor,
                latest,
                http=http,
                store=store,
                reference_video_id=reference_video_id,
            )
        except MonitorError as e:
            logger.warning("Instance %s failed this cycle: %s", descriptor.api_url, e)
        except Exception:
            logger.exception("Unexpected error probing %s", descriptor.api_url)

    await asyncio.gather(*(_probe_one(i, d) for i, d in enumerate(roster)))

    return tuple(results[i] for i in range(len(roster)) if i in results)
