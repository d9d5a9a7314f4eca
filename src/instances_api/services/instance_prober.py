from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from src.instances_api.schemas.instances import InstanceDescriptor, InstanceRecord
from src.instances_api.services import probes
from src.instances_api.services.http_client import ProbeHttpClient
from src.instances_api.services.uptime_store import (
    HOURS_24,
    HOURS_MONTH,
    HOURS_WEEK,
    UptimeStore,
    record_sample_detached,
)

logger = logging.getLogger(__name__)


def _first_failure(outcomes: List[Any]) -> Optional[BaseException]:
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                # CancelledError / KeyboardInterrupt must not be reported as a probe failure.
                raise outcome
            return outcome
    return None


# PUBLIC_INTERFACE
async def probe_instance(
    descriptor: InstanceDescriptor,
    latest: str,
    *,
    http: ProbeHttpClient,
    store: UptimeStore,
    reference_video_id: str,
) -> InstanceRecord:
    """
    Run the full probe set against one instance and build its record.

    All checks start together and every outcome is collected before deciding; the instance
    fails iff any check failed, and the first failure in check order is raised. Exactly one
    uptime sample ("up" or "down") is written in the background per call.
    """
    api_url = descriptor.api_url

    outcomes = await asyncio.gather(
        probes.check_liveness(http, api_url),
        probes.fetch_registered_count(http, api_url),
        probes.fetch_version(http, api_url),
        probes.fetch_frontend_config(http, api_url),
        probes.check_cache(http, api_url),
        probes.check_playability(http, api_url, reference_video_id),
        probes.fetch_uptime(store, api_url, HOURS_24),
        probes.fetch_uptime(store, api_url, HOURS_WEEK),
        probes.fetch_uptime(store, api_url, HOURS_MONTH),
        return_exceptions=True,
    )

    failure = _first_failure(outcomes)
    if failure is not None:
        record_sample_detached(store, api_url, False)
        raise failure

    (
        last_checked,
        registered,
        (version, version_hash),
        config,
        cache_working,
        _playable,
        uptime_24h,
        uptime_7d,
        uptime_30d,
    ) = outcomes

    record_sample_detached(store, api_url, True)

    return InstanceRecord(
        name=descriptor.name,
        api_url=api_url,
        locations=descriptor.locations,
        cdn=descriptor.cdn,
        version=version,
        version_hash=version_hash,
        up_to_date=probes.is_up_to_date(latest, version_hash),
        registered=registered,
        last_checked=last_checked,
        cache=cache_working,
        s3_enabled=config.s3_enabled,
        image_proxy_url=config.image_proxy_url or "",
        registration_disabled=config.registration_disabled,
        uptime_24h=uptime_24h,
        uptime_7d=uptime_7d,
        uptime_30d=uptime_30d,
    )
