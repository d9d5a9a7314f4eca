from __future__ import annotations

import logging
import re
import time
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from src.instances_api.errors import NetworkError, ParseError, ProtocolError, StoreError
from src.instances_api.schemas.instances import FrontendConfig
from src.instances_api.services.http_client import ProbeHttpClient
from src.instances_api.services.uptime_store import UptimeStore

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"(\d+)")
_MEDIA_RANGE = {"Range": "bytes=0-0"}


def _join(api_url: str, path: str) -> str:
    return api_url.rstrip("/") + path


def _json_body(resp, url: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise ParseError(f"Malformed JSON body: {e}", url) from e


def split_version(version_text: str) -> Tuple[str, str]:
    """Return (version, build_hash); the hash is the last '-' separated segment."""
    version = version_text.strip()
    return version, version.split("-")[-1]


def is_up_to_date(latest: str, version_hash: str) -> bool:
    # Substring match so abbreviated hashes still count.
    return version_hash in latest


def parse_registered_count(path: str) -> int:
    """Extract the first run of digits from a badge redirect path."""
    m = _NUMBER_RE.search(path or "")
    if not m:
        raise ParseError(f"No registration count in path {path!r}")
    return int(m.group(1))


# PUBLIC_INTERFACE
async def check_liveness(http: ProbeHttpClient, api_url: str) -> int:
    """GET /healthcheck; returns the unix time at which the instance answered."""
    await http.get(_join(api_url, "/healthcheck"))
    return int(time.time())


# PUBLIC_INTERFACE
async def fetch_registered_count(http: ProbeHttpClient, api_url: str) -> int:
    """GET /registered/badge, which redirects to a badge URL carrying the count in its path."""
    resp = await http.get(_join(api_url, "/registered/badge"))
    return parse_registered_count(resp.url.path)


# PUBLIC_INTERFACE
async def fetch_version(http: ProbeHttpClient, api_url: str) -> Tuple[str, str]:
    resp = await http.get(_join(api_url, "/version"))
    return split_version(resp.text)


# PUBLIC_INTERFACE
async def fetch_frontend_config(http: ProbeHttpClient, api_url: str) -> FrontendConfig:
    url = _join(api_url, "/config")
    body = _json_body(await http.get(url), url)
    if not isinstance(body, dict):
        raise ParseError("Config body is not a JSON object", url)
    try:
        return FrontendConfig.model_validate(body)
    except ValidationError as e:
        raise ParseError(f"Invalid config: {e.error_count()} field error(s)", url) from e


# PUBLIC_INTERFACE
async def check_cache(http: ProbeHttpClient, api_url: str) -> bool:
    """
    Request trending twice back to back and compare Server-Timing.

    A cached response replays the original timing header, so equal values mean the cache works.
    """
    url = _join(api_url, "/trending?region=US")
    first = await http.get(url)
    second = await http.get(url)
    return first.headers.get("Server-Timing") == second.headers.get("Server-Timing")


def _stream_urls(body: dict) -> List[str]:
    urls: List[str] = []
    for key in ("videoStreams", "audioStreams"):
        for stream in body.get(key) or []:
            if isinstance(stream, dict) and stream.get("url"):
                urls.append(str(stream["url"]))
    return urls


# PUBLIC_INTERFACE
async def check_playability(http: ProbeHttpClient, api_url: str, video_id: str) -> bool:
    """Resolve streams for a well-known video and verify at least one stream URL answers."""
    url = _join(api_url, f"/streams/{video_id}")
    body = _json_body(await http.get(url), url)
    if not isinstance(body, dict):
        raise ParseError("Streams body is not a JSON object", url)

    urls = _stream_urls(body)
    if not urls:
        raise ParseError("No playable streams returned", url)

    # One byte is enough to prove the proxy serves media. The last URL's failure is the one reported.
    for stream_url in urls[:-1]:
        try:
            await http.get(stream_url, headers=_MEDIA_RANGE)
            return True
        except (NetworkError, ProtocolError) as e:
            logger.debug("Stream %s unreachable, trying next: %s", stream_url, e)
    await http.get(urls[-1], headers=_MEDIA_RANGE)
    return True


# PUBLIC_INTERFACE
async def fetch_uptime(store: UptimeStore, api_url: str, window_hours: int) -> Optional[float]:
    """Uptime ratio for the window; a store failure degrades to None instead of failing the instance."""
    try:
        return await store.success_ratio(api_url, window_hours)
    except StoreError:
        logger.exception("Uptime query failed for apiUrl=%s window=%sh", api_url, window_hours)
        return None
