from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Dict, Optional

import httpx

from src.instances_api.errors import NetworkError, ProtocolError

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def build_async_client(timeout_sec: float, user_agent: str) -> httpx.AsyncClient:
    """Create the process-wide httpx client used for every outbound request."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_sec),
        headers={"User-Agent": user_agent},
        follow_redirects=True,
    )


class ProbeHttpClient:
    """
    Thin wrapper over httpx.AsyncClient that maps transport and status failures onto
    NetworkError / ProtocolError and applies the outbound concurrency cap.

    max_concurrency == 0 leaves outbound traffic bounded only by roster size.
    """

    def __init__(self, client: httpx.AsyncClient, max_concurrency: int = 0):
        self._client = client
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None
        )

    @contextlib.asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self._semaphore is None:
            yield
            return
        async with self._semaphore:
            yield

    # PUBLIC_INTERFACE
    async def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """GET url and return the response; anything but a 2xx raises ProtocolError."""
        async with self._slot():
            try:
                resp = await self._client.get(url, headers=headers)
            except httpx.RequestError as e:
                raise NetworkError(url, f"{type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise ProtocolError(url, resp.status_code)
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()
