from __future__ import annotations

import os
from collections.abc import AsyncIterator

import httpx
import pytest

# The app module builds its config at import time; Mongo is only contacted on startup,
# which httpx.ASGITransport never triggers.
os.environ.setdefault("BACKEND_MONGO_URI", "mongodb://localhost:27017")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def app():
    """FastAPI app with a fresh published state for every test."""
    from src.instances_api.main import app as fastapi_app
    from src.instances_api.services.published import PublishedState
    from src.instances_api.state import get_state

    get_state(fastapi_app).published = PublishedState()
    return fastapi_app


@pytest.fixture
async def async_client(app) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client bound to the FastAPI ASGI app (no lifespan, so no background poller)."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
