from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.instances_api.config import load_config
from src.instances_api.routers import health, instances
from src.instances_api.services.http_client import ProbeHttpClient, build_async_client
from src.instances_api.services.poller import poll_loop
from src.instances_api.services.uptime_store import drain_pending_writes
from src.instances_api.state import get_state, init_state

openapi_tags = [
    {"name": "Health", "description": "Service health, uptime store and poller diagnostics."},
    {"name": "Instances", "description": "Healthy instances from the last poll cycle and inactive instance lists."},
]

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Instances Health API",
    description=(
        "Read-only API over a continuously polled roster of public backend instances. "
        "A background loop probes every instance each minute, records uptime samples in MongoDB "
        "and publishes the healthy set plus instances with zero uptime over 7 and 30 days."
    ),
    version="1.0.0",
    openapi_tags=openapi_tags,
)

# Initialize typed app state (config + Mongo manager + published state)
init_state(app, load_config())


@app.on_event("startup")
async def _on_startup() -> None:
    """Startup hook: connect to Mongo, validate connectivity, ensure indexes, and start the poller."""
    state = get_state(app)

    # Connect + verify early so a misconfigured store doesn't silently degrade every uptime field.
    state.mongo.connect()
    if not state.mongo.ping():
        raise RuntimeError("Mongo connectivity check failed during startup. Verify BACKEND_MONGO_URI.")

    state.mongo.init_indexes(sample_ttl_seconds=int(state.config.uptime_sample_ttl_days) * 24 * 3600)

    state.http = ProbeHttpClient(
        build_async_client(state.config.http_timeout_sec, state.config.probe_user_agent),
        max_concurrency=state.config.probe_max_concurrency,
    )

    app.state._poller_shutdown = asyncio.Event()
    state.poller_task = asyncio.create_task(poll_loop(state, app.state._poller_shutdown))


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    """Shutdown hook: stop the poller, flush sample writes and close clients."""
    state = get_state(app)

    poller_shutdown = getattr(app.state, "_poller_shutdown", None)
    if poller_shutdown is not None:
        poller_shutdown.set()
    poller_task = state.poller_task
    if poller_task is not None:
        try:
            await asyncio.wait_for(poller_task, timeout=5.0)
        except Exception:
            logger.exception("Error stopping poller task")

    await drain_pending_writes(timeout=5.0)

    if state.http is not None:
        await state.http.aclose()
        state.http = None

    state.mongo.close()


# Public frontends on arbitrary origins read this API.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
    expose_headers=["ETag"],
)

app.include_router(health.router)
app.include_router(instances.router)
