from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.instances_api.config import sanitize_mongo_uri
from src.instances_api.schemas.common import HealthResponse, utc_now
from src.instances_api.state import get_state

router = APIRouter(prefix="/health", tags=["Health"])


class StoreConnectivityResponse(BaseModel):
    """Response model for backend↔uptime store connectivity diagnostics."""

    ok: bool = Field(..., description="Whether the backend can successfully ping MongoDB.")
    database: str = Field(..., description="Database holding the uptime samples.")
    mongo_uri_sanitized: str = Field(..., description="MongoDB URI with credentials masked.")
    timestamp: str = Field(..., description="UTC timestamp when the check was performed (ISO string).")


class PollerDiagnosticsResponse(BaseModel):
    """Diagnostics describing the poll loop and the currently published data."""

    running: bool = Field(..., description="Whether the background poll task is alive.")
    cycles_completed: int = Field(..., ge=0, description="Poll cycles published since startup.")
    last_cycle_at: Optional[str] = Field(default=None, description="UTC time of the last published cycle (ISO string).")
    healthy_instances: int = Field(..., ge=0, description="Records in the current snapshot.")
    poll_interval_sec: int = Field(..., description="Configured wait between cycles (seconds).")
    probe_max_concurrency: int = Field(..., description="Outbound request cap (0 means unlimited).")


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Basic service liveness check used by deployment.",
    operation_id="health_check",
)
def health_check() -> HealthResponse:
    """Return service liveness status."""
    return HealthResponse(status="ok", message="Healthy", timestamp=utc_now())


@router.get(
    "/store",
    response_model=StoreConnectivityResponse,
    summary="Uptime store connectivity check",
    description="Pings the MongoDB holding uptime samples. Credentials are masked.",
    operation_id="store_connectivity_check",
)
def store_connectivity_check(request: Request) -> StoreConnectivityResponse:
    state = get_state(request.app)
    return StoreConnectivityResponse(
        ok=state.mongo.ping(),
        database=state.config.uptime_db_name,
        mongo_uri_sanitized=sanitize_mongo_uri(state.config.mongo_uri),
        timestamp=utc_now().isoformat(),
    )


@router.get(
    "/poller",
    response_model=PollerDiagnosticsResponse,
    summary="Poller diagnostics",
    description="Reports when the last poll cycle was published and how many instances it found healthy.",
    operation_id="poller_diagnostics",
)
def poller_diagnostics(request: Request) -> PollerDiagnosticsResponse:
    """Return poll loop status (no secrets)."""
    state = get_state(request.app)
    published = state.published
    task = state.poller_task
    return PollerDiagnosticsResponse(
        running=bool(task is not None and not task.done()),  # type: ignore[attr-defined]
        cycles_completed=published.cycles_completed,
        last_cycle_at=published.last_cycle_at.isoformat() if published.last_cycle_at else None,
        healthy_instances=len(published.snapshot()),
        poll_interval_sec=int(state.config.poll_interval_sec),
        probe_max_concurrency=int(state.config.probe_max_concurrency),
    )
