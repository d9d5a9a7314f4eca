from __future__ import annotations

import hashlib
import json
from typing import Any, List, Union

from fastapi import APIRouter, Request, Response
from fastapi.encoders import jsonable_encoder

from src.instances_api.schemas.common import ErrorResponse
from src.instances_api.schemas.instances import InstanceDescriptor, InstanceRecord
from src.instances_api.services.uptime_store import HOURS_MONTH, HOURS_WEEK
from src.instances_api.state import get_state

router = APIRouter(tags=["Instances"])


def _etag_matches(header: str, etag: str) -> bool:
    """Weak comparison against an If-None-Match header: W/ prefixes are ignored and * matches anything."""
    opaque = etag[2:] if etag.startswith("W/") else etag
    for candidate in header.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate == opaque:
            return True
    return False


def _etag_response(request: Request, payload: Any) -> Response:
    """Serialize payload as JSON with a weak ETag; answer 304 when the client already has it."""
    body = json.dumps(jsonable_encoder(payload), separators=(",", ":")).encode("utf-8")
    etag = 'W/"%s"' % hashlib.sha1(body).hexdigest()
    if _etag_matches(request.headers.get("if-none-match", ""), etag):
        return Response(status_code=304, headers={"ETag": etag})
    return Response(content=body, media_type="application/json", headers={"ETag": etag})


def _inactive_response(request: Request, window_hours: int) -> Response:
    inactive = get_state(request.app).published.inactive(window_hours)
    if inactive is None:
        return _etag_response(
            request, ErrorResponse(error=f"No data for time interval {window_hours} hours yet!")
        )
    return _etag_response(request, list(inactive))


@router.get(
    "/",
    response_model=List[InstanceRecord],
    summary="List healthy instances",
    description="Instances that passed every check in the last completed poll cycle, in roster order.",
    operation_id="list_instances",
)
def list_instances(request: Request) -> Response:
    """Return the current snapshot."""
    return _etag_response(request, list(get_state(request.app).published.snapshot()))


@router.get(
    "/inactive",
    response_model=Union[List[InstanceDescriptor], ErrorResponse],
    summary="Inactive instances (30 days)",
    description="Roster entries with 0% measured uptime over the last 30 days.",
    operation_id="list_inactive_instances",
)
def list_inactive(request: Request) -> Response:
    return _inactive_response(request, HOURS_MONTH)


@router.get(
    "/inactive/7",
    response_model=Union[List[InstanceDescriptor], ErrorResponse],
    summary="Inactive instances (7 days)",
    description="Roster entries with 0% measured uptime over the last 7 days.",
    operation_id="list_inactive_instances_7d",
)
def list_inactive_week(request: Request) -> Response:
    return _inactive_response(request, HOURS_WEEK)


@router.get(
    "/inactive/30",
    response_model=Union[List[InstanceDescriptor], ErrorResponse],
    summary="Inactive instances (30 days)",
    description="Roster entries with 0% measured uptime over the last 30 days.",
    operation_id="list_inactive_instances_30d",
)
def list_inactive_month(request: Request) -> Response:
    return _inactive_response(request, HOURS_MONTH)
