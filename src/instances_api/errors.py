from __future__ import annotations

from typing import Optional


class MonitorError(Exception):
    """Base class for failures raised while probing instances or talking to the uptime store."""


class NetworkError(MonitorError):
    """Connection failure or timeout while talking to a remote endpoint."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Request to {url} failed: {reason}")
        self.url = url
        self.reason = reason


class ProtocolError(MonitorError):
    """Remote endpoint answered with a non-success status code."""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"Invalid response code at {url}: {status_code}")
        self.url = url
        self.status_code = status_code


class ParseError(MonitorError):
    """Response body was malformed or missed a required field."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(f"{message} ({url})" if url else message)
        self.url = url


class StoreError(MonitorError):
    """Uptime store I/O or authentication failure."""
