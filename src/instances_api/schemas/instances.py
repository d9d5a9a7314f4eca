from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InstanceDescriptor(BaseModel):
    """Roster entry for one deployment of the monitored backend (identity key: api_url)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name as listed in the roster.")
    api_url: str = Field(..., description="Base URL of the instance API.")
    locations: str = Field(default="", description="Free-form hosting locations, as listed in the roster.")
    cdn: bool = Field(default=False, description="Whether the instance is fronted by a CDN.")


class FrontendConfig(BaseModel):
    """Feature flags exposed by an instance's /config endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    s3_enabled: bool = Field(default=False, alias="s3Enabled")
    image_proxy_url: Optional[str] = Field(default="", alias="imageProxyUrl")
    registration_disabled: bool = Field(default=False, alias="registrationDisabled")


class InstanceRecord(InstanceDescriptor):
    """Enriched, immutable result of one successful poll of an instance."""

    version: str = Field(..., description="Raw version string reported by the instance.")
    version_hash: str = Field(..., description="Build hash: last '-' separated segment of version.")
    up_to_date: bool = Field(..., description="Whether the reference commit contains the build hash.")
    registered: int = Field(..., ge=0, description="Number of registered users.")
    last_checked: int = Field(..., description="Unix timestamp (seconds) of the successful liveness check.")
    cache: bool = Field(..., description="Whether repeated trending requests are served from cache.")
    s3_enabled: bool = Field(default=False)
    image_proxy_url: str = Field(default="")
    registration_disabled: bool = Field(default=False)
    uptime_24h: Optional[float] = Field(default=None, description="Uptime percent over 24h, null when no samples.")
    uptime_7d: Optional[float] = Field(default=None, description="Uptime percent over 7 days, null when no samples.")
    uptime_30d: Optional[float] = Field(default=None, description="Uptime percent over 30 days, null when no samples.")
