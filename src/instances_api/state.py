from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from fastapi import FastAPI

from src.instances_api.config import BackendConfig
from src.instances_api.db.mongo import MongoManager
from src.instances_api.services.http_client import ProbeHttpClient
from src.instances_api.services.published import PublishedState
from src.instances_api.services.uptime_store import MongoUptimeStore, UptimeStore


@dataclass
class AppState:
    """Typed app.state container for shared singletons."""

    config: BackendConfig
    mongo: MongoManager
    store: UptimeStore
    published: PublishedState = field(default_factory=PublishedState)
    http: Optional[ProbeHttpClient] = None  # created on startup, needs a running loop
    poller_task: Optional[object] = None  # asyncio.Task, but kept loose to avoid import cycles


# PUBLIC_INTERFACE
def init_state(app: FastAPI, config: BackendConfig) -> None:
    """Initialize app.state with Mongo manager, uptime store and empty published state."""
    mongo = MongoManager(config.mongo_uri, config.uptime_db_name, timeout_sec=config.http_timeout_sec)
    app.state.state = AppState(config=config, mongo=mongo, store=MongoUptimeStore(mongo))


# PUBLIC_INTERFACE
def get_state(app: FastAPI) -> AppState:
    """Fetch typed AppState from a FastAPI app."""
    return app.state.state  # type: ignore[attr-defined]
