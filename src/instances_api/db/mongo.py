from __future__ import annotations

import logging
from threading import RLock
from typing import Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


UPTIME_COLLECTION = "uptime"


class MongoManager:
    """
    MongoDB connection manager for the uptime store.

    Holds one MongoClient for the process; every network call on it is bounded by the
    configured timeout so a slow store never stalls a poll cycle beyond that budget.
    """

    def __init__(self, mongo_uri: str, db_name: str, timeout_sec: float = 10.0):
        self._mongo_uri = mongo_uri
        self._db_name = db_name
        self._timeout_ms = int(max(250.0, timeout_sec * 1000))
        self._client: Optional[MongoClient] = None
        self._lock = RLock()

    def connect(self) -> None:
        """Initialize the Mongo client if needed."""
        with self._lock:
            if self._client is not None:
                return
            # MongoClient is thread-safe and manages internal pooling.
            self._client = MongoClient(
                self._mongo_uri,
                connect=True,
                serverSelectionTimeoutMS=self._timeout_ms,
                connectTimeoutMS=self._timeout_ms,
                socketTimeoutMS=self._timeout_ms,
            )

    # PUBLIC_INTERFACE
    def ping(self, timeout_ms: int = 1500) -> bool:
        """Ping the configured MongoDB to validate connectivity."""
        try:
            if self._client is None:
                self.connect()
            assert self._client is not None
            self._client.admin.command("ping", maxTimeMS=int(max(250, timeout_ms)))
            return True
        except PyMongoError:
            logger.exception("Mongo ping failed (PyMongoError)")
            return False
        except Exception:
            logger.exception("Mongo ping failed (unexpected)")
            return False

    def close(self) -> None:
        """Close the Mongo client."""
        with self._lock:
            if self._client is not None:
                try:
                    self._client.close()
                except Exception:
                    logger.exception("Error closing MongoClient")
                self._client = None

    def db(self) -> Database:
        """Return the uptime database handle."""
        if self._client is None:
            self.connect()
        assert self._client is not None
        return self._client[self._db_name]

    def uptime(self) -> Collection:
        """Return the uptime samples collection."""
        return self.db()[UPTIME_COLLECTION]

    def init_indexes(self, *, sample_ttl_seconds: int = 0) -> None:
        """
        Create required indexes (idempotent).

        sample_ttl_seconds == 0 disables TTL index creation on uptime.ts.
        """
        col = self.uptime()

        # Common query: apiUrl + status + time range.
        col.create_index(
            [("apiUrl", ASCENDING), ("status", ASCENDING), ("ts", DESCENDING)],
            name="idx_uptime_apiUrl_status_ts",
        )

        # TTL index: on ts (Date). Must be single-field index.
        if int(sample_ttl_seconds) > 0:
            col.create_index(
                [("ts", ASCENDING)],
                name="ttl_uptime_ts",
                expireAfterSeconds=int(sample_ttl_seconds),
            )
