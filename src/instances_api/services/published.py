from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from src.instances_api.schemas.common import utc_now
from src.instances_api.schemas.instances import InstanceDescriptor, InstanceRecord


class PublishedState:
    """
    Process-wide results of the last completed poll cycle.

    Single writer (the poller), many readers (API handlers). Every published value is an
    immutable tuple or read-only mapping and is replaced by one attribute assignment, so a
    reader sees either the previous value or the new one, never a mix. Readers take no lock.
    """

    def __init__(self) -> None:
        self._snapshot: Tuple[InstanceRecord, ...] = ()
        self._inactive: Mapping[int, Tuple[InstanceDescriptor, ...]] = MappingProxyType({})
        self.last_cycle_at: Optional[datetime] = None
        self.cycles_completed: int = 0

    def snapshot(self) -> Tuple[InstanceRecord, ...]:
        return self._snapshot

    def inactive(self, window_hours: int) -> Optional[Tuple[InstanceDescriptor, ...]]:
        """Inactive set for the window, or None before it was first computed."""
        return self._inactive.get(int(window_hours))

    def publish_snapshot(self, records: Iterable[InstanceRecord]) -> None:
        self._snapshot = tuple(records)

    def publish_inactive(self, window_hours: int, descriptors: Iterable[InstanceDescriptor]) -> None:
        # Copy-on-write: build the next mapping aside and swap it in.
        updated = dict(self._inactive)
        updated[int(window_hours)] = tuple(descriptors)
        self._inactive = MappingProxyType(updated)

    def mark_cycle_complete(self) -> None:
        self.last_cycle_at = utc_now()
        self.cycles_completed += 1
