from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from ..exceptions import ConcurrencyConflict
from ..models import enum_value

Partition = tuple[str, str]


def partition_key(sport_type, category) -> Partition:
    return enum_value(sport_type), enum_value(category)


class PartitionLocks:
    """Per-partition mutual exclusion plus single-flight leases for ranking runs.

    ``lock()`` serialises rating updates against a ranking pass on the same
    (sport, category). ``single_flight()`` is a non-blocking lease: a second
    ranking run for a partition that is already in flight is refused rather
    than queued.

    Both are process-local.
    """

    def __init__(self) -> None:
        self._locks: dict[Partition, asyncio.Lock] = {}
        self._in_flight: set[Partition] = set()

    def lock(self, sport_type, category) -> asyncio.Lock:
        key = partition_key(sport_type, category)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def is_running(self, sport_type, category) -> bool:
        return partition_key(sport_type, category) in self._in_flight

    @asynccontextmanager
    async def single_flight(self, sport_type, category) -> AsyncIterator[None]:
        key = partition_key(sport_type, category)
        if key in self._in_flight:
            raise ConcurrencyConflict(
                f"ranking run for {key[0]}/{key[1]} is already in progress"
            )
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    def clear(self) -> None:
        self._locks.clear()
        self._in_flight.clear()


partition_locks = PartitionLocks()
