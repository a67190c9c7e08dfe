"""Per-partition serialization of structural mutations.

A mutation rewrites a contiguous range of boundaries inside one scope
partition. Two mutations in the same partition must not interleave;
mutations in different partitions never wait on each other. Reads take no
locks at all.

In-process, each partition gets its own ``asyncio.Lock``. Across processes,
the renumbering procedure additionally reads boundaries with
``SELECT ... FOR UPDATE`` (see ``HierarchySettings.lock_rows``).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class PartitionLocks:
    """Registry of asyncio locks keyed by partition.

    Locks are held weakly: a partition's lock disappears once no task holds
    or waits on it.

    Example:
        >>> locks = PartitionLocks()
        >>> async with locks.hold(("categories", "catalog")):
        ...     ...  # renumber rows of the "catalog" partition
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[Any, ...], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def get(self, key: tuple[Any, ...]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, key: tuple[Any, ...]) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @contextlib.asynccontextmanager
    async def hold(self, key: tuple[Any, ...]) -> AsyncIterator[None]:
        lock = self.get(key)
        if lock.locked():
            logger.debug("Waiting for partition lock", extra={"partition": key})
        async with lock:
            yield


partition_locks = PartitionLocks()


__all__ = [
    "PartitionLocks",
    "partition_locks",
]
