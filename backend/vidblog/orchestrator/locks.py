"""Per-workflow mutation locks.

Every reload-mutate-save of a workflow record runs under the lock for that
workflow id, so transitions from concurrently executing steps never
overwrite each other.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class WorkflowLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, workflow_id: str) -> asyncio.Lock:
        lock = self._locks.get(workflow_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[workflow_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, workflow_id: str) -> AsyncIterator[None]:
        async with self.get(workflow_id):
            yield

    def discard(self, workflow_id: str) -> None:
        """Forget the lock of a deleted workflow if nobody holds it."""
        lock = self._locks.get(workflow_id)
        if lock is not None and not lock.locked():
            del self._locks[workflow_id]
