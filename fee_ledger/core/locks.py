"""
Per-student critical section for ledger mutations.

Serialises the payment waterfall, manual statement edits, class changes and
payment deletions for one student inside this process. Cross-process writers
are caught by the statement version column instead.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict
from uuid import UUID

from fee_ledger.core.app_logger import get_logger

logger = get_logger(__name__)


class StudentLockRegistry:
    def __init__(self) -> None:
        self._registry_lock = asyncio.Lock()
        self._locks: Dict[UUID, asyncio.Lock] = {}
        self._waiters: Dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, student_id: UUID) -> AsyncIterator[None]:
        async with self._registry_lock:
            lock = self._locks.setdefault(student_id, asyncio.Lock())
            self._waiters[student_id] = self._waiters.get(student_id, 0) + 1
        try:
            if lock.locked():
                logger.debug("Waiting for ledger lock of student %s", student_id)
            async with lock:
                yield
        finally:
            async with self._registry_lock:
                self._waiters[student_id] -= 1
                if self._waiters[student_id] == 0:
                    del self._waiters[student_id]
                    self._locks.pop(student_id, None)

    def is_locked(self, student_id: UUID) -> bool:
        lock = self._locks.get(student_id)
        return bool(lock and lock.locked())


student_locks = StudentLockRegistry()


def student_lock(student_id: UUID):
    """`async with student_lock(student_id): ...`"""
    return student_locks.hold(student_id)
