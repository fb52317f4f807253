"""
Coach API - Quota Store

Storage abstraction for quota records.

The in-memory store is process local: a restart resets every counter and
multiple instances each keep their own view. A shared backend (Redis,
Postgres) only needs to implement QuotaStore, including a per-key lock
with the same mutual exclusion guarantee.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple

from .models import QuotaRecord


class QuotaStore(ABC):
    """Keyed storage for QuotaRecord, one record per user id."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[QuotaRecord]:
        """Return the record for a user, or None."""
        pass

    @abstractmethod
    async def set(self, record: QuotaRecord) -> None:
        """Insert or replace the record for record.user_id."""
        pass

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        """Remove a record. Returns True if one existed."""
        pass

    @abstractmethod
    async def items(self) -> List[Tuple[str, QuotaRecord]]:
        """Snapshot of all (user_id, record) pairs."""
        pass

    @abstractmethod
    def lock(self, user_id: str):
        """Async context manager giving exclusive access to one user's record."""
        pass

    async def count(self) -> int:
        return len(await self.items())


class InMemoryQuotaStore(QuotaStore):
    """
    Dict-backed store with one asyncio.Lock per user id.

    Suitable for a single worker process.
    """

    def __init__(self):
        self._records: Dict[str, QuotaRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def get(self, user_id: str) -> Optional[QuotaRecord]:
        return self._records.get(user_id)

    async def set(self, record: QuotaRecord) -> None:
        self._records[record.user_id] = record

    async def delete(self, user_id: str) -> bool:
        existed = self._records.pop(user_id, None) is not None
        # A lock with holders or waiters stays so they keep serializing on it
        if user_id not in self._lock_users:
            self._locks.pop(user_id, None)
        return existed

    async def items(self) -> List[Tuple[str, QuotaRecord]]:
        return list(self._records.items())

    async def count(self) -> int:
        return len(self._records)

    @asynccontextmanager
    async def lock(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            users = self._lock_users[user_id] - 1
            if users:
                self._lock_users[user_id] = users
            else:
                del self._lock_users[user_id]
                if user_id not in self._records:
                    self._locks.pop(user_id, None)
