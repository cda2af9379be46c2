"""
Per-key serialization for check-then-act writes.

Assignment writes for one (school, teacher, day), writes to one period and
timetable creation for one (school, class) must not interleave: the check and
the write run under the same key. A period or timetable key is taken before
any teacher key. Inside one process an asyncio.Lock per key does this; on
PostgreSQL a transaction-scoped advisory lock extends it across workers and is
released by the commit or rollback that ends the transaction.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def lock_key(*parts: object) -> str:
    return ":".join(str(p) for p in parts)


def _get_lock(key: str) -> asyncio.Lock:
    lock = _locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _locks[key] = lock
    return lock


@asynccontextmanager
async def serialized(db: AsyncSession, *parts: object) -> AsyncIterator[None]:
    """Hold the key for the duration of the block. Rolls the session back if the block raises."""
    key = lock_key(*parts)
    lock = _get_lock(key)
    async with lock:
        if db.bind is not None and db.bind.dialect.name == "postgresql":
            await db.execute(text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"), {"key": key})
        try:
            yield
        except BaseException:
            logger.debug("Rolling back work serialized on %s", key)
            await db.rollback()
            raise
