"""Daily request budget.

The count lives in an injected :class:`StateStore` so it survives restarts.
Before any read or write the tracker compares the day of the last recorded
request with today (local calendar time) and zeroes the count when they
differ. There is no sliding window: the budget resets at local midnight.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Callable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newscache.core.errors import StorageError
from newscache.models import StateEntry

logger = logging.getLogger(__name__)

COUNT_KEY = "daily_request_count"
DATE_KEY = "last_request_date"

def _local_now() -> dt.datetime:
    return dt.datetime.now().astimezone()

class StateStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def set_many(self, items: dict[str, str]) -> None: ...

class MemoryStateStore:
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def set_many(self, items: dict[str, str]) -> None:
        self._data.update(items)

class SqlStateStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def get(self, key: str) -> Optional[str]:
        try:
            async with self._sessionmaker() as session:
                q = select(StateEntry.value).where(StateEntry.key == key)
                return (await session.execute(q)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read state {key!r}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        await self.set_many({key: value})

    async def set_many(self, items: dict[str, str]) -> None:
        if not items:
            return
        stmt = sqlite_insert(StateEntry.__table__).values([{"key": k, "value": v} for k, v in items.items()])
        stmt = stmt.on_conflict_do_update(index_elements=["key"], set_={"value": stmt.excluded["value"]})
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    await session.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write state {sorted(items)}: {e}") from e

class BudgetTracker:
    def __init__(self, state: StateStore, max_daily: int = 80, clock: Callable[[], dt.datetime] = _local_now):
        self._state = state
        self.max_daily = max_daily
        self._clock = clock
        self._lock = asyncio.Lock()

    async def _count(self) -> int:
        raw = await self._state.get(COUNT_KEY)
        return int(raw) if raw else 0

    async def _last_request(self) -> Optional[dt.datetime]:
        raw = await self._state.get(DATE_KEY)
        if not raw:
            return None
        return dt.datetime.fromisoformat(raw)

    async def _write(self, count: int, when: dt.datetime) -> None:
        await self._state.set_many({COUNT_KEY: str(count), DATE_KEY: when.isoformat()})

    async def _rollover(self) -> int:
        now = self._clock()
        last = await self._last_request()
        if last is None or last.astimezone().date() != now.astimezone().date():
            if last is not None:
                logger.info("New day, resetting request count (last request %s)", last.isoformat())
            await self._write(0, now)
            return 0
        return await self._count()

    async def can_make_request(self) -> bool:
        async with self._lock:
            return await self._rollover() < self.max_daily

    async def is_rate_limited(self) -> bool:
        return not await self.can_make_request()

    async def record_request(self) -> int:
        async with self._lock:
            count = await self._rollover() + 1
            await self._write(count, self._clock())
            logger.debug("Recorded request %d/%d", count, self.max_daily)
            return count

    async def try_reserve(self) -> bool:
        """Take one request slot if today's budget allows it.

        Check and increment happen under the same lock, so concurrent
        callers can never hold more slots than ``max_daily``.
        """
        async with self._lock:
            count = await self._rollover()
            if count >= self.max_daily:
                return False
            await self._write(count + 1, self._clock())
            logger.debug("Reserved request %d/%d", count + 1, self.max_daily)
            return True

    async def release(self) -> None:
        """Give back a slot taken by try_reserve for a request that never completed."""
        async with self._lock:
            count = await self._rollover()
            # A rollover since the reservation already zeroed it
            if count > 0:
                await self._write(count - 1, self._clock())
                logger.debug("Released request slot, now %d/%d", count - 1, self.max_daily)

    async def remaining_requests(self) -> int:
        async with self._lock:
            return max(0, self.max_daily - await self._rollover())

    async def reset_daily_count(self) -> None:
        async with self._lock:
            await self._write(0, self._clock())
            logger.info("Request count reset manually")
