from __future__ import annotations

import datetime as dt
import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy import select, delete, update, func, desc, asc
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newscache.core.errors import StorageError
from newscache.models import Article

logger = logging.getLogger(__name__)

DEFAULT_FEED_LIMIT = 20

def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def _dedupe(articles: Iterable[Article]) -> list[Article]:
    # First occurrence of an id wins
    seen: set[str] = set()
    out = []
    for a in articles:
        if a.id in seen:
            continue
        seen.add(a.id)
        out.append(a)
    return out

class ArticleStore(ABC):
    """Persistent article collection keyed by article id.

    Inserts are insert-or-ignore: a row that already exists keeps its
    favorite flag and cached_at.
    """

    def __init__(self, cache_duration: dt.timedelta, clock: Callable[[], dt.datetime] = _utc_now):
        self.cache_duration = cache_duration
        self._clock = clock

    def cutoff(self, cache_duration: Optional[dt.timedelta] = None) -> dt.datetime:
        window = self.cache_duration if cache_duration is None else cache_duration
        return self._clock() - window

    @abstractmethod
    async def insert(self, articles: Sequence[Article]) -> int:
        ...

    @abstractmethod
    async def merge(self, articles: Sequence[Article], evict_older_than: Optional[dt.datetime] = None) -> list[Article]:
        ...

    @abstractmethod
    async def get(self, article_id: str) -> Optional[Article]:
        ...

    @abstractmethod
    async def get_many(self, ids: Sequence[str]) -> list[Article]:
        ...

    @abstractmethod
    async def set_favorite(self, article_id: str, value: bool) -> bool:
        ...

    @abstractmethod
    async def clear_favorites(self) -> int:
        ...

    @abstractmethod
    async def query_by_freshness(self, cutoff: dt.datetime, limit: Optional[int] = None, newest_first: bool = True) -> list[Article]:
        ...

    @abstractmethod
    async def query_by_favorite(self) -> list[Article]:
        ...

    @abstractmethod
    async def delete_where(self, cached_before: Optional[dt.datetime] = None, favorite: Optional[bool] = None) -> int:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    async def cached_feed(self, limit: int = DEFAULT_FEED_LIMIT) -> list[Article]:
        return await self.query_by_freshness(self.cutoff(), limit=limit)

    async def favorites(self) -> list[Article]:
        return await self.query_by_favorite()

    async def evict_expired(self, cache_duration: Optional[dt.timedelta] = None) -> int:
        # Favorites are never evicted, whatever their age
        return await self.delete_where(cached_before=self.cutoff(cache_duration), favorite=False)

    async def clear_all(self) -> int:
        return await self.delete_where()

class SqlArticleStore(ArticleStore):
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        cache_duration: dt.timedelta = dt.timedelta(hours=2),
        clock: Callable[[], dt.datetime] = _utc_now,
    ):
        super().__init__(cache_duration, clock)
        self._sessionmaker = sessionmaker

    def _rows(self, articles: Sequence[Article]) -> list[dict]:
        # cached_at is the write time, whatever the caller put there
        now = self._clock()
        rows = []
        for a in _dedupe(articles):
            row = a.to_row()
            row["cached_at"] = now
            rows.append(row)
        return rows

    async def _insert(self, session: AsyncSession, articles: Sequence[Article]) -> int:
        rows = self._rows(articles)
        if not rows:
            return 0
        stmt = sqlite_insert(Article.__table__).values(rows).on_conflict_do_nothing(index_elements=["id"])
        res = await session.execute(stmt)
        return res.rowcount or 0

    async def _delete(self, session: AsyncSession, cached_before: Optional[dt.datetime], favorite: Optional[bool]) -> int:
        stmt = delete(Article)
        if cached_before is not None:
            stmt = stmt.where(Article.cached_at < cached_before)
        if favorite is not None:
            stmt = stmt.where(Article.is_favorite == favorite)
        res = await session.execute(stmt)
        return res.rowcount or 0

    async def _set_favorite(self, session: AsyncSession, value: bool, article_id: Optional[str] = None) -> int:
        stmt = update(Article).values(is_favorite=value)
        if article_id is not None:
            stmt = stmt.where(Article.id == article_id)
        else:
            stmt = stmt.where(Article.is_favorite != value)
        res = await session.execute(stmt)
        return res.rowcount or 0

    async def _select_ids(self, session: AsyncSession, ids: Sequence[str]) -> list[Article]:
        if not ids:
            return []
        rows = (await session.execute(select(Article).where(Article.id.in_(list(ids))))).scalars().all()
        by_id = {a.id: a for a in rows}
        return [by_id[i] for i in dict.fromkeys(ids) if i in by_id]

    async def insert(self, articles: Sequence[Article]) -> int:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    inserted = await self._insert(session, articles)
        except SQLAlchemyError as e:
            logger.error("Insert of %d articles failed: %s", len(articles), e)
            raise StorageError(f"Failed to insert articles: {e}") from e
        logger.debug("Inserted %d of %d articles", inserted, len(articles))
        return inserted

    async def merge(self, articles: Sequence[Article], evict_older_than: Optional[dt.datetime] = None) -> list[Article]:
        """Evict (optionally) then insert in one transaction.

        Returns the stored rows for ``articles`` in the given order, so an
        article that was already cached comes back with its stored favorite
        flag. Nothing is applied if any step fails.
        """
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    evicted = 0
                    if evict_older_than is not None:
                        evicted = await self._delete(session, evict_older_than, False)
                    inserted = await self._insert(session, articles)
                    merged = await self._select_ids(session, [a.id for a in articles])
        except SQLAlchemyError as e:
            logger.error("Merge of %d articles failed, rolled back: %s", len(articles), e)
            raise StorageError(f"Failed to merge articles: {e}") from e
        logger.info("Merged page: %d evicted, %d inserted, %d returned", evicted, inserted, len(merged))
        return merged

    async def get(self, article_id: str) -> Optional[Article]:
        found = await self.get_many([article_id])
        return found[0] if found else None

    async def get_many(self, ids: Sequence[str]) -> list[Article]:
        try:
            async with self._sessionmaker() as session:
                return await self._select_ids(session, ids)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read articles: {e}") from e

    async def set_favorite(self, article_id: str, value: bool) -> bool:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    updated = await self._set_favorite(session, value, article_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update favorite flag: {e}") from e
        return updated > 0

    async def clear_favorites(self) -> int:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    cleared = await self._set_favorite(session, False)
        except SQLAlchemyError as e:
            logger.error("Clearing favorites failed, rolled back: %s", e)
            raise StorageError(f"Failed to clear favorites: {e}") from e
        logger.info("Cleared %d favorites", cleared)
        return cleared

    async def query_by_freshness(self, cutoff: dt.datetime, limit: Optional[int] = None, newest_first: bool = True) -> list[Article]:
        order = desc(Article.published_at) if newest_first else asc(Article.published_at)
        stmt = select(Article).where(Article.cached_at > cutoff).order_by(order, Article.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self._sessionmaker() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read cached feed: {e}") from e

    async def query_by_favorite(self) -> list[Article]:
        stmt = select(Article).where(Article.is_favorite == True).order_by(desc(Article.published_at), Article.id)  # noqa: E712
        try:
            async with self._sessionmaker() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read favorites: {e}") from e

    async def delete_where(self, cached_before: Optional[dt.datetime] = None, favorite: Optional[bool] = None) -> int:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    removed = await self._delete(session, cached_before, favorite)
        except SQLAlchemyError as e:
            logger.error("Delete failed: %s", e)
            raise StorageError(f"Failed to delete articles: {e}") from e
        if removed:
            logger.info("Deleted %d cached articles", removed)
        return removed

    async def count(self) -> int:
        try:
            async with self._sessionmaker() as session:
                return (await session.execute(select(func.count()).select_from(Article))).scalar_one()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count articles: {e}") from e
