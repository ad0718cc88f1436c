from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newscache.core.config import Settings
from newscache.core.errors import BudgetExhausted
from newscache.models import Article
from newscache.services.budget import BudgetTracker, SqlStateStore
from newscache.services.endpoints import DEFAULT_SORT_BY, Endpoint, everything, top_headlines
from newscache.services.schemas import ArticlesResponse
from newscache.services.fetcher import NewsClient
from newscache.services.store import ArticleStore, SqlArticleStore

logger = logging.getLogger(__name__)

class ArticleFetcher(Protocol):
    async def fetch(self, endpoint: Endpoint) -> ArticlesResponse: ...

class ArticleRepository:
    """Decides per call whether to serve from cache or hit the network.

    Store and budget access runs under one lock. A request slot is taken
    in the same locked section as the admission check, and the fetch
    itself runs outside the lock so different pages can be in flight at
    once. A fetch that fails or is abandoned gives its slot back and only
    touches the store once it has returned, so it leaves nothing behind.
    """

    def __init__(self, client: ArticleFetcher, store: ArticleStore, budget: BudgetTracker, settings: Settings):
        self._client = client
        self._store = store
        self._budget = budget
        self._settings = settings
        self._lock = asyncio.Lock()

    async def _admit(self, what: str) -> None:
        if not await self._budget.can_make_request():
            logger.warning("Daily request budget exhausted, refusing %s", what)
            raise BudgetExhausted()

    async def _reserve(self, what: str) -> None:
        if not await self._budget.try_reserve():
            logger.warning("Daily request budget exhausted, refusing %s", what)
            raise BudgetExhausted()

    async def _fetch(self, endpoint: Endpoint) -> list[Article]:
        try:
            response = await self._client.fetch(endpoint)
        except BaseException:
            # Failed or cancelled requests are free
            async with self._lock:
                await self._budget.release()
            raise
        return [remote.to_article() for remote in response.articles]

    async def load_feed(self, page: int = 1) -> list[Article]:
        async with self._lock:
            await self._admit(f"feed page {page}")
            if page == 1:
                cached = await self._store.cached_feed(limit=self._settings.page_size)
                if cached:
                    logger.info("Serving %d cached articles for page 1", len(cached))
                    return cached
                logger.info("Cache empty or stale, fetching page 1")
            await self._reserve(f"feed page {page}")

        endpoint = top_headlines(page, country=self._settings.country, page_size=self._settings.page_size)
        articles = await self._fetch(endpoint)

        async with self._lock:
            evict_before = self._store.cutoff() if page == 1 else None
            return await self._store.merge(articles, evict_older_than=evict_before)

    async def search(
        self,
        query: str,
        page: int = 1,
        from_: Optional[dt.datetime] = None,
        to: Optional[dt.datetime] = None,
        sort_by: Optional[str] = None,
    ) -> list[Article]:
        endpoint = everything(
            query,
            page,
            page_size=self._settings.page_size,
            sort_by=sort_by or DEFAULT_SORT_BY,
            from_=from_,
            to=to,
        )
        async with self._lock:
            await self._reserve(f"search {query!r}")

        articles = await self._fetch(endpoint)
        # Search results are returned, never cached
        logger.info("Search %r page %d returned %d articles", query, page, len(articles))
        return articles

    async def set_favorite(self, article_id: str, value: bool) -> bool:
        async with self._lock:
            found = await self._store.set_favorite(article_id, value)
        if not found:
            logger.debug("Favorite toggle on unknown article %s ignored", article_id)
        return found

    async def toggle_favorite(self, article_id: str) -> Optional[bool]:
        async with self._lock:
            article = await self._store.get(article_id)
            if article is None:
                return None
            value = not article.is_favorite
            await self._store.set_favorite(article_id, value)
            return value

    async def cached_feed(self) -> list[Article]:
        async with self._lock:
            return await self._store.cached_feed(limit=self._settings.page_size)

    async def favorites(self) -> list[Article]:
        async with self._lock:
            return await self._store.favorites()

    async def clear_favorites(self) -> int:
        async with self._lock:
            return await self._store.clear_favorites()

    async def clear_cache(self) -> int:
        async with self._lock:
            return await self._store.clear_all()

    async def remaining_requests(self) -> int:
        async with self._lock:
            return await self._budget.remaining_requests()

    async def is_rate_limited(self) -> bool:
        async with self._lock:
            return await self._budget.is_rate_limited()

    async def reset_rate_limit(self) -> None:
        async with self._lock:
            await self._budget.reset_daily_count()

def build_repository(
    settings: Settings,
    sessionmaker: async_sessionmaker[AsyncSession],
    client: Optional[ArticleFetcher] = None,
) -> ArticleRepository:
    """Wire a repository over SQLite-backed store and budget state."""
    if client is None:
        client = NewsClient(
            api_key=settings.api_key,
            api_host=settings.api_host,
            timeout_s=settings.request_timeout_seconds,
            user_agent=settings.user_agent,
        )
    return ArticleRepository(
        client=client,
        store=SqlArticleStore(sessionmaker, cache_duration=settings.cache_duration),
        budget=BudgetTracker(SqlStateStore(sessionmaker), max_daily=settings.max_daily_requests),
        settings=settings,
    )
