# tests/conftest.py
import contextlib
import datetime as dt
from types import SimpleNamespace

import pytest

from newscache.core.config import Settings
from newscache.core.db import init_db, make_engine, make_sessionmaker
from newscache.services.budget import BudgetTracker, SqlStateStore
from newscache.services.repository import ArticleRepository
from newscache.services.schemas import ArticlesResponse, RemoteArticle
from newscache.services.store import SqlArticleStore

T0 = dt.datetime(2025, 8, 10, 12, 0, tzinfo=dt.timezone.utc)

class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += dt.timedelta(**kwargs)

def article_url(slug):
    return f"https://news.example.com/{slug}"

def remote(slug, published_at=T0, title=None, image="https://img.example.com/x.jpg"):
    return RemoteArticle.model_validate({
        "source": {"id": None, "name": "Example News"},
        "author": "Reporter",
        "title": title or f"Headline {slug}",
        "description": f"Summary of {slug}",
        "url": article_url(slug),
        "urlToImage": image,
        "publishedAt": published_at.isoformat(),
        "content": None,
    })

def batch(*slugs):
    # Later slugs are older so feed order matches argument order
    arts = [remote(s, published_at=T0 - dt.timedelta(minutes=i)) for i, s in enumerate(slugs)]
    return ArticlesResponse(status="ok", totalResults=len(arts), articles=arts)

class FakeNewsClient:
    """Replays queued responses; an Exception in the queue is raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def fetch(self, endpoint):
        self.calls.append(endpoint)
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

@pytest.fixture()
def clock():
    return FakeClock()

@pytest.fixture()
def settings(tmp_path):
    return Settings(
        _env_file=None,
        NEWSAPI_KEY="test-key",
        DB_PATH=str(tmp_path / "cache.db"),
        PAGE_SIZE=20,
        CACHE_DURATION_HOURS=2,
        MAX_DAILY_REQUESTS=80,
    )

@pytest.fixture()
def make_env(settings, clock):
    """Async context manager building store, budget and repository over a temp sqlite file."""

    @contextlib.asynccontextmanager
    async def _make(client=None, max_daily=None):
        engine = make_engine(settings.db_path)
        await init_db(engine)
        sessionmaker = make_sessionmaker(engine)
        store = SqlArticleStore(sessionmaker, cache_duration=settings.cache_duration, clock=clock)
        budget = BudgetTracker(
            SqlStateStore(sessionmaker),
            max_daily=settings.max_daily_requests if max_daily is None else max_daily,
            clock=clock,
        )
        client = client or FakeNewsClient()
        repo = ArticleRepository(client=client, store=store, budget=budget, settings=settings)
        try:
            yield SimpleNamespace(store=store, budget=budget, client=client, repo=repo, sessionmaker=sessionmaker)
        finally:
            await engine.dispose()

    return _make
