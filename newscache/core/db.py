from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

CREATE_TABLES_SQL = [
    '''
    CREATE TABLE IF NOT EXISTS articles (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        summary TEXT,
        image_url TEXT,
        source TEXT,
        published_at DATETIME NOT NULL,
        url TEXT NOT NULL,
        is_favorite BOOLEAN NOT NULL DEFAULT 0,
        cached_at DATETIME NOT NULL
    );
    ''',
    '''
    CREATE TABLE IF NOT EXISTS app_state (
        key TEXT PRIMARY KEY,
        value TEXT
    );
    ''',
    'CREATE INDEX IF NOT EXISTS ix_articles_cached_at ON articles(cached_at);',
    'CREATE INDEX IF NOT EXISTS ix_articles_favorite_published ON articles(is_favorite, published_at);',
]

def _sqlite_url(path: str) -> str:
    # sqlite is file-based, ":memory:" only lives as long as one connection
    return f"sqlite+aiosqlite:///{path}"

def make_engine(db_path: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(_sqlite_url(db_path), echo=echo, future=True)

def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def init_db(engine: AsyncEngine) -> None:
    # Create tables (simple, no migration tool needed)
    async with engine.begin() as conn:
        for stmt in CREATE_TABLES_SQL:
            await conn.execute(text(stmt))

class Base(DeclarativeBase):
    pass

class UTCDateTime(TypeDecorator):
    """Stores datetimes as naive UTC and hands them back as aware UTC.

    SQLite has no timezone support, so every value is normalised on the way
    in; naive inputs are assumed to already be UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=dt.timezone.utc)
