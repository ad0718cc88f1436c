from __future__ import annotations

import datetime as dt

from sqlalchemy import String, Boolean, Index, Text
from sqlalchemy.orm import Mapped, mapped_column
from newscache.core.db import Base, UTCDateTime

class Article(Base):
    __tablename__ = "articles"
    __table_args__ = (
        Index("ix_articles_cached_at", "cached_at"),
        Index("ix_articles_favorite_published", "is_favorite", "published_at"),
    )

    # sha256 of the canonical url
    id: Mapped[str] = mapped_column(String, primary_key=True)

    title: Mapped[str] = mapped_column(String, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[str | None] = mapped_column(String, nullable=True)

    published_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)

    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Write time, not publication time; never updated after insert
    cached_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, nullable=False)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "image_url": self.image_url,
            "source": self.source,
            "published_at": self.published_at,
            "url": self.url,
            "is_favorite": bool(self.is_favorite),
            "cached_at": self.cached_at,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "image_url": self.image_url,
            "source": self.source,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "url": self.url,
            "is_favorite": bool(self.is_favorite),
            "cached_at": self.cached_at.isoformat() if self.cached_at else None,
        }

    def __repr__(self) -> str:
        return f"Article(id={self.id[:12]!r}, title={self.title!r}, is_favorite={self.is_favorite})"
