from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, field_validator

from newscache.models import Article
from newscache.services.normalize import article_id_for

_http_url = TypeAdapter(HttpUrl)

class RemoteSource(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None

class RemoteArticle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: RemoteSource
    author: Optional[str] = None
    title: str = Field(min_length=1)
    description: Optional[str] = None
    url: str
    url_to_image: Optional[str] = Field(default=None, alias="urlToImage")
    published_at: dt.datetime = Field(alias="publishedAt")
    content: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _valid_url(cls, v: str) -> str:
        # Checked as http(s) but stored as sent, not re-serialized by HttpUrl
        v = v.strip()
        _http_url.validate_python(v)
        return v

    @field_validator("url_to_image")
    @classmethod
    def _blank_image(cls, v: Optional[str]) -> Optional[str]:
        # NewsAPI sends "" for missing images
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("published_at")
    @classmethod
    def _aware(cls, v: dt.datetime) -> dt.datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=dt.timezone.utc)
        return v

    @property
    def id(self) -> str:
        return article_id_for(self.url)

    def to_article(self, cached_at: Optional[dt.datetime] = None, is_favorite: bool = False) -> Article:
        return Article(
            id=self.id,
            title=self.title,
            summary=self.description,
            image_url=self.url_to_image,
            source=self.source.name,
            published_at=self.published_at,
            url=self.url,
            is_favorite=is_favorite,
            cached_at=cached_at,
        )

class ArticlesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    total_results: int = Field(alias="totalResults")
    articles: list[RemoteArticle]
