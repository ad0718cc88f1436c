from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    api_key: str = Field(default="", alias="NEWSAPI_KEY")
    api_host: str = Field(default="https://newsapi.org", alias="NEWSAPI_HOST")
    country: str = Field(default="us", alias="NEWSAPI_COUNTRY")

    page_size: int = Field(default=20, ge=1, le=100, alias="PAGE_SIZE")
    cache_duration_hours: float = Field(default=2, gt=0, alias="CACHE_DURATION_HOURS")
    # Buffer below the free-tier limit
    max_daily_requests: int = Field(default=80, ge=0, alias="MAX_DAILY_REQUESTS")

    db_path: str = Field(default="newscache.db", alias="DB_PATH")

    request_timeout_seconds: int = Field(default=20, alias="REQUEST_TIMEOUT_SECONDS")
    user_agent: str = Field(default="NewsCache/1.0", alias="USER_AGENT")

    admin_token: Optional[str] = Field(default=None, alias="ADMIN_TOKEN")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def cache_duration(self) -> dt.timedelta:
        return dt.timedelta(hours=self.cache_duration_hours)
