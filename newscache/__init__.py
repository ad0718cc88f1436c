"""Client-side news cache: NewsAPI fetches, SQLite persistence, favorites and a daily request budget."""

from newscache.core.config import Settings
from newscache.services.repository import ArticleRepository, build_repository

__all__ = ["Settings", "ArticleRepository", "build_repository"]
