from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Optional

TOP_HEADLINES_PATH = "/v2/top-headlines"
EVERYTHING_PATH = "/v2/everything"

DEFAULT_COUNTRY = "us"
DEFAULT_PAGE_SIZE = 20
DEFAULT_SORT_BY = "publishedAt"

@dataclass(frozen=True)
class Endpoint:
    path: str
    query: tuple[tuple[str, str], ...] = ()
    headers: dict[str, str] = field(default_factory=dict, compare=False)

    def url(self, host: str) -> str:
        return host.rstrip("/") + self.path

    def params(self) -> list[tuple[str, str]]:
        return list(self.query)

def _check_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

def iso8601(value: dt.datetime) -> str:
    # 2025-08-10T12:00:00Z, naive values are taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

def top_headlines(page: int, country: str = DEFAULT_COUNTRY, page_size: int = DEFAULT_PAGE_SIZE, q: Optional[str] = None) -> Endpoint:
    _check_paging(page, page_size)
    items = [
        ("country", country),
        ("pageSize", str(page_size)),
        ("page", str(page)),
    ]
    if q:
        items.append(("q", q))
    return Endpoint(path=TOP_HEADLINES_PATH, query=tuple(items))

def everything(
    q: str,
    page: int,
    page_size: int = DEFAULT_PAGE_SIZE,
    sort_by: str = DEFAULT_SORT_BY,
    from_: Optional[dt.datetime] = None,
    to: Optional[dt.datetime] = None,
) -> Endpoint:
    if not q or not q.strip():
        raise ValueError("q is required")
    _check_paging(page, page_size)
    items = [
        ("q", q),
        ("pageSize", str(page_size)),
        ("page", str(page)),
        ("sortBy", sort_by),
    ]
    if from_ is not None:
        items.append(("from", iso8601(from_)))
    if to is not None:
        items.append(("to", iso8601(to)))
    return Endpoint(path=EVERYTHING_PATH, query=tuple(items))
