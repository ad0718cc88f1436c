from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from newscache.core.errors import (
    BadRequest,
    DecodingError,
    FetchError,
    RateLimited,
    ServerError,
    Unauthorized,
    UnknownError,
)
from newscache.services.endpoints import Endpoint
from newscache.services.schemas import ArticlesResponse

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Api-Key"

def classify_status(status: int) -> Optional[FetchError]:
    if status == 200:
        return None
    if status == 400:
        return BadRequest(status_code=status)
    if status == 401:
        return Unauthorized(status_code=status)
    if status == 429:
        return RateLimited(status_code=status)
    if status >= 500:
        return ServerError(status_code=status)
    return UnknownError(status_code=status)

def decode_articles(content: bytes | str) -> ArticlesResponse:
    try:
        return ArticlesResponse.model_validate_json(content)
    except ValidationError as e:
        raise DecodingError() from e

class NewsClient:
    """Async NewsAPI client. No retries, the caller owns retry policy."""

    def __init__(
        self,
        api_key: str,
        api_host: str = "https://newsapi.org",
        timeout_s: float = 20,
        user_agent: str = "NewsCache/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._host = api_host
        self._headers = {"User-Agent": user_agent, API_KEY_HEADER: api_key}
        self._timeout = httpx.Timeout(timeout_s)
        self._transport = transport

    async def fetch(self, endpoint: Endpoint) -> ArticlesResponse:
        headers = dict(self._headers)
        headers.update(endpoint.headers)

        async with httpx.AsyncClient(headers=headers, timeout=self._timeout, transport=self._transport) as client:
            try:
                resp = await client.get(endpoint.url(self._host), params=endpoint.params())
            except httpx.HTTPError as e:
                logger.warning("Request to %s failed: %s: %s", endpoint.path, type(e).__name__, e)
                raise UnknownError() from e

        err = classify_status(resp.status_code)
        if err is not None:
            logger.warning("%s returned HTTP %s (%s)", endpoint.path, resp.status_code, err.kind)
            raise err

        batch = decode_articles(resp.content)
        logger.debug("%s returned %d articles (total %d)", endpoint.path, len(batch.articles), batch.total_results)
        return batch
