# tests/test_fetcher.py
import asyncio
import json

import httpx
import pytest

from newscache.core.errors import (
    BadRequest,
    DecodingError,
    RateLimited,
    ServerError,
    Unauthorized,
    UnknownError,
)
from newscache.services.endpoints import everything, top_headlines
from newscache.services.fetcher import NewsClient
from newscache.services.normalize import article_id_for

PAYLOAD = {
    "status": "ok",
    "totalResults": 2,
    "articles": [
        {
            "source": {"id": "bbc-news", "name": "BBC News"},
            "author": "Someone",
            "title": "First",
            "description": "First summary",
            "url": "https://www.bbc.co.uk/news/1",
            "urlToImage": "https://ichef.bbci.co.uk/1.jpg",
            "publishedAt": "2025-08-10T09:15:00Z",
            "content": "Body",
        },
        {
            "source": {"id": None, "name": None},
            "author": None,
            "title": "Second",
            "description": None,
            "url": "https://example.com/2",
            "urlToImage": "",
            "publishedAt": "2025-08-10T08:00:00Z",
            "content": None,
        },
    ],
}

def _client(handler):
    return NewsClient(api_key="secret", api_host="https://newsapi.test", transport=httpx.MockTransport(handler))

def _fetch(handler, endpoint=None):
    return asyncio.run(_client(handler).fetch(endpoint or top_headlines(page=1)))

def test_success_decodes_and_sends_key():
    seen = {}

    def handler(request):
        seen["key"] = request.headers.get("X-Api-Key")
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=PAYLOAD)

    batch = _fetch(handler)
    assert seen["key"] == "secret"
    assert seen["path"] == "/v2/top-headlines"
    assert seen["params"] == {"country": "us", "pageSize": "20", "page": "1"}
    assert batch.total_results == 2
    first, second = batch.articles
    assert first.title == "First"
    assert first.source.name == "BBC News"
    assert second.url_to_image is None

def test_remote_converts_to_article():
    batch = _fetch(lambda r: httpx.Response(200, json=PAYLOAD))
    art = batch.articles[0].to_article()
    assert art.id == article_id_for("https://www.bbc.co.uk/news/1")
    assert art.source == "BBC News"
    assert art.summary == "First summary"
    assert art.is_favorite is False
    assert art.published_at.tzinfo is not None

def test_search_endpoint_reaches_everything():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["q"] = request.url.params.get("q")
        return httpx.Response(200, json={"status": "ok", "totalResults": 0, "articles": []})

    batch = _fetch(handler, everything("climate", page=2))
    assert seen == {"path": "/v2/everything", "q": "climate"}
    assert batch.articles == []

@pytest.mark.parametrize(
    "status,exc",
    [
        (400, BadRequest),
        (401, Unauthorized),
        (429, RateLimited),
        (500, ServerError),
        (503, ServerError),
        (404, UnknownError),
        (302, UnknownError),
    ],
)
def test_status_classification(status, exc):
    # Body is junk on purpose: non-200 must not be decoded
    with pytest.raises(exc) as info:
        _fetch(lambda r: httpx.Response(status, content=b"<html>nope</html>"))
    assert info.value.status_code == status

def test_upstream_rate_limit_origin():
    with pytest.raises(RateLimited) as info:
        _fetch(lambda r: httpx.Response(429, json={"status": "error"}))
    assert info.value.origin == "upstream"

@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        json.dumps({"status": "ok"}).encode(),
        json.dumps({**PAYLOAD, "articles": [{**PAYLOAD["articles"][0], "publishedAt": "yesterday"}]}).encode(),
        json.dumps({**PAYLOAD, "articles": [{**PAYLOAD["articles"][0], "title": ""}]}).encode(),
        json.dumps({**PAYLOAD, "articles": [{**PAYLOAD["articles"][0], "url": "ftp://example.com/1"}]}).encode(),
    ],
)
def test_decoding_errors(body):
    with pytest.raises(DecodingError):
        _fetch(lambda r: httpx.Response(200, content=body))

def test_transport_failure_is_unknown():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(UnknownError):
        _fetch(handler)

def test_article_url_is_kept_as_sent():
    payload = {**PAYLOAD, "articles": [{**PAYLOAD["articles"][0], "url": "https://example.com"}]}
    response = _fetch(lambda r: httpx.Response(200, json=payload))
    article = response.articles[0].to_article()
    assert article.url == "https://example.com"
    assert article.id == article_id_for("https://example.com")
