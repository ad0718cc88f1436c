from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from newscache.services.repository import ArticleRepository

router = APIRouter(prefix="/v1", tags=["public"])

def get_repository(request: Request) -> ArticleRepository:
    return request.app.state.repository

def _page(articles, page: int) -> dict:
    # Empty page ends pagination
    return {
        "page": page,
        "items": [a.to_dict() for a in articles],
        "has_more": bool(articles),
    }

@router.get("/feed")
async def feed(
    page: int = Query(default=1, ge=1),
    repo: ArticleRepository = Depends(get_repository),
):
    return _page(await repo.load_feed(page), page)

@router.get("/search")
async def search(
    q: str = Query(min_length=1),
    page: int = Query(default=1, ge=1),
    from_: Optional[dt.datetime] = Query(default=None, alias="from"),
    to: Optional[dt.datetime] = Query(default=None),
    sort_by: Optional[str] = Query(default=None),
    repo: ArticleRepository = Depends(get_repository),
):
    if not q.strip():
        raise HTTPException(status_code=400, detail="Query must not be blank")
    return _page(await repo.search(q, page, from_=from_, to=to, sort_by=sort_by), page)

@router.get("/favorites")
async def list_favorites(repo: ArticleRepository = Depends(get_repository)):
    return {"items": [a.to_dict() for a in await repo.favorites()]}

@router.delete("/favorites")
async def clear_favorites(repo: ArticleRepository = Depends(get_repository)):
    return {"cleared": await repo.clear_favorites()}

@router.put("/articles/{article_id}/favorite")
async def add_favorite(article_id: str, repo: ArticleRepository = Depends(get_repository)):
    if not await repo.set_favorite(article_id, True):
        raise HTTPException(status_code=404, detail="Article not found")
    return {"id": article_id, "is_favorite": True}

@router.delete("/articles/{article_id}/favorite")
async def remove_favorite(article_id: str, repo: ArticleRepository = Depends(get_repository)):
    if not await repo.set_favorite(article_id, False):
        raise HTTPException(status_code=404, detail="Article not found")
    return {"id": article_id, "is_favorite": False}
