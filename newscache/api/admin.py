from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from newscache.api.public import get_repository
from newscache.core.security import require_admin
from newscache.services.repository import ArticleRepository

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])

@router.get("/budget")
async def budget_status(request: Request, repo: ArticleRepository = Depends(get_repository)):
    remaining = await repo.remaining_requests()
    return {
        "max_daily_requests": request.app.state.settings.max_daily_requests,
        "remaining_requests": remaining,
        "rate_limited": remaining == 0,
    }

@router.post("/budget/reset")
async def reset_budget(repo: ArticleRepository = Depends(get_repository)):
    await repo.reset_rate_limit()
    return {"remaining_requests": await repo.remaining_requests()}

@router.delete("/cache")
async def clear_cache(repo: ArticleRepository = Depends(get_repository)):
    # Full reset, favorites included
    return {"deleted": await repo.clear_cache()}
