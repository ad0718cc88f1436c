from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from newscache.core.config import Settings
from newscache.core.db import init_db, make_engine, make_sessionmaker
from newscache.core.errors import (
    BadRequest,
    NewsCacheError,
    RateLimited,
    StorageError,
)
from newscache.api.public import router as public_router
from newscache.api.admin import router as admin_router
from newscache.services.repository import ArticleFetcher, build_repository

logger = logging.getLogger(__name__)

def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="[%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

def _status_for(exc: NewsCacheError) -> int:
    if isinstance(exc, RateLimited):
        return 429
    if isinstance(exc, BadRequest):
        return 400
    if isinstance(exc, StorageError):
        return 500
    # Upstream auth, server, decoding and unknown failures are all bad gateways from here
    return 502

async def _news_cache_error_handler(request: Request, exc: NewsCacheError) -> JSONResponse:
    body = {"detail": exc.message, "kind": exc.kind}
    if isinstance(exc, RateLimited):
        body["origin"] = exc.origin
    return JSONResponse(status_code=_status_for(exc), content=body)

def create_app(settings: Optional[Settings] = None, client: Optional[ArticleFetcher] = None) -> FastAPI:
    """Build the HTTP app. Run with ``uvicorn --factory newscache.main:create_app``."""
    settings = settings or Settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = make_engine(settings.db_path)
        await init_db(engine)
        if not settings.api_key and client is None:
            logger.warning("No NEWSAPI_KEY configured, remote calls will be rejected upstream")
        app.state.engine = engine
        app.state.repository = build_repository(settings, make_sessionmaker(engine), client=client)
        logger.info("News cache ready (db=%s, cache window=%s)", settings.db_path, settings.cache_duration)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(title="News Cache API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(public_router)
    app.include_router(admin_router)
    app.add_exception_handler(NewsCacheError, _news_cache_error_handler)

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app
