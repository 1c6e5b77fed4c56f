"""
PlaytestForge HTTP application.

Card and review storage, finalization and forum sync, served with FastAPI.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from playtestforge.api import (
    cards_router,
    forum_router,
    health_router,
    projects_router,
    reviews_router,
)
from playtestforge.api.health import configured_integrations
from playtestforge.config import settings
from playtestforge.db.database import init_db
from playtestforge.models.failure import KnownError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables on startup and warn about integrations left unconfigured."""
    await init_db()
    for name, configured in configured_integrations().items():
        if not configured:
            logger.warning("%s credentials missing; dependent endpoints will fail", name)
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("playtestforge"),
    lifespan=lifespan,
)


@app.exception_handler(KnownError)
async def known_error_handler(request: Request, exc: KnownError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_detail().model_dump(mode="json"),
    )


for router in (cards_router, reviews_router, projects_router, forum_router, health_router):
    app.include_router(router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)
