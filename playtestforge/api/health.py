"""
Health check endpoints.

Liveness, plus readiness covering the database and the credentials the
forum sync and finalization gate depend on.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from playtestforge.config import settings
from playtestforge.db.database import get_session

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    database: str | None = None
    integrations: dict[str, bool] = Field(
        default_factory=dict,
        description="Whether each external service has credentials configured",
    )


def configured_integrations() -> dict[str, bool]:
    return {
        "discord": bool(settings.discord_token and settings.discord_guild_id),
        "github": bool(settings.github_owner and settings.github_repository),
    }


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe. Does not check dependencies."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> HealthResponse:
    """
    Readiness probe.

    Returns 503 if the database is unreachable. Missing integration
    credentials are reported but only disable forum sync and finalization.
    """
    integrations = configured_integrations()
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not ready", database="disconnected", integrations=integrations
        )
    return HealthResponse(status="ready", database="connected", integrations=integrations)
