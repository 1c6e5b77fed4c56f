"""
Forum sync endpoints.

Trigger reconciliation of card and review threads on Discord. Each call runs
a single batch and reports which items were created, updated or failed.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from playtestforge.api.dependencies import get_thread_store
from playtestforge.db import ReviewMatcher, load_card_history, read_projects, read_reviews
from playtestforge.db.database import get_session
from playtestforge.models.card import Card
from playtestforge.models.project import Project
from playtestforge.services.card_threads import reconcile_card_threads
from playtestforge.services.reconciler import ThreadStore
from playtestforge.services.review_threads import reconcile_review_threads

router = APIRouter(prefix="/forum", tags=["forum"])


class SyncRequest(BaseModel):
    projects: list[int] | None = Field(
        default=None,
        description="Project numbers to sync. Defaults to every active project.",
    )
    can_create: bool = Field(default=False, description="Create threads that are missing")


class SyncResponse(BaseModel):
    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


async def selected_projects(session: AsyncSession, numbers: list[int] | None) -> list[Project]:
    projects = await read_projects(session, numbers)
    if numbers is None:
        projects = [p for p in projects if p.active]
    return projects


@router.post("/cards/sync", response_model=SyncResponse)
async def sync_card_threads(
    request: SyncRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ThreadStore, Depends(get_thread_store)],
) -> SyncResponse:
    """Reconcile card threads for the latest version of every card."""
    cards: list[Card] = []
    for project in await selected_projects(session, request.projects):
        cards.extend(await load_card_history(session, project))

    result = await reconcile_card_threads(store, request.can_create, cards)
    return SyncResponse(
        created=[card.id for card in result.created],
        updated=[card.id for card in result.updated],
        failed=[card.id for card in result.failed],
    )


@router.post("/reviews/sync", response_model=SyncResponse)
async def sync_review_threads(
    request: SyncRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ThreadStore, Depends(get_thread_store)],
) -> SyncResponse:
    """Reconcile one thread per stored review."""
    projects = await selected_projects(session, request.projects)
    reviews = await read_reviews(session, [ReviewMatcher(p.number) for p in projects])

    result = await reconcile_review_threads(store, request.can_create, reviews)
    return SyncResponse(
        created=[review.id for review in result.created],
        updated=[review.id for review in result.updated],
        failed=[review.id for review in result.failed],
    )
