"""
Review API endpoints.

Playtesting reviews arrive from the review form and are stored per card
version and reviewer.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from playtestforge.db import ReviewMatcher, read_cards, read_reviews, upsert_reviews
from playtestforge.db.database import get_session
from playtestforge.models.card import CardMatcher
from playtestforge.models.failure import NotFoundError
from playtestforge.models.review import PLAYED_RANGE, STATEMENT_QUESTIONS, Review, StatementAnswer

router = APIRouter(prefix="/reviews", tags=["reviews"])


class ReviewRecord(BaseModel):
    """A review as submitted through the review form."""

    project: int
    number: int
    version: str
    reviewer: str = Field(..., min_length=1)
    decks: list[str] = Field(default_factory=list)
    played: int = Field(..., ge=PLAYED_RANGE.start, le=PLAYED_RANGE.stop - 1)
    statements: dict[str, StatementAnswer]
    additional: str | None = None
    created: datetime | None = None
    updated: datetime | None = None

    @field_validator("statements")
    @classmethod
    def known_statements(cls, value: dict[str, StatementAnswer]) -> dict[str, StatementAnswer]:
        unknown = set(value) - STATEMENT_QUESTIONS.keys()
        if unknown:
            raise ValueError(f"Unknown statements: {sorted(unknown)}")
        return value

    @classmethod
    def from_review(cls, review: Review) -> "ReviewRecord":
        return cls(
            project=review.project_id,
            number=review.card.number,
            version=review.card.version,
            reviewer=review.reviewer,
            decks=list(review.decks),
            played=review.played,
            statements=dict(review.statements),
            additional=review.additional,
            created=review.created,
            updated=review.updated,
        )


class ReviewSubmissionResponse(BaseModel):
    submitted: int


@router.post("", response_model=ReviewSubmissionResponse)
async def submit_reviews(
    records: list[ReviewRecord],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ReviewSubmissionResponse:
    """Store reviews. Every reviewed card version must already exist."""
    matchers = [CardMatcher(r.project, r.number, r.version) for r in records]
    stored = await read_cards(session, matchers)
    cards = {(c.project.number, c.number, c.version): c for c in stored}

    reviews = []
    for record in records:
        card = cards.get((record.project, record.number, record.version))
        if card is None:
            raise NotFoundError(f"Card {record.project}-{record.number}@{record.version}")
        reviews.append(
            Review(
                reviewer=record.reviewer,
                card=card,
                played=record.played,
                statements=record.statements,
                decks=record.decks,
                additional=record.additional,
            )
        )

    return ReviewSubmissionResponse(submitted=await upsert_reviews(session, reviews))


@router.get("/{project_number}", response_model=list[ReviewRecord])
async def get_project_reviews(
    project_number: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    number: Annotated[int | None, Query(ge=1)] = None,
) -> list[ReviewRecord]:
    reviews = await read_reviews(session, [ReviewMatcher(project_number, number)])
    return [ReviewRecord.from_review(review) for review in reviews]
