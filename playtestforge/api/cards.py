"""
Card API endpoints.

Draft submission from the authoring source and read access to stored cards.
"""

import logging
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from playtestforge.db import (
    destroy_cards,
    load_card_history,
    read_latest_cards,
    read_projects,
    upsert_cards,
    upsert_latest_cards,
)
from playtestforge.db.database import get_session
from playtestforge.models.card import (
    Card,
    CardType,
    Faction,
    GithubDetails,
    GithubStatus,
    Icons,
    Note,
    NoteType,
    PlotStats,
    ReleaseDetails,
)
from playtestforge.models.failure import NotFoundError
from playtestforge.models.project import Project
from playtestforge.services import version_policy
from playtestforge.services.drafts import submit_drafts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cards", tags=["cards"])


class NoteRecord(BaseModel):
    type: NoteType
    text: str = ""


class GithubRecord(BaseModel):
    status: GithubStatus
    issue_url: str


class ReleaseRecord(BaseModel):
    short: str
    number: int


class IconsRecord(BaseModel):
    military: bool = False
    intrigue: bool = False
    power: bool = False


class PlotStatsRecord(BaseModel):
    income: int | str
    initiative: int | str
    claim: int | str
    reserve: int | str


class CardRecord(BaseModel):
    """A card version as exchanged with the authoring source."""

    project: int = Field(..., description="Project number")
    number: int = Field(..., ge=1)
    version: str = Field(..., examples=["1.0.0"])
    faction: Faction
    name: str
    type: CardType
    traits: list[str] = Field(default_factory=list)
    text: str = ""
    illustrator: str = "?"
    deck_limit: int | None = None
    loyal: bool | None = None
    flavor: str | None = None
    designer: str | None = None
    cost: int | str | None = None
    unique: bool | None = None
    strength: int | str | None = None
    icons: IconsRecord | None = None
    plot_stats: PlotStatsRecord | None = None
    note: NoteRecord | None = None
    playtesting: str | None = None
    github: GithubRecord | None = None
    release: ReleaseRecord | None = None

    @field_validator("version", "playtesting")
    @classmethod
    def semantic_version(cls, value: str | None) -> str | None:
        if value is not None:
            version_policy.parse(value)
        return value

    def to_card(self, project: Project) -> Card:
        return Card(
            project=project,
            number=self.number,
            version=self.version,
            faction=self.faction,
            name=self.name,
            type=self.type,
            traits=list(self.traits),
            text=self.text,
            illustrator=self.illustrator,
            deck_limit=self.deck_limit,
            loyal=self.loyal,
            flavor=self.flavor,
            designer=self.designer,
            cost=self.cost,
            unique=self.unique,
            strength=self.strength,
            icons=Icons(**self.icons.model_dump()) if self.icons else None,
            plot_stats=PlotStats(**self.plot_stats.model_dump()) if self.plot_stats else None,
            note=Note(self.note.type, self.note.text) if self.note else None,
            playtesting=self.playtesting,
            github=(
                GithubDetails(self.github.status, self.github.issue_url) if self.github else None
            ),
            release=ReleaseDetails(**self.release.model_dump()) if self.release else None,
        )

    @classmethod
    def from_card(cls, card: Card) -> "CardRecord":
        return cls(
            project=card.project.number,
            number=card.number,
            version=card.version,
            faction=card.faction,
            name=card.name,
            type=card.type,
            traits=list(card.traits),
            text=card.text,
            illustrator=card.illustrator,
            deck_limit=card.deck_limit,
            loyal=card.loyal,
            flavor=card.flavor,
            designer=card.designer,
            cost=card.cost,
            unique=card.unique,
            strength=card.strength,
            icons=IconsRecord(**asdict(card.icons)) if card.icons else None,
            plot_stats=PlotStatsRecord(**asdict(card.plot_stats)) if card.plot_stats else None,
            note=NoteRecord(type=card.note.type, text=card.note.text) if card.note else None,
            playtesting=card.playtesting,
            github=(
                GithubRecord(status=card.github.status, issue_url=card.github.issue_url)
                if card.github
                else None
            ),
            release=(
                ReleaseRecord(short=card.release.short, number=card.release.number)
                if card.release
                else None
            ),
        )


class DraftSubmissionRequest(BaseModel):
    cards: list[CardRecord] = Field(..., min_length=1)


class DraftSubmissionResponse(BaseModel):
    """Counts of version records written and reverted versions deleted."""

    updated: int
    deleted: int


class CardListResponse(BaseModel):
    project: int
    cards: list[CardRecord]
    count: int


async def resolve_projects(session: AsyncSession, numbers: set[int]) -> dict[int, Project]:
    """Load projects by number, failing if any is unknown."""
    projects = {p.number: p for p in await read_projects(session, numbers)}
    missing = sorted(numbers - projects.keys())
    if missing:
        raise NotFoundError(f"Project(s) {', '.join(str(n) for n in missing)}")
    return projects


@router.post("", response_model=DraftSubmissionResponse)
async def submit_cards(
    request: DraftSubmissionRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DraftSubmissionResponse:
    """
    Submit card drafts.

    Each card is versioned against its playtesting version; drafts are
    stored, reverted drafts are deleted and the latest projection is updated.
    """
    projects = await resolve_projects(session, {record.project for record in request.cards})
    cards = [record.to_card(projects[record.project]) for record in request.cards]

    decision = submit_drafts(cards)
    deleted = await destroy_cards(session, decision.to_destroy) if decision.to_destroy else 0
    updated = await upsert_cards(session, decision.to_upsert)
    await upsert_latest_cards(session, decision.to_latest)

    logger.info("Submitted %d card(s): %d updated, %d deleted", len(cards), updated, deleted)
    return DraftSubmissionResponse(updated=updated, deleted=deleted)


@router.get("/{project_number}", response_model=CardListResponse)
async def get_project_cards(
    project_number: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    history: Annotated[bool, Query(description="Include every stored version")] = False,
) -> CardListResponse:
    """List a project's latest cards, or its full card history."""
    project = (await resolve_projects(session, {project_number}))[project_number]
    if history:
        cards = await load_card_history(session, project)
    else:
        cards = await read_latest_cards(session, project_number)
    return CardListResponse(
        project=project_number,
        cards=[CardRecord.from_card(card) for card in cards],
        count=len(cards),
    )
