"""
Database CRUD operations.

Async functions for reading and writing projects, card versions, the latest
card projection and reviews. Cards are converted to and from their domain
dataclasses here; nothing outside this module touches ORM rows.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from playtestforge.models.card import (
    Card,
    CardMatcher,
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
from playtestforge.models.db import CardColumns, CardVersionDB, LatestCardDB, ProjectDB, ReviewDB
from playtestforge.models.project import Project
from playtestforge.models.review import Review, StatementAnswer
from playtestforge.services.version_policy import sort_key

logger = logging.getLogger(__name__)

CardRowType = type[CardVersionDB] | type[LatestCardDB]


@dataclass(frozen=True, slots=True)
class ReviewMatcher:
    """Selects reviews; a field left as None matches any value."""

    project_id: int
    number: int | None = None
    version: str | None = None
    reviewer: str | None = None


# --- Project Operations ---


def project_to_model(row: ProjectDB) -> Project:
    return Project(
        number=row.number,
        name=row.name,
        short=row.short,
        releases=row.releases,
        milestone=row.milestone,
        form_url=row.form_url,
        emoji=row.emoji,
        active=row.active,
    )


async def _get_project_row(session: AsyncSession, number: int) -> ProjectDB | None:
    result = await session.execute(select(ProjectDB).where(ProjectDB.number == number))
    return result.scalar_one_or_none()


async def get_project(session: AsyncSession, number: int) -> Project | None:
    """Get a project by number. Returns None if it does not exist."""
    row = await _get_project_row(session, number)
    return project_to_model(row) if row else None


async def read_projects(
    session: AsyncSession, numbers: Iterable[int] | None = None
) -> list[Project]:
    """Read projects, optionally restricted to the given numbers."""
    query = select(ProjectDB).order_by(ProjectDB.number)
    if numbers is not None:
        query = query.where(ProjectDB.number.in_(list(numbers)))
    result = await session.execute(query)
    return [project_to_model(row) for row in result.scalars().all()]


async def create_project(session: AsyncSession, project: Project) -> Project:
    """Insert a project. Raises IntegrityError if the number is taken."""
    session.add(
        ProjectDB(
            number=project.number,
            name=project.name,
            short=project.short,
            releases=project.releases,
            milestone=project.milestone,
            form_url=project.form_url,
            emoji=project.emoji,
            active=project.active,
        )
    )
    await session.flush()
    return project


async def update_project(session: AsyncSession, project: Project) -> Project:
    """Write a project's mutable fields (release counter included)."""
    row = await _get_project_row(session, project.number)
    if row is None:
        msg = f"Project {project.number} not found"
        raise ValueError(msg)

    row.name = project.name
    row.short = project.short
    row.releases = project.releases
    row.milestone = project.milestone
    row.form_url = project.form_url
    row.emoji = project.emoji
    row.active = project.active
    await session.flush()
    return project


# --- Card Conversion ---


def _card_values(card: Card) -> dict[str, Any]:
    return {
        "project_id": card.project.number,
        "number": card.number,
        "version": card.version,
        "faction": card.faction.value,
        "name": card.name,
        "type": card.type.value,
        "traits": list(card.traits),
        "text": card.text,
        "illustrator": card.illustrator,
        "deck_limit": card.deck_limit,
        "loyal": card.loyal,
        "flavor": card.flavor,
        "designer": card.designer,
        "unique": card.unique,
        "cost": card.cost,
        "strength": card.strength,
        "icons": asdict(card.icons) if card.icons else None,
        "plot_stats": asdict(card.plot_stats) if card.plot_stats else None,
        "note": {"type": card.note.type.value, "text": card.note.text} if card.note else None,
        "playtesting": card.playtesting,
        "github": (
            {"status": card.github.status.value, "issue_url": card.github.issue_url}
            if card.github
            else None
        ),
        "release": asdict(card.release) if card.release else None,
    }


def card_to_model(row: CardColumns, project: Project) -> Card:
    """Convert a card row (version or latest) to a domain Card."""
    return Card(
        project=project,
        number=row.number,
        version=row.version,
        faction=Faction(row.faction),
        name=row.name,
        type=CardType(row.type),
        traits=list(row.traits or []),
        text=row.text,
        illustrator=row.illustrator,
        deck_limit=row.deck_limit,
        loyal=row.loyal,
        flavor=row.flavor,
        designer=row.designer,
        unique=row.unique,
        cost=row.cost,
        strength=row.strength,
        icons=Icons(**row.icons) if row.icons else None,
        plot_stats=PlotStats(**row.plot_stats) if row.plot_stats else None,
        note=Note(NoteType(row.note["type"]), row.note.get("text", "")) if row.note else None,
        playtesting=row.playtesting,
        github=(
            GithubDetails(GithubStatus(row.github["status"]), row.github["issue_url"])
            if row.github
            else None
        ),
        release=ReleaseDetails(**row.release) if row.release else None,
    )


def _sorted(cards: list[Card]) -> list[Card]:
    return sorted(cards, key=lambda c: (c.project.number, c.number, sort_key(c.version)))


def _matcher_clause(model: CardRowType, matcher: CardMatcher) -> Any:
    clauses = [model.project_id == matcher.project_id]
    if matcher.number is not None:
        clauses.append(model.number == matcher.number)
    if matcher.version is not None:
        clauses.append(model.version == matcher.version)
    return and_(*clauses)


async def _rows_to_cards(session: AsyncSession, rows: Sequence[CardColumns]) -> list[Card]:
    projects = {
        p.number: p for p in await read_projects(session, {row.project_id for row in rows})
    }
    return _sorted([card_to_model(row, projects[row.project_id]) for row in rows])


# --- Card Version Operations ---


async def read_cards(session: AsyncSession, matchers: Sequence[CardMatcher]) -> list[Card]:
    """
    Read archived card versions matching any of the matchers.

    Results are ordered by project, number and version.
    """
    if not matchers:
        return []
    result = await session.execute(
        select(CardVersionDB).where(or_(*(_matcher_clause(CardVersionDB, m) for m in matchers)))
    )
    return await _rows_to_cards(session, result.scalars().all())


async def _upsert_card_rows(
    session: AsyncSession, model: CardRowType, cards: Iterable[Card], by_version: bool
) -> int:
    count = 0
    for card in cards:
        values = _card_values(card)
        query = select(model).where(
            model.project_id == card.project.number, model.number == card.number
        )
        if by_version:
            query = query.where(model.version == card.version)
        existing = (await session.execute(query)).scalar_one_or_none()

        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
        else:
            session.add(model(**values))
        count += 1

    await session.flush()
    return count


async def upsert_cards(session: AsyncSession, cards: Iterable[Card]) -> int:
    """Insert or replace archived card versions. Returns the count written."""
    count = await _upsert_card_rows(session, CardVersionDB, cards, by_version=True)
    logger.debug("Upserted %d card version(s)", count)
    return count


async def destroy_cards(session: AsyncSession, matchers: Sequence[CardMatcher]) -> int:
    """
    Delete archived card versions matching any of the matchers.

    An empty matcher list is rejected rather than deleting everything.
    """
    if not matchers:
        raise ValueError("At least one matcher is required to destroy cards")
    result = await session.execute(
        delete(CardVersionDB).where(or_(*(_matcher_clause(CardVersionDB, m) for m in matchers)))
    )
    # rowcount is available on DELETE results; type stubs incomplete for async
    count = int(result.rowcount)  # type: ignore[attr-defined]
    logger.debug("Deleted %d card version(s)", count)
    return count


# --- Latest Projection Operations ---


async def read_latest_cards(
    session: AsyncSession, project_id: int, number: int | None = None
) -> list[Card]:
    """Read the latest projection of a project's cards."""
    query = select(LatestCardDB).where(LatestCardDB.project_id == project_id)
    if number is not None:
        query = query.where(LatestCardDB.number == number)
    result = await session.execute(query)
    return await _rows_to_cards(session, result.scalars().all())


async def upsert_latest_cards(session: AsyncSession, cards: Iterable[Card]) -> int:
    """Write the latest projection, one row per card number."""
    count = await _upsert_card_rows(session, LatestCardDB, cards, by_version=False)
    logger.debug("Upserted %d latest card(s)", count)
    return count


async def load_card_history(
    session: AsyncSession, project: Project, number: int | None = None
) -> list[Card]:
    """
    Read every version of a project's cards.

    The latest projection replaces the archived record of the same version,
    so the history reflects cleaned-up latest cards after finalization.
    """
    versions = await read_cards(session, [CardMatcher(project_id=project.number, number=number)])
    latest_cards = await read_latest_cards(session, project.number, number)
    latest = {(c.number, c.version): c for c in latest_cards}

    merged = [latest.pop((c.number, c.version), c) for c in versions]
    merged.extend(latest.values())
    return _sorted(merged)


# --- Review Operations ---


def _review_clause(matcher: ReviewMatcher) -> Any:
    clauses = [ReviewDB.project_id == matcher.project_id]
    if matcher.number is not None:
        clauses.append(ReviewDB.number == matcher.number)
    if matcher.version is not None:
        clauses.append(ReviewDB.version == matcher.version)
    if matcher.reviewer is not None:
        clauses.append(ReviewDB.reviewer == matcher.reviewer)
    return and_(*clauses)


async def read_reviews(session: AsyncSession, matchers: Sequence[ReviewMatcher]) -> list[Review]:
    """
    Read reviews matching any of the matchers, with their card versions.

    Reviews whose card version is not stored are skipped with a warning.
    """
    if not matchers:
        return []
    result = await session.execute(
        select(ReviewDB)
        .where(or_(*(_review_clause(m) for m in matchers)))
        .order_by(ReviewDB.number, ReviewDB.created_at)
    )
    rows = result.scalars().all()

    cards = await read_cards(
        session,
        [CardMatcher(project_id=r.project_id, number=r.number, version=r.version) for r in rows],
    )
    by_key = {(c.project.number, c.number, c.version): c for c in cards}

    reviews: list[Review] = []
    for row in rows:
        card = by_key.get((row.project_id, row.number, row.version))
        if card is None:
            logger.warning(
                "Skipping review by %s: card %s-%s@%s not found",
                row.reviewer,
                row.project_id,
                row.number,
                row.version,
            )
            continue
        reviews.append(
            Review(
                reviewer=row.reviewer,
                card=card,
                decks=list(row.decks or []),
                played=row.played,
                statements={k: StatementAnswer(v) for k, v in (row.statements or {}).items()},
                additional=row.additional,
                created=row.created_at,
                updated=row.updated_at,
            )
        )
    return reviews


async def upsert_reviews(session: AsyncSession, reviews: Iterable[Review]) -> int:
    """Insert or update reviews by (project, number, version, reviewer)."""
    count = 0
    for review in reviews:
        card = review.card
        existing = (
            await session.execute(
                select(ReviewDB).where(
                    ReviewDB.project_id == card.project.number,
                    ReviewDB.number == card.number,
                    ReviewDB.version == card.version,
                    ReviewDB.reviewer == review.reviewer,
                )
            )
        ).scalar_one_or_none()

        values: dict[str, Any] = {
            "decks": list(review.decks),
            "played": review.played,
            "statements": {k: v.value for k, v in review.statements.items()},
            "additional": review.additional,
        }
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
        else:
            session.add(
                ReviewDB(
                    project_id=card.project.number,
                    number=card.number,
                    version=card.version,
                    reviewer=review.reviewer,
                    **values,
                )
            )
        count += 1

    await session.flush()
    return count
