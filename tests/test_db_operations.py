"""Tests for database CRUD operations."""

import logging
from collections.abc import Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from playtestforge.db.operations import (
    ReviewMatcher,
    create_project,
    destroy_cards,
    get_project,
    load_card_history,
    read_cards,
    read_latest_cards,
    read_projects,
    read_reviews,
    update_project,
    upsert_cards,
    upsert_latest_cards,
    upsert_reviews,
)
from playtestforge.models.card import (
    Card,
    CardMatcher,
    CardType,
    GithubDetails,
    GithubStatus,
    Icons,
    Note,
    NoteType,
    PlotStats,
    ReleaseDetails,
)
from playtestforge.models.project import Project
from playtestforge.models.review import Review, StatementAnswer

MakeCard = Callable[..., Card]
MakeReview = Callable[..., Review]


@pytest.fixture
async def stored_project(session: AsyncSession, project: Project) -> Project:
    await create_project(session, project)
    return project


class TestProjectOperations:
    async def test_create_and_get(self, session: AsyncSession, project: Project) -> None:
        """Can create a project and read it back by number."""
        await create_project(session, project)
        await session.commit()

        stored = await get_project(session, 1)

        assert stored == project

    async def test_get_project_not_found(self, session: AsyncSession) -> None:
        assert await get_project(session, 42) is None

    async def test_read_projects(self, session: AsyncSession, project: Project) -> None:
        """Projects are ordered by number and can be filtered."""
        await create_project(session, Project(number=3, name="Core", short="CS"))
        await create_project(session, project)

        assert [p.number for p in await read_projects(session)] == [1, 3]
        assert [p.number for p in await read_projects(session, [3])] == [3]

    async def test_update_project(self, session: AsyncSession, stored_project: Project) -> None:
        stored_project.releases = 5
        stored_project.active = False

        await update_project(session, stored_project)

        stored = await get_project(session, 1)
        assert stored is not None
        assert stored.releases == 5
        assert not stored.active

    async def test_update_missing_project(self, session: AsyncSession, project: Project) -> None:
        with pytest.raises(ValueError, match="not found"):
            await update_project(session, project)


class TestCardOperations:
    async def test_card_round_trip(
        self, session: AsyncSession, stored_project: Project, make_card: MakeCard
    ) -> None:
        """Every sub-record survives storage."""
        card = make_card(
            version="1.0.1",
            playtesting="1.0.0",
            unique=True,
            icons=Icons(military=True, intrigue=False, power=True),
            note=Note(NoteType.UPDATED, "Cost reduced."),
            github=GithubDetails(GithubStatus.OPEN, "https://github.com/o/r/issues/1"),
        )
        plot = make_card(
            number=2,
            type=CardType.PLOT,
            cost=None,
            strength=None,
            plot_stats=PlotStats(income=5, initiative="X", claim=1, reserve=6),
            release=ReleaseDetails(short="RD", number=2),
        )
        await upsert_cards(session, [card, plot])

        stored = await read_cards(session, [CardMatcher(1)])

        assert stored == [card, plot]
        assert stored[1].deck_limit == 2

    async def test_upsert_replaces_same_version(
        self, session: AsyncSession, stored_project: Project, make_card: MakeCard
    ) -> None:
        await upsert_cards(session, [make_card(text="old")])
        await upsert_cards(session, [make_card(text="new")])

        [stored] = await read_cards(session, [CardMatcher(1, 1)])

        assert stored.text == "new"

    async def test_read_cards_orders_by_version(
        self, session: AsyncSession, stored_project: Project, make_card: MakeCard
    ) -> None:
        await upsert_cards(
            session,
            [make_card(version="1.10.0"), make_card(number=2), make_card(version="1.2.0")],
        )

        stored = await read_cards(session, [CardMatcher(1, 1), CardMatcher(1, 2, "1.0.0")])

        assert [c.id for c in stored] == ["1-1@1.2.0", "1-1@1.10.0", "1-2@1.0.0"]

    async def test_read_cards_without_matchers(self, session: AsyncSession) -> None:
        assert await read_cards(session, []) == []

    async def test_destroy_cards(
        self, session: AsyncSession, stored_project: Project, make_card: MakeCard
    ) -> None:
        await upsert_cards(session, [make_card(), make_card(version="1.0.1"), make_card(number=2)])

        deleted = await destroy_cards(session, [CardMatcher(1, 1, "1.0.1")])

        assert deleted == 1
        assert [c.id for c in await read_cards(session, [CardMatcher(1)])] == [
            "1-1@1.0.0",
            "1-2@1.0.0",
        ]

    async def test_destroy_requires_matchers(self, session: AsyncSession) -> None:
        """An empty matcher list never deletes everything."""
        with pytest.raises(ValueError, match="At least one matcher"):
            await destroy_cards(session, [])


class TestLatestProjection:
    async def test_one_row_per_number(
        self, session: AsyncSession, stored_project: Project, make_card: MakeCard
    ) -> None:
        await upsert_latest_cards(session, [make_card()])
        await upsert_latest_cards(session, [make_card(version="1.0.1", playtesting="1.0.0")])

        [latest] = await read_latest_cards(session, 1)

        assert latest.version == "1.0.1"

    async def test_read_single_number(
        self, session: AsyncSession, stored_project: Project, make_card: MakeCard
    ) -> None:
        await upsert_latest_cards(session, [make_card(number=1), make_card(number=2)])

        [latest] = await read_latest_cards(session, 1, number=2)

        assert latest.number == 2

    async def test_history_overlays_latest(
        self,
        session: AsyncSession,
        stored_project: Project,
        make_card: MakeCard,
        updated_note: Note,
    ) -> None:
        """The projection replaces the archived record of the same version."""
        archived = make_card(version="1.0.1", playtesting="1.0.0", note=updated_note)
        await upsert_cards(session, [make_card(), archived])
        cleaned = make_card(version="1.0.1", playtesting="1.0.1")
        await upsert_latest_cards(session, [cleaned, make_card(number=2)])

        history = await load_card_history(session, stored_project)

        assert [c.id for c in history] == ["1-1@1.0.0", "1-1@1.0.1", "1-2@1.0.0"]
        assert history[1].note is None
        assert history[1].playtesting == "1.0.1"

    async def test_history_of_one_number(
        self, session: AsyncSession, stored_project: Project, make_card: MakeCard
    ) -> None:
        await upsert_cards(session, [make_card(number=1), make_card(number=2)])

        history = await load_card_history(session, stored_project, number=2)

        assert [c.id for c in history] == ["1-2@1.0.0"]


class TestReviewOperations:
    async def test_upsert_and_read(
        self,
        session: AsyncSession,
        stored_project: Project,
        make_card: MakeCard,
        make_review: MakeReview,
    ) -> None:
        card = make_card()
        await upsert_cards(session, [card])
        await upsert_reviews(session, [make_review(card=card), make_review("Bob", card=card)])

        reviews = await read_reviews(session, [ReviewMatcher(1)])

        assert sorted(r.reviewer for r in reviews) == ["Alice", "Bob"]
        alice = next(r for r in reviews if r.reviewer == "Alice")
        assert alice.card == card
        assert alice.statements["boring"] == StatementAnswer.SOMEWHAT_DISAGREE
        assert alice.decks == ["https://thronesdb.com/decklist/view/1"]
        assert alice.created is not None

    async def test_resubmission_updates_review(
        self,
        session: AsyncSession,
        stored_project: Project,
        make_card: MakeCard,
        make_review: MakeReview,
    ) -> None:
        card = make_card()
        await upsert_cards(session, [card])
        await upsert_reviews(session, [make_review(card=card)])
        await upsert_reviews(session, [make_review(card=card, played=5)])

        [review] = await read_reviews(session, [ReviewMatcher(1, reviewer="Alice")])

        assert review.played == 5

    async def test_matchers_filter_reviews(
        self,
        session: AsyncSession,
        stored_project: Project,
        make_card: MakeCard,
        make_review: MakeReview,
    ) -> None:
        first, second = make_card(number=1), make_card(number=2)
        await upsert_cards(session, [first, second])
        await upsert_reviews(session, [make_review(card=first), make_review(card=second)])

        reviews = await read_reviews(session, [ReviewMatcher(1, number=2)])

        assert [r.card.number for r in reviews] == [2]
        assert await read_reviews(session, []) == []

    async def test_review_without_card_is_skipped(
        self,
        session: AsyncSession,
        stored_project: Project,
        make_card: MakeCard,
        make_review: MakeReview,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Reviews of card versions that are no longer stored are left out."""
        card = make_card()
        await upsert_cards(session, [card])
        await upsert_reviews(session, [make_review(card=card)])
        await destroy_cards(session, [CardMatcher(1, 1)])

        with caplog.at_level(logging.WARNING):
            reviews = await read_reviews(session, [ReviewMatcher(1)])

        assert reviews == []
        assert "Skipping review by Alice" in caplog.text
