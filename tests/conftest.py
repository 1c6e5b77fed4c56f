import itertools
from collections.abc import Callable, Sequence
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from playtestforge.models.card import Card, CardType, Faction, Note, NoteType
from playtestforge.models.db import Base
from playtestforge.models.project import Project
from playtestforge.models.review import Review, StatementAnswer
from playtestforge.models.thread import (
    ForumChannel,
    ForumTag,
    ForumThread,
    Member,
    MessageContent,
    Role,
    StarterMessage,
)

AUTO_ARCHIVE = 10080


class FakeThreadStore:
    """
    In-memory thread host.

    Every mutation is recorded in `calls` as (operation, thread id). A
    mutation listed in `failures` raises instead of applying.
    """

    def __init__(
        self,
        forums: Sequence[ForumChannel],
        roles: Sequence[Role] = (),
        members: Sequence[Member] = (),
    ) -> None:
        self.guild_id = "guild-1"
        self.forums = list(forums)
        self.roles = list(roles)
        self.members = {m.display_name: m for m in members}
        self.threads: dict[str, ForumThread] = {}
        self.starters: dict[str, StarterMessage] = {}
        self.sent: dict[str, list[MessageContent]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}
        self._ids = itertools.count(100)

    def add_thread(
        self,
        forum: ForumChannel,
        name: str,
        tags: Sequence[str],
        content: MessageContent | None = None,
        archived: bool = False,
        locked: bool = False,
        pinned: bool = True,
        auto_archive_duration: int | None = AUTO_ARCHIVE,
    ) -> ForumThread:
        thread = ForumThread(
            id=str(next(self._ids)),
            parent_id=forum.id,
            name=name,
            applied_tags=list(tags),
            archived=archived,
            locked=locked,
            auto_archive_duration=auto_archive_duration,
        )
        content = content or MessageContent(content="")
        self.threads[thread.id] = thread
        self.starters[thread.id] = StarterMessage(
            id=thread.id, content=content.content, embeds=list(content.embeds), pinned=pinned
        )
        return thread

    def _mutate(self, operation: str, thread: ForumThread) -> None:
        self.calls.append((operation, thread.id))
        if operation in self.failures:
            raise self.failures[operation]

    async def find_forum(self, name: str) -> ForumChannel | None:
        return next((f for f in self.forums if f.name.endswith(name)), None)

    async def find_role(self, name: str) -> Role | None:
        return next((r for r in self.roles if r.name == name), None)

    async def find_member(self, name: str) -> Member | None:
        return self.members.get(name)

    async def find_thread(
        self, forum: ForumChannel, predicate: Callable[[ForumThread], bool]
    ) -> ForumThread | None:
        return next(
            (t for t in self.threads.values() if t.parent_id == forum.id and predicate(t)), None
        )

    async def create_thread(
        self,
        forum: ForumChannel,
        name: str,
        tags: Sequence[str],
        content: MessageContent,
        auto_archive_duration: int | None,
    ) -> ForumThread:
        thread = self.add_thread(
            forum, name, tags, content, pinned=False, auto_archive_duration=auto_archive_duration
        )
        self._mutate("create", thread)
        return thread

    async def fetch_starter_message(self, thread: ForumThread) -> StarterMessage:
        return self.starters[thread.id]

    async def edit_starter_message(self, thread: ForumThread, content: MessageContent) -> None:
        self._mutate("edit", thread)
        pinned = self.starters[thread.id].pinned
        self.starters[thread.id] = StarterMessage(
            id=thread.id, content=content.content, embeds=list(content.embeds), pinned=pinned
        )

    async def pin_message(self, thread: ForumThread, message_id: str) -> None:
        self._mutate("pin", thread)
        self.starters[message_id].pinned = True

    async def send_message(self, thread: ForumThread, content: MessageContent) -> None:
        self._mutate("send", thread)
        self.sent.setdefault(thread.id, []).append(content)

    async def rename_thread(self, thread: ForumThread, name: str) -> None:
        self._mutate("rename", thread)
        thread.name = name

    async def set_thread_tags(self, thread: ForumThread, tags: Sequence[str]) -> None:
        self._mutate("tags", thread)
        thread.applied_tags = list(tags)

    async def set_thread_archived(self, thread: ForumThread, archived: bool) -> None:
        self._mutate("archive" if archived else "unarchive", thread)
        thread.archived = archived

    async def set_thread_locked(self, thread: ForumThread, locked: bool) -> None:
        self._mutate("lock" if locked else "unlock", thread)
        thread.locked = locked

    async def set_auto_archive_duration(self, thread: ForumThread, minutes: int) -> None:
        self._mutate("auto_archive", thread)
        thread.auto_archive_duration = minutes


def _forum(forum_id: str, name: str, extra_tags: Sequence[str]) -> ForumChannel:
    names = ["RD", *(f.value for f in Faction), *extra_tags]
    return ForumChannel(
        id=forum_id,
        name=name,
        available_tags=[ForumTag(id=f"tag-{n}", name=n) for n in names],
        default_auto_archive_duration=AUTO_ARCHIVE,
    )


@pytest.fixture
def project() -> Project:
    return Project(
        number=1,
        name="Redesigns",
        short="RD",
        releases=2,
        milestone=3,
        form_url="https://forms.example.com/review",
    )


@pytest.fixture
def make_card(project: Project) -> Callable[..., Card]:
    """Factory for cards of the test project; keyword overrides any field."""

    def factory(number: int = 1, version: str = "1.0.0", **overrides: Any) -> Card:
        values: dict[str, Any] = {
            "project": project,
            "number": number,
            "version": version,
            "faction": Faction.STARK,
            "name": f"Card {number}",
            "type": CardType.CHARACTER,
            "traits": ["Lord"],
            "text": "<b>Action:</b> Kneel your faction card.",
            "cost": 3,
            "strength": 2,
            "playtesting": version,
        }
        values.update(overrides)
        return Card(**values)

    return factory


@pytest.fixture
def make_review(make_card: Callable[..., Card]) -> Callable[..., Review]:
    def factory(reviewer: str = "Alice", card: Card | None = None, **overrides: Any) -> Review:
        values: dict[str, Any] = {
            "reviewer": reviewer,
            "card": card or make_card(),
            "played": 2,
            "statements": {
                "boring": StatementAnswer.SOMEWHAT_DISAGREE,
                "balanced": StatementAnswer.STRONGLY_AGREE,
            },
            "decks": ["https://thronesdb.com/decklist/view/1"],
            "additional": "Felt strong on the first turn.",
        }
        values.update(overrides)
        return Review(**values)

    return factory


@pytest.fixture
def updated_note() -> Note:
    return Note(NoteType.UPDATED, "Strength increased to 3.")


@pytest.fixture
def card_forum() -> ForumChannel:
    return _forum("forum-cards", "🃏-card-forum", ["Latest"])


@pytest.fixture
def review_forum() -> ForumChannel:
    return _forum("forum-reviews", "📝-playtesting-reviews", [])


@pytest.fixture
def design_team() -> Role:
    return Role(id="role-dt", name="Design Team")


@pytest.fixture
def store(
    card_forum: ForumChannel, review_forum: ForumChannel, design_team: Role
) -> FakeThreadStore:
    return FakeThreadStore(
        forums=[card_forum, review_forum],
        roles=[design_team],
        members=[Member(id="user-alice", display_name="Alice")],
    )


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(async_engine) -> AsyncSession:
    """Provide a database session for tests."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session
