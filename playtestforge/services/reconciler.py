"""
Desired-state synchronization of forum threads.

One thread is kept per logical item (a card or a review). For each item the
reconciler locates the thread by exact title within the item's category tag,
creates it when missing (if allowed), or applies the minimal set of changes
that bring it in line with the desired title, tags and starter message.

Items are processed one at a time. A failure while processing one item is
logged and recorded, and the batch moves on to the next item.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from playtestforge.models.failure import ItemSyncError
from playtestforge.models.project import Project
from playtestforge.models.thread import (
    Embed,
    ForumChannel,
    ForumTag,
    ForumThread,
    Member,
    MessageContent,
    Role,
    StarterMessage,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ThreadPredicate = Callable[[ForumThread], bool]


class ThreadStore(Protocol):
    """Operations the reconciler needs from the thread host."""

    guild_id: str

    async def find_forum(self, name: str) -> ForumChannel | None: ...

    async def find_role(self, name: str) -> Role | None: ...

    async def find_member(self, name: str) -> Member | None: ...

    async def find_thread(
        self, forum: ForumChannel, predicate: ThreadPredicate
    ) -> ForumThread | None: ...

    async def create_thread(
        self,
        forum: ForumChannel,
        name: str,
        tags: Sequence[str],
        content: MessageContent,
        auto_archive_duration: int | None,
    ) -> ForumThread: ...

    async def fetch_starter_message(self, thread: ForumThread) -> StarterMessage: ...

    async def edit_starter_message(self, thread: ForumThread, content: MessageContent) -> None: ...

    async def pin_message(self, thread: ForumThread, message_id: str) -> None: ...

    async def send_message(self, thread: ForumThread, content: MessageContent) -> None: ...

    async def rename_thread(self, thread: ForumThread, name: str) -> None: ...

    async def set_thread_tags(self, thread: ForumThread, tags: Sequence[str]) -> None: ...

    async def set_thread_archived(self, thread: ForumThread, archived: bool) -> None: ...

    async def set_thread_locked(self, thread: ForumThread, locked: bool) -> None: ...

    async def set_auto_archive_duration(self, thread: ForumThread, minutes: int) -> None: ...


# =============================================================================
# RESULTS
# =============================================================================


class SyncOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SyncResult(Generic[T]):
    """Disjoint sets of items that were created, updated or failed."""

    created: tuple[T, ...] = ()
    updated: tuple[T, ...] = ()
    failed: tuple[T, ...] = ()

    def record(self, item: T, outcome: SyncOutcome | None) -> "SyncResult[T]":
        """Return a new result with the item added for its outcome (None = failed)."""
        if outcome is None:
            return SyncResult(self.created, self.updated, (*self.failed, item))
        if outcome == SyncOutcome.CREATED:
            return SyncResult((*self.created, item), self.updated, self.failed)
        if outcome == SyncOutcome.UPDATED:
            return SyncResult(self.created, (*self.updated, item), self.failed)
        return self

    def summary(self) -> dict[str, int]:
        return {
            "created": len(self.created),
            "updated": len(self.updated),
            "failed": len(self.failed),
        }


# =============================================================================
# PLANS
# =============================================================================


@dataclass(frozen=True)
class Supersession:
    """A previous thread to retire once its successor is the latest."""

    thread: ForumThread
    tags: tuple[str, ...]
    latest_tag: str


FollowUp = Callable[[StarterMessage, MessageContent], MessageContent | None]


@dataclass
class ThreadPlan:
    """
    Desired state of one item's thread.

    Attributes:
        item: Name of the item, used in logs and errors
        title: Stable thread title used to find the thread
        category_tag: Tag id a thread must carry to match this item
        tags: Full set of tag ids the thread should carry
        content: Rendered starter message
        previous: Thread superseded by this one, if any
        follow_up: Builds a message to post after an update, if any
    """

    item: str
    title: str
    category_tag: str
    tags: tuple[str, ...]
    content: MessageContent
    previous: Supersession | None = None
    follow_up: FollowUp | None = None


@dataclass(frozen=True)
class ThreadUpdate:
    """Changes needed to bring an existing thread to its desired state."""

    name: str | None = None
    content: MessageContent | None = None
    pin: bool = False
    tags: tuple[str, ...] | None = None
    auto_archive_duration: int | None = None

    @property
    def labels(self) -> list[str]:
        labels = []
        if self.name is not None:
            labels.append("Title")
        if self.content is not None:
            labels.append("Message content")
        if self.pin:
            labels.append("Pinned")
        if self.tags is not None:
            labels.append("Tags")
        if self.auto_archive_duration is not None:
            labels.append("Auto Archive Duration")
        return labels

    def __bool__(self) -> bool:
        return bool(self.labels)


def _embed_key(embed: Embed) -> tuple[object, ...]:
    # Timestamps are left out; the host rewrites their format
    return (
        embed.title,
        embed.description,
        embed.color,
        embed.author,
        embed.author_icon_url,
        embed.image_url,
        embed.fields,
    )


def _embed_differs(current: Embed, desired: Embed) -> bool:
    return _embed_key(current) != _embed_key(desired)


def message_differs(starter: StarterMessage, desired: MessageContent) -> bool:
    """
    True if the starter message no longer matches the rendered content.

    Embeds are compared field by field so that a change in any single field
    value is detected even when the message text is unchanged.
    """
    if starter.content != desired.content or len(starter.embeds) != len(desired.embeds):
        return True
    return any(_embed_differs(c, d) for c, d in zip(starter.embeds, desired.embeds, strict=True))


def diff_thread(
    thread: ForumThread,
    starter: StarterMessage,
    plan: ThreadPlan,
    auto_archive_duration: int | None,
) -> ThreadUpdate:
    """Compare a thread's current state against its plan."""
    return ThreadUpdate(
        name=plan.title if thread.name != plan.title else None,
        content=plan.content if message_differs(starter, plan.content) else None,
        pin=not starter.pinned and starter.pinnable,
        tags=plan.tags if set(thread.applied_tags) != set(plan.tags) else None,
        auto_archive_duration=(
            auto_archive_duration
            if auto_archive_duration and thread.auto_archive_duration != auto_archive_duration
            else None
        ),
    )


def _update_calls(
    store: ThreadStore, thread: ForumThread, starter: StarterMessage, update: ThreadUpdate
) -> dict[str, Coroutine[Any, Any, None]]:
    calls: dict[str, Coroutine[Any, Any, None]] = {}
    if update.name is not None:
        calls["Title"] = store.rename_thread(thread, update.name)
    if update.content is not None:
        calls["Message content"] = store.edit_starter_message(thread, update.content)
    if update.pin:
        calls["Pinned"] = store.pin_message(thread, starter.id)
    if update.tags is not None:
        calls["Tags"] = store.set_thread_tags(thread, update.tags)
    if update.auto_archive_duration is not None:
        calls["Auto Archive Duration"] = store.set_auto_archive_duration(
            thread, update.auto_archive_duration
        )
    return calls


async def apply_thread_update(
    store: ThreadStore,
    thread: ForumThread,
    starter: StarterMessage,
    update: ThreadUpdate,
    item: str,
) -> None:
    """
    Apply every change of an update in one unarchive/apply/re-archive cycle.

    Changes touch disjoint thread attributes and run concurrently. All of
    them settle before an archived thread is archived again.

    Raises:
        ItemSyncError: If any change failed
    """
    was_archived = thread.archived
    if was_archived:
        await store.set_thread_archived(thread, False)

    calls = _update_calls(store, thread, starter, update)
    results = await asyncio.gather(*calls.values(), return_exceptions=True)

    if was_archived:
        await store.set_thread_archived(thread, True)

    failures = {
        label: result
        for label, result in zip(calls, results, strict=True)
        if isinstance(result, BaseException)
    }
    if failures:
        raise ItemSyncError(item, failures)


# =============================================================================
# SUPERSESSION
# =============================================================================


def plan_supersession(supersession: Supersession) -> list[str]:
    """
    List the steps that retire a superseded thread, in order.

    Steps are: replace tags (drop the latest tag), lock, archive. An archived
    thread that needs changes is unarchived first and archived again last.
    """
    thread = supersession.thread
    steps = []
    if supersession.latest_tag in thread.applied_tags:
        steps.append("Tags")
    if not thread.locked:
        steps.append("Locked")
    if not thread.archived or steps:
        if thread.archived:
            steps.insert(0, "Unarchived")
        steps.append("Archived")
    return steps


async def supersede(store: ThreadStore, supersession: Supersession) -> bool:
    """Retire a superseded thread. Returns False if nothing needed to change."""
    thread = supersession.thread
    steps: dict[str, Callable[[], Awaitable[None]]] = {
        "Unarchived": lambda: store.set_thread_archived(thread, False),
        "Tags": lambda: store.set_thread_tags(thread, supersession.tags),
        "Locked": lambda: store.set_thread_locked(thread, True),
        "Archived": lambda: store.set_thread_archived(thread, True),
    }
    planned = plan_supersession(supersession)
    for step in planned:
        await steps[step]()

    if planned:
        logger.debug("Superseded thread %s: %s", thread.name, ", ".join(planned))
    return bool(planned)


# =============================================================================
# RECONCILIATION
# =============================================================================


def title_matcher(category_tag: str, title: str) -> ThreadPredicate:
    """Match threads by category tag and exact title."""
    return lambda thread: category_tag in thread.applied_tags and thread.name == title


async def sync_thread(
    store: ThreadStore,
    forum: ForumChannel,
    plan: ThreadPlan,
    can_create: bool,
) -> SyncOutcome:
    """Bring one item's thread to its planned state."""
    auto_archive_duration = forum.default_auto_archive_duration
    thread = await store.find_thread(forum, title_matcher(plan.category_tag, plan.title))

    if thread is None:
        if not can_create:
            logger.warning("Thread missing for %s, but thread creation not allowed", plan.item)
            return SyncOutcome.SKIPPED

        thread = await store.create_thread(
            forum, plan.title, plan.tags, plan.content, auto_archive_duration
        )
        starter = await store.fetch_starter_message(thread)
        await store.pin_message(thread, starter.id)
        if plan.previous is not None:
            await supersede(store, plan.previous)
        return SyncOutcome.CREATED

    starter = await store.fetch_starter_message(thread)
    update = diff_thread(thread, starter, plan, auto_archive_duration)
    labels = update.labels

    if plan.previous is not None and await supersede(store, plan.previous):
        labels.insert(0, "Previous Thread Updated")
    if not labels:
        return SyncOutcome.UNCHANGED

    if update:
        await apply_thread_update(store, thread, starter, update, plan.item)
        if plan.follow_up is not None:
            follow_up = plan.follow_up(starter, plan.content)
            if follow_up is not None:
                await store.send_message(thread, follow_up)
                labels.append("Follow-up message")

    logger.debug("Updated the following for %s thread: %s", plan.item, ", ".join(labels))
    return SyncOutcome.UPDATED


async def reconcile_threads(
    store: ThreadStore,
    forum: ForumChannel,
    items: Iterable[T],
    planner: Callable[[T], Awaitable[ThreadPlan]],
    can_create: bool,
) -> SyncResult[T]:
    """
    Reconcile a batch of items, one thread per item.

    Each item is planned and synced on its own; an exception for one item
    marks only that item as failed.
    """
    result: SyncResult[T] = SyncResult()
    for item in items:
        try:
            plan = await planner(item)
            outcome: SyncOutcome | None = await sync_thread(store, forum, plan, can_create)
        except Exception:
            logger.exception("Failed to sync thread for %s", item)
            outcome = None
        result = result.record(item, outcome)

    logger.info("Synced threads in %s: %s", forum.name, result.summary())
    return result


# =============================================================================
# FORUM VALIDATION
# =============================================================================


@dataclass
class ForumTags:
    """Tags resolved on a forum channel for a set of projects."""

    channel: ForumChannel
    projects: dict[int, ForumTag] = field(default_factory=dict)
    named: dict[str, ForumTag] = field(default_factory=dict)


async def resolve_forum(
    store: ThreadStore,
    forum_name: str,
    projects: Iterable[Project],
    tag_names: Iterable[str],
    errors: list[str],
) -> ForumTags | None:
    """
    Find a forum by name suffix and resolve project and named tags on it.

    Problems are appended to `errors` so that every missing piece is
    reported together.
    """
    channel = await store.find_forum(forum_name)
    if channel is None:
        errors.append(f'"{forum_name}" channel does not exist or is not a forum')
        return None

    tags = ForumTags(channel=channel)
    for project in projects:
        tag = channel.find_tag(project.short)
        if tag is None:
            errors.append(f'"{project.short}" tag is missing on forum "{channel.name}"')
        else:
            tags.projects[project.number] = tag

    for name in tag_names:
        tag = channel.find_tag(name)
        if tag is None:
            errors.append(f'"{name}" tag is missing on forum "{channel.name}"')
        else:
            tags.named[name] = tag
    return tags
