"""
Review thread reconciliation.

Keeps one thread per playtesting review in the review forum, tagged with the
project and the reviewed card's faction. When a reviewer changes their
answers, the starter message is updated and a follow-up message lists what
changed.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from playtestforge.config import settings
from playtestforge.models.card import Faction
from playtestforge.models.failure import GuildValidationError
from playtestforge.models.project import Project
from playtestforge.models.review import Review
from playtestforge.models.thread import (
    ForumChannel,
    ForumTag,
    Member,
    MessageContent,
    StarterMessage,
)
from playtestforge.services.reconciler import (
    FollowUp,
    SyncResult,
    ThreadPlan,
    ThreadStore,
    reconcile_threads,
    resolve_forum,
)
from playtestforge.services.thread_content import (
    changed_review_answers,
    render_review_message,
    render_review_update,
    review_thread_title,
)


@dataclass
class ReviewForum:
    channel: ForumChannel
    project_tags: dict[int, ForumTag]
    faction_tags: dict[Faction, ForumTag]


async def validate_review_forum(store: ThreadStore, projects: Iterable[Project]) -> ReviewForum:
    """
    Check the review forum and its project and faction tags.

    Raises:
        GuildValidationError: Listing every missing channel or tag
    """
    errors: list[str] = []
    tag_names = [faction.value for faction in Faction]
    forum = await resolve_forum(store, settings.review_forum_name, projects, tag_names, errors)

    if errors or forum is None:
        raise GuildValidationError(errors)

    return ReviewForum(
        channel=forum.channel,
        project_tags=forum.projects,
        faction_tags={faction: forum.named[faction.value] for faction in Faction},
    )


def _changed_answers_follow_up(review: Review, member: Member | None) -> FollowUp:
    def follow_up(starter: StarterMessage, desired: MessageContent) -> MessageContent | None:
        changes = changed_review_answers(starter.embeds, desired.embeds)
        if not changes:
            return None
        return render_review_update(review, changes, member)

    return follow_up


async def reconcile_review_threads(
    store: ThreadStore,
    can_create: bool,
    reviews: Iterable[Review],
) -> SyncResult[Review]:
    """
    Create or update the thread of each review.

    Raises:
        GuildValidationError: Before any thread is touched, if the forum is
            not set up for these reviews
    """
    reviews = list(reviews)
    projects = {review.project_id: review.card.project for review in reviews}
    forum = await validate_review_forum(store, projects.values())

    async def plan(review: Review) -> ThreadPlan:
        card = review.card
        project_tag = forum.project_tags[review.project_id].id
        member = await store.find_member(review.reviewer)
        return ThreadPlan(
            item=str(review),
            title=review_thread_title(review),
            category_tag=project_tag,
            tags=(project_tag, forum.faction_tags[card.faction].id),
            content=render_review_message(review, projects[review.project_id], member),
            follow_up=_changed_answers_follow_up(review, member),
        )

    return await reconcile_threads(store, forum.channel, reviews, plan, can_create)
