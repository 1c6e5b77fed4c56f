"""
Card thread reconciliation.

Keeps one design discussion thread per card version in the card forum. Only
the latest version of each card gets a thread created or updated; the thread
of the version it replaced loses its "Latest" tag and is locked and archived.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from playtestforge.config import settings
from playtestforge.models.card import Card, Faction
from playtestforge.models.failure import GuildValidationError
from playtestforge.models.project import Project
from playtestforge.models.thread import ForumChannel, ForumTag, Role
from playtestforge.services.card_history import CardGroup, group_by_project
from playtestforge.services.reconciler import (
    Supersession,
    SyncResult,
    ThreadPlan,
    ThreadStore,
    reconcile_threads,
    resolve_forum,
    title_matcher,
)
from playtestforge.services.thread_content import card_thread_title, render_card_message

logger = logging.getLogger(__name__)


@dataclass
class CardForum:
    """Validated card forum with every role and tag a card thread needs."""

    channel: ForumChannel
    role: Role
    project_tags: dict[int, ForumTag]
    faction_tags: dict[Faction, ForumTag]
    latest_tag: ForumTag

    def tags_for(self, card: Card, latest: bool) -> tuple[str, ...]:
        tags = [self.project_tags[card.project.number].id, self.faction_tags[card.faction].id]
        if latest:
            tags.append(self.latest_tag.id)
        return tuple(tags)


async def validate_card_forum(store: ThreadStore, projects: Iterable[Project]) -> CardForum:
    """
    Check the card forum, the design team role and every required tag.

    Raises:
        GuildValidationError: Listing every missing channel, role or tag
    """
    errors: list[str] = []
    tag_names = [faction.value for faction in Faction] + [settings.latest_tag_name]
    forum = await resolve_forum(store, settings.card_forum_name, projects, tag_names, errors)

    role = await store.find_role(settings.design_team_role)
    if role is None:
        errors.append(f'"{settings.design_team_role}" role does not exist')

    if errors or forum is None or role is None:
        raise GuildValidationError(errors)

    return CardForum(
        channel=forum.channel,
        role=role,
        project_tags=forum.projects,
        faction_tags={faction: forum.named[faction.value] for faction in Faction},
        latest_tag=forum.named[settings.latest_tag_name],
    )


async def reconcile_card_threads(
    store: ThreadStore,
    can_create: bool,
    cards: Iterable[Card],
    api_url: str | None = None,
) -> SyncResult[Card]:
    """
    Create or update the thread of the latest version of each card.

    Args:
        store: Thread host
        can_create: Whether missing threads may be created
        cards: Card versions; grouped by project and number internally
        api_url: Base URL for development card images

    Returns:
        Latest cards whose threads were created, updated or failed

    Raises:
        GuildValidationError: Before any thread is touched, if the forum is
            not set up for these cards
    """
    cards = list(cards)
    projects = {card.project.number: card.project for card in cards}
    forum = await validate_card_forum(store, projects.values())
    image_base = api_url or settings.api_url

    groups: dict[tuple[int, int], CardGroup] = {
        (project, group.number): group
        for project, history in group_by_project(cards).items()
        for group in history.groups.values()
    }

    async def plan(card: Card) -> ThreadPlan:
        group = groups[(card.project.number, card.number)]
        project_tag = forum.project_tags[card.project.number].id

        previous = group.superseded
        title = card_thread_title(card)
        # Preview versions share one title, and with it one thread
        if previous is not None and card_thread_title(previous) == title:
            previous = None

        previous_thread = None
        if previous is not None:
            previous_thread = await store.find_thread(
                forum.channel, title_matcher(project_tag, card_thread_title(previous))
            )

        previous_url = previous_thread.url(store.guild_id) if previous_thread else None
        return ThreadPlan(
            item=card.id,
            title=title,
            category_tag=project_tag,
            tags=forum.tags_for(card, latest=True),
            content=render_card_message(card, forum.role, image_base, previous_url),
            previous=(
                Supersession(
                    thread=previous_thread,
                    tags=forum.tags_for(previous, latest=False),
                    latest_tag=forum.latest_tag.id,
                )
                if previous is not None and previous_thread is not None
                else None
            ),
        )

    latest = [group.latest for group in groups.values()]
    return await reconcile_threads(store, forum.channel, latest, plan, can_create)
