"""
Reconcile forum threads from the command line.

Syncs card threads, review threads, or both, for every active project or for
the projects given. Missing threads are only created with --create.

    playtestforge-sync cards --create
    playtestforge-sync reviews --project 1 --project 2
"""

import argparse
import asyncio
import logging

from playtestforge.clients.discord import DiscordForumClient
from playtestforge.db.database import session_scope
from playtestforge.db.operations import (
    ReviewMatcher,
    load_card_history,
    read_projects,
    read_reviews,
)
from playtestforge.models.card import Card
from playtestforge.services.card_threads import reconcile_card_threads
from playtestforge.services.review_threads import reconcile_review_threads

logger = logging.getLogger(__name__)

TARGETS = ("cards", "reviews", "all")


async def run_sync(
    target: str = "all",
    projects: list[int] | None = None,
    can_create: bool = False,
) -> dict[str, dict[str, int]]:
    """
    Run one reconciliation pass.

    Returns:
        Target name -> created/updated/failed counts
    """
    summaries: dict[str, dict[str, int]] = {}

    async with session_scope() as session, DiscordForumClient() as store:
        selected = await read_projects(session, projects)
        if projects is None:
            selected = [p for p in selected if p.active]
        names = ", ".join(p.name for p in selected) or "no projects"
        logger.info("Syncing %s for %s", target, names)

        if target in ("cards", "all"):
            cards: list[Card] = []
            for project in selected:
                cards.extend(await load_card_history(session, project))
            result = await reconcile_card_threads(store, can_create, cards)
            summaries["cards"] = result.summary()
            for card in result.failed:
                logger.error("Card thread failed: %s", card.id)

        if target in ("reviews", "all"):
            reviews = await read_reviews(session, [ReviewMatcher(p.number) for p in selected])
            review_result = await reconcile_review_threads(store, can_create, reviews)
            summaries["reviews"] = review_result.summary()
            for review in review_result.failed:
                logger.error("Review thread failed: %s", review)

    logger.info("Forum sync complete: %s", summaries)
    return summaries


def main() -> None:
    """CLI entry point for forum sync."""
    parser = argparse.ArgumentParser(description="Sync playtesting forum threads")
    parser.add_argument("target", choices=TARGETS, nargs="?", default="all")
    parser.add_argument(
        "--project",
        dest="projects",
        type=int,
        action="append",
        help="Project number to sync (repeatable); defaults to every active project",
    )
    parser.add_argument(
        "--create",
        action="store_true",
        help="Create threads that do not exist yet",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_sync(args.target, args.projects, args.create))


if __name__ == "__main__":
    main()
