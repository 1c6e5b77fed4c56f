"""FastAPI dependencies for the external collaborators."""

from collections.abc import AsyncGenerator

from playtestforge.clients.discord import DiscordForumClient
from playtestforge.clients.github import GithubMergeChecker
from playtestforge.services.finalization import MergeChecker
from playtestforge.services.reconciler import ThreadStore


async def get_thread_store() -> AsyncGenerator[ThreadStore, None]:
    """One Discord client per request; its connections close afterwards."""
    async with DiscordForumClient() as client:
        yield client


def get_merge_checker() -> MergeChecker:
    return GithubMergeChecker()
