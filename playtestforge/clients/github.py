"""
GitHub merge check for finalization.

Playtesting updates are published through an automated pull request per
release. A project may only be finalized once the pull request for its next
release has been merged (closed) in the project's development milestone.
"""

import logging
from typing import Any

import httpx

from playtestforge.config import settings
from playtestforge.models.project import Project

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 100


def playtesting_update_title(project: Project) -> str:
    """Title of the automated pull request for the project's next release."""
    return f"{project.short} | Playtesting Update {project.releases + 1}"


def merge_search_query(owner: str, repository: str, project: Project) -> str:
    return (
        f"repo:{owner}/{repository} is:pr label:automated "
        f'milestone:"{project.name} Development" "{playtesting_update_title(project)}"'
    )


class GithubMergeChecker:
    """
    Looks up the playtesting update pull request with the issue search API.

    Satisfies the finalization MergeChecker protocol.
    """

    def __init__(
        self,
        token: str | None = None,
        owner: str | None = None,
        repository: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.token = token or settings.github_token
        self.owner = owner or settings.github_owner
        self.repository = repository or settings.github_repository
        self.base_url = base_url or settings.github_api_url
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def search_pull_requests(self, query: str) -> list[dict[str, Any]]:
        """
        Run an issue search, following pages while results are incomplete.

        Raises:
            httpx.HTTPError: If a search request fails
        """
        items: list[dict[str, Any]] = []
        page = 1
        async with httpx.AsyncClient(timeout=self.timeout, headers=self._headers()) as client:
            while True:
                response = await client.get(
                    f"{self.base_url}/search/issues",
                    params={"q": query, "per_page": SEARCH_PAGE_SIZE, "page": page},
                )
                response.raise_for_status()
                data = response.json()

                results = data.get("items", [])
                items.extend(results)
                if not data.get("incomplete_results") or not results:
                    return items
                page += 1

    async def is_latest_change_merged(self, project: Project) -> bool:
        """True if the pull request for the project's next release is closed."""
        query = merge_search_query(self.owner, self.repository, project)
        items = await self.search_pull_requests(query)
        merged = any(item.get("state") == "closed" for item in items)
        logger.info(
            "Merge check for %s: %d match(es), merged=%s",
            playtesting_update_title(project),
            len(items),
            merged,
        )
        return merged
