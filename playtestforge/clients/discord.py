"""
Discord forum client.

Implements the reconciler's ThreadStore over the Discord REST API with an
httpx AsyncClient. Thread metadata is cached per forum channel; a lookup that
misses the cache refreshes the active threads and pages through archived
threads (newest first) until the thread is found, the listing runs out, or
the configured page limit is reached.
"""

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx

from playtestforge.config import ARCHIVED_THREAD_PAGE_SIZE, settings
from playtestforge.models.failure import ThreadHostError
from playtestforge.models.thread import (
    Embed,
    EmbedField,
    ForumChannel,
    ForumTag,
    ForumThread,
    Member,
    MessageContent,
    Role,
    StarterMessage,
)
from playtestforge.services.reconciler import ThreadPredicate

logger = logging.getLogger(__name__)

GUILD_FORUM = 15
# Default and reply messages can be pinned; system messages cannot
PINNABLE_MESSAGE_TYPES = frozenset({0, 19})
MAX_RATE_LIMIT_RETRIES = 3


# =============================================================================
# PAYLOAD CONVERSION
# =============================================================================


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def parse_forum(data: dict[str, Any]) -> ForumChannel:
    return ForumChannel(
        id=data["id"],
        name=data["name"],
        available_tags=[
            ForumTag(id=t["id"], name=t["name"]) for t in data.get("available_tags", [])
        ],
        default_auto_archive_duration=data.get("default_auto_archive_duration"),
    )


def parse_thread(data: dict[str, Any]) -> ForumThread:
    metadata = data.get("thread_metadata", {})
    return ForumThread(
        id=data["id"],
        parent_id=data.get("parent_id", ""),
        name=data["name"],
        applied_tags=list(data.get("applied_tags", [])),
        archived=metadata.get("archived", False),
        locked=metadata.get("locked", False),
        auto_archive_duration=metadata.get("auto_archive_duration"),
        archived_at=_parse_timestamp(metadata.get("archive_timestamp")),
    )


def parse_embed(data: dict[str, Any]) -> Embed:
    author = data.get("author") or {}
    return Embed(
        title=data.get("title"),
        description=data.get("description"),
        color=data.get("color"),
        author=author.get("name"),
        author_icon_url=author.get("icon_url"),
        image_url=(data.get("image") or {}).get("url"),
        timestamp=_parse_timestamp(data.get("timestamp")),
        fields=tuple(
            EmbedField(name=f["name"], value=f["value"], inline=f.get("inline", False))
            for f in data.get("fields", [])
        ),
    )


def parse_message(data: dict[str, Any]) -> StarterMessage:
    return StarterMessage(
        id=data["id"],
        content=data.get("content", ""),
        embeds=[parse_embed(e) for e in data.get("embeds", [])],
        pinned=data.get("pinned", False),
        pinnable=data.get("type", 0) in PINNABLE_MESSAGE_TYPES,
    )


def embed_payload(embed: Embed) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if embed.title is not None:
        payload["title"] = embed.title
    if embed.description is not None:
        payload["description"] = embed.description
    if embed.color is not None:
        payload["color"] = embed.color
    if embed.author is not None:
        payload["author"] = {"name": embed.author}
        if embed.author_icon_url:
            payload["author"]["icon_url"] = embed.author_icon_url
    if embed.image_url is not None:
        payload["image"] = {"url": embed.image_url}
    if embed.timestamp is not None:
        payload["timestamp"] = embed.timestamp.isoformat()
    if embed.fields:
        payload["fields"] = [
            {"name": f.name, "value": f.value, "inline": f.inline} for f in embed.fields
        ]
    return payload


def message_payload(content: MessageContent) -> dict[str, Any]:
    return {
        "content": content.content,
        "embeds": [embed_payload(e) for e in content.embeds],
        "allowed_mentions": {"parse": list(content.mentions)},
    }


# =============================================================================
# CLIENT
# =============================================================================


class DiscordForumClient:
    """
    Thread host backed by one Discord guild.

    Use as an async context manager so the underlying connection pool is
    closed when the sync run ends.
    """

    def __init__(
        self,
        token: str | None = None,
        guild_id: str | None = None,
        base_url: str | None = None,
        archived_page_limit: int | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.guild_id = guild_id or settings.discord_guild_id
        self.archived_page_limit = archived_page_limit or settings.archived_thread_page_limit
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.discord_api_url,
            headers={"Authorization": f"Bot {token or settings.discord_token}"},
            timeout=timeout,
        )
        self._threads: dict[str, dict[str, ForumThread]] = {}
        self._members: dict[str, Member | None] = {}

    async def __aenter__(self) -> "DiscordForumClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> Any:
        """
        Send a request, waiting out rate limits.

        Raises:
            ThreadHostError: If the request fails or keeps being rate limited
        """
        try:
            for _ in range(MAX_RATE_LIMIT_RETRIES + 1):
                response = await self._client.request(method, url, **kwargs)
                if response.status_code != 429:
                    break
                retry_after = float(response.json().get("retry_after", 1.0))
                logger.warning("Rate limited during %s, retrying in %.2fs", operation, retry_after)
                await asyncio.sleep(retry_after)

            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ThreadHostError(operation, e) from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # --- Guild lookups ---

    async def find_forum(self, name: str) -> ForumChannel | None:
        """Find a forum channel whose name ends with `name`."""
        channels = await self._request("list channels", "GET", f"/guilds/{self.guild_id}/channels")
        for channel in channels:
            if channel.get("type") == GUILD_FORUM and channel["name"].endswith(name):
                return parse_forum(channel)
        return None

    async def find_role(self, name: str) -> Role | None:
        roles = await self._request("list roles", "GET", f"/guilds/{self.guild_id}/roles")
        return next((Role(id=r["id"], name=r["name"]) for r in roles if r["name"] == name), None)

    async def find_member(self, name: str) -> Member | None:
        """Find a guild member by display name or username. Results are cached."""
        if name in self._members:
            return self._members[name]

        results = await self._request(
            "search members",
            "GET",
            f"/guilds/{self.guild_id}/members/search",
            params={"query": name, "limit": 1},
        )
        member = None
        for result in results:
            user = result.get("user", {})
            display = result.get("nick") or user.get("global_name") or user.get("username")
            if name in (display, user.get("username")):
                member = Member(id=user["id"], display_name=display)
                break

        self._members[name] = member
        return member

    # --- Thread lookup ---

    def _cache(self, forum: ForumChannel) -> dict[str, ForumThread]:
        return self._threads.setdefault(forum.id, {})

    async def _load_active_threads(self, forum: ForumChannel) -> None:
        data = await self._request(
            "list active threads", "GET", f"/guilds/{self.guild_id}/threads/active"
        )
        cache = self._cache(forum)
        for item in data.get("threads", []):
            if item.get("parent_id") == forum.id:
                thread = parse_thread(item)
                cache[thread.id] = thread

    async def _search_archived_threads(
        self, forum: ForumChannel, predicate: ThreadPredicate
    ) -> ForumThread | None:
        cache = self._cache(forum)
        before: str | None = None
        for _ in range(self.archived_page_limit):
            params: dict[str, Any] = {"limit": ARCHIVED_THREAD_PAGE_SIZE}
            if before:
                params["before"] = before
            data = await self._request(
                "list archived threads",
                "GET",
                f"/channels/{forum.id}/threads/archived/public",
                params=params,
            )

            found = None
            page = data.get("threads", [])
            for item in page:
                thread = parse_thread(item)
                cache[thread.id] = thread
                if found is None and predicate(thread):
                    found = thread

            if found is not None:
                return found
            if not data.get("has_more") or not page:
                return None
            before = page[-1].get("thread_metadata", {}).get("archive_timestamp")

        logger.warning(
            "Stopped searching archived threads of %s after %d pages",
            forum.name,
            self.archived_page_limit,
        )
        return None

    async def find_thread(
        self, forum: ForumChannel, predicate: ThreadPredicate
    ) -> ForumThread | None:
        """
        Find a thread in a forum matching the predicate.

        The cache is never trusted for a negative answer: on a miss the
        active threads are reloaded and the archived threads are searched.
        """
        cached = next((t for t in self._cache(forum).values() if predicate(t)), None)
        if cached is not None:
            return cached

        await self._load_active_threads(forum)
        active = next((t for t in self._cache(forum).values() if predicate(t)), None)
        if active is not None:
            return active
        return await self._search_archived_threads(forum, predicate)

    # --- Thread mutations ---

    async def create_thread(
        self,
        forum: ForumChannel,
        name: str,
        tags: Sequence[str],
        content: MessageContent,
        auto_archive_duration: int | None,
    ) -> ForumThread:
        body: dict[str, Any] = {
            "name": name,
            "applied_tags": list(tags),
            "message": message_payload(content),
        }
        if auto_archive_duration:
            body["auto_archive_duration"] = auto_archive_duration

        data = await self._request(
            "create thread", "POST", f"/channels/{forum.id}/threads", json=body
        )
        thread = parse_thread(data)
        self._cache(forum)[thread.id] = thread
        logger.info("Created thread %s in %s", name, forum.name)
        return thread

    async def _modify_thread(self, thread: ForumThread, operation: str, **changes: Any) -> None:
        data = await self._request(operation, "PATCH", f"/channels/{thread.id}", json=changes)
        updated = parse_thread(data) if data else None
        if updated is not None:
            thread.name = updated.name
            thread.applied_tags = updated.applied_tags
            thread.archived = updated.archived
            thread.locked = updated.locked
            thread.auto_archive_duration = updated.auto_archive_duration
            thread.archived_at = updated.archived_at

    async def rename_thread(self, thread: ForumThread, name: str) -> None:
        await self._modify_thread(thread, "rename thread", name=name)

    async def set_thread_tags(self, thread: ForumThread, tags: Sequence[str]) -> None:
        await self._modify_thread(thread, "set thread tags", applied_tags=list(tags))

    async def set_thread_archived(self, thread: ForumThread, archived: bool) -> None:
        await self._modify_thread(thread, "set thread archived", archived=archived)

    async def set_thread_locked(self, thread: ForumThread, locked: bool) -> None:
        await self._modify_thread(thread, "set thread locked", locked=locked)

    async def set_auto_archive_duration(self, thread: ForumThread, minutes: int) -> None:
        await self._modify_thread(
            thread, "set auto archive duration", auto_archive_duration=minutes
        )

    # --- Messages ---

    async def fetch_starter_message(self, thread: ForumThread) -> StarterMessage:
        # The starter message of a forum thread shares the thread's id
        data = await self._request(
            "fetch starter message", "GET", f"/channels/{thread.id}/messages/{thread.id}"
        )
        return parse_message(data)

    async def edit_starter_message(self, thread: ForumThread, content: MessageContent) -> None:
        await self._request(
            "edit starter message",
            "PATCH",
            f"/channels/{thread.id}/messages/{thread.id}",
            json=message_payload(content),
        )

    async def pin_message(self, thread: ForumThread, message_id: str) -> None:
        await self._request("pin message", "PUT", f"/channels/{thread.id}/pins/{message_id}")

    async def send_message(self, thread: ForumThread, content: MessageContent) -> None:
        await self._request(
            "send message",
            "POST",
            f"/channels/{thread.id}/messages",
            json=message_payload(content),
        )
