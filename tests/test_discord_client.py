"""Tests for the Discord forum client (mocked HTTP)."""

import json
from typing import Any

import httpx
import pytest
import respx

from playtestforge.clients.discord import DiscordForumClient, parse_message
from playtestforge.models.failure import ThreadHostError
from playtestforge.models.thread import (
    Embed,
    EmbedField,
    ForumChannel,
    ForumThread,
    Member,
    MessageContent,
)

BASE = "https://discord.test/api"
FORUM = ForumChannel(id="forum-1", name="🃏-card-forum", default_auto_archive_duration=10080)


def thread_payload(
    thread_id: str,
    name: str,
    archived: bool = False,
    archive_timestamp: str = "2024-05-01T00:00:00+00:00",
    parent_id: str = "forum-1",
) -> dict[str, Any]:
    return {
        "id": thread_id,
        "parent_id": parent_id,
        "name": name,
        "applied_tags": ["tag-RD"],
        "thread_metadata": {
            "archived": archived,
            "locked": False,
            "auto_archive_duration": 10080,
            "archive_timestamp": archive_timestamp,
        },
    }


def by_name(name: str):
    return lambda thread: thread.name == name


@pytest.fixture
async def client():
    client = DiscordForumClient(
        token="token", guild_id="guild-1", base_url=BASE, archived_page_limit=3
    )
    yield client
    await client.aclose()


class TestGuildLookups:
    """Tests for channel, role and member lookups."""

    @respx.mock
    async def test_find_forum_by_suffix(self, client: DiscordForumClient) -> None:
        """Only forum channels are matched, by name suffix."""
        respx.get(f"{BASE}/guilds/guild-1/channels").mock(
            return_value=httpx.Response(
                200,
                json=[
                    {"id": "text-1", "name": "card-forum", "type": 0},
                    {
                        "id": "forum-1",
                        "name": "🃏-card-forum",
                        "type": 15,
                        "available_tags": [{"id": "tag-RD", "name": "RD"}],
                        "default_auto_archive_duration": 10080,
                    },
                ],
            )
        )

        forum = await client.find_forum("card-forum")

        assert forum is not None
        assert forum.id == "forum-1"
        assert forum.find_tag("RD") is not None
        assert forum.default_auto_archive_duration == 10080

    @respx.mock
    async def test_missing_forum(self, client: DiscordForumClient) -> None:
        respx.get(f"{BASE}/guilds/guild-1/channels").mock(
            return_value=httpx.Response(200, json=[])
        )
        assert await client.find_forum("card-forum") is None

    @respx.mock
    async def test_find_role(self, client: DiscordForumClient) -> None:
        respx.get(f"{BASE}/guilds/guild-1/roles").mock(
            return_value=httpx.Response(200, json=[{"id": "role-dt", "name": "Design Team"}])
        )

        role = await client.find_role("Design Team")

        assert role is not None
        assert role.id == "role-dt"

    @respx.mock
    async def test_find_member_is_cached(self, client: DiscordForumClient) -> None:
        """A member is searched once and then served from the cache."""
        route = respx.get(f"{BASE}/guilds/guild-1/members/search").mock(
            return_value=httpx.Response(
                200,
                json=[
                    {
                        "nick": None,
                        "user": {"id": "user-alice", "username": "alice", "global_name": "Alice"},
                    }
                ],
            )
        )

        first = await client.find_member("Alice")
        second = await client.find_member("Alice")

        assert first == second == Member(id="user-alice", display_name="Alice")
        assert route.call_count == 1
        assert route.calls.last.request.url.params["query"] == "Alice"

    @respx.mock
    async def test_member_must_match_name(self, client: DiscordForumClient) -> None:
        respx.get(f"{BASE}/guilds/guild-1/members/search").mock(
            return_value=httpx.Response(
                200,
                json=[{"nick": "Alicia", "user": {"id": "u", "username": "alicia"}}],
            )
        )
        assert await client.find_member("Alice") is None


class TestFindThread:
    """Tests for thread lookup through active and archived listings."""

    @respx.mock
    async def test_active_thread(self, client: DiscordForumClient) -> None:
        """Active threads of other forums are ignored."""
        respx.get(f"{BASE}/guilds/guild-1/threads/active").mock(
            return_value=httpx.Response(
                200,
                json={
                    "threads": [
                        thread_payload("1", "target", parent_id="elsewhere"),
                        thread_payload("2", "target"),
                    ]
                },
            )
        )

        thread = await client.find_thread(FORUM, by_name("target"))

        assert thread is not None
        assert thread.id == "2"

    @respx.mock
    async def test_archived_pages_follow_cursor(self, client: DiscordForumClient) -> None:
        """Archived threads are paged with the last archive timestamp."""
        respx.get(f"{BASE}/guilds/guild-1/threads/active").mock(
            return_value=httpx.Response(200, json={"threads": []})
        )
        cursor = "2024-04-01T00:00:00+00:00"

        def archived_page(request: httpx.Request) -> httpx.Response:
            if "before" not in request.url.params:
                page = [thread_payload("1", "other", archived=True, archive_timestamp=cursor)]
                return httpx.Response(200, json={"threads": page, "has_more": True})
            assert request.url.params["before"] == cursor
            page = [thread_payload("2", "target", archived=True)]
            return httpx.Response(200, json={"threads": page, "has_more": False})

        route = respx.get(f"{BASE}/channels/forum-1/threads/archived/public").mock(
            side_effect=archived_page
        )

        thread = await client.find_thread(FORUM, by_name("target"))

        assert thread is not None
        assert thread.id == "2"
        assert thread.archived
        assert route.call_count == 2
        assert route.calls[0].request.url.params["limit"] == "100"

    @respx.mock
    async def test_archived_search_stops_at_page_limit(self, client: DiscordForumClient) -> None:
        respx.get(f"{BASE}/guilds/guild-1/threads/active").mock(
            return_value=httpx.Response(200, json={"threads": []})
        )
        route = respx.get(f"{BASE}/channels/forum-1/threads/archived/public").mock(
            return_value=httpx.Response(
                200,
                json={"threads": [thread_payload("1", "other", archived=True)], "has_more": True},
            )
        )

        assert await client.find_thread(FORUM, by_name("target")) is None
        assert route.call_count == 3

    @respx.mock
    async def test_found_thread_is_cached(self, client: DiscordForumClient) -> None:
        active = respx.get(f"{BASE}/guilds/guild-1/threads/active").mock(
            return_value=httpx.Response(200, json={"threads": [thread_payload("2", "target")]})
        )

        await client.find_thread(FORUM, by_name("target"))
        thread = await client.find_thread(FORUM, by_name("target"))

        assert thread is not None
        assert active.call_count == 1

    @respx.mock
    async def test_miss_is_not_cached(self, client: DiscordForumClient) -> None:
        """A thread created elsewhere after a miss is still found."""
        active = respx.get(f"{BASE}/guilds/guild-1/threads/active").mock(
            side_effect=[
                httpx.Response(200, json={"threads": []}),
                httpx.Response(200, json={"threads": [thread_payload("2", "target")]}),
            ]
        )
        respx.get(f"{BASE}/channels/forum-1/threads/archived/public").mock(
            return_value=httpx.Response(200, json={"threads": [], "has_more": False})
        )

        assert await client.find_thread(FORUM, by_name("target")) is None
        assert await client.find_thread(FORUM, by_name("target")) is not None
        assert active.call_count == 2


class TestThreadMutations:
    """Tests for thread creation and modification."""

    @respx.mock
    async def test_create_thread_payload(self, client: DiscordForumClient) -> None:
        route = respx.post(f"{BASE}/channels/forum-1/threads").mock(
            return_value=httpx.Response(201, json=thread_payload("9", "1. Card 1 (1.0.0)"))
        )
        content = MessageContent(
            content="hello",
            embeds=(Embed(title="Card", fields=(EmbedField("Notes", "first"),)),),
            mentions=("roles",),
        )

        thread = await client.create_thread(FORUM, "1. Card 1 (1.0.0)", ["tag-RD"], content, 10080)

        body = json.loads(route.calls.last.request.content)
        assert body == {
            "name": "1. Card 1 (1.0.0)",
            "applied_tags": ["tag-RD"],
            "auto_archive_duration": 10080,
            "message": {
                "content": "hello",
                "embeds": [
                    {
                        "title": "Card",
                        "fields": [{"name": "Notes", "value": "first", "inline": False}],
                    }
                ],
                "allowed_mentions": {"parse": ["roles"]},
            },
        }
        assert thread.id == "9"
        # Created threads are found without another request
        assert await client.find_thread(FORUM, by_name("1. Card 1 (1.0.0)")) is thread

    @respx.mock
    async def test_modify_updates_thread(self, client: DiscordForumClient) -> None:
        """The thread snapshot follows the host's response."""
        payload = thread_payload("9", "target", archived=True)
        route = respx.patch(f"{BASE}/channels/9").mock(
            return_value=httpx.Response(200, json=payload)
        )
        thread = ForumThread(id="9", parent_id="forum-1", name="target")

        await client.set_thread_archived(thread, True)

        assert json.loads(route.calls.last.request.content) == {"archived": True}
        assert thread.archived
        assert thread.archived_at is not None

    @respx.mock
    async def test_set_tags(self, client: DiscordForumClient) -> None:
        route = respx.patch(f"{BASE}/channels/9").mock(
            return_value=httpx.Response(200, json=thread_payload("9", "target"))
        )
        thread = ForumThread(id="9", parent_id="forum-1", name="target")

        await client.set_thread_tags(thread, ("tag-RD",))

        assert json.loads(route.calls.last.request.content) == {"applied_tags": ["tag-RD"]}
        assert thread.applied_tags == ["tag-RD"]


class TestMessages:
    """Tests for starter message handling."""

    @respx.mock
    async def test_fetch_starter_message(self, client: DiscordForumClient) -> None:
        """The starter message shares the thread's id."""
        respx.get(f"{BASE}/channels/9/messages/9").mock(
            return_value=httpx.Response(
                200,
                json={
                    "id": "9",
                    "type": 0,
                    "content": "hello",
                    "pinned": True,
                    "embeds": [
                        {
                            "title": "Card",
                            "image": {"url": "https://img.example.com/1.png"},
                            "fields": [{"name": "Notes", "value": "first", "inline": True}],
                        }
                    ],
                },
            )
        )
        thread = ForumThread(id="9", parent_id="forum-1", name="target")

        starter = await client.fetch_starter_message(thread)

        assert starter.id == "9"
        assert starter.pinned
        assert starter.pinnable
        [embed] = starter.embeds
        assert embed.image_url == "https://img.example.com/1.png"
        assert embed.fields == (EmbedField("Notes", "first", inline=True),)

    def test_system_message_is_not_pinnable(self) -> None:
        assert not parse_message({"id": "1", "type": 18}).pinnable

    @respx.mock
    async def test_pin_message(self, client: DiscordForumClient) -> None:
        route = respx.put(f"{BASE}/channels/9/pins/9").mock(return_value=httpx.Response(204))
        thread = ForumThread(id="9", parent_id="forum-1", name="target")

        await client.pin_message(thread, "9")

        assert route.called

    @respx.mock
    async def test_send_message(self, client: DiscordForumClient) -> None:
        route = respx.post(f"{BASE}/channels/9/messages").mock(
            return_value=httpx.Response(200, json={"id": "10"})
        )
        thread = ForumThread(id="9", parent_id="forum-1", name="target")

        await client.send_message(thread, MessageContent("update", mentions=("users",)))

        body = json.loads(route.calls.last.request.content)
        assert body == {"content": "update", "embeds": [], "allowed_mentions": {"parse": ["users"]}}


class TestErrors:
    """Tests for failure handling."""

    @respx.mock
    async def test_http_error_is_wrapped(self, client: DiscordForumClient) -> None:
        respx.get(f"{BASE}/guilds/guild-1/channels").mock(return_value=httpx.Response(500))

        with pytest.raises(ThreadHostError) as exc_info:
            await client.find_forum("card-forum")

        assert exc_info.value.operation == "list channels"

    @respx.mock
    async def test_network_error_is_wrapped(self, client: DiscordForumClient) -> None:
        respx.get(f"{BASE}/guilds/guild-1/roles").mock(side_effect=httpx.ConnectError("down"))

        with pytest.raises(ThreadHostError):
            await client.find_role("Design Team")

    @respx.mock
    async def test_rate_limit_is_retried(self, client: DiscordForumClient) -> None:
        """A 429 response is retried after the advertised delay."""
        route = respx.get(f"{BASE}/guilds/guild-1/roles").mock(
            side_effect=[
                httpx.Response(429, json={"retry_after": 0}),
                httpx.Response(200, json=[{"id": "role-dt", "name": "Design Team"}]),
            ]
        )

        role = await client.find_role("Design Team")

        assert role is not None
        assert route.call_count == 2

    @respx.mock
    async def test_persistent_rate_limit_fails(self, client: DiscordForumClient) -> None:
        respx.get(f"{BASE}/guilds/guild-1/roles").mock(
            return_value=httpx.Response(429, json={"retry_after": 0})
        )

        with pytest.raises(ThreadHostError):
            await client.find_role("Design Team")
