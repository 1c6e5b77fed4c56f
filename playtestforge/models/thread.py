"""
Forum thread state as seen on the thread host.

These are snapshots of remote state. The reconciler reads them to compute
differences and never treats them as locally owned data.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class ForumTag:
    id: str
    name: str


@dataclass
class ForumChannel:
    """A forum channel and the tags threads in it may carry."""

    id: str
    name: str
    available_tags: list[ForumTag] = field(default_factory=list)
    default_auto_archive_duration: int | None = None

    def find_tag(self, name: str) -> ForumTag | None:
        return next((tag for tag in self.available_tags if tag.name == name), None)


@dataclass(frozen=True, slots=True)
class Role:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Member:
    id: str
    display_name: str


@dataclass
class ForumThread:
    """
    A thread within a forum channel.

    Attributes:
        id: Thread id (also the id of its starter message)
        name: Thread title
        applied_tags: Ids of tags currently on the thread
        archived: Whether the thread is archived
        locked: Whether the thread is locked
        auto_archive_duration: Minutes of inactivity before auto-archiving
        archived_at: When the thread was last archived or unarchived
    """

    id: str
    parent_id: str
    name: str
    applied_tags: list[str] = field(default_factory=list)
    archived: bool = False
    locked: bool = False
    auto_archive_duration: int | None = None
    archived_at: datetime | None = None

    def url(self, guild_id: str) -> str:
        return f"https://discord.com/channels/{guild_id}/{self.id}"


@dataclass(frozen=True, slots=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass(frozen=True)
class Embed:
    """Structured block of a message; fields are compared one by one."""

    title: str | None = None
    description: str | None = None
    color: int | None = None
    author: str | None = None
    author_icon_url: str | None = None
    image_url: str | None = None
    timestamp: datetime | None = None
    fields: tuple[EmbedField, ...] = ()


@dataclass(frozen=True)
class MessageContent:
    """Message body to post or edit; `mentions` lists allowed mention kinds."""

    content: str
    embeds: tuple[Embed, ...] = ()
    mentions: tuple[str, ...] = ()


@dataclass
class StarterMessage:
    """First message of a thread, holding the thread's rendered content."""

    id: str
    content: str
    embeds: list[Embed] = field(default_factory=list)
    pinned: bool = False
    pinnable: bool = True
