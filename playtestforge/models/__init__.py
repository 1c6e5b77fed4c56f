from playtestforge.models.card import (
    Card,
    CardMatcher,
    CardType,
    Faction,
    GithubDetails,
    GithubStatus,
    ImplementStatus,
    Note,
    NoteType,
    ReleaseDetails,
)
from playtestforge.models.failure import (
    FailureDetail,
    FailureKind,
    GuildValidationError,
    InvalidNoteTypeError,
    ItemSyncError,
    KnownError,
    NotFoundError,
    PreconditionFailedError,
    ThreadHostError,
)
from playtestforge.models.project import Project
from playtestforge.models.review import Review, StatementAnswer
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

__all__ = [
    "Card",
    "CardMatcher",
    "CardType",
    "Embed",
    "EmbedField",
    "Faction",
    "FailureDetail",
    "FailureKind",
    "ForumChannel",
    "ForumTag",
    "ForumThread",
    "GithubDetails",
    "GithubStatus",
    "GuildValidationError",
    "ImplementStatus",
    "InvalidNoteTypeError",
    "ItemSyncError",
    "KnownError",
    "Member",
    "MessageContent",
    "Note",
    "NoteType",
    "NotFoundError",
    "PreconditionFailedError",
    "Project",
    "ReleaseDetails",
    "Review",
    "Role",
    "StarterMessage",
    "StatementAnswer",
    "ThreadHostError",
]
