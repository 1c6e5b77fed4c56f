"""
Failure classification for the playtesting core.

Two kinds of failure exist:
- Setup failures (invalid note type, unmerged release, missing forum
  configuration) are KnownErrors. They abort the call that raised them and
  are surfaced to the caller with a status code.
- Item failures happen while reconciling one thread. They are caught by the
  reconciler, logged, and reported in the `failed` set of the batch result.
"""

from enum import Enum

from pydantic import BaseModel

from playtestforge.models.note import NoteType


class FailureKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    GUILD_VALIDATION_FAILED = "guild_validation_failed"


class FailureDetail(BaseModel):
    """Response body for a KnownError."""

    kind: FailureKind
    message: str
    detail: str | None = None
    suggestion: str | None = None


class KnownError(Exception):
    """
    A setup failure the caller can act on.

    Subclasses set `kind` and `status_code`; the HTTP layer renders
    `to_detail()` with that status.
    """

    kind = FailureKind.INVALID_INPUT
    status_code = 400

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ):
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class InvalidNoteTypeError(KnownError):
    """Raised when a version bump is requested for a note type without one."""

    def __init__(self, note_type: NoteType | str):
        self.note_type = note_type
        name = note_type.value if isinstance(note_type, NoteType) else note_type
        super().__init__(
            f"Note type '{name}' has no version increment",
            suggestion="Only Replaced, Reworked and Updated notes change the version.",
        )


class PreconditionFailedError(KnownError):
    """
    Raised when finalization is attempted before the release is merged.

    Aborts the whole finalize call; nothing is written.
    """

    kind = FailureKind.PRECONDITION_FAILED
    status_code = 409

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            message,
            detail=detail,
            suggestion="Merge the playtesting update pull request, then finalize again.",
        )


class GuildValidationError(KnownError):
    """
    Raised when the forum host is missing a required channel, role or tag.

    No thread can be reconciled until every problem is fixed.
    """

    kind = FailureKind.GUILD_VALIDATION_FAILED
    status_code = 503

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Guild validation failed",
            detail=", ".join(self.errors),
            suggestion="Create the missing forum channel, role or tags.",
        )


class NotFoundError(KnownError):
    """Raised when a requested project or card does not exist."""

    kind = FailureKind.NOT_FOUND
    status_code = 404

    def __init__(self, what: str):
        super().__init__(f"{what} not found")


class ItemSyncError(Exception):
    """
    Raised while reconciling a single thread.

    Never escapes a reconciliation batch; the item is recorded as failed.
    """

    def __init__(self, item: str, failures: dict[str, BaseException]):
        self.item = item
        self.failures = failures
        summary = ", ".join(
            f"{label} ({type(err).__name__}: {err})" for label, err in failures.items()
        )
        super().__init__(f"Failed to update {item}: {summary}")


class ThreadHostError(Exception):
    """Raised when a request to the thread host fails."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        super().__init__(f"Thread host request failed during {operation}: {cause}")
