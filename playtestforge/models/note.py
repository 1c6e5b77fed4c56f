"""Change notes pending against a card's playtesting version."""

from dataclasses import dataclass
from enum import Enum


class NoteType(str, Enum):
    """Kind of pending change described by a card note."""

    REPLACED = "Replaced"
    REWORKED = "Reworked"
    UPDATED = "Updated"
    IMPLEMENTED = "Implemented"


@dataclass(frozen=True, slots=True)
class Note:
    """An unreleased change pending against the playtesting version."""

    type: NoteType
    text: str = ""
