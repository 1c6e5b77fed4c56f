"""
Semantic version policy for card versions.

Card versions are plain "major.minor.patch" strings. Ordering follows
standard semantic-version precedence (pre-release tags sort before the
release, build metadata is ignored), as implemented by the semver package.

A change note decides how far a drafted card moves from its playtesting
version:
- Replaced: major bump (a different card in the same slot)
- Reworked: minor bump (same idea, new execution)
- Updated: patch bump (numbers or wording tweaks)
"""

from semver import Version

from playtestforge.models.failure import InvalidNoteTypeError
from playtestforge.models.note import NoteType

INITIAL_VERSION = "1.0.0"

_BUMPS = {
    NoteType.REPLACED: Version.bump_major,
    NoteType.REWORKED: Version.bump_minor,
    NoteType.UPDATED: Version.bump_patch,
}


def parse(version: str) -> Version:
    """Parse a version string, raising ValueError if it is not semantic."""
    return Version.parse(version)


def compare(a: str, b: str) -> int:
    """
    Total order over semantic versions.

    Returns:
        Negative if a < b, zero if equal, positive if a > b
    """
    return parse(a).compare(b)


def equal(a: str | None, b: str | None) -> bool:
    """True if both versions are present and have equal precedence."""
    if a is None or b is None:
        return False
    return compare(a, b) == 0


def is_before(a: str, b: str) -> bool:
    return compare(a, b) < 0


def increment(current: str, note_type: NoteType | str) -> str:
    """
    Compute the draft version for a change note.

    Args:
        current: The playtesting version the change is made against
        note_type: Replaced, Reworked or Updated

    Returns:
        The incremented version string

    Raises:
        InvalidNoteTypeError: If the note type has no version bump
            (including Implemented notes)
    """
    try:
        note = NoteType(note_type)
    except ValueError:
        raise InvalidNoteTypeError(note_type) from None
    if note not in _BUMPS:
        raise InvalidNoteTypeError(note)
    bump = _BUMPS[note]
    return str(bump(parse(current)))


def sort_key(version: str) -> Version:
    """Key function for sorting version strings by precedence."""
    return parse(version)
