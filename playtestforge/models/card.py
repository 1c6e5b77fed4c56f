"""
Playtesting card entity and its lifecycle predicates.

A card is identified by project, number and version. Optional sub-records
(note, github, release, playtesting) are explicit None when absent; the
lifecycle operations replace them rather than mutating them in place.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from urllib.parse import quote

from playtestforge.config import RELEASE_IMAGE_BASE
from playtestforge.models.note import Note, NoteType
from playtestforge.models.project import Project
from playtestforge.services import version_policy


class Faction(str, Enum):
    BARATHEON = "House Baratheon"
    GREYJOY = "House Greyjoy"
    LANNISTER = "House Lannister"
    MARTELL = "House Martell"
    NIGHTS_WATCH = "The Night's Watch"
    STARK = "House Stark"
    TARGARYEN = "House Targaryen"
    TYRELL = "House Tyrell"
    NEUTRAL = "Neutral"


class CardType(str, Enum):
    CHARACTER = "Character"
    LOCATION = "Location"
    ATTACHMENT = "Attachment"
    EVENT = "Event"
    PLOT = "Plot"
    AGENDA = "Agenda"


class GithubStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    COMPLETE = "complete"


class ImplementStatus(str, Enum):
    NOT_IMPLEMENTED = "Not Implemented"
    RECENTLY_IMPLEMENTED = "Recently Implemented"
    IMPLEMENTED = "Implemented"


DEFAULT_DECK_LIMIT: dict[CardType, int] = {
    CardType.CHARACTER: 3,
    CardType.LOCATION: 3,
    CardType.ATTACHMENT: 3,
    CardType.EVENT: 3,
    CardType.PLOT: 2,
    CardType.AGENDA: 1,
}


@dataclass(frozen=True, slots=True)
class GithubDetails:
    """Implementation tracking issue for a card."""

    status: GithubStatus
    issue_url: str


@dataclass(frozen=True, slots=True)
class ReleaseDetails:
    """Pack placement once a card belongs to a numbered release."""

    short: str
    number: int


@dataclass(frozen=True, slots=True)
class Icons:
    military: bool
    intrigue: bool
    power: bool


@dataclass(frozen=True, slots=True)
class PlotStats:
    income: int | str
    initiative: int | str
    claim: int | str
    reserve: int | str


@dataclass
class Card:
    """
    A single version of a playtesting card.

    Attributes:
        project: Project the card belongs to
        number: Card slot within the project
        version: Semantic version of this card design
        faction, name, type, traits, text: Descriptive card data
        cost, strength, icons, plot_stats, unique, loyal: Type-dependent stats
        note: Pending change against the playtesting version
        playtesting: Version currently live for playtesting (None before
            the card first enters playtesting)
        github: Implementation tracking issue (None when untracked)
        release: Pack placement (None until released)
    """

    project: Project
    number: int
    version: str
    faction: Faction
    name: str
    type: CardType
    traits: list[str] = field(default_factory=list)
    text: str = ""
    illustrator: str = "?"
    deck_limit: int | None = None
    loyal: bool | None = None
    flavor: str | None = None
    designer: str | None = None
    cost: int | str | None = None
    unique: bool | None = None
    strength: int | str | None = None
    icons: Icons | None = None
    plot_stats: PlotStats | None = None
    note: Note | None = None
    playtesting: str | None = None
    github: GithubDetails | None = None
    release: ReleaseDetails | None = None

    def __post_init__(self) -> None:
        if self.deck_limit is None:
            self.deck_limit = DEFAULT_DECK_LIMIT[self.type]

    @property
    def id(self) -> str:
        """Condensed id: project-number@version."""
        return f"{self.project.number}-{self.number}@{self.version}"

    @property
    def code(self) -> str:
        return f"{self.project.short}{self.number}"

    @property
    def is_preview(self) -> bool:
        """True if this is a pre-1.0.0 preview that has never been playtested."""
        return version_policy.is_before(self.version, version_policy.INITIAL_VERSION) and (
            self.playtesting is None
        )

    @property
    def is_initial(self) -> bool:
        return version_policy.equal(self.version, version_policy.INITIAL_VERSION)

    @property
    def is_pre_testing(self) -> bool:
        """True if this is the initial version and has not been playtested yet."""
        return self.is_initial and self.playtesting is None

    @property
    def is_playtesting(self) -> bool:
        """True if this version is the one currently being playtested."""
        return version_policy.equal(self.version, self.playtesting)

    @property
    def has_pending_change(self) -> bool:
        return self.note is not None and self.note.type != NoteType.IMPLEMENTED

    @property
    def is_draft(self) -> bool:
        """True if the card is currently being edited."""
        return self.is_preview or self.is_pre_testing or self.has_pending_change

    @property
    def is_changed(self) -> bool:
        """True if the card differs from its playtested version."""
        return not self.is_playtesting and self.has_pending_change

    @property
    def is_releasable(self) -> bool:
        return self.release is not None

    @property
    def implement_status(self) -> ImplementStatus:
        if self.github is None or self.github.status == GithubStatus.OPEN:
            return ImplementStatus.NOT_IMPLEMENTED
        if self.github.status == GithubStatus.CLOSED:
            return ImplementStatus.RECENTLY_IMPLEMENTED
        return ImplementStatus.IMPLEMENTED

    def clone(self) -> "Card":
        """Copy this card; sub-records are immutable so only lists are copied."""
        return replace(self, project=self.project.clone(), traits=list(self.traits))

    def image_url(self, api_url: str) -> str:
        """Development image for unreleased cards, CDN image once released."""
        if self.release is None:
            return dev_image_url(api_url, self.project.number, self.number, self.version)
        name = "".join(c for c in self.name if c not in '<>:"/\\|?*\'').replace(" ", "_")
        return quote(
            f"{RELEASE_IMAGE_BASE}/{self.release.short}/{self.release.number}_{name}.png",
            safe=":/",
        )

    def previous_image_url(self, api_url: str) -> str | None:
        if self.playtesting is None:
            return None
        return dev_image_url(api_url, self.project.number, self.number, self.playtesting)

    def __str__(self) -> str:
        if self.is_preview:
            return f"{self.name} (Preview)"
        return f"{self.name} ({self.version})"


def dev_image_url(api_url: str, project_number: int, number: int, version: str) -> str:
    return quote(f"{api_url}/img/{project_number}/{number}@{version}.png", safe=":/@")


@dataclass(frozen=True, slots=True)
class CardMatcher:
    """
    Selects card versions from storage.

    A field left as None matches any value.
    """

    project_id: int
    number: int | None = None
    version: str | None = None

    def matches(self, card: Card) -> bool:
        return (
            card.project.number == self.project_id
            and (self.number is None or card.number == self.number)
            and (self.version is None or card.version == self.version)
        )
