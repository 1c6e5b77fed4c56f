from dataclasses import dataclass, replace


@dataclass
class Project:
    """
    A card design project (a cycle or expansion) under playtesting.

    Attributes:
        number: Unique project number, used in card ids
        name: Display name (e.g., "Redesigns")
        short: Short code used for forum tags and card codes (e.g., "RD")
        releases: Count of finalized playtesting updates
        milestone: GitHub milestone number for implementation issues
        form_url: Link to the playtesting review form
        emoji: Optional emoji shown alongside the project name
        active: Whether the project is currently being playtested
    """

    number: int
    name: str
    short: str
    releases: int = 0
    milestone: int | None = None
    form_url: str | None = None
    emoji: str | None = None
    active: bool = True

    def clone(self) -> "Project":
        return replace(self)

    def __str__(self) -> str:
        return self.name
