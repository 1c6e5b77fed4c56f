from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from playtestforge.models.card import Card


class StatementAnswer(str, Enum):
    STRONGLY_AGREE = "Strongly agree"
    SOMEWHAT_AGREE = "Somewhat agree"
    NEUTRAL = "Neither agree nor disagree"
    SOMEWHAT_DISAGREE = "Somewhat disagree"
    STRONGLY_DISAGREE = "Strongly disagree"


# Statement key -> question shown to reviewers
STATEMENT_QUESTIONS: dict[str, str] = {
    "boring": "It is boring",
    "competitive": "It will see competitive play",
    "creative": "It inspires creative, fun or jank ideas",
    "balanced": "It is balanced",
    "releasable": "It could be released as is",
}

PLAYED_RANGE = range(1, 11)


@dataclass
class Review:
    """
    A playtester's review of one card version.

    Attributes:
        reviewer: Name of the playtester
        card: The reviewed card version
        decks: Deck list URLs used while playtesting
        played: Number of games played with the card (1-10)
        statements: Statement key -> agree/disagree answer
        additional: Optional free-text comments
        created: When the review was first submitted
        updated: When the review was last changed
    """

    reviewer: str
    card: Card
    played: int
    statements: dict[str, StatementAnswer]
    decks: list[str] = field(default_factory=list)
    additional: str | None = None
    created: datetime | None = None
    updated: datetime | None = None

    @property
    def id(self) -> str:
        return f"{self.card.id}#{self.reviewer}"

    @property
    def project_id(self) -> int:
        return self.card.project.number

    def __str__(self) -> str:
        return f"{self.reviewer}'s review of {self.card}"
