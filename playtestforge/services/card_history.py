"""
Card history grouping.

Groups a flat collection of card versions by card number and resolves the
"latest" version of each group (the greatest semantic version). Iterating a
CardHistory yields the latest card of every group, in number order.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from playtestforge.models.card import Card
from playtestforge.services.version_policy import sort_key

logger = logging.getLogger(__name__)


@dataclass
class CardGroup:
    """
    Every known version of one card number.

    Attributes:
        number: Card number shared by the group
        latest: Greatest version (first inserted wins on equal versions)
        previous: Remaining versions, greatest first
        duplicates: Versions equal to latest (a data-quality problem)
        versions: Version string -> card
        draft: Greatest version currently in a draft state, if any
        playtesting: The version matching latest's playtesting version, if stored
    """

    number: int
    latest: Card
    previous: list[Card] = field(default_factory=list)
    duplicates: list[Card] = field(default_factory=list)
    versions: dict[str, Card] = field(default_factory=dict)
    draft: Card | None = None
    playtesting: Card | None = None

    @property
    def superseded(self) -> Card | None:
        """The version directly before latest, whose thread latest replaces."""
        return self.previous[0] if self.previous else None

    @property
    def all(self) -> list[Card]:
        return [self.latest, *self.previous]


@dataclass
class CardHistory:
    """Card groups keyed by number."""

    groups: dict[int, CardGroup] = field(default_factory=dict)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.latest)

    def __len__(self) -> int:
        return len(self.groups)

    def __getitem__(self, number: int) -> CardGroup:
        return self.groups[number]

    def __contains__(self, number: object) -> bool:
        return number in self.groups

    @property
    def latest(self) -> list[Card]:
        return [group.latest for group in self.groups.values()]

    @property
    def draft(self) -> list[Card]:
        return [group.draft for group in self.groups.values() if group.draft is not None]

    @property
    def playtesting(self) -> list[Card]:
        return [g.playtesting for g in self.groups.values() if g.playtesting is not None]

    @property
    def all(self) -> list[Card]:
        return [card for group in self.groups.values() for card in group.all]

    def get(self, number: int, version: str) -> Card | None:
        """Look up a specific version of a card number."""
        group = self.groups.get(number)
        if group is None:
            return None
        return group.versions.get(version)


def group_card_history(cards: Iterable[Card]) -> CardHistory:
    """
    Group card versions by number and resolve the latest of each group.

    Cards from several projects must be split with `group_by_project` first;
    numbers are only unique within a project.
    """
    by_number: dict[int, list[Card]] = defaultdict(list)
    for card in cards:
        by_number[card.number].append(card)

    history = CardHistory()
    for number in sorted(by_number):
        # Stable sort: equal versions keep their insertion order
        ordered = sorted(by_number[number], key=lambda c: sort_key(c.version), reverse=True)
        latest, rest = ordered[0], ordered[1:]

        duplicates = [c for c in rest if sort_key(c.version) == sort_key(latest.version)]
        if duplicates:
            logger.warning(
                "Card %s has %d duplicate(s) of latest version %s",
                latest.code,
                len(duplicates),
                latest.version,
            )

        group = CardGroup(
            number=number,
            latest=latest,
            previous=[c for c in rest if not any(c is d for d in duplicates)],
            duplicates=duplicates,
        )
        for card in reversed(ordered):
            group.versions.setdefault(card.version, card)
        # Make sure the mapping points at the resolved latest on duplicates
        group.versions[latest.version] = latest

        group.draft = next((c for c in ordered if c.is_draft), None)
        if latest.playtesting is not None:
            group.playtesting = group.versions.get(latest.playtesting)

        history.groups[number] = group

    return history


def group_by_project(cards: Iterable[Card]) -> dict[int, CardHistory]:
    """Split cards by project number, then group each project's history."""
    by_project: dict[int, list[Card]] = defaultdict(list)
    for card in cards:
        by_project[card.project.number].append(card)
    return {project: group_card_history(pcards) for project, pcards in by_project.items()}
