"""
Draft submission.

Decides what to persist when new card data arrives from the authoring
source. The decision is pure; callers perform the writes:
- to_upsert: version records written to the card archive
- to_latest: cards written to the canonical "latest" projection
- to_destroy: stale version records to delete (reverted drafts)
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from playtestforge.models.card import Card, CardMatcher
from playtestforge.services import version_policy

logger = logging.getLogger(__name__)


@dataclass
class DraftDecision:
    to_upsert: list[Card] = field(default_factory=list)
    to_latest: list[Card] = field(default_factory=list)
    to_destroy: list[CardMatcher] = field(default_factory=list)

    def extend(self, other: "DraftDecision") -> None:
        self.to_upsert.extend(other.to_upsert)
        self.to_latest.extend(other.to_latest)
        self.to_destroy.extend(other.to_destroy)


def submit_draft(card: Card) -> DraftDecision:
    """
    Decide how one submitted card is persisted.

    - Never playtested: stored as-is.
    - Drafting a change: the version must equal the playtesting version
      bumped by the note type. If it does not, a clone at the bumped version
      is stored and the submitted card is moved to that version too.
    - Not drafting but off the playtesting version: the draft was reverted,
      so the stale version is destroyed and the card returns to playtesting.

    The submitted card is mutated in place and becomes the latest projection.

    Raises:
        InvalidNoteTypeError: If a drafted card's note has no version bump
    """
    decision = DraftDecision()

    if card.playtesting is None:
        decision.to_upsert.append(card)
        decision.to_latest.append(card)
        return decision

    # Once playtested, a card only drafts through a pending note
    if card.has_pending_change and card.note is not None:
        expected = version_policy.increment(card.playtesting, card.note.type)
        if not version_policy.equal(card.version, expected):
            clone = card.clone()
            card.version = clone.version = expected
            decision.to_upsert.append(clone)
            logger.debug("Drafted %s as version %s", card.code, expected)
        else:
            decision.to_upsert.append(card)
        decision.to_latest.append(card)
    elif not version_policy.equal(card.version, card.playtesting):
        decision.to_destroy.append(
            CardMatcher(project_id=card.project.number, number=card.number, version=card.version)
        )
        logger.debug("Reverted draft %s back to %s", card.id, card.playtesting)
        card.version = card.playtesting
        decision.to_latest.append(card)

    return decision


def submit_drafts(cards: Iterable[Card]) -> DraftDecision:
    """Apply submit_draft to a batch of cards and merge the decisions."""
    decision = DraftDecision()
    for card in cards:
        decision.extend(submit_draft(card))
    return decision
