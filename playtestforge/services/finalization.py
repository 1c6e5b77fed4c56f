"""
Release finalization.

Once a project's playtesting update pull request is merged, every latest
card that changed (or was recently implemented) is promoted:
- an archive snapshot of the version, with its note and issue, is stored
- the latest projection is cleaned of its note (and its issue once implemented)
- the project's release counter moves forward by one
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from playtestforge.db.operations import (
    get_project,
    load_card_history,
    update_project,
    upsert_cards,
    upsert_latest_cards,
)
from playtestforge.models.card import Card, GithubStatus, ImplementStatus
from playtestforge.models.failure import NotFoundError, PreconditionFailedError
from playtestforge.models.project import Project
from playtestforge.services import version_policy
from playtestforge.services.card_history import CardHistory, group_card_history

logger = logging.getLogger(__name__)


class MergeChecker(Protocol):
    """Confirms the project's latest playtesting update has been merged."""

    async def is_latest_change_merged(self, project: Project) -> bool: ...


@dataclass
class FinalizationResult:
    project: Project
    archived: list[Card] = field(default_factory=list)
    latest_updated: list[Card] = field(default_factory=list)

    @property
    def released(self) -> bool:
        return bool(self.latest_updated)


def finalize_cards(project: Project, history: CardHistory | Iterable[Card]) -> FinalizationResult:
    """
    Promote changed latest cards of a project.

    Latest cards are mutated in place. The project's release counter is
    incremented at most once, and only if any latest card changed.
    """
    if not isinstance(history, CardHistory):
        history = group_card_history(c for c in history if c.project.number == project.number)

    result = FinalizationResult(project=project)
    for latest in history:
        recently_implemented = latest.implement_status == ImplementStatus.RECENTLY_IMPLEMENTED
        if not (latest.is_changed or recently_implemented):
            continue

        if not version_policy.equal(latest.version, latest.playtesting):
            latest.playtesting = latest.version

            archive = latest.clone()
            if recently_implemented and archive.github is not None:
                archive.github = replace(archive.github, status=GithubStatus.COMPLETE)
            result.archived.append(archive)

        if recently_implemented:
            latest.github = None

        latest.note = None
        result.latest_updated.append(latest)

    if result.latest_updated:
        project.releases += 1

    logger.info(
        "Finalized %s: %d archived, %d latest updated",
        project.name,
        len(result.archived),
        len(result.latest_updated),
    )
    return result


async def finalize(
    project: Project,
    history: CardHistory | Iterable[Card],
    merge_checker: MergeChecker,
) -> FinalizationResult:
    """
    Finalize a project's latest playtesting update.

    Raises:
        PreconditionFailedError: If the update's pull request is not merged.
            Nothing is mutated in that case.
    """
    if not await merge_checker.is_latest_change_merged(project):
        raise PreconditionFailedError(
            f"Playtesting Update {project.releases + 1} PR either does not exist, "
            "or is not merged into playtesting branch",
            detail=f"project={project.number}",
        )
    return finalize_cards(project, history)


async def finalize_project(
    session: AsyncSession,
    project_number: int,
    merge_checker: MergeChecker,
) -> FinalizationResult:
    """Load a project's history, finalize it and persist the outcome."""
    project = await get_project(session, project_number)
    if project is None:
        raise NotFoundError(f"Project {project_number}")

    cards = await load_card_history(session, project)
    result = await finalize(project, cards, merge_checker)

    if result.archived:
        await upsert_cards(session, result.archived)
    if result.latest_updated:
        await upsert_latest_cards(session, result.latest_updated)
        await update_project(session, project)
    return result
