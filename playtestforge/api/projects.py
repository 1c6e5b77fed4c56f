"""
Project API endpoints.

Project registration, listing and release finalization.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from playtestforge.api.dependencies import get_merge_checker
from playtestforge.db import create_project, get_project, read_projects
from playtestforge.db.database import get_session
from playtestforge.models.failure import NotFoundError
from playtestforge.models.project import Project
from playtestforge.services.finalization import MergeChecker, finalize_project

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectRecord(BaseModel):
    number: int = Field(..., ge=1)
    name: str
    short: str = Field(..., examples=["RD"])
    releases: int = Field(default=0, ge=0)
    milestone: int | None = None
    form_url: str | None = None
    emoji: str | None = None
    active: bool = True

    def to_project(self) -> Project:
        return Project(**self.model_dump())

    @classmethod
    def from_project(cls, project: Project) -> "ProjectRecord":
        return cls(
            number=project.number,
            name=project.name,
            short=project.short,
            releases=project.releases,
            milestone=project.milestone,
            form_url=project.form_url,
            emoji=project.emoji,
            active=project.active,
        )


class FinalizeResponse(BaseModel):
    """Outcome of finalizing a project's playtesting update."""

    project: int
    releases: int
    archived: list[str] = Field(default_factory=list, description="Archived card ids")
    latest_updated: list[str] = Field(default_factory=list, description="Cleaned card ids")


@router.get("", response_model=list[ProjectRecord])
async def list_projects(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[ProjectRecord]:
    return [ProjectRecord.from_project(p) for p in await read_projects(session)]


@router.post("", response_model=ProjectRecord, status_code=status.HTTP_201_CREATED)
async def register_project(
    request: ProjectRecord,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ProjectRecord:
    project = await create_project(session, request.to_project())
    return ProjectRecord.from_project(project)


@router.get("/{number}", response_model=ProjectRecord)
async def get_project_by_number(
    number: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ProjectRecord:
    project = await get_project(session, number)
    if project is None:
        raise NotFoundError(f"Project {number}")
    return ProjectRecord.from_project(project)


@router.post("/{number}/finalize", response_model=FinalizeResponse)
async def finalize_release(
    number: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    merge_checker: Annotated[MergeChecker, Depends(get_merge_checker)],
) -> FinalizeResponse:
    """
    Finalize the project's current playtesting update.

    Fails with 409 if the update's pull request has not been merged.
    """
    result = await finalize_project(session, number, merge_checker)
    return FinalizeResponse(
        project=number,
        releases=result.project.releases,
        archived=[card.id for card in result.archived],
        latest_updated=[card.id for card in result.latest_updated],
    )
