"""
SQLAlchemy ORM models for persistent storage.

Cards are stored twice:
- card_versions holds every version of every card (the archive)
- latest_cards holds one canonical "latest" projection per card number
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ProjectDB(Base):
    """A playtesting project and its release counter."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    number: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    short: Mapped[str] = mapped_column(String(20))
    releases: Mapped[int] = mapped_column(Integer, default=0)
    milestone: Mapped[int | None] = mapped_column(Integer, nullable=True)
    form_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    emoji: Mapped[str | None] = mapped_column(String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ProjectDB(number={self.number}, short={self.short})>"


class CardColumns:
    """Columns shared by archived versions and the latest projection."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.number", ondelete="CASCADE"), index=True
    )
    number: Mapped[int] = mapped_column(Integer, index=True)
    version: Mapped[str] = mapped_column(String(50))

    faction: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(20))
    traits: Mapped[list[str]] = mapped_column(JSON, default=list)
    text: Mapped[str] = mapped_column(Text, default="")
    illustrator: Mapped[str] = mapped_column(String(255), default="?")
    deck_limit: Mapped[int] = mapped_column(Integer)
    loyal: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    flavor: Mapped[str | None] = mapped_column(Text, nullable=True)
    designer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unique: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Stats may be numeric or "X"/"-", so they are stored as JSON
    cost: Mapped[Any] = mapped_column(JSON, nullable=True)
    strength: Mapped[Any] = mapped_column(JSON, nullable=True)
    icons: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    plot_stats: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Lifecycle sub-records
    note: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    playtesting: Mapped[str | None] = mapped_column(String(50), nullable=True)
    github: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    release: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class CardVersionDB(CardColumns, Base):
    """One archived version of a card."""

    __tablename__ = "card_versions"
    __table_args__ = (
        UniqueConstraint("project_id", "number", "version", name="uq_card_version"),
    )

    def __repr__(self) -> str:
        return f"<CardVersionDB({self.project_id}-{self.number}@{self.version})>"


class LatestCardDB(CardColumns, Base):
    """The canonical latest projection of a card number."""

    __tablename__ = "latest_cards"
    __table_args__ = (UniqueConstraint("project_id", "number", name="uq_latest_card"),)

    def __repr__(self) -> str:
        return f"<LatestCardDB({self.project_id}-{self.number}@{self.version})>"


class ReviewDB(Base):
    """A playtester's review of one card version."""

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint(
            "project_id", "number", "version", "reviewer", name="uq_review_identity"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.number", ondelete="CASCADE"), index=True
    )
    number: Mapped[int] = mapped_column(Integer, index=True)
    version: Mapped[str] = mapped_column(String(50))
    reviewer: Mapped[str] = mapped_column(String(255), index=True)

    decks: Mapped[list[str]] = mapped_column(JSON, default=list)
    played: Mapped[int] = mapped_column(Integer)
    statements: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    additional: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ReviewDB({self.project_id}-{self.number}@{self.version} by {self.reviewer})>"
