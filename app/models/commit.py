"""Commit model - one row per revision, carrying a full snapshot."""

import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text, Uuid, UniqueConstraint, func
from sqlmodel import Field, SQLModel

from app.models.base import UUIDMixin


class Commit(UUIDMixin, table=True):
    """
    Persisted commit.

    Rows are append-only: never updated, only removed when the owning
    repository is deleted. ``snapshot`` holds the serialized file tree
    (see ``Snapshot.to_json``).
    """

    __tablename__ = "commits"
    __table_args__ = (
        UniqueConstraint("repository_id", "revision", name="uq_commits_repository_revision"),
        Index("ix_commits_repository_created_at", "repository_id", "created_at"),
    )

    repository_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            Uuid(),
            ForeignKey("repositories.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    revision: int = Field(nullable=False, description="1-based position in the history")
    author_id: uuid_pkg.UUID = Field(
        sa_column=Column(Uuid(), ForeignKey("users.id"), nullable=False),
    )
    message: str = Field(sa_column=Column(Text, nullable=False))
    snapshot: str = Field(sa_column=Column(Text, nullable=False))
    files_count: int = Field(default=0, nullable=False)
    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": func.now()},
    )


class CommitCreate(SQLModel):
    """Request body for committing edits.

    A ``null`` value in ``edits`` deletes the path.
    """

    base_revision: int
    edits: dict[str, str | None]
    message: str = Field(min_length=1, max_length=5000)
