import re
import uuid as uuid_pkg

from pydantic import field_validator
from sqlalchemy import Column, ForeignKey, Uuid, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, UUIDMixin

REPOSITORY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def _check_name(value: str) -> str:
    value = value.strip()
    if not REPOSITORY_NAME_PATTERN.match(value):
        raise ValueError(
            "Repository name may only contain letters, digits, '.', '_' and '-', "
            "and must start with a letter or digit"
        )
    return value


class RepositoryBase(SQLModel):
    """Base fields for Repository."""

    name: str = Field(max_length=100, index=True)
    description: str = Field(default="", max_length=2000)
    is_private: bool = Field(default=False)


class RepositoryCreate(SQLModel):
    """Schema for creating a repository.

    ``files`` is the initial snapshot; a README is generated when omitted.
    """

    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=2000)
    is_private: bool = False
    files: dict[str, str] | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_name(value)


class RepositoryUpdate(SQLModel):
    """Schema for updating a repository."""

    description: str | None = Field(default=None, max_length=2000)
    is_private: bool | None = None


class Repository(RepositoryBase, UUIDMixin, TimestampMixin, table=True):
    """A hosted repository. Its history lives in the ``commits`` table."""

    __tablename__ = "repositories"
    __table_args__ = (UniqueConstraint("owner_id", "name", name="uq_repositories_owner_name"),)

    owner_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            Uuid(),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    # Maintained by star bookkeeping; opaque to the history core
    stars_count: int = Field(default=0, nullable=False)
