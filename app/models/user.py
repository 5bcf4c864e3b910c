import uuid as uuid_pkg

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin


class User(TimestampMixin, table=True):
    """
    User model - mirrors the identity provider's accounts.

    The id is the ``sub`` claim of the provider's tokens. User records are
    created on the first authenticated API call.
    """

    __tablename__ = "users"

    id: uuid_pkg.UUID = Field(
        primary_key=True,
        index=True,
        nullable=False,
        description="Subject ID from the identity provider",
    )
    username: str = Field(max_length=100, unique=True, index=True)
    email: str | None = Field(default=None, max_length=255)
    display_name: str | None = Field(default=None, max_length=100)


class UserRead(SQLModel):
    """Public profile fields."""

    id: uuid_pkg.UUID
    username: str
    display_name: str | None = None
