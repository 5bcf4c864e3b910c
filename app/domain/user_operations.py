import logging
import uuid as uuid_pkg

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.base_operations import BaseOperations
from app.models.user import User

logger = logging.getLogger(__name__)


class UserOperations(BaseOperations[User]):
    """Operations for User model."""

    def __init__(self):
        super().__init__(User)

    async def get_by_username(self, db: AsyncSession, username: str) -> User | None:
        """Get a user by username (case-insensitive)."""
        statement = select(User).where(func.lower(User.username) == username.lower())
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def count(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count(User.id)))
        return result.scalar() or 0

    async def get_or_create(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        username: str,
        email: str | None = None,
    ) -> User:
        """Return the user with this ID, creating the record on first sight.

        If the requested username is taken by another account, a suffix
        derived from the user ID is appended.
        """
        user = await self.get(db, user_id)
        if user:
            return user

        if await self.get_by_username(db, username):
            username = f"{username}-{user_id.hex[:6]}"

        logger.info(f"Creating user record for {user_id} ({username})")
        return await self.create(
            db,
            obj_in={"id": user_id, "username": username, "email": email},
        )


user_ops = UserOperations()
