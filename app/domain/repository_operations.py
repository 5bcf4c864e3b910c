"""Repository operations with owner-scoped visibility.

Public repositories are visible to everyone. Private repositories are only
returned to their owner; callers pass ``viewer_id`` (or ``include_private``)
to opt in.
"""

import uuid as uuid_pkg
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.commit_operations import commit_ops
from app.models.base import as_utc
from app.models.repository import Repository

POPULAR_LIMIT = 12


class RepositoryOperations:
    """CRUD operations for Repository model."""

    def __init__(self):
        self.model = Repository

    async def get(self, db: AsyncSession, id: uuid_pkg.UUID) -> Repository | None:
        """Get a repository by ID. Callers enforce visibility."""
        statement = select(Repository).where(Repository.id == id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_owner_and_name(
        self,
        db: AsyncSession,
        owner_id: uuid_pkg.UUID,
        name: str,
    ) -> Repository | None:
        """Find a repository by owner and name (names are case-insensitive per owner)."""
        statement = select(Repository).where(
            Repository.owner_id == owner_id,
            func.lower(Repository.name) == name.lower(),
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_owner(
        self,
        db: AsyncSession,
        owner_id: uuid_pkg.UUID,
        include_private: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Repository]:
        """Get an owner's repositories, most recently updated first."""
        statement = select(Repository).where(Repository.owner_id == owner_id)
        if not include_private:
            statement = statement.where(Repository.is_private.is_(False))  # type: ignore[attr-defined]
        statement = (
            statement.order_by(Repository.updated_at.desc()).offset(skip).limit(limit)  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def get_popular(
        self,
        db: AsyncSession,
        limit: int = POPULAR_LIMIT,
    ) -> list[Repository]:
        """Public repositories ordered by stars, then by recent activity."""
        statement = (
            select(Repository)
            .where(Repository.is_private.is_(False))  # type: ignore[attr-defined]
            .order_by(Repository.stars_count.desc(), Repository.updated_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def search(
        self,
        db: AsyncSession,
        query: str,
        viewer_id: uuid_pkg.UUID | None = None,
        limit: int = 50,
    ) -> list[Repository]:
        """Case-insensitive substring search over name and description.

        Matches public repositories plus the viewer's own private ones.
        """
        pattern = f"%{query.strip()}%"
        visible = Repository.is_private.is_(False)  # type: ignore[attr-defined]
        if viewer_id is not None:
            visible = or_(visible, Repository.owner_id == viewer_id)

        statement = (
            select(Repository)
            .where(
                visible,
                or_(
                    Repository.name.ilike(pattern),  # type: ignore[attr-defined]
                    Repository.description.ilike(pattern),  # type: ignore[attr-defined]
                ),
            )
            .order_by(Repository.stars_count.desc(), Repository.name)  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def create(
        self,
        db: AsyncSession,
        obj_in: dict,
        owner_id: uuid_pkg.UUID,
    ) -> Repository:
        """Create a new repository row. The initial commit is written separately."""
        db_obj = Repository(**obj_in, owner_id=owner_id)
        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        db_obj: Repository,
        obj_in: dict,
    ) -> Repository:
        """Update an existing repository. None values are ignored."""
        for field, value in obj_in.items():
            if value is not None:
                setattr(db_obj, field, value)
        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def touch(
        self,
        db: AsyncSession,
        db_obj: Repository,
        timestamp: datetime,
    ) -> Repository:
        """Advance ``updated_at`` to a commit timestamp. Never moves it backwards."""
        if as_utc(db_obj.updated_at) < timestamp:
            db_obj.updated_at = timestamp
            db.add(db_obj)
            await db.flush()
        return db_obj

    async def delete(self, db: AsyncSession, id: uuid_pkg.UUID) -> bool:
        """Delete a repository and its history. Caller must verify ownership."""
        db_obj = await self.get(db, id)
        if not db_obj:
            return False

        # SQLite does not enforce ON DELETE CASCADE unless foreign keys are enabled
        await commit_ops.delete_by_repository(db, id)
        await db.delete(db_obj)
        await db.flush()
        return True


repository_ops = RepositoryOperations()
