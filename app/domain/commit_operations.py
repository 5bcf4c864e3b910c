"""Persistence for commit rows.

Rows are written once per revision and never updated. Conversions between
``Commit`` rows and in-memory ``CommitRecord`` values live here so the
history core stays free of SQL.
"""

import uuid as uuid_pkg

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import as_utc
from app.models.commit import Commit
from app.services.history.snapshot import Snapshot
from app.services.history.types import CommitInfo, CommitRecord


class CommitOperations:
    """Operations for Commit model."""

    def __init__(self):
        self.model = Commit

    async def get_all(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> list[Commit]:
        """All commits of a repository, oldest first."""
        statement = (
            select(Commit)
            .where(Commit.repository_id == repository_id)
            .order_by(Commit.revision)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def get_head_revision(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> int:
        """Highest stored revision, or 0 when the repository has no commits."""
        statement = select(func.max(Commit.revision)).where(Commit.repository_id == repository_id)
        result = await db.execute(statement)
        return result.scalar() or 0

    async def get_history_page(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        skip: int = 0,
        limit: int = 30,
    ) -> list[CommitInfo]:
        """One page of commit metadata, newest first.

        Selects metadata columns only; snapshots can be large.
        """
        statement = (
            select(
                Commit.repository_id,
                Commit.revision,
                Commit.author_id,
                Commit.message,
                Commit.created_at,
                Commit.files_count,
            )
            .where(Commit.repository_id == repository_id)
            .order_by(Commit.revision.desc())  # type: ignore[attr-defined]
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(statement)
        return [
            CommitInfo(
                repository_id=row.repository_id,
                revision=row.revision,
                author_id=row.author_id,
                message=row.message,
                created_at=as_utc(row.created_at),
                files_count=row.files_count,
            )
            for row in result.all()
        ]

    async def create(self, db: AsyncSession, record: CommitRecord) -> Commit:
        """Write a commit row for ``record``. Flushes but does not commit."""
        db_obj = Commit(
            repository_id=record.repository_id,
            revision=record.revision,
            author_id=record.author_id,
            message=record.message,
            snapshot=record.snapshot.to_json(),
            files_count=len(record.snapshot),
            created_at=record.created_at,
        )
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def delete_by_repository(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> int:
        statement = sa_delete(Commit).where(Commit.repository_id == repository_id)  # type: ignore[arg-type]
        result = await db.execute(statement)
        await db.flush()
        return result.rowcount or 0

    @staticmethod
    def to_record(db_obj: Commit) -> CommitRecord:
        """Rebuild the in-memory record for a stored commit."""
        return CommitRecord(
            repository_id=db_obj.repository_id,
            revision=db_obj.revision,
            author_id=db_obj.author_id,
            message=db_obj.message,
            created_at=as_utc(db_obj.created_at),
            snapshot=Snapshot.from_json(db_obj.snapshot),
        )


commit_ops = CommitOperations()
