"""Repository-level entry point to the version history core.

HistoryService owns one CommitStore per repository (cached in a TTLCache)
and wires it to the database: a commit row is written and the session
committed inside the store's persist hook, so a commit becomes visible in
memory only once it is durable.

Commits are serialized by a per-repository lock held by the service, not by
the cached store, so evicting a store never lets two commits run at once.
Cached history is checked against the database head before commits and
whenever a request asks for a revision past the cached head; other worker
processes may have committed since the store was loaded.

Every operation takes the database session and repository ID explicitly.
"""

import asyncio
import logging
import uuid as uuid_pkg
import weakref
from collections.abc import Mapping

from cachetools import TTLCache  # type: ignore[import-untyped]
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.domain.commit_operations import commit_ops
from app.domain.repository_operations import repository_ops
from app.models.repository import Repository
from app.services.history.commit_store import Clock, CommitStore, PersistHook, utc_now
from app.services.history.exceptions import (
    HistoryError,
    RepositoryExists,
    RepositoryNotFound,
    StaleRevision,
)
from app.services.history.snapshot import Edit, Snapshot
from app.services.history.types import CommitInfo, CommitRecord, DiffResult, FileContent

logger = logging.getLogger(__name__)

INITIAL_COMMIT_MESSAGE = "Initial commit"


def default_readme(name: str, description: str) -> str:
    return f"# {name}\n\n{description}\n"


class HistoryService:
    """Commit history operations for repositories stored in the database."""

    def __init__(
        self,
        cache_size: int = 256,
        ttl_seconds: int = 600,
        page_size: int = 30,
        max_file_bytes: int | None = None,
        clock: Clock = utc_now,
    ):
        self._stores: TTLCache[uuid_pkg.UUID, CommitStore] = TTLCache(
            maxsize=cache_size, ttl=ttl_seconds
        )
        # Lives as long as some commit holds or waits on it
        self._locks: weakref.WeakValueDictionary[uuid_pkg.UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self.page_size = page_size
        self.max_file_bytes = max_file_bytes
        self._clock = clock

    def _commit_lock(self, repository_id: uuid_pkg.UUID) -> asyncio.Lock:
        lock = self._locks.get(repository_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[repository_id] = lock
        return lock

    def _new_store(self, repository_id: uuid_pkg.UUID, records=()) -> CommitStore:
        return CommitStore.from_records(
            repository_id,
            records,
            clock=self._clock,
            max_file_bytes=self.max_file_bytes,
        )

    def evict(self, repository_id: uuid_pkg.UUID) -> None:
        """Drop the cached history so the next call reloads it from the database."""
        self._stores.pop(repository_id, None)

    def clear(self) -> None:
        self._stores.clear()

    async def _require_repository(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
    ) -> Repository:
        repo = await repository_ops.get(db, repository_id)
        if repo is None:
            raise RepositoryNotFound(repository_id)
        return repo

    async def _load_store(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> CommitStore:
        store = self._stores.get(repository_id)
        if store is not None:
            logger.debug(f"History cache HIT: {repository_id}")
            return store

        logger.debug(f"History cache MISS: {repository_id}")
        rows = await commit_ops.get_all(db, repository_id)
        store = self._new_store(repository_id, [commit_ops.to_record(row) for row in rows])
        if store.head_revision == 0:
            # Not cached: the initial commit may still be in flight elsewhere
            return store

        # Another request may have loaded it while we were querying
        return self._stores.setdefault(repository_id, store)

    async def _reload_store(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> CommitStore:
        self.evict(repository_id)
        return await self._load_store(db, repository_id)

    async def _current_store(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> CommitStore:
        """Cached store, reloaded when the database has moved past it."""
        store = await self._load_store(db, repository_id)
        db_head = await commit_ops.get_head_revision(db, repository_id)
        if db_head != store.head_revision:
            logger.info(
                f"History cache STALE: {repository_id} (cached {store.head_revision}, "
                f"stored {db_head})"
            )
            store = await self._reload_store(db, repository_id)
        return store

    async def _store_covering(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        *revisions: int,
    ) -> CommitStore:
        """Store whose history reaches every requested revision, if any store can."""
        store = await self.get_store(db, repository_id)
        if max(revisions) > store.head_revision:
            store = await self._reload_store(db, repository_id)
        return store

    def _persist_hook(self, db: AsyncSession, repo: Repository) -> PersistHook:
        async def persist(record: CommitRecord) -> None:
            await commit_ops.create(db, record)
            await repository_ops.touch(db, repo, record.created_at)
            await db.commit()

        return persist

    async def get_store(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> CommitStore:
        """Return the repository's commit store.

        Raises:
            RepositoryNotFound: If the repository does not exist.
        """
        await self._require_repository(db, repository_id)
        return await self._load_store(db, repository_id)

    async def create_repository(
        self,
        db: AsyncSession,
        owner_id: uuid_pkg.UUID,
        name: str,
        description: str = "",
        is_private: bool = False,
        files: Mapping[str, FileContent] | None = None,
    ) -> Repository:
        """Create a repository seeded with exactly one commit.

        Without ``files`` the initial snapshot holds a generated README.md.

        Raises:
            RepositoryExists: The owner already has a repository with this name.
            InvalidPath / InvalidContent: The initial files are malformed.
        """
        if await repository_ops.get_by_owner_and_name(db, owner_id, name):
            raise RepositoryExists(owner_id, name)

        initial = dict(files) if files is not None else {"README.md": default_readme(name, description)}
        # Validate before anything is written
        Snapshot(initial, max_file_bytes=self.max_file_bytes)

        try:
            repo = await repository_ops.create(
                db,
                obj_in={"name": name, "description": description, "is_private": is_private},
                owner_id=owner_id,
            )
        except IntegrityError:
            await db.rollback()
            raise RepositoryExists(owner_id, name) from None

        store = self._new_store(repo.id)
        try:
            await store.initialize(
                initial,
                author_id=owner_id,
                message=INITIAL_COMMIT_MESSAGE,
                persist=self._persist_hook(db, repo),
            )
        except Exception:
            await db.rollback()
            raise

        self._stores[repo.id] = store
        logger.info(f"Created repository {repo.id} ({name}) for owner {owner_id}")
        return repo

    async def commit_to_repository(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        base_revision: int,
        edits: Mapping[str, Edit],
        author_id: uuid_pkg.UUID,
        message: str,
    ) -> CommitRecord:
        """Apply ``edits`` on top of ``base_revision`` and record a new commit.

        The commit row and the repository's ``updated_at`` are committed in
        one transaction before the new revision becomes visible.

        Raises:
            RepositoryNotFound, RevisionNotFound, StaleRevision, EmptyCommit,
            InvalidPath, InvalidContent
        """
        repo = await self._require_repository(db, repository_id)

        lock = self._commit_lock(repository_id)
        async with lock:
            store = await self._current_store(db, repository_id)
            try:
                return await store.commit(
                    base_revision,
                    edits,
                    author_id=author_id,
                    message=message,
                    persist=self._persist_hook(db, repo),
                )
            except HistoryError:
                raise
            except asyncio.CancelledError:
                self.evict(repository_id)
                raise
            except IntegrityError:
                self.evict(repository_id)
                await db.rollback()
                head = await commit_ops.get_head_revision(db, repository_id)
                if head == base_revision:
                    logger.error(f"Integrity error persisting commit for repository {repository_id}")
                    raise
                # Another process stored the next revision first
                logger.warning(
                    f"Concurrent commit on repository {repository_id}: base {base_revision}, "
                    f"head now {head}"
                )
                raise StaleRevision(base_revision, head) from None
            except Exception as e:
                logger.error(f"Failed to persist commit for repository {repository_id}: {e}")
                self.evict(repository_id)
                await db.rollback()
                raise

    async def head(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> CommitRecord:
        """Latest commit as stored in the database."""
        await self._require_repository(db, repository_id)
        store = await self._current_store(db, repository_id)
        return store.head()

    async def get_commit(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        revision: int,
    ) -> CommitRecord:
        store = await self._store_covering(db, repository_id, revision)
        return store.at(revision)

    async def get_snapshot(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        revision: int,
    ) -> Snapshot:
        """Snapshot at ``revision``. Raises RevisionNotFound outside ``[1, head]``."""
        store = await self._store_covering(db, repository_id, revision)
        return store.at(revision).snapshot

    async def get_diff(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        rev_a: int,
        rev_b: int,
    ) -> DiffResult:
        """Diff two revisions; revision 0 stands for the empty snapshot."""
        store = await self._store_covering(db, repository_id, rev_a, rev_b)
        return store.diff_between(rev_a, rev_b)

    async def list_history(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        page: int = 1,
        per_page: int | None = None,
    ) -> list[CommitInfo]:
        """One page of commit metadata, newest first.

        Served from the cached store when it is current, otherwise paged in
        the database without loading snapshots.
        """
        await self._require_repository(db, repository_id)
        per_page = per_page or self.page_size
        offset = (max(page, 1) - 1) * per_page

        store = self._stores.get(repository_id)
        if store is not None:
            db_head = await commit_ops.get_head_revision(db, repository_id)
            if db_head == store.head_revision:
                return list(store.history(offset=offset, limit=per_page))
            self.evict(repository_id)
        return await commit_ops.get_history_page(db, repository_id, skip=offset, limit=per_page)

    async def delete_repository(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> None:
        """Delete a repository with its entire history."""
        deleted = await repository_ops.delete(db, repository_id)
        if not deleted:
            raise RepositoryNotFound(repository_id)
        self.evict(repository_id)
        logger.info(f"Deleted repository {repository_id}")


history_service = HistoryService(
    cache_size=settings.history_cache_size,
    ttl_seconds=settings.history_cache_ttl_seconds,
    page_size=settings.history_page_size,
    max_file_bytes=settings.max_file_bytes,
)
