"""Append-only commit history for a single repository.

Revisions are numbered 1..N. Revision 0 is accepted by the diff helpers as
"the empty snapshot" so the initial commit can be rendered as a full listing.

Concurrency model:
- ``commit()`` / ``initialize()`` hold a per-store asyncio.Lock, so at most
  one commit is in flight per repository and each one sees the previous
  one's result.
- Reads never take the lock. The history is an immutable tuple that is
  swapped in one assignment after the persist hook succeeds, so readers see
  either the old or the new head, never a half-built commit.
- If the persist hook raises (or the task is cancelled while awaiting it)
  the candidate is dropped and the head is unchanged.
"""

import asyncio
import logging
import uuid as uuid_pkg
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from datetime import UTC, datetime
from itertools import islice

from app.services.history.diff_engine import diff_snapshots
from app.services.history.exceptions import (
    EmptyCommit,
    EmptyHistory,
    RevisionNotFound,
    StaleRevision,
)
from app.services.history.snapshot import EMPTY_SNAPSHOT, Edit, Snapshot
from app.services.history.types import CommitInfo, CommitRecord, DiffResult, FileContent

logger = logging.getLogger(__name__)

PersistHook = Callable[[CommitRecord], Awaitable[None]]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class CommitStore:
    """In-memory linear history of one repository."""

    def __init__(
        self,
        repository_id: uuid_pkg.UUID,
        commits: Iterable[CommitRecord] = (),
        *,
        clock: Clock = utc_now,
        max_file_bytes: int | None = None,
    ):
        records = tuple(commits)
        for expected, record in enumerate(records, start=1):
            if record.revision != expected:
                raise ValueError(
                    f"Commit history for {repository_id} is not contiguous: "
                    f"expected revision {expected}, got {record.revision}"
                )
            if record.repository_id != repository_id:
                raise ValueError(f"Commit {record.revision} belongs to another repository")

        self.repository_id = repository_id
        self._commits: tuple[CommitRecord, ...] = records
        self._clock = clock
        self._max_file_bytes = max_file_bytes
        self._lock = asyncio.Lock()

    @classmethod
    def from_records(
        cls,
        repository_id: uuid_pkg.UUID,
        records: Iterable[CommitRecord],
        **kwargs,
    ) -> "CommitStore":
        """Rebuild a store from persisted commits in any order."""
        return cls(repository_id, sorted(records, key=lambda r: r.revision), **kwargs)

    @property
    def head_revision(self) -> int:
        """Current head revision; 0 for an uninitialized store."""
        return len(self._commits)

    def head(self) -> CommitRecord:
        commits = self._commits
        if not commits:
            raise EmptyHistory(self.repository_id)
        return commits[-1]

    def at(self, revision: int) -> CommitRecord:
        commits = self._commits
        if not 1 <= revision <= len(commits):
            raise RevisionNotFound(revision, len(commits))
        return commits[revision - 1]

    def snapshot_at(self, revision: int) -> Snapshot:
        """Snapshot of ``revision``; revision 0 is the empty snapshot."""
        if revision == 0:
            return EMPTY_SNAPSHOT
        return self.at(revision).snapshot

    def diff_between(self, rev_a: int, rev_b: int) -> DiffResult:
        """Diff the snapshots of two revisions (0 = empty snapshot)."""
        return diff_snapshots(
            self.snapshot_at(rev_a),
            self.snapshot_at(rev_b),
            base_revision=rev_a,
            target_revision=rev_b,
        )

    def history(self, offset: int = 0, limit: int | None = None) -> Iterator[CommitInfo]:
        """Lazily yield commit metadata, newest first."""
        commits = self._commits
        newest_first = (record.info for record in reversed(commits))
        stop = None if limit is None else offset + limit
        return islice(newest_first, offset, stop)

    def _next_timestamp(self, commits: tuple[CommitRecord, ...]) -> datetime:
        now = self._clock()
        if commits and now < commits[-1].created_at:
            # Clock skew must not make history go backwards
            return commits[-1].created_at
        return now

    def prepare(
        self,
        base_revision: int,
        edits: Mapping[str, Edit],
        author_id: uuid_pkg.UUID,
        message: str,
    ) -> CommitRecord:
        """Build the commit that ``commit()`` would append, without publishing it.

        Raises:
            RevisionNotFound: ``base_revision`` is outside ``[1, head]``.
            StaleRevision: ``base_revision`` is older than the head.
            InvalidPath / InvalidContent: An edit is malformed.
            EmptyCommit: The edits leave the base snapshot unchanged.
        """
        commits = self._commits
        base = self.at(base_revision)
        head = len(commits)
        if base_revision != head:
            raise StaleRevision(base_revision, head)

        snapshot = base.snapshot.merge(edits, max_file_bytes=self._max_file_bytes)
        if snapshot == base.snapshot:
            raise EmptyCommit(base_revision)

        return CommitRecord(
            repository_id=self.repository_id,
            revision=head + 1,
            author_id=author_id,
            message=message,
            created_at=self._next_timestamp(commits),
            snapshot=snapshot,
        )

    async def commit(
        self,
        base_revision: int,
        edits: Mapping[str, Edit],
        author_id: uuid_pkg.UUID,
        message: str,
        persist: PersistHook | None = None,
    ) -> CommitRecord:
        """Append a commit derived from ``base_revision`` plus ``edits``.

        The new commit becomes visible only after ``persist`` completes.
        """
        async with self._lock:
            candidate = self.prepare(base_revision, edits, author_id, message)
            if persist is not None:
                await persist(candidate)
            self._commits = (*self._commits, candidate)

        logger.info(
            f"Repository {self.repository_id}: revision {candidate.revision} committed "
            f"by {author_id}"
        )
        return candidate

    async def initialize(
        self,
        files: Mapping[str, FileContent],
        author_id: uuid_pkg.UUID,
        message: str = "Initial commit",
        persist: PersistHook | None = None,
    ) -> CommitRecord:
        """Seed revision 1 on an empty store."""
        async with self._lock:
            if self._commits:
                raise ValueError(f"Repository {self.repository_id} already has commits")

            candidate = CommitRecord(
                repository_id=self.repository_id,
                revision=1,
                author_id=author_id,
                message=message,
                created_at=self._next_timestamp(()),
                snapshot=Snapshot(files, max_file_bytes=self._max_file_bytes),
            )
            if persist is not None:
                await persist(candidate)
            self._commits = (candidate,)

        return candidate
