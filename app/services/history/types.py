"""Value types for snapshots, edit scripts, diffs and commits."""

import uuid as uuid_pkg
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.history.snapshot import Snapshot

FileContent = str | bytes


class LineOpKind(str, Enum):
    """Operation kinds in a line-level edit script."""

    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"
    REPLACE = "replace"  # whole-content swap for binary files


@dataclass(frozen=True, slots=True)
class LineOp:
    """A run of lines sharing one operation kind.

    ``lines`` keep their terminators. REPLACE ops carry the whole old and new
    contents in ``old`` / ``new`` and leave ``lines`` empty.
    """

    kind: LineOpKind
    lines: tuple[str, ...] = ()
    old: FileContent | None = None
    new: FileContent | None = None


EditScript = tuple[LineOp, ...]


class ChangeType(str, Enum):
    """Per-path change categories in a snapshot diff."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class FileChange:
    """How a single path differs between two snapshots.

    Attributes:
        path: Normalized repository-relative path.
        change_type: Category of the change.
        content: Full content for ADDED (new) and REMOVED (old) entries.
        edit_script: Line-level script for MODIFIED entries.
        additions: Lines added (0 for binary content).
        deletions: Lines removed (0 for binary content).
        binary: True when either side was detected as binary.
    """

    path: str
    change_type: ChangeType
    content: FileContent | None = None
    edit_script: EditScript = ()
    additions: int = 0
    deletions: int = 0
    binary: bool = False


@dataclass(frozen=True, slots=True)
class DiffStats:
    """Aggregate counts for a diff."""

    files_changed: int
    additions: int
    deletions: int


@dataclass(frozen=True, slots=True)
class DiffResult:
    """Per-path changes between two revisions, sorted by path.

    Revision 0 stands for the empty snapshot.
    """

    base_revision: int
    target_revision: int
    changes: tuple[FileChange, ...]

    @property
    def changed(self) -> tuple[FileChange, ...]:
        """Changes with UNCHANGED entries elided, as shown to users."""
        return tuple(c for c in self.changes if c.change_type != ChangeType.UNCHANGED)

    @property
    def stats(self) -> DiffStats:
        changed = self.changed
        return DiffStats(
            files_changed=len(changed),
            additions=sum(c.additions for c in changed),
            deletions=sum(c.deletions for c in changed),
        )


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """Commit metadata without the snapshot body, for history listings."""

    repository_id: uuid_pkg.UUID
    revision: int
    author_id: uuid_pkg.UUID
    message: str
    created_at: datetime
    files_count: int = 0


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """An immutable commit: a full snapshot plus authorship metadata."""

    repository_id: uuid_pkg.UUID
    revision: int
    author_id: uuid_pkg.UUID
    message: str
    created_at: datetime
    snapshot: "Snapshot" = field(repr=False)

    @property
    def info(self) -> CommitInfo:
        return CommitInfo(
            repository_id=self.repository_id,
            revision=self.revision,
            author_id=self.author_id,
            message=self.message,
            created_at=self.created_at,
            files_count=len(self.snapshot),
        )
