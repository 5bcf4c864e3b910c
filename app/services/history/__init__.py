"""
Version history package.

Re-exports the core value types, diff functions and exceptions.
Usage: `from app.services.history import Snapshot, diff_snapshots`

The database-backed facade is imported from its module directly
(`from app.services.history.service import history_service`) since it
depends on the domain layer, which itself uses these types.

Module structure:
- snapshot.py: Immutable file-tree snapshots and edit tombstones
- line_diff.py: Line-level content differencer (Myers)
- diff_engine.py: Per-path diff of two snapshots
- commit_store.py: Append-only per-repository commit history
- service.py: HistoryService facade wiring stores to the database
- types.py: Data types
- exceptions.py: Custom exceptions
"""

from app.services.history.commit_store import CommitStore
from app.services.history.diff_engine import diff_snapshots
from app.services.history.exceptions import (
    EmptyCommit,
    EmptyHistory,
    HistoryError,
    InvalidContent,
    InvalidPath,
    PathNotFound,
    RepositoryExists,
    RepositoryNotFound,
    RevisionNotFound,
    StaleRevision,
)
from app.services.history.line_diff import diff_lines, render_edit_script, script_stats
from app.services.history.snapshot import EMPTY_SNAPSHOT, TOMBSTONE, Snapshot
from app.services.history.types import (
    ChangeType,
    CommitInfo,
    CommitRecord,
    DiffResult,
    DiffStats,
    FileChange,
    LineOp,
    LineOpKind,
)

__all__ = [
    "CommitStore",
    # Values
    "Snapshot",
    "EMPTY_SNAPSHOT",
    "TOMBSTONE",
    # Diffing
    "diff_lines",
    "diff_snapshots",
    "render_edit_script",
    "script_stats",
    # Types
    "ChangeType",
    "CommitInfo",
    "CommitRecord",
    "DiffResult",
    "DiffStats",
    "FileChange",
    "LineOp",
    "LineOpKind",
    # Exceptions
    "HistoryError",
    "InvalidPath",
    "InvalidContent",
    "PathNotFound",
    "RevisionNotFound",
    "EmptyCommit",
    "StaleRevision",
    "EmptyHistory",
    "RepositoryNotFound",
    "RepositoryExists",
]
