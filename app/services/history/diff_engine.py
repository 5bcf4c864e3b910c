"""Snapshot diff engine.

Compares two snapshots path by path. Output is sorted by path so repeated
diffs of the same pair are identical regardless of how either snapshot was
built.
"""

from app.services.history.line_diff import (
    canonical_content,
    diff_lines,
    is_binary,
    script_stats,
    split_lines,
)
from app.services.history.snapshot import Snapshot
from app.services.history.types import ChangeType, DiffResult, FileChange, FileContent


def _line_count(content: FileContent) -> int:
    if is_binary(content):
        return 0
    text = content.decode("utf-8") if isinstance(content, bytes) else content
    return len(split_lines(text))


def _added(path: str, content: FileContent) -> FileChange:
    return FileChange(
        path=path,
        change_type=ChangeType.ADDED,
        content=content,
        additions=_line_count(content),
        binary=is_binary(content),
    )


def _removed(path: str, content: FileContent) -> FileChange:
    return FileChange(
        path=path,
        change_type=ChangeType.REMOVED,
        content=content,
        deletions=_line_count(content),
        binary=is_binary(content),
    )


def _modified(path: str, old: FileContent, new: FileContent) -> FileChange:
    script = diff_lines(old, new)
    additions, deletions = script_stats(script)
    return FileChange(
        path=path,
        change_type=ChangeType.MODIFIED,
        edit_script=script,
        additions=additions,
        deletions=deletions,
        binary=is_binary(old) or is_binary(new),
    )


def diff_snapshots(
    base: Snapshot,
    target: Snapshot,
    base_revision: int = 0,
    target_revision: int = 0,
) -> DiffResult:
    """Compute per-path changes from ``base`` to ``target``.

    Every path in either snapshot yields exactly one FileChange, UNCHANGED
    entries included; use ``DiffResult.changed`` to drop those. Diffing
    against the empty snapshot reports every target path as ADDED.
    """
    changes: list[FileChange] = []
    for path in sorted(set(base.paths) | set(target.paths)):
        in_base = path in base
        in_target = path in target

        if in_target and not in_base:
            changes.append(_added(path, target.get(path)))
        elif in_base and not in_target:
            changes.append(_removed(path, base.get(path)))
        else:
            old = base.get(path)
            new = target.get(path)
            if canonical_content(old) == canonical_content(new):
                changes.append(FileChange(path=path, change_type=ChangeType.UNCHANGED))
            else:
                changes.append(_modified(path, old, new))

    return DiffResult(
        base_revision=base_revision,
        target_revision=target_revision,
        changes=tuple(changes),
    )
