"""Response serialization for repositories, commits and diffs."""

from app.models.repository import Repository
from app.services.history.line_diff import is_binary, render_edit_script
from app.services.history.types import CommitInfo, DiffResult, FileChange, FileContent


def _text_or_none(content: FileContent | None) -> str | None:
    if content is None or is_binary(content):
        return None
    return content.decode("utf-8") if isinstance(content, bytes) else content


def serialize_repository(r: Repository) -> dict:
    """Serialize a repository to a dict response."""
    return {
        "id": str(r.id),
        "owner_id": str(r.owner_id),
        "name": r.name,
        "description": r.description,
        "is_private": r.is_private,
        "stars_count": r.stars_count,
        "created_at": r.created_at.isoformat(),
        "updated_at": r.updated_at.isoformat(),
    }


def serialize_commit(info: CommitInfo) -> dict:
    return {
        "repository_id": str(info.repository_id),
        "revision": info.revision,
        "author_id": str(info.author_id),
        "message": info.message,
        "created_at": info.created_at.isoformat(),
        "files_count": info.files_count,
    }


def serialize_change(change: FileChange) -> dict:
    """Serialize one file change. Diff text is never rendered as markup."""
    return {
        "path": change.path,
        "change_type": change.change_type.value,
        "binary": change.binary,
        "additions": change.additions,
        "deletions": change.deletions,
        "content": _text_or_none(change.content),
        "edit_script": [
            {"kind": op.kind.value, "lines": list(op.lines)}
            for op in change.edit_script
            if op.lines
        ],
        "patch": render_edit_script(change.edit_script) if change.edit_script else None,
    }


def serialize_diff(diff: DiffResult, include_unchanged: bool = False) -> dict:
    changes = diff.changes if include_unchanged else diff.changed
    stats = diff.stats
    return {
        "base_revision": diff.base_revision,
        "target_revision": diff.target_revision,
        "stats": {
            "files_changed": stats.files_changed,
            "additions": stats.additions,
            "deletions": stats.deletions,
        },
        "changes": [serialize_change(c) for c in changes],
    }
