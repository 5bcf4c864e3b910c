"""Commit history, tree, blob and diff endpoints for a repository."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import CurrentUser, get_owned_repository, get_readable_repository
from app.api.v1.serializers import serialize_commit, serialize_diff
from app.core.database import get_db
from app.core.exceptions import ValidationError, to_http_error
from app.core.markup import render_safe
from app.models.commit import CommitCreate
from app.models.repository import Repository
from app.services.history.exceptions import HistoryError
from app.services.history.line_diff import is_binary
from app.services.history.service import history_service
from app.services.history.snapshot import TOMBSTONE, Edit, content_size

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/repositories/{repository_id}", tags=["commits"])


@router.get("/commits", response_model=list[dict])
async def list_commits(
    repo: Repository = Depends(get_readable_repository),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Commit metadata, newest first."""
    try:
        history = await history_service.list_history(db, repo.id, page=page, per_page=per_page)
    except HistoryError as e:
        raise to_http_error(e) from None
    return [serialize_commit(info) for info in history]


@router.post("/commits", status_code=status.HTTP_201_CREATED)
async def create_commit(
    data: CommitCreate,
    current_user: CurrentUser,
    repo: Repository = Depends(get_owned_repository),
    db: AsyncSession = Depends(get_db),
):
    """
    Commit edits on top of `base_revision`.

    `base_revision` must be the current head; otherwise 409 is returned with
    the head revision so the client can rebase its edits. A `null` value in
    `edits` deletes that path.
    """
    edits: dict[str, Edit] = {
        path: TOMBSTONE if content is None else content for path, content in data.edits.items()
    }
    try:
        record = await history_service.commit_to_repository(
            db,
            repository_id=repo.id,
            base_revision=data.base_revision,
            edits=edits,
            author_id=current_user.id,
            message=data.message,
        )
    except HistoryError as e:
        raise to_http_error(e) from None

    return serialize_commit(record.info)


@router.get("/commits/{revision}")
async def get_commit(
    revision: int,
    repo: Repository = Depends(get_readable_repository),
    db: AsyncSession = Depends(get_db),
):
    """A commit with its rendered message and its diff against the previous revision."""
    try:
        record = await history_service.get_commit(db, repo.id, revision)
        diff = await history_service.get_diff(db, repo.id, revision - 1, revision)
    except HistoryError as e:
        raise to_http_error(e) from None

    result = serialize_commit(record.info)
    result["message_html"] = render_safe(record.message)
    result["diff"] = serialize_diff(diff)
    return result


@router.get("/tree/{revision}")
async def get_tree(
    revision: int,
    repo: Repository = Depends(get_readable_repository),
    db: AsyncSession = Depends(get_db),
):
    """File listing of a revision."""
    try:
        snapshot = await history_service.get_snapshot(db, repo.id, revision)
    except HistoryError as e:
        raise to_http_error(e) from None

    return {
        "revision": revision,
        "files": [
            {"path": path, "size": content_size(content), "binary": is_binary(content)}
            for path, content in snapshot.items()
        ],
    }


@router.get("/blob/{revision}/{path:path}")
async def get_blob(
    revision: int,
    path: str,
    repo: Repository = Depends(get_readable_repository),
    db: AsyncSession = Depends(get_db),
):
    """Text content of one file. Binary files are rejected with 422."""
    try:
        snapshot = await history_service.get_snapshot(db, repo.id, revision)
        content = snapshot.get(path)
    except HistoryError as e:
        raise to_http_error(e) from None

    if is_binary(content):
        raise ValidationError(f"{path} is a binary file")
    text = content.decode("utf-8") if isinstance(content, bytes) else content
    return {
        "revision": revision,
        "path": path,
        "size": content_size(content),
        "content": text,
    }


@router.get("/diff")
async def get_diff(
    base: int = Query(..., ge=0, description="Base revision (0 = empty repository)"),
    target: int = Query(..., ge=0),
    include_unchanged: bool = False,
    repo: Repository = Depends(get_readable_repository),
    db: AsyncSession = Depends(get_db),
):
    """Diff between two revisions."""
    try:
        diff = await history_service.get_diff(db, repo.id, base, target)
    except HistoryError as e:
        raise to_http_error(e) from None
    return serialize_diff(diff, include_unchanged=include_unchanged)
