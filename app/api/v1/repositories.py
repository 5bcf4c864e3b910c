"""Repository API endpoints.

Public repositories are readable by everyone, private ones only by their
owner (others get 404). Only the owner can update or delete a repository.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    CurrentUser,
    OptionalUser,
    get_owned_repository,
    get_readable_repository,
)
from app.api.v1.serializers import serialize_repository
from app.core.database import get_db
from app.core.exceptions import NotFoundError, to_http_error
from app.core.markup import render_safe
from app.domain import repository_ops, user_ops
from app.models.repository import Repository, RepositoryCreate, RepositoryUpdate
from app.services.history.exceptions import HistoryError
from app.services.history.line_diff import is_binary
from app.services.history.service import history_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/repositories", tags=["repositories"])

README_PATH = "README.md"


@router.get("/explore", response_model=list[dict])
async def explore_repositories(
    db: AsyncSession = Depends(get_db),
):
    """Popular public repositories: most stars first, then most recently updated."""
    repos = await repository_ops.get_popular(db)
    return [serialize_repository(r) for r in repos]


@router.get("/search", response_model=list[dict])
async def search_repositories(
    current_user: OptionalUser,
    q: str = Query(..., min_length=1, max_length=100, description="Name or description text"),
    db: AsyncSession = Depends(get_db),
):
    """Search public repositories (and the caller's private ones) by name or description."""
    viewer_id = current_user.id if current_user else None
    repos = await repository_ops.search(db, q, viewer_id=viewer_id)
    return [serialize_repository(r) for r in repos]


@router.get("", response_model=list[dict])
async def list_repositories(
    current_user: OptionalUser,
    owner: str = Query(..., description="Username of the repository owner"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List a user's repositories. Private ones are included only for the owner."""
    owner_user = await user_ops.get_by_username(db, owner)
    if not owner_user:
        raise NotFoundError("User")

    is_owner = current_user is not None and current_user.id == owner_user.id
    repos = await repository_ops.get_by_owner(
        db, owner_user.id, include_private=is_owner, skip=skip, limit=limit
    )
    return [serialize_repository(r) for r in repos]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_repository(
    data: RepositoryCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a new repository with its initial commit.

    Without `files`, the initial commit contains a README.md generated from
    the name and description.
    """
    try:
        repo = await history_service.create_repository(
            db,
            owner_id=current_user.id,
            name=data.name,
            description=data.description,
            is_private=data.is_private,
            files=data.files,
        )
    except HistoryError as e:
        raise to_http_error(e) from None

    result = serialize_repository(repo)
    result["head_revision"] = 1
    return result


@router.get("/{repository_id}")
async def get_repository(
    repo: Repository = Depends(get_readable_repository),
    db: AsyncSession = Depends(get_db),
):
    """Get a repository with its head revision and rendered README."""
    try:
        head = await history_service.head(db, repo.id)
    except HistoryError as e:
        raise to_http_error(e) from None

    readme_html = None
    if README_PATH in head.snapshot:
        readme = head.snapshot.get(README_PATH)
        if not is_binary(readme):
            text = readme.decode("utf-8") if isinstance(readme, bytes) else readme
            readme_html = render_safe(text)

    result = serialize_repository(repo)
    result["head_revision"] = head.revision
    result["files_count"] = len(head.snapshot)
    result["readme_html"] = readme_html
    return result


@router.patch("/{repository_id}")
async def update_repository(
    data: RepositoryUpdate,
    repo: Repository = Depends(get_owned_repository),
    db: AsyncSession = Depends(get_db),
):
    """Update description or visibility. Owner only."""
    updated = await repository_ops.update(db, db_obj=repo, obj_in=data.model_dump(exclude_unset=True))
    logger.info(f"Updated repository {repo.id}")
    return serialize_repository(updated)


@router.delete("/{repository_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_repository(
    repo: Repository = Depends(get_owned_repository),
    db: AsyncSession = Depends(get_db),
):
    """Delete a repository and all of its commits. Owner only."""
    try:
        await history_service.delete_repository(db, repo.id)
    except HistoryError as e:
        raise to_http_error(e) from None
