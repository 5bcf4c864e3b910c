"""Repository visibility and ownership dependencies."""

import uuid as uuid_pkg

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import ForbiddenError, NotFoundError
from app.domain.repository_operations import repository_ops
from app.models.repository import Repository
from app.models.user import User

from .auth import get_current_user, get_current_user_optional


def can_view(repo: Repository, user: User | None) -> bool:
    return not repo.is_private or (user is not None and repo.owner_id == user.id)


async def get_readable_repository(
    repository_id: uuid_pkg.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_current_user_optional),
) -> Repository:
    """
    Load a repository the caller may read.

    Private repositories are reported as missing to everyone but their owner.
    """
    repo = await repository_ops.get(db, repository_id)
    if not repo or not can_view(repo, current_user):
        raise NotFoundError("Repository")
    return repo


async def get_owned_repository(
    repository_id: uuid_pkg.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Repository:
    """
    Load a repository the caller owns.

    Raises 404 if the repository is not visible to the caller.
    Raises 403 if it is visible but owned by someone else.
    """
    repo = await repository_ops.get(db, repository_id)
    if not repo or not can_view(repo, current_user):
        raise NotFoundError("Repository")
    if repo.owner_id != current_user.id:
        raise ForbiddenError("Only the repository owner can modify it")
    return repo
