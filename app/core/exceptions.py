import logging

from fastapi import HTTPException, status

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

logger = logging.getLogger(__name__)


class NotFoundError(HTTPException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class DuplicateError(HTTPException):
    """Raised when attempting to create a duplicate resource."""

    def __init__(self, resource: str, field: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{resource} with this {field} already exists",
        )


class ForbiddenError(HTTPException):
    """Raised when user lacks permission to access a resource."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message,
        )


class ValidationError(HTTPException):
    """Raised when submitted content is well-formed JSON but semantically invalid."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message,
        )


class ConflictError(HTTPException):
    """Raised when a write was based on an outdated revision."""

    def __init__(self, message: str, head_revision: int | None = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": message, "head_revision": head_revision},
        )


def to_http_error(exc: HistoryError) -> HTTPException:
    """Translate a version-history error into the matching HTTP error."""
    if isinstance(exc, RepositoryNotFound):
        return NotFoundError("Repository")
    if isinstance(exc, RevisionNotFound):
        return NotFoundError(f"Revision {exc.revision}")
    if isinstance(exc, PathNotFound):
        return NotFoundError(f"File {exc.path!r}")
    if isinstance(exc, InvalidPath | InvalidContent | EmptyCommit):
        return ValidationError(exc.message)
    if isinstance(exc, StaleRevision):
        return ConflictError(exc.message, head_revision=exc.head)
    if isinstance(exc, RepositoryExists):
        return DuplicateError("Repository", "name")
    if isinstance(exc, EmptyHistory):
        logger.error(f"Repository without commits: {exc.repository_id}")
    else:
        logger.error(f"Unhandled history error: {exc.message}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Repository history is unavailable",
    )
