"""Exceptions for the version history core."""

import uuid as uuid_pkg


class HistoryError(Exception):
    """Base error for snapshot and commit history operations."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidPath(HistoryError):
    """A snapshot path is empty, escapes the repository root, or collides."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path {path!r}: {reason}")


class InvalidContent(HistoryError):
    """File content is neither text nor bytes, or exceeds the size limit."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid content for {path!r}: {reason}")


class PathNotFound(HistoryError):
    """Requested path does not exist in the snapshot."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path {path!r} not found")


class RevisionNotFound(HistoryError):
    """Referenced revision is outside the repository's history."""

    def __init__(self, revision: int, head: int):
        self.revision = revision
        self.head = head
        super().__init__(f"Revision {revision} not found (head is {head})")


class EmptyCommit(HistoryError):
    """Edits produce no change relative to the base snapshot."""

    def __init__(self, base_revision: int):
        self.base_revision = base_revision
        super().__init__(f"Edits produce no changes relative to revision {base_revision}")


class StaleRevision(HistoryError):
    """Commit was prepared against a revision that is no longer the head.

    Callers re-fetch the head snapshot and resubmit their edits.
    """

    def __init__(self, base_revision: int, head: int):
        self.base_revision = base_revision
        self.head = head
        super().__init__(
            f"Base revision {base_revision} is stale; repository head is now {head}"
        )


class EmptyHistory(HistoryError):
    """A repository has no commits. Initialized repositories never hit this."""

    def __init__(self, repository_id: uuid_pkg.UUID | None = None):
        self.repository_id = repository_id
        super().__init__(f"Repository {repository_id} has no commits")


class RepositoryNotFound(HistoryError):
    """No repository exists with the given ID."""

    def __init__(self, repository_id: uuid_pkg.UUID):
        self.repository_id = repository_id
        super().__init__(f"Repository {repository_id} not found")


class RepositoryExists(HistoryError):
    """The owner already has a repository with this name."""

    def __init__(self, owner_id: uuid_pkg.UUID, name: str):
        self.owner_id = owner_id
        self.name = name
        super().__init__(f"Repository {name!r} already exists for this owner")
