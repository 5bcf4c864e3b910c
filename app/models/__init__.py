from app.models.commit import Commit, CommitCreate
from app.models.repository import Repository, RepositoryCreate, RepositoryUpdate
from app.models.user import User, UserRead

__all__ = [
    "User",
    "UserRead",
    "Repository",
    "RepositoryCreate",
    "RepositoryUpdate",
    "Commit",
    "CommitCreate",
]
