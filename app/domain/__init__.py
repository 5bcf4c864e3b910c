from app.domain.commit_operations import commit_ops
from app.domain.repository_operations import repository_ops
from app.domain.user_operations import user_ops

__all__ = [
    "commit_ops",
    "repository_ops",
    "user_ops",
]
