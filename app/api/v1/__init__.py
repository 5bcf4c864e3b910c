from app.api.v1 import commits, repositories, users

__all__ = [
    "commits",
    "repositories",
    "users",
]
