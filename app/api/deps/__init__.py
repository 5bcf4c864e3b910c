"""API dependencies - re-exports from submodules."""

from .auth import (
    CurrentUser,
    DbSession,
    OptionalUser,
    decode_access_token,
    get_current_user,
    get_current_user_optional,
    security,
)
from .repository_access import (
    can_view,
    get_owned_repository,
    get_readable_repository,
)

__all__ = [
    # Auth
    "security",
    "decode_access_token",
    "get_current_user",
    "get_current_user_optional",
    "DbSession",
    "CurrentUser",
    "OptionalUser",
    # Repository access
    "can_view",
    "get_readable_repository",
    "get_owned_repository",
]
