from __future__ import annotations
from typing import Optional

from models.auth import AuthContext
from models.user import Features, Role, UserRead
from utils.errors import ForbiddenError


def require_role(
    user: UserRead,
    required: Role,
    allow_owner: bool = False,
    resource_user_id: Optional[str] = None,
) -> None:
    """
    Allow users at or above `required`, and optionally the resource owner.
    """
    if Role(user.role) >= required:
        return
    if allow_owner and resource_user_id is not None and user.user_id == resource_user_id:
        return
    raise ForbiddenError(f"Requires {required.name.replace('_', ' ').title()} role or resource ownership"
                         if allow_owner else
                         f"Requires {required.name.replace('_', ' ').title()} role")


def require_session_auth(auth_context: AuthContext) -> None:
    if auth_context.access.type != "session":
        raise ForbiddenError("This operation requires session authentication")


def require_features(user: UserRead, features: Features) -> None:
    if (Features(user.features) & features) != features:
        raise ForbiddenError("This operation requires features not enabled for the user")
