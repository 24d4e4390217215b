from datetime import datetime, timezone

import pytest

from models.auth import AccessContext, AuthContext
from models.user import Features, Role, UserRead
from security.authorization import require_features, require_role, require_session_auth
from utils.errors import ForbiddenError


def make_user(role=Role.BASE, features=Features.NONE, user_id="u1") -> UserRead:
    now = datetime.now(timezone.utc)
    return UserRead(
        user_id=user_id,
        email=f"{user_id}@example.com",
        first_name="Test",
        last_name="User",
        role=role,
        features=int(features),
        date_created=now,
        date_modified=now,
    )


@pytest.mark.parametrize("role", [Role.SUPPORT, Role.ACCOUNT_MANAGER, Role.ADMIN])
def test_role_at_or_above_requirement_passes(role):
    require_role(make_user(role), Role.SUPPORT)


def test_role_below_requirement_is_forbidden():
    with pytest.raises(ForbiddenError):
        require_role(make_user(Role.SUPPORT), Role.ADMIN)


def test_owner_passes_when_allowed():
    require_role(make_user(user_id="u1"), Role.ADMIN, allow_owner=True, resource_user_id="u1")


def test_owner_needs_allow_owner():
    with pytest.raises(ForbiddenError):
        require_role(make_user(user_id="u1"), Role.ADMIN, resource_user_id="u1")


def test_non_owner_is_forbidden():
    with pytest.raises(ForbiddenError) as exc_info:
        require_role(make_user(user_id="u1"), Role.ADMIN, allow_owner=True, resource_user_id="u2")

    assert exc_info.value.status_code == 403
    assert "Admin" in exc_info.value.detail


def test_session_auth_required():
    user = make_user()
    require_session_auth(AuthContext(identity=user, access=AccessContext(type="session")))

    with pytest.raises(ForbiddenError):
        require_session_auth(AuthContext(identity=user, access=AccessContext(type="apiKey")))


def test_features_must_all_be_enabled():
    user = make_user(features=Features.CONTACTS | Features.LINKS)

    require_features(user, Features.CONTACTS)
    require_features(user, Features.CONTACTS | Features.LINKS)
    with pytest.raises(ForbiddenError):
        require_features(user, Features.CONTACTS | Features.APPS)
