from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from services.database import get_db
from services.users import UserRepository
from models.auth import AuthContext
from models.user import Role, UserRead, UserUpdate
from security.authorization import require_role
from utils.auth import get_auth_context
from utils.errors import BadRequestError, NotFoundError
from utils.etag import handle_conditional_request, not_modified, set_etag_headers
from utils.hateoas import hal_response, user_resource
from utils.pipeline import LogStage, pipeline, response_cache
from utils.routes import route_path


router = APIRouter(
    tags=["Users"],
    route_class=pipeline(LogStage()),
)


# -----------------------------------------------------------------------------
# GET Endpoint
# -----------------------------------------------------------------------------
@router.get(route_path("users", "get_user"), name="get_user")
async def get_user(
    request: Request,
    user_id: str,
    auth_context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    require_role(auth_context.identity, Role.SUPPORT, allow_owner=True, resource_user_id=user_id)

    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")

    body = user_resource(UserRead.model_validate(user))

    etag, should_return_304 = handle_conditional_request(request, body)
    if should_return_304:
        return not_modified(etag)

    response = hal_response(body)
    set_etag_headers(response, etag)
    return response


# -----------------------------------------------------------------------------
# PUT Endpoint (reached through POST + _method=put)
# -----------------------------------------------------------------------------
@router.put(route_path("users", "update_user"), name="update_user")
async def update_user(
    user_id: str,
    user_update: UserUpdate,
    auth_context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    require_role(auth_context.identity, Role.ADMIN, allow_owner=True, resource_user_id=user_id)

    if not user_update.model_dump(exclude_unset=True, exclude_none=True):
        raise BadRequestError("No fields provided for update")

    user = await UserRepository(db).update(user_id, user_update)
    if user is None:
        raise NotFoundError("User not found")
    response_cache.invalidate_user(user_id)

    return hal_response(user_resource(UserRead.model_validate(user)))
