from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from models.api_key import CreateApiKeyRequest, DeleteApiKeysRequest, GetApiKeysRequest
from models.auth import AuthContext
from models.user import Role
from security.authorization import require_role, require_session_auth
from services.api_keys import ApiKeyRepository
from services.database import get_db
from utils.auth import AuthStage, get_auth_context
from utils.hateoas import (
    api_key_collection_resource,
    api_key_created_resource,
    api_keys_deleted_resource,
    hal_response,
)
from utils.pipeline import CacheStage, LogStage, pipeline, response_cache
from utils.routes import route_path


router = APIRouter(
    tags=["API Keys"],
    route_class=pipeline(LogStage()),
)


# -----------------------------------------------------------------------------
# POST Endpoints
# -----------------------------------------------------------------------------
async def get_api_keys(
    user_id: str,
    api_keys_req: Optional[GetApiKeysRequest] = None,
    auth_context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    require_role(auth_context.identity, Role.ACCOUNT_MANAGER, allow_owner=True, resource_user_id=user_id)

    paging_instruction = api_keys_req.paging_instruction if api_keys_req else None
    page = await ApiKeyRepository(db).get_page(user_id, paging_instruction)

    return hal_response(api_key_collection_resource(user_id, page.items, page.paging))


# The plaintext key appears in this response only
async def create_api_key(
    user_id: str,
    create_req: CreateApiKeyRequest,
    auth_context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    require_role(auth_context.identity, Role.ACCOUNT_MANAGER, allow_owner=True, resource_user_id=user_id)
    require_session_auth(auth_context)

    api_key, plaintext = await ApiKeyRepository(db).create(user_id, create_req.label)
    response_cache.invalidate_user(user_id)

    return hal_response(api_key_created_resource(api_key, plaintext), status_code=201)


async def delete_api_keys(
    user_id: str,
    delete_req: DeleteApiKeysRequest,
    auth_context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    require_role(auth_context.identity, Role.ADMIN, allow_owner=True, resource_user_id=user_id)
    require_session_auth(auth_context)

    deleted_count = await ApiKeyRepository(db).delete_many(user_id, delete_req.api_key_ids)
    response_cache.invalidate_user(user_id)

    return hal_response(api_keys_deleted_resource(user_id, deleted_count))


router.add_api_route(
    route_path("api_keys", "get_api_keys"),
    get_api_keys,
    methods=["POST"],
    name="get_api_keys",
    route_class_override=pipeline(LogStage(), AuthStage(), CacheStage(ttl=settings.API_KEYS_CACHE_TTL)),
)
router.add_api_route(
    route_path("api_keys", "create_api_key"),
    create_api_key,
    methods=["POST"],
    name="create_api_key",
)
router.add_api_route(
    route_path("api_keys", "delete_api_keys"),
    delete_api_keys,
    methods=["POST"],
    name="delete_api_keys",
)
