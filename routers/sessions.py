from typing import Optional

from fastapi import APIRouter, Depends, Request

from config.settings import settings
from models.auth import AuthContext
from models.session import DeleteSessionsRequest, GetSessionsRequest
from models.user import Role
from security.authorization import require_role, require_session_auth
from services.sessions import SessionRepository
from utils.auth import AuthStage, current_session_signature, get_auth_context, get_session_repository
from utils.hateoas import hal_response, session_collection_resource, sessions_deleted_resource
from utils.pipeline import CacheStage, LogStage, pipeline, response_cache
from utils.routes import route_path


router = APIRouter(
    tags=["Sessions"],
    route_class=pipeline(LogStage()),
)


# -----------------------------------------------------------------------------
# POST Endpoints
# -----------------------------------------------------------------------------

# List the user's sessions, newest first. POST so paging travels in the body.
async def get_sessions(
    request: Request,
    user_id: str,
    sessions_req: Optional[GetSessionsRequest] = None,
    auth_context: AuthContext = Depends(get_auth_context),
    sessions: SessionRepository = Depends(get_session_repository),
):
    require_role(auth_context.identity, Role.SUPPORT, allow_owner=True, resource_user_id=user_id)

    paging_instruction = sessions_req.paging_instruction if sessions_req else None
    page = await sessions.get_page(user_id, paging_instruction)

    return hal_response(
        session_collection_resource(
            user_id,
            page.items,
            page.paging,
            current_signature=current_session_signature(request),
        )
    )


# Bulk delete; API key callers are refused
async def delete_sessions(
    user_id: str,
    delete_req: DeleteSessionsRequest,
    auth_context: AuthContext = Depends(get_auth_context),
    sessions: SessionRepository = Depends(get_session_repository),
):
    require_role(auth_context.identity, Role.SUPPORT, allow_owner=True, resource_user_id=user_id)
    require_session_auth(auth_context)

    deleted_count = await sessions.delete_many(user_id, delete_req.session_ids)
    response_cache.invalidate_user(user_id)

    return hal_response(sessions_deleted_resource(user_id, deleted_count))


router.add_api_route(
    route_path("sessions", "get_sessions"),
    get_sessions,
    methods=["POST"],
    name="get_sessions",
    route_class_override=pipeline(LogStage(), AuthStage(), CacheStage(ttl=settings.SESSIONS_CACHE_TTL)),
)
router.add_api_route(
    route_path("sessions", "delete_sessions"),
    delete_sessions,
    methods=["POST"],
    name="delete_sessions",
)
