from fastapi import APIRouter, Depends

from config.settings import settings
from models.auth import AuthContext
from utils.auth import get_optional_auth_context
from utils.hateoas import entry_point_resource, hal_response
from utils.pipeline import LogStage, pipeline
from utils.routes import route_path


router = APIRouter(
    tags=["Root"],
    route_class=pipeline(LogStage()),
)


# -----------------------------------------------------------------------------
# GET Endpoint
# -----------------------------------------------------------------------------

# API entry point: the only URL a client has to know
@router.get(route_path("root", "get_root"), name="get_root")
async def get_root(
    auth_context: AuthContext = Depends(get_optional_auth_context),
):
    return hal_response(
        entry_point_resource(auth_context, settings.API_VERSION, settings.ENVIRONMENT)
    )
