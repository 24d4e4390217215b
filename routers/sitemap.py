from fastapi import APIRouter, Depends, Request

from models.auth import AuthContext
from utils.auth import get_optional_auth_context
from utils.etag import handle_conditional_request, not_modified, set_etag_headers
from utils.hateoas import hal_response, sitemap_resource
from utils.pipeline import LogStage, pipeline
from utils.routes import route_path


router = APIRouter(
    tags=["Sitemap"],
    route_class=pipeline(LogStage()),
)


# -----------------------------------------------------------------------------
# GET Endpoint
# -----------------------------------------------------------------------------

# Navigation tree for menus and breadcrumbs; varies with the caller's role
@router.get(route_path("sitemap", "get_sitemap"), name="get_sitemap")
async def get_sitemap(
    request: Request,
    auth_context: AuthContext = Depends(get_optional_auth_context),
):
    body = sitemap_resource(auth_context.identity)

    etag, should_return_304 = handle_conditional_request(request, body)
    if should_return_304:
        return not_modified(etag)

    response = hal_response(body)
    set_etag_headers(response, etag)
    return response
