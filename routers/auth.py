from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from config.settings import settings
from models.auth import (
    AuthenticateMessage,
    FederateRequest,
    RevokeMessage,
    VerifyMessage,
    VerifyRequest,
)
from security import parse_session_token
from security.authenticator import SessionAuthenticator
from utils.auth import client_ip, get_authenticator, read_credentials, user_agent
from utils.errors import ConflictError, UnauthorizedError
from utils.hateoas import auth_context_resource, hal_response, message_resource
from utils.pipeline import LogStage, pipeline, response_cache
from utils.routes import route_path


router = APIRouter(
    tags=["Authentication"],
    route_class=pipeline(LogStage()),
)


# -----------------------------------------------------------------------------
# Cookie helpers
# -----------------------------------------------------------------------------
def wants_cookie(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "text/html" in accept or "application/json" in accept


def set_session_cookie(response: Response, session_token: str) -> None:
    is_prod = settings.ENVIRONMENT == "production"

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_token,
        httponly=True,
        secure=is_prod,
        samesite="none" if is_prod else "lax",
        path="/",
        max_age=60 * 60 * 24 * settings.SESSION_LIFESPAN_DAYS,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")


# -----------------------------------------------------------------------------
# POST Endpoints
# -----------------------------------------------------------------------------

# Exchange an identity provider access token for a session
@router.post(route_path("auth", "federate"), name="federate")
async def federate(
    request: Request,
    federate_req: FederateRequest,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    scheme, _, access_token = request.headers.get("authorization", "").partition(" ")
    if scheme != "Bearer" or not access_token.strip():
        raise UnauthorizedError("Bearer access token required")

    try:
        result = await authenticator.authenticate(
            AuthenticateMessage(
                access_token=access_token.strip(),
                session_key=federate_req.session_key,
                email=federate_req.email,
                first_name=federate_req.first_name or "",
                last_name=federate_req.last_name or "",
                ip_address=client_ip(request),
                user_agent=user_agent(request),
            )
        )
    except IntegrityError:
        # same session key from the same client: the signature is already taken
        raise ConflictError("Session key already in use")
    if not result.auth_context.is_authenticated:
        raise UnauthorizedError("Access token could not be verified")

    response_cache.invalidate_user(result.auth_context.identity.user_id)

    response = hal_response(auth_context_resource(result.auth_context, result.session_token))
    if wants_cookie(request):
        set_session_cookie(response, result.session_token)
    return response


# Confirm that the presented session token, cookie or API key is still valid
@router.post(route_path("auth", "verify"), name="verify")
async def verify(
    request: Request,
    verify_req: Optional[VerifyRequest] = None,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    session_token, api_key = read_credentials(request)
    if not session_token and not api_key and verify_req is not None:
        api_key = verify_req.api_key

    if not session_token and not api_key:
        raise UnauthorizedError("No credentials presented")

    auth_context = await authenticator.verify(
        VerifyMessage(
            session_token=session_token,
            api_key=api_key,
            ip_address=client_ip(request),
            user_agent=user_agent(request),
        )
    )
    if not auth_context.is_authenticated:
        raise UnauthorizedError("Session or API key is not valid")

    response = hal_response(auth_context_resource(auth_context))
    if getattr(request.state, "cookie_auth", False):
        set_session_cookie(response, session_token)
    return response


# Sign out: delete the current session and its cookie
@router.post(route_path("auth", "revoke"), name="revoke")
async def revoke(
    request: Request,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    session_token, _ = read_credentials(request)
    if not session_token:
        raise UnauthorizedError("Session token required")

    revoked = await authenticator.revoke(
        RevokeMessage(
            session_token=session_token,
            ip_address=client_ip(request),
            user_agent=user_agent(request),
        )
    )

    if revoked:
        _, user_id = parse_session_token(session_token)
        response_cache.invalidate_user(user_id)

    response = hal_response(message_resource("Session revoked", revoked=revoked))
    clear_session_cookie(response)
    return response
