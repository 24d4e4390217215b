from __future__ import annotations
import logging
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from models.auth import AuthContext, VerifyMessage
from security import (
    CognitoTokenVerifier,
    InvalidSessionError,
    compute_session_signature,
    parse_session_token,
)
from security.authenticator import SessionAuthenticator, TokenVerifier, anonymous_context
from services.api_keys import ApiKeyRepository
from services.database import AsyncSessionLocal, get_db
from services.sessions import SessionRepository
from services.users import UserRepository
from utils.errors import BadRequestError, UnauthorizedError
from utils.forms import get_client_ip
from utils.pipeline import CallNext, Stage

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Client fingerprint
# -----------------------------------------------------------------------------
def client_ip(request: Request) -> str:
    """
    Address the session fingerprint binds to.

    Forwarding headers are only believed when the direct peer is one of
    TRUSTED_PROXIES ("*" trusts every peer).
    """
    peer = request.client.host if request.client else "unknown"
    trusted = settings.TRUSTED_PROXIES
    if "*" in trusted or peer in trusted:
        forwarded = get_client_ip(request.headers)
        if forwarded != "unknown":
            return forwarded
    return peer


def user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "unknown")


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------
@lru_cache
def get_token_verifier() -> TokenVerifier:
    return CognitoTokenVerifier(
        issuer=settings.cognito_issuer,
        client_id=settings.COGNITO_CLIENT_ID,
        jwks_url=settings.cognito_jwks_url,
    )


def get_session_repository(db: AsyncSession = Depends(get_db)) -> SessionRepository:
    return SessionRepository(db, lifespan=timedelta(days=settings.SESSION_LIFESPAN_DAYS))


def get_authenticator(
    db: AsyncSession = Depends(get_db),
    sessions: SessionRepository = Depends(get_session_repository),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> SessionAuthenticator:
    return SessionAuthenticator(
        users=UserRepository(db),
        sessions=sessions,
        api_keys=ApiKeyRepository(db),
        verifier=verifier,
        salt=settings.SESSION_TOKEN_SALT,
    )


def read_credentials(request: Request) -> tuple[Optional[str], Optional[str]]:
    """
    (session_token, api_key) from the Authorization header, falling back to
    the session cookie.
    """
    authorization = request.headers.get("authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        credentials = credentials.strip()
        if scheme == "SessionToken" and credentials:
            return credentials, None
        if scheme == "ApiKey" and credentials:
            return None, credentials
        if scheme != "Bearer":
            raise BadRequestError("Unsupported Authorization scheme")

    cookie = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if cookie:
        request.state.cookie_auth = True
        return cookie, None
    return None, None


async def verify_request(request: Request, authenticator: SessionAuthenticator) -> AuthContext:
    session_token, api_key = read_credentials(request)
    ip, agent = client_ip(request), user_agent(request)
    if not session_token and not api_key:
        return anonymous_context(ip, agent)

    auth_context = await authenticator.verify(
        VerifyMessage(session_token=session_token, api_key=api_key, ip_address=ip, user_agent=agent)
    )
    request.state.session_token = session_token if auth_context.is_authenticated else None
    return auth_context


async def get_optional_auth_context(
    request: Request,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
) -> AuthContext:
    # already verified by AuthStage
    auth_context = getattr(request.state, "auth_context", None)
    if auth_context is not None:
        return auth_context
    return await verify_request(request, authenticator)


async def get_auth_context(
    auth_context: AuthContext = Depends(get_optional_auth_context),
) -> AuthContext:
    if not auth_context.is_authenticated:
        raise UnauthorizedError("Authentication required")
    return auth_context


def current_session_signature(request: Request) -> Optional[str]:
    """Signature of the session that authenticated this request, if any."""
    session_token = getattr(request.state, "session_token", None)
    if not session_token:
        return None
    try:
        session_key, _ = parse_session_token(session_token)
    except InvalidSessionError:
        return None
    return compute_session_signature(session_key, client_ip(request), user_agent(request), settings.SESSION_TOKEN_SALT)


# -----------------------------------------------------------------------------
# Pipeline stage
# -----------------------------------------------------------------------------
class AuthStage(Stage):
    """
    Verifies the caller before later stages run.

    Must run before CacheStage: a cached response may only be served after
    the session signature has been recomputed for this client. Anonymous
    callers get a 401 here.
    """

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        override = request.app.dependency_overrides.get(get_token_verifier, get_token_verifier)
        async with AsyncSessionLocal() as db:
            authenticator = get_authenticator(db, get_session_repository(db), override())
            auth_context = await verify_request(request, authenticator)

        if not auth_context.is_authenticated:
            raise UnauthorizedError("Authentication required")

        request.state.auth_context = auth_context
        request.state.principal = principal_key(request, auth_context)
        return await call_next(request)


def principal_key(request: Request, auth_context: AuthContext) -> str:
    """Verified identity and client fingerprint, used to partition cached responses."""
    signature = current_session_signature(request) or ""
    identity = auth_context.identity
    return f"{identity.user_id}:{identity.role}:{auth_context.access.type}:{signature}"
