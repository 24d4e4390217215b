from __future__ import annotations
import logging
from typing import Any, Protocol

from models.auth import (
    AccessContext,
    AuthContext,
    AuthenticateMessage,
    AuthenticateResult,
    RevokeMessage,
    VerifyMessage,
)
from models.user import UserRead
from services.api_keys import ApiKeyRepository
from services.sessions import SessionRepository
from services.users import UserRepository
from security.tokens import (
    InvalidAccessTokenError,
    InvalidSessionError,
    compose_session_token,
    compute_session_signature,
    parse_session_token,
)

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    async def verify(self, access_token: str) -> dict[str, Any]: ...


def anonymous_context(ip_address: str = "unknown", user_agent: str = "unknown") -> AuthContext:
    return AuthContext(
        identity=None,
        access=AccessContext(type="unknown", ip_address=ip_address, user_agent=user_agent),
    )


class SessionAuthenticator:
    """
    Exchanges identity provider tokens for sessions and verifies the
    credentials presented on later requests.

    Verification failures never raise; they produce a context without an
    identity so callers can tell "not signed in" from a server fault.
    """

    def __init__(
        self,
        users: UserRepository,
        sessions: SessionRepository,
        api_keys: ApiKeyRepository,
        verifier: TokenVerifier,
        salt: str,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.api_keys = api_keys
        self.verifier = verifier
        self.salt = salt

    def _signature(self, session_key: str, ip_address: str, user_agent: str) -> str:
        return compute_session_signature(session_key, ip_address, user_agent, self.salt)

    # -------------------------------------------------------------------------
    # Federation
    # -------------------------------------------------------------------------
    async def authenticate(self, message: AuthenticateMessage) -> AuthenticateResult:
        try:
            await self.verifier.verify(message.access_token)
        except InvalidAccessTokenError as e:
            logger.warning("Federation rejected: %s", e)
            return AuthenticateResult(
                auth_context=anonymous_context(message.ip_address, message.user_agent)
            )

        user = await self.users.upsert(message.email, message.first_name, message.last_name)
        session = await self.sessions.create(
            user_id=user.user_id,
            session_signature=self._signature(message.session_key, message.ip_address, message.user_agent),
            ip_address=message.ip_address,
            user_agent=message.user_agent,
        )
        logger.info("Session %s created for user %s", session.session_id, user.user_id)

        return AuthenticateResult(
            auth_context=AuthContext(
                identity=UserRead.model_validate(user),
                access=AccessContext(
                    type="session",
                    ip_address=session.ip_address,
                    user_agent=session.user_agent,
                    date_created=session.date_created,
                    date_last_accessed=session.date_last_accessed,
                    date_expires=session.date_expires,
                ),
            ),
            session_token=compose_session_token(message.session_key, user.user_id),
        )

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------
    async def verify(self, message: VerifyMessage) -> AuthContext:
        if message.session_token:
            return await self._verify_session(message)
        if message.api_key:
            return await self._verify_api_key(message)
        return anonymous_context(message.ip_address, message.user_agent)

    async def _verify_session(self, message: VerifyMessage) -> AuthContext:
        try:
            session_key, user_id = parse_session_token(message.session_token)
        except InvalidSessionError as e:
            logger.info("Session verification failed: %s", e)
            return anonymous_context(message.ip_address, message.user_agent)

        session = await self.sessions.verify(
            user_id,
            self._signature(session_key, message.ip_address, message.user_agent),
        )
        user = await self.users.get_by_id(user_id) if session else None
        if session is None or user is None:
            return anonymous_context(message.ip_address, message.user_agent)

        return AuthContext(
            identity=UserRead.model_validate(user),
            access=AccessContext(
                type="session",
                ip_address=session.ip_address,
                user_agent=session.user_agent,
                date_created=session.date_created,
                date_last_accessed=session.date_last_accessed,
                date_expires=session.date_expires,
            ),
        )

    async def _verify_api_key(self, message: VerifyMessage) -> AuthContext:
        record = await self.api_keys.verify(message.api_key)
        user = await self.users.get_by_id(record.user_id) if record else None
        if record is None or user is None:
            logger.info("API key verification failed")
            return anonymous_context(message.ip_address, message.user_agent)

        return AuthContext(
            identity=UserRead.model_validate(user),
            access=AccessContext(
                type="apiKey",
                ip_address=message.ip_address,
                user_agent=message.user_agent,
                date_created=record.date_created,
                date_last_accessed=record.date_last_accessed,
                description=record.label,
            ),
        )

    # -------------------------------------------------------------------------
    # Revocation
    # -------------------------------------------------------------------------
    async def revoke(self, message: RevokeMessage) -> bool:
        """Delete the presented session. Revoking a missing session is not an error."""
        try:
            session_key, user_id = parse_session_token(message.session_token)
        except InvalidSessionError as e:
            logger.info("Revoke ignored: %s", e)
            return False

        deleted = await self.sessions.delete_by_signature(
            user_id,
            self._signature(session_key, message.ip_address, message.user_agent),
        )
        if deleted:
            logger.info("Session revoked for user %s", user_id)
        return deleted
