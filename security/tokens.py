from __future__ import annotations
import asyncio
import hashlib
import logging
import re
import secrets
import string
from typing import Any, Callable, Optional

import jwt

logger = logging.getLogger(__name__)

SESSION_KEY_RE = re.compile(r"^[A-Za-z0-9_-]{32,128}$")
SESSION_TOKEN_DELIMITER = "."

BASE62_ALPHABET = string.digits + string.ascii_letters
API_KEY_LENGTH = 43
API_KEY_PREFIX_LENGTH = 8


class InvalidAccessTokenError(Exception):
    """The identity provider's access token did not verify."""


class InvalidSessionError(Exception):
    """A session token is malformed or names no live session."""


# -----------------------------------------------------------------------------
# Session tokens
# -----------------------------------------------------------------------------
def generate_session_key() -> str:
    return secrets.token_urlsafe(32)


def compute_session_signature(session_key: str, ip_address: str, user_agent: str, salt: str) -> str:
    """
    Fingerprint binding a session to the client that created it.

    Any change to the key, ip address, user agent or server salt yields a
    different signature, so a copied token is useless from another client.
    """
    material = f"{session_key}_{ip_address}_{user_agent}_{salt}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def compose_session_token(session_key: str, user_id: str) -> str:
    if not SESSION_KEY_RE.match(session_key):
        raise InvalidSessionError("Session key must be 32-128 url-safe characters")
    return f"{session_key}{SESSION_TOKEN_DELIMITER}{user_id}"


def parse_session_token(token: str) -> tuple[str, str]:
    """Split a session token into (session_key, user_id)."""
    session_key, sep, user_id = (token or "").partition(SESSION_TOKEN_DELIMITER)
    if not sep or not user_id or not SESSION_KEY_RE.match(session_key):
        raise InvalidSessionError("Malformed session token")
    return session_key, user_id


# -----------------------------------------------------------------------------
# API keys
# -----------------------------------------------------------------------------
def generate_api_key() -> str:
    """32 random bytes rendered as a fixed width base62 string."""
    value = int.from_bytes(secrets.token_bytes(32), "big")
    chars = []
    while value:
        value, rem = divmod(value, 62)
        chars.append(BASE62_ALPHABET[rem])
    return "".join(reversed(chars)).rjust(API_KEY_LENGTH, BASE62_ALPHABET[0])


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def api_key_prefix(api_key: str) -> str:
    return api_key[:API_KEY_PREFIX_LENGTH]


# -----------------------------------------------------------------------------
# Identity provider access tokens (JWT)
# -----------------------------------------------------------------------------
KeyResolver = Callable[[str], Any]


class CognitoTokenVerifier:
    """
    Verifies Cognito user pool access tokens.

    Signing keys come from the pool's JWKS document unless a key_resolver is
    given; the resolver receives the raw token and returns a verification key.
    """

    algorithms = ["RS256"]

    def __init__(
        self,
        issuer: str,
        client_id: Optional[str],
        jwks_url: Optional[str] = None,
        key_resolver: Optional[KeyResolver] = None,
    ) -> None:
        if key_resolver is None and not jwks_url:
            raise ValueError("Either jwks_url or key_resolver is required")
        self.issuer = issuer
        self.client_id = client_id
        self._jwk_client = jwt.PyJWKClient(jwks_url) if key_resolver is None else None
        self._key_resolver = key_resolver

    async def _signing_key(self, token: str) -> Any:
        if self._key_resolver is not None:
            return self._key_resolver(token)
        # PyJWKClient fetches over blocking urllib
        signing_key = await asyncio.to_thread(self._jwk_client.get_signing_key_from_jwt, token)
        return signing_key.key

    async def verify(self, access_token: str) -> dict[str, Any]:
        """Return the token's claims or raise InvalidAccessTokenError."""
        if not access_token:
            raise InvalidAccessTokenError("Missing access token")

        try:
            key = await self._signing_key(access_token)
            claims = jwt.decode(
                access_token,
                key,
                algorithms=self.algorithms,
                issuer=self.issuer,
                options={"require": ["exp", "iss", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidAccessTokenError("Access token has expired")
        except (jwt.PyJWKClientError, jwt.InvalidTokenError) as e:
            raise InvalidAccessTokenError(f"Invalid access token: {e}")

        if claims.get("token_use") != "access":
            raise InvalidAccessTokenError("Invalid token type")
        if self.client_id and claims.get("client_id") != self.client_id:
            raise InvalidAccessTokenError("Token was issued to another client")

        return claims
