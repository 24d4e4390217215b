from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from models.hal import ApiModel
from models.user import UserRead


AccessType = Literal["session", "apiKey", "unknown"]

SESSION_KEY_PATTERN = r"^[A-Za-z0-9_-]{32,128}$"


# -----------------------------------------------------------------------------
# Auth context
# -----------------------------------------------------------------------------
class AccessContext(ApiModel):
    type: AccessType = "unknown"
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    date_created: Optional[datetime] = None
    date_last_accessed: Optional[datetime] = None
    date_expires: Optional[datetime] = None
    description: Optional[str] = None


class AuthContext(ApiModel):
    """Who is calling (identity) and how they authenticated (access)."""
    identity: Optional[UserRead] = None
    access: AccessContext = Field(default_factory=AccessContext)

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


# -----------------------------------------------------------------------------
# Authenticator messages
# -----------------------------------------------------------------------------
class AuthenticateMessage(ApiModel):
    access_token: str
    session_key: str = Field(..., pattern=SESSION_KEY_PATTERN)
    email: str
    first_name: str = ""
    last_name: str = ""
    ip_address: str
    user_agent: str


class AuthenticateResult(ApiModel):
    auth_context: AuthContext
    session_token: Optional[str] = None


class VerifyMessage(ApiModel):
    session_token: Optional[str] = None
    api_key: Optional[str] = None
    ip_address: str
    user_agent: str


class RevokeMessage(ApiModel):
    session_token: str
    ip_address: str
    user_agent: str


# -----------------------------------------------------------------------------
# Request bodies
# -----------------------------------------------------------------------------
class FederateRequest(ApiModel):
    session_key: str = Field(
        ...,
        pattern=SESSION_KEY_PATTERN,
        description="Client generated secret, 32-128 url-safe characters"
    )
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)


class VerifyRequest(ApiModel):
    api_key: Optional[str] = None
