import asyncio
import os
import secrets
import tempfile
import time
from datetime import datetime, timedelta, timezone

# Settings are read at import time, so the environment must be in place first
_db_dir = tempfile.mkdtemp(prefix="account-api-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["SESSION_TOKEN_SALT"] = "test-salt"
os.environ["ENVIRONMENT"] = "test"
os.environ["COGNITO_REGION"] = "us-west-2"
os.environ["COGNITO_USER_POOL_ID"] = "us-west-2_TestPool"
os.environ["COGNITO_CLIENT_ID"] = "test-client"
os.environ["TRUSTED_PROXIES"] = '["testclient"]'
os.environ.pop("CONFIG_FILE", None)

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from sqlalchemy import update

from config.settings import settings
from main import app
from models.session import Session
from models.user import User
from security.tokens import CognitoTokenVerifier
from services.database import AsyncSessionLocal, reset_db
from services.sessions import SessionRepository
from utils.auth import get_token_verifier
from utils.pipeline import response_cache


SIGNING_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
OTHER_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)


def make_access_token(sub: str = "cognito-user", key=SIGNING_KEY, **overrides) -> str:
    now = int(time.time())
    claims = {
        "sub": sub,
        "iss": settings.cognito_issuer,
        "client_id": settings.COGNITO_CLIENT_ID,
        "token_use": "access",
        "iat": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    return jwt.encode(claims, key, algorithm="RS256")


def make_verifier() -> CognitoTokenVerifier:
    public_key = SIGNING_KEY.public_key()
    return CognitoTokenVerifier(
        issuer=settings.cognito_issuer,
        client_id=settings.COGNITO_CLIENT_ID,
        key_resolver=lambda token: public_key,
    )


def new_session_key() -> str:
    return secrets.token_urlsafe(32)


async def _set_role(user_id: str, role: int) -> None:
    async with AsyncSessionLocal() as db:
        user = await db.get(User, user_id)
        user.role = role
        await db.commit()


def set_role(user_id: str, role: int) -> None:
    asyncio.run(_set_role(user_id, role))


async def _expire_sessions(user_id: str) -> None:
    async with AsyncSessionLocal() as db:
        await db.execute(
            update(Session)
            .where(Session.user_id == user_id)
            .values(date_expires=datetime.now(timezone.utc) - timedelta(minutes=1))
        )
        await db.commit()


def expire_sessions(user_id: str) -> None:
    asyncio.run(_expire_sessions(user_id))


async def _purge_expired() -> int:
    async with AsyncSessionLocal() as db:
        return await SessionRepository(db).purge_expired()


def purge_expired() -> int:
    return asyncio.run(_purge_expired())


async def _add_sessions(user_id: str, count: int, created: datetime) -> None:
    async with AsyncSessionLocal() as db:
        for _ in range(count):
            db.add(Session(
                user_id=user_id,
                session_signature=secrets.token_hex(32),
                ip_address="10.0.0.1",
                user_agent="other-browser",
                date_created=created,
                date_last_accessed=created,
                date_expires=created + timedelta(days=7),
            ))
        await db.commit()


def add_sessions(user_id: str, count: int, created: datetime) -> None:
    """Insert `count` sessions that all share one creation timestamp."""
    asyncio.run(_add_sessions(user_id, count, created))


def federate(client: TestClient, email: str, session_key: str | None = None, **headers) -> dict:
    response = client.post(
        "/auth/federate",
        json={
            "sessionKey": session_key or new_session_key(),
            "email": email,
            "firstName": "Test",
            "lastName": "User",
        },
        headers={"Authorization": f"Bearer {make_access_token(sub=email)}", **headers},
    )
    assert response.status_code == 200, response.text
    return response.json()


def session_auth(body: dict) -> dict:
    return {"Authorization": f"SessionToken {body['sessionToken']}"}


@pytest.fixture
def verifier():
    return make_verifier()


@pytest.fixture
def client(verifier):
    asyncio.run(reset_db())
    response_cache.clear()
    app.dependency_overrides[get_token_verifier] = lambda: verifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    response_cache.clear()
