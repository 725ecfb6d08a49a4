"""
Token and password handling.

Tests:
  - test_expired_access_token  : expired JWT → 401
  - test_wrong_token_type      : token without type=access → 401
  - test_unknown_subject       : token for a deleted user → 401
  - test_disabled_user         : valid token, disabled account → 403
  - test_password_hashing      : bcrypt hash verifies, plain text does not leak
"""

import uuid
from datetime import timedelta

from httpx import AsyncClient
from jose import jwt

from dutytrack.core.config import settings
from dutytrack.core.security import create_access_token, decode_token, hash_password, verify_password
from dutytrack.db.models import User
from tests.conftest import auth_headers, create_user


class TestTokens:
    async def test_expired_access_token(self, client: AsyncClient, admin_user: User) -> None:
        """An already-expired access token is refused on protected endpoints."""
        expired = create_access_token(
            data={"sub": str(admin_user.id)},
            expires_delta=timedelta(seconds=-1),
        )
        resp = await client.get("/api/users/me", headers={"Authorization": f"Bearer {expired}"})
        assert resp.status_code == 401, resp.text

    async def test_wrong_token_type(self, client: AsyncClient, admin_user: User) -> None:
        token = jwt.encode(
            {"sub": str(admin_user.id), "type": "refresh"},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )
        resp = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401, resp.text

    async def test_unknown_subject(self, client: AsyncClient) -> None:
        token = create_access_token({"sub": str(uuid.uuid4())})
        resp = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401, resp.text

    async def test_disabled_user(self, client: AsyncClient, sessionmaker) -> None:
        user = await create_user(sessionmaker, role="employee", is_active=False)
        resp = await client.get("/api/users/me", headers=auth_headers(user))
        assert resp.status_code == 403, resp.text

    def test_token_round_trip(self) -> None:
        payload = decode_token(create_access_token({"sub": "abc"}))
        assert payload["sub"] == "abc"
        assert payload["type"] == "access"


def test_password_hashing() -> None:
    hashed = hash_password("Secret123!")
    assert hashed != "Secret123!"
    assert verify_password("Secret123!", hashed)
    assert not verify_password("secret123!", hashed)
