"""Token verification and permission checks."""

from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import jwt

from stockroom.auth.deps import CurrentUser, get_current_user, require_permission
from stockroom.auth.jwt import create_access_token, decode_token
from stockroom.auth.permissions import has_permission
from stockroom.config import settings


@pytest.mark.unit
class TestTokens:
    def test_round_trip_claims(self):
        token = create_access_token("user-42", ["stock.read"])
        payload = decode_token(token)
        assert payload["sub"] == "user-42"
        assert payload["permissions"] == ["stock.read"]
        assert payload["type"] == "access"

    def test_expired_token_decodes_to_empty(self):
        token = create_access_token("user-42", [], expires_delta=timedelta(seconds=-1))
        assert decode_token(token) == {}

    def test_wrong_secret_decodes_to_empty(self):
        token = jwt.encode({"sub": "user-42", "type": "access"}, "not-the-secret", algorithm="HS256")
        assert decode_token(token) == {}


@pytest.mark.unit
class TestPermissions:
    def test_wildcard_grants_everything(self):
        assert has_permission(["*"], "operations.process")

    def test_exact_match(self):
        assert has_permission(["stock.read"], "stock.read")
        assert not has_permission(["stock.read"], "operations.process")

    def test_unknown_permission_is_a_programming_error(self):
        with pytest.raises(ValueError):
            require_permission("stock.teleport")


@pytest.mark.unit
@pytest.mark.asyncio
class TestDependencies:
    async def test_current_user_from_token(self):
        token = create_access_token("user-7", ["catalog.read"])
        user = await get_current_user(token)
        assert user == CurrentUser(id="user-7", permissions=["catalog.read"])

    async def test_refresh_style_token_rejected(self):
        token = jwt.encode(
            {"sub": "user-7", "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(token)
        assert exc_info.value.status_code == 401

    async def test_require_permission_all_of(self):
        check = require_permission("operations.write", "operations.process")

        user = CurrentUser(id="u", permissions=["operations.write", "operations.process"])
        assert await check(user) is user

        with pytest.raises(HTTPException) as exc_info:
            await check(CurrentUser(id="u", permissions=["operations.write"]))
        assert exc_info.value.status_code == 403
        assert "operations.process" in exc_info.value.detail
