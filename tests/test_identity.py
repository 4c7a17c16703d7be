import base64
import json
from unittest.mock import AsyncMock

import pytest

from core.exceptions import UnauthorizedError
from services.identity import ClerkSessionResolver, StaticSessionResolver, extract_session_id


def make_jwt(claims):
    def encode(part):
        return base64.urlsafe_b64encode(json.dumps(part).encode()).decode().rstrip("=")
    return f"{encode({'alg': 'RS256'})}.{encode(claims)}.signature"


def test_plain_session_id_is_returned_as_is():
    assert extract_session_id("sess_abc") == "sess_abc"


def test_sid_is_read_from_jwt():
    assert extract_session_id(make_jwt({"sid": "sess_123", "sub": "user_1"})) == "sess_123"


def test_jwt_without_sid():
    with pytest.raises(UnauthorizedError):
        extract_session_id(make_jwt({"sub": "user_1"}))


def test_malformed_jwt():
    with pytest.raises(UnauthorizedError):
        extract_session_id("not.a.jwt")


async def test_static_resolver():
    resolver = StaticSessionResolver({"token-1": "user_1"})

    assert await resolver.resolve("token-1") == "user_1"
    with pytest.raises(UnauthorizedError):
        await resolver.resolve("token-2")
    with pytest.raises(UnauthorizedError):
        await resolver.resolve(None)


async def test_clerk_resolver_accepts_active_session():
    client = AsyncMock()
    client.get_session.return_value = {"id": "sess_1", "status": "active", "user_id": "user_1"}
    resolver = ClerkSessionResolver(client)

    assert await resolver.resolve(make_jwt({"sid": "sess_1"})) == "user_1"
    client.get_session.assert_awaited_once_with("sess_1")


@pytest.mark.parametrize("session", [
    {"id": "sess_1", "status": "expired", "user_id": "user_1"},
    {"id": "sess_1", "status": "active"},
])
async def test_clerk_resolver_rejects_inactive_session(session):
    client = AsyncMock()
    client.get_session.return_value = session

    with pytest.raises(UnauthorizedError):
        await ClerkSessionResolver(client).resolve("sess_1")


async def test_clerk_resolver_without_token():
    client = AsyncMock()

    with pytest.raises(UnauthorizedError):
        await ClerkSessionResolver(client).resolve("")
    client.get_session.assert_not_awaited()
