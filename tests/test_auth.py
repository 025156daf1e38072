"""Tests for caller identity resolution on the HTTP transport."""
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from starlette.requests import Request

from asset_forge.auth import extract_token, resolve_caller, verify_access_token
from asset_forge.config import Settings
from asset_forge.errors import AuthenticationError

from conftest import make_response, mock_async_client


def _request(authorization=None, query=b""):
    headers = [(b"authorization", authorization.encode())] if authorization else []
    return Request({"type": "http", "method": "POST", "path": "/mcp", "headers": headers, "query_string": query})


def _settings(**overrides):
    return Settings(_env_file=None, auth_api_url="https://auth.test", **overrides)


@pytest.mark.parametrize(
    "request_, expected",
    [
        (_request("Bearer tok-1"), "tok-1"),
        (_request(query=b"accessToken=tok-2"), "tok-2"),
        (_request("Basic abc"), None),
        (_request(), None),
        (None, None),
    ],
)
def test_extract_token(request_, expected):
    """Bearer header and accessToken query parameter both yield the token."""
    assert extract_token(request_) == expected


@pytest.mark.anyio
async def test_verify_returns_identity():
    """A successful verify call returns the caller identity."""
    cls, client = mock_async_client(
        get=AsyncMock(return_value=make_response(200, json={"userUid": "u-1", "email": "dev@studio.test"}))
    )
    with patch("asset_forge.auth.httpx.AsyncClient", cls):
        caller = await verify_access_token(_settings(), "tok-1")

    assert caller.user_uid == "u-1"
    assert caller.access_token == "tok-1"
    client.get.assert_awaited_once_with(
        "https://auth.test/verify", headers={"Authorization": "Bearer tok-1"}
    )


@pytest.mark.anyio
async def test_verify_accepts_uid_field():
    """The uid field is accepted in place of userUid."""
    cls, _ = mock_async_client(get=AsyncMock(return_value=make_response(200, json={"uid": "u-2"})))
    with patch("asset_forge.auth.httpx.AsyncClient", cls):
        caller = await verify_access_token(_settings(), "tok")
    assert caller.user_uid == "u-2"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "get",
    [
        AsyncMock(return_value=make_response(401, json={"error": "expired"})),
        AsyncMock(return_value=make_response(200, json={"email": "no-id@studio.test"})),
        AsyncMock(side_effect=httpx.ConnectError("refused")),
    ],
)
async def test_verify_failures_return_none(get):
    """Rejected, incomplete or unreachable verification returns None."""
    cls, _ = mock_async_client(get=get)
    with patch("asset_forge.auth.httpx.AsyncClient", cls):
        assert await verify_access_token(_settings(), "tok") is None


@pytest.mark.anyio
async def test_stdio_calls_are_untracked():
    """Calls without an HTTP request carry no identity."""
    assert await resolve_caller(_settings(auth_required=True), None) is None


@pytest.mark.anyio
async def test_missing_token_rejected_when_required():
    """No token is an authentication error when auth is required."""
    with pytest.raises(AuthenticationError, match="No authentication token provided"):
        await resolve_caller(_settings(auth_required=True), _request())


@pytest.mark.anyio
async def test_missing_token_untracked_when_optional():
    """No token proceeds untracked when auth is optional."""
    assert await resolve_caller(_settings(), _request()) is None


@pytest.mark.anyio
async def test_invalid_token_handling():
    """An invalid token fails only when auth is required."""
    with patch("asset_forge.auth.verify_access_token", AsyncMock(return_value=None)):
        with pytest.raises(AuthenticationError, match="Invalid authentication token"):
            await resolve_caller(_settings(auth_required=True), _request("Bearer bad"))
        assert await resolve_caller(_settings(), _request("Bearer bad")) is None
