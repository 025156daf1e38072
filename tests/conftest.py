"""Shared fixtures."""
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from asset_forge.config import Settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        fal_key="test-fal-key",
        blockade_labs_api_key="test-blockade-key",
        storage_api_url="https://storage.test",
        storage_public_url="https://owned-storage.test",
        storage_verse="test-verse",
        storage_signature="test-signature",
    )


def make_response(status_code=200, json=None, content=None, headers=None, method="GET", url="https://example.test"):
    """A real httpx.Response bound to a request, so raise_for_status works."""
    kwargs = {"headers": headers or {}}
    if json is not None:
        kwargs["json"] = json
    if content is not None:
        kwargs["content"] = content
    return httpx.Response(status_code, request=httpx.Request(method, url), **kwargs)


def mock_async_client(**methods):
    """Patchable stand-in for httpx.AsyncClient used as an async context manager."""
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    for name, value in methods.items():
        setattr(mock_client, name, value)
    mock_client_cls = MagicMock(return_value=mock_client)
    return mock_client_cls, mock_client
