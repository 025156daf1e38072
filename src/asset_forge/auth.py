"""Caller identity for the HTTP transport.

Bearer tokens are verified against `{AUTH_API_URL}/verify`. When
AUTH_REQUIRED is off, calls without a token proceed untracked.
"""

import logging
from typing import Any, Optional

import httpx

from .config import Settings
from .core.context import CallerIdentity
from .errors import AuthenticationError

logger = logging.getLogger(__name__)


def extract_token(request: Any) -> Optional[str]:
    """Bearer token from the Authorization header or `accessToken` query."""
    if request is None:
        return None
    header = request.headers.get("authorization") or ""
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return request.query_params.get("accessToken") or None


async def verify_access_token(settings: Settings, token: str) -> Optional[CallerIdentity]:
    if not settings.auth_api_url:
        logger.error("AUTH_API_URL is not configured")
        return None
    try:
        async with httpx.AsyncClient(timeout=settings.discovery_timeout_s) as client:
            resp = await client.get(
                f"{settings.auth_api_url}/verify",
                headers={"Authorization": f"Bearer {token}"},
            )
    except httpx.HTTPError as exc:
        logger.error("Error validating token: %s", exc)
        return None
    if not resp.is_success:
        logger.warning("Token validation failed: %s", resp.status_code)
        return None

    data = resp.json()
    user_uid = data.get("userUid") or data.get("uid")
    if not user_uid:
        logger.warning("Token validation response has no user id")
        return None
    return CallerIdentity(user_uid=str(user_uid), email=data.get("email"), access_token=token)


async def resolve_caller(settings: Settings, request: Any) -> Optional[CallerIdentity]:
    """Identity for one call; None means untracked."""
    token = extract_token(request)
    if token is None:
        if settings.auth_required and request is not None:
            raise AuthenticationError("No authentication token provided")
        return None

    caller = await verify_access_token(settings, token)
    if caller is None:
        if settings.auth_required:
            raise AuthenticationError("Invalid authentication token")
        logger.warning("Ignoring unverifiable token, proceeding untracked")
        return None
    logger.debug("Authenticated user: %s", caller.email or caller.user_uid)
    return caller
