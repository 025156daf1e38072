"""Usage credit consumption against the metering service."""

import logging

import httpx

from ..config import Settings
from ..core.context import CallerIdentity
from ..errors import MeteringError

logger = logging.getLogger(__name__)


class CreditMeter:
    """Charges an identified caller before a paid job is submitted.

    Any failure raises `MeteringError`; the generator turns that into a
    failed call so paid work never runs unmetered.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    async def __call__(self, caller: CallerIdentity, tool_type: str, usage_count: int, description: str) -> None:
        await self.consume_credits(caller, tool_type, usage_count, description)

    async def consume_credits(self, caller: CallerIdentity, tool_type: str, usage_count: int, description: str) -> None:
        base_url = self.settings.metering_api_url
        if not base_url:
            raise MeteringError("METERING_API_URL is not configured")
        token = caller.access_token or self.settings.metering_api_key
        if not token:
            raise MeteringError("No credentials available for the metering service")

        body = {
            "userUid": caller.user_uid,
            "toolType": tool_type,
            "usageCount": usage_count,
            "description": description,
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.discovery_timeout_s) as client:
                resp = await client.post(
                    f"{base_url}/credits/consume",
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise MeteringError(
                f"Metering service returned {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise MeteringError(f"Metering service unreachable: {exc}") from exc

        logger.info("Consumed %d %s credit(s) for user %s", usage_count, tool_type, caller.user_uid)
