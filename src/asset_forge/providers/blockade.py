"""Blockade Labs skybox API client."""

import logging
from typing import Any, Optional

import httpx

from ..config import Settings
from ..errors import ProviderError

logger = logging.getLogger(__name__)


class BlockadeClient:
    def __init__(self, settings: Settings):
        self.settings = settings

    async def _request(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> Any:
        url = f"{self.settings.blockade_labs_api_url}/{path}"
        headers = {"x-api-key": self.settings.require_blockade_key()}
        try:
            async with httpx.AsyncClient(timeout=self.settings.discovery_timeout_s) as client:
                resp = await client.request(method, url, json=payload, headers=headers)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Blockade Labs request failed [%s] url=%s response=%s payload=%s",
                exc.response.status_code, url, exc.response.text[:500], payload,
            )
            raise ProviderError(
                f"Blockade Labs request failed with status {exc.response.status_code}",
                endpoint=path,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Blockade Labs request failed url=%s: %s", url, exc)
            raise ProviderError(f"Blockade Labs request failed: {exc}", endpoint=path) from exc

    async def create_skybox(self, payload: dict[str, Any]) -> dict[str, Any]:
        result = await self._request("POST", "skybox", payload)
        if not isinstance(result, dict) or not result.get("obfuscated_id"):
            logger.error("Skybox submit returned no obfuscated_id: %r", result)
            raise ProviderError("Provider response did not include an obfuscated_id", endpoint="skybox")
        return result

    async def get_request(self, obfuscated_id: str) -> dict[str, Any]:
        result = await self._request("GET", f"imagine/requests/{obfuscated_id}")
        # The v1 API wraps the record in {"request": {...}}
        if isinstance(result, dict) and isinstance(result.get("request"), dict):
            return result["request"]
        return result

    async def list_styles(self) -> list[dict[str, Any]]:
        return await self._request("GET", "skybox/styles")
