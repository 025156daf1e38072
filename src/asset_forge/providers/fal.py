"""fal.ai client: queue submit/status/result, direct runs and model schemas."""

import logging
import re
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config import Settings
from ..errors import ProviderError

logger = logging.getLogger(__name__)

# Some providers reject lower-cased owner segments with a 422
_RECASE = (re.compile("cassetteai", re.IGNORECASE), "CassetteAI")


def recase_endpoint(endpoint: str) -> str:
    pattern, replacement = _RECASE
    return pattern.sub(replacement, endpoint, count=1)


def takes_root_payload(endpoint: str) -> bool:
    """CassetteAI models read parameters at the body root, not under `input`."""
    return "cassetteai" in endpoint.lower()


class FalClient:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Key {self.settings.require_fal_key()}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        endpoint: str,
        payload: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        authenticated: bool = True,
    ) -> Any:
        headers = self._headers() if authenticated else {}
        timeout = timeout or self.settings.generation_timeout_s
        logger.info("Making request to: %s %s", method, url)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.request(method, url, json=payload, headers=headers)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            body = exc.response.text
            logger.error(
                "fal request failed [%s] endpoint=%s url=%s response=%s payload=%s",
                exc.response.status_code, endpoint, url, body[:500], payload,
            )
            raise ProviderError(
                f"Provider request failed with status {exc.response.status_code}: {body[:200]}",
                endpoint=endpoint,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("fal request failed endpoint=%s url=%s: %s", endpoint, url, exc)
            raise ProviderError(f"Provider request failed: {exc}", endpoint=endpoint) from exc

    async def _with_recase(self, endpoint: str, call) -> Any:
        """Run `call(endpoint)`, retrying once with a re-cased endpoint on 422."""
        try:
            return await call(endpoint)
        except ProviderError as exc:
            corrected = recase_endpoint(endpoint)
            if exc.status_code != 422 or corrected == endpoint:
                raise
            logger.warning("Attempting with corrected model path: %s", corrected)
            return await call(corrected)

    async def queue_submit(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        async def submit(path: str) -> Any:
            body = payload if takes_root_payload(path) else {"input": payload}
            return await self._request("POST", f"{self.settings.fal_queue_url}/{path}", path, body)

        result = await self._with_recase(endpoint, submit)
        if not isinstance(result, dict) or not result.get("request_id"):
            logger.error("Queue submit for %s returned no request_id: %r", endpoint, result)
            raise ProviderError("Provider response did not include a request_id", endpoint=endpoint)
        logger.info("Queue submit for %s accepted as %s", endpoint, result["request_id"])
        return result

    async def queue_status(self, endpoint: str, request_id: str) -> dict[str, Any]:
        async def status(path: str) -> Any:
            url = f"{self.settings.fal_queue_url}/{path}/requests/{request_id}/status"
            return await self._request("GET", url, path)

        return await self._with_recase(endpoint, status)

    async def queue_result(self, endpoint: str, request_id: str) -> Any:
        async def result(path: str) -> Any:
            url = f"{self.settings.fal_queue_url}/{path}/requests/{request_id}"
            return await self._request("GET", url, path)

        return await self._with_recase(endpoint, result)

    async def run_direct(self, endpoint: str, payload: dict[str, Any]) -> Any:
        """Synchronous model run; the response carries the output directly."""
        return await self._request("POST", f"{self.settings.fal_direct_url}/{endpoint}", endpoint, payload)

    async def fetch_model_schema(self, model_id: str) -> Any:
        url = f"{self.settings.fal_catalog_url}/openapi/queue/openapi.json?endpoint_id={quote(model_id, safe='')}"
        return await self._request(
            "GET", url, model_id,
            timeout=self.settings.discovery_timeout_s,
            authenticated=False,
        )
