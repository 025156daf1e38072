"""Helpers shared by tools that submit to the fal queue."""

import logging
from typing import Any

from ..core.lifecycle import WAIT_TOOL_NAME
from ..errors import ProviderError
from ..providers.fal import FalClient

logger = logging.getLogger(__name__)


def drop_empty(parameters: dict[str, Any]) -> dict[str, Any]:
    """Remove None values so providers apply their own defaults."""
    return {k: v for k, v in parameters.items() if v is not None}


async def submit_queued(
    fal: FalClient,
    endpoint: str,
    parameters: dict[str, Any],
    label: str,
) -> dict[str, Any]:
    try:
        result = await fal.queue_submit(endpoint, drop_empty(parameters))
    except ProviderError as exc:
        logger.error("Failed to submit %s request to %s: %s", label, endpoint, exc)
        raise ProviderError(
            f"Failed to submit {label} request: {exc}", endpoint=endpoint, status_code=exc.status_code
        ) from exc
    return result


def queued_handle(raw: dict[str, Any], endpoint: str, label: str, status_tool: str) -> dict[str, Any]:
    request_id = raw["request_id"]
    return {
        "request_id": request_id,
        "model": endpoint,
        "message": (
            f"{label.capitalize()} request submitted successfully. "
            f"Use {WAIT_TOOL_NAME}, then {status_tool} with request_id: {request_id}"
        ),
    }
