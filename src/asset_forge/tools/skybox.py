"""Skybox tools backed by Blockade Labs.

skybox_generate, skybox_status, skybox_result, skybox_styles.
"""

import logging
from typing import Any, Optional

from mcp.types import CallToolResult
from pydantic import BaseModel, Field, ValidationError

from ..core.cache import ReadThroughCache
from ..core.context import ExecutionContext
from ..core.envelope import describe_exception, error_result, json_result
from ..core.job import TOOL_TYPE_SKYBOX_GENERATION, AssetGenerator, JobFamily, JobVariant
from ..core.lifecycle import WAIT_TOOL_NAME, JobHandle, JobResultTool, JobStatusTool, normalize_status
from ..core.registry import ToolRegistry
from ..core.tool import QUERIES_JOB, Tool, ToolCategory
from ..errors import ToolInputError
from ..providers.blockade import BlockadeClient
from ..services import Services
from ._queue import drop_empty

logger = logging.getLogger(__name__)

SKYBOX_ENDPOINT = "skybox"
SKYBOX_CATEGORIES = [ToolCategory.ASSET_GENERATION, ToolCategory.SKYBOX_GENERATION]


class SkyboxArgs(BaseModel):
    prompt: str = Field(min_length=1)
    skybox_style_id: Optional[int] = None
    negative_text: Optional[str] = None
    webhook_url: Optional[str] = None


class SkyboxJob(JobVariant):
    family = JobFamily.SKYBOX
    name = "skybox_generate"
    description = f"""Generates an immersive 360 degree skybox environment from a text prompt.

Use for VR/AR scenes, game worlds and environment backgrounds. Describe the
environment, lighting and atmosphere; pick a style from skybox_styles.

This tool only submits the request and returns a request_id. Call
{WAIT_TOOL_NAME} (10-20 seconds), check skybox_status, then call
skybox_result once the status is COMPLETED."""
    input_schema = {
        "type": "object",
        "properties": {
            "prompt": {"type": "string", "description": "Text prompt describing the skybox world to create"},
            "skybox_style_id": {"type": "integer", "description": "Style id from skybox_styles"},
            "negative_text": {"type": "string", "description": "Things to keep out of the skybox"},
            "webhook_url": {"type": "string", "description": "Optional URL to receive progress webhooks"},
        },
        "required": ["prompt"],
    }
    categories = SKYBOX_CATEGORIES
    tool_type = TOOL_TYPE_SKYBOX_GENERATION

    def __init__(self, blockade: BlockadeClient):
        self.blockade = blockade

    def sanitize_arguments(self, raw: dict[str, Any]) -> dict[str, Any]:
        try:
            args = SkyboxArgs(
                prompt=raw.get("prompt") or "",
                skybox_style_id=raw.get("skybox_style_id"),
                negative_text=raw.get("negative_text"),
                webhook_url=raw.get("webhook_url"),
            )
        except ValidationError as exc:
            raise ToolInputError(describe_exception(exc)) from exc
        return drop_empty(args.model_dump())

    def resolve_endpoint(self, args: dict[str, Any]) -> str:
        return SKYBOX_ENDPOINT

    async def perform_submission(self, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> Any:
        await ctx.report(0.3, message=f'Starting skybox generation: "{args["prompt"][:30]}..."')
        return await self.blockade.create_skybox(args)

    async def shape_result(self, raw: Any, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> dict[str, Any]:
        await ctx.report(0.7, message="Skybox generation initiated successfully")
        request_id = raw["obfuscated_id"]
        return {
            "request_id": request_id,
            "skybox_id": raw.get("id"),
            "status": normalize_status(raw.get("status")).value,
            "queue_position": raw.get("queue_position"),
            "message": (
                "Skybox generation initiated. "
                f"Use {WAIT_TOOL_NAME}, then skybox_status with request_id: {request_id}"
            ),
        }

    def usage_description(self, args: dict[str, Any]) -> str:
        return f'Skybox generation: "{str(args.get("prompt", ""))[:30]}..."'


def skybox_status_fields(record: dict[str, Any]) -> dict[str, Any]:
    fields = {
        "skybox_id": record.get("id"),
        "file_url": record.get("file_url") or None,
        "thumb_url": record.get("thumb_url") or None,
        "depth_map_url": record.get("depth_map_url") or None,
        "error_message": record.get("error_message") or None,
        "updated_at": record.get("updated_at"),
    }
    return {k: v for k, v in fields.items() if v is not None}


class SkyboxStylesTool(Tool):
    name = "skybox_styles"
    description = "Lists the available skybox styles. Pass a style's id as skybox_style_id to skybox_generate."
    categories = SKYBOX_CATEGORIES
    annotations = QUERIES_JOB

    def __init__(self, styles: ReadThroughCache[list[dict[str, Any]]]):
        self.styles = styles

    async def execute(self, arguments: dict[str, Any], ctx: ExecutionContext) -> CallToolResult:
        try:
            await ctx.report(0.3, message="Retrieving skybox styles...")
            styles = await self.styles.get()
            summary = [
                {k: style.get(k) for k in ("id", "name", "max-char", "negative-text-max-char", "image", "sort_order")
                 if k in style}
                for style in styles
            ]
            await ctx.report(1.0, message=f"Retrieved {len(summary)} skybox styles")
            return json_result({"styles": summary, "count": len(summary)})
        except Exception as exc:
            logger.error("Failed to list skybox styles: %s", describe_exception(exc))
            return error_result(describe_exception(exc))


def register_skybox_tools(registry: ToolRegistry, services: Services) -> None:
    blockade = services.blockade

    async def fetch_request(handle: JobHandle) -> Any:
        return await blockade.get_request(handle.request_id)

    registry.register(AssetGenerator(SkyboxJob(blockade), services.meter))
    registry.register(JobStatusTool(
        name="skybox_status",
        family=JobFamily.SKYBOX,
        fetch_status=fetch_request,
        result_tool="skybox_result",
        default_endpoint=SKYBOX_ENDPOINT,
        categories=SKYBOX_CATEGORIES,
        extras=skybox_status_fields,
        model_argument=False,
    ))
    registry.register(JobResultTool(
        name="skybox_result",
        family=JobFamily.SKYBOX,
        fetch_result=fetch_request,
        storage=services.storage,
        default_endpoint=SKYBOX_ENDPOINT,
        categories=SKYBOX_CATEGORIES,
        asset_keys=("file_url",),
        model_argument=False,
    ))
    registry.register(SkyboxStylesTool(services.skybox_styles))
