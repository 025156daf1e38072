"""Shared tools: asset_wait, asset_generate_models_list, asset_generate_model_schema."""

import logging
from typing import Any

from mcp.types import CallToolResult

from ..core.context import ExecutionContext
from ..core.envelope import describe_exception, error_result, json_result
from ..core.lifecycle import WaitTool
from ..core.registry import ToolRegistry
from ..core.tool import QUERIES_JOB, Tool, ToolCategory
from ..errors import ToolInputError
from ..providers.fal import FalClient
from ..services import Services

logger = logging.getLogger(__name__)

MODEL_CATALOG: dict[str, list[dict[str, Any]]] = {
    "static": [
        {
            "id": "fal-ai/recraft-v3",
            "name": "Recraft V3",
            "description": "2D image generation for sprites, items, backgrounds, UI and effects.",
            "assetTypes": ["static"],
            "tool": "image_asset_generate",
        },
        {
            "id": "fal-ai/bria/background/remove",
            "name": "Bria Background Removal",
            "description": "Removes backgrounds from generated sprites to make them transparent.",
            "assetTypes": ["static"],
            "tool": "image_asset_generate",
        },
    ],
    "cinematic": [
        {
            "id": "fal-ai/vidu/reference-to-video",
            "name": "Vidu Reference to Video",
            "description": "Creates videos from reference images combined with a prompt.",
            "assetTypes": ["cinematic"],
            "tool": "cinematic_generate",
        },
    ],
    "audio": [
        {
            "id": "CassetteAI/music-generator",
            "name": "CassetteAI Music Generator",
            "description": "Music tracks from 10 seconds to 3 minutes, 44.1 kHz stereo.",
            "assetTypes": ["audio"],
            "tool": "music_generate",
        },
        {
            "id": "CassetteAI/sound-effects-generator",
            "name": "CassetteAI Sound Effects Generator",
            "description": "Sound effects up to 30 seconds.",
            "assetTypes": ["audio"],
            "tool": "sfx_generate",
        },
    ],
}


def supported_models(asset_type: str) -> list[dict[str, Any]]:
    asset_type = (asset_type or "all").lower()
    if asset_type == "all":
        return [model for models in MODEL_CATALOG.values() for model in models]
    if asset_type not in MODEL_CATALOG:
        raise ToolInputError(
            f"Unknown assetType '{asset_type}'. Use one of: {', '.join([*MODEL_CATALOG, 'all'])}"
        )
    return list(MODEL_CATALOG[asset_type])


class ModelsListTool(Tool):
    name = "asset_generate_models_list"
    description = (
        "Lists the AI models used for game asset generation (static images, cinematics, audio) "
        "and which tool drives each one."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "assetType": {
                "type": "string",
                "enum": ["static", "cinematic", "audio", "all"],
                "description": "Type of assets to list models for",
                "default": "all",
            },
        },
    }
    categories = [ToolCategory.ASSET_GENERATION, ToolCategory.UTILITY]
    annotations = QUERIES_JOB

    async def execute(self, arguments: dict[str, Any], ctx: ExecutionContext) -> CallToolResult:
        try:
            asset_type = arguments.get("assetType") or "all"
            await ctx.report(0.3, message=f"Retrieving {asset_type} asset generation models...")
            models = supported_models(asset_type)
            await ctx.report(1.0, message=f"Retrieved {len(models)} {asset_type} asset generation models")
            return json_result(models)
        except Exception as exc:
            logger.error("Failed to list asset generation models: %s", exc)
            return error_result(describe_exception(exc))


class ModelSchemaTool(Tool):
    name = "asset_generate_model_schema"
    description = (
        "Retrieves the OpenAPI schema for an asset generation model, to understand its exact "
        "parameters before generating."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "model_id": {
                "type": "string",
                "description": 'Model id, e.g. "fal-ai/vidu/reference-to-video"',
            },
        },
        "required": ["model_id"],
    }
    categories = [ToolCategory.ASSET_GENERATION, ToolCategory.UTILITY]
    annotations = QUERIES_JOB

    def __init__(self, fal: FalClient):
        self.fal = fal

    async def execute(self, arguments: dict[str, Any], ctx: ExecutionContext) -> CallToolResult:
        try:
            model_id = arguments.get("model_id")
            if not model_id or not isinstance(model_id, str):
                raise ToolInputError("model_id is required")
            await ctx.report(0.3, message=f"Fetching schema for model: {model_id}")
            schema = await self.fal.fetch_model_schema(model_id)
            await ctx.report(1.0, message=f"Schema fetched successfully for model: {model_id}")
            return json_result(schema)
        except Exception as exc:
            logger.error("Failed to get model schema: %s", exc)
            return error_result(describe_exception(exc))


def register_catalog_tools(registry: ToolRegistry, services: Services) -> None:
    registry.register(WaitTool())
    registry.register(ModelsListTool())
    registry.register(ModelSchemaTool(services.fal))
