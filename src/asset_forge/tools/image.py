"""2D image asset generation: image_asset_generate."""

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from ..core.context import ExecutionContext
from ..core.envelope import describe_exception
from ..core.job import TOOL_TYPE_IMAGE_GENERATION_2D, AssetGenerator, JobFamily, JobVariant
from ..core.registry import ToolRegistry
from ..core.tool import ToolCategory
from ..errors import ProviderError, ToolInputError
from ..providers.fal import FalClient
from ..providers.storage import AssetStorage
from ..services import Services

logger = logging.getLogger(__name__)

IMAGE_ENDPOINT = "fal-ai/recraft-v3"
BACKGROUND_REMOVAL_ENDPOINT = "fal-ai/bria/background/remove"
CHROMA_KEY_MAGENTA = "#FF00FF"

RECRAFT_STYLES = {
    "realistic": "realistic_image",
    "pixel art": "digital_illustration/pixel_art",
    "vector": "vector_illustration",
    "cartoon": "digital_illustration/hand_drawn",
    "noir": "digital_illustration/noir",
}

STYLE_HINTS = {
    "pixel art": "pixel art, pixel perfect, pixelated, clean pixel edges, limited color palette",
    "cartoon": "cartoon style, vibrant colors, clean outlines, flat design",
    "vector": "vector art, clean lines, flat colors, scalable graphics",
    "realistic": "realistic, detailed textures, natural lighting",
    "noir": "film noir, high contrast, monochrome, dramatic shadows",
}

GAME_TYPE_HINTS = {
    "platformer": "side view, platformer game, 2D platformer",
    "shooter": "top-down view, shooter game",
    "rpg": "RPG game, role-playing game",
    "puzzle": "puzzle game, bright colors",
}


class AssetTypeConfig(BaseModel):
    width: int
    height: int
    style: str
    requires_transparency: bool
    prompt_hint: str


ASSET_TYPES: dict[str, AssetTypeConfig] = {
    "character": AssetTypeConfig(width=512, height=512, style="pixel art", requires_transparency=True,
                                 prompt_hint="single character, full body, centered, game sprite"),
    "item": AssetTypeConfig(width=256, height=256, style="pixel art", requires_transparency=True,
                            prompt_hint="single game item, centered, collectible object"),
    "background": AssetTypeConfig(width=1024, height=1024, style="pixel art", requires_transparency=False,
                                  prompt_hint="game background, wide scene, environment"),
    "tilemap": AssetTypeConfig(width=512, height=512, style="pixel art", requires_transparency=False,
                               prompt_hint="game tile, seamless tile, tileset, tilemap element"),
    "ui_icon": AssetTypeConfig(width=256, height=256, style="vector", requires_transparency=True,
                               prompt_hint="game icon, skill icon, menu icon, small icon"),
    "ui_button": AssetTypeConfig(width=512, height=128, style="vector", requires_transparency=True,
                                 prompt_hint="game interface button, UI element, menu item"),
    "ui_frame": AssetTypeConfig(width=512, height=512, style="vector", requires_transparency=True,
                                prompt_hint="game UI frame, window panel, border"),
    "fx_particle": AssetTypeConfig(width=1024, height=1024, style="cartoon", requires_transparency=True,
                                   prompt_hint="particle effect, magic effect, glowing particles"),
    "fx_flash": AssetTypeConfig(width=1024, height=1024, style="cartoon", requires_transparency=True,
                                prompt_hint="flash effect, impact effect, bright highlight"),
}
DEFAULT_ASSET_TYPE = "character"


class ImageArgs(BaseModel):
    description: str = Field(min_length=1)
    style: str
    asset_type: str
    width: int = Field(gt=0, le=2048)
    height: int = Field(gt=0, le=2048)
    game_type: Optional[str] = None
    additional_prompt: Optional[str] = None


def normalize_style(style: Optional[str], fallback: str) -> str:
    if not style:
        return fallback
    normalized = style.lower().strip()
    if normalized not in RECRAFT_STYLES:
        logger.warning("Unsupported style: %s. Defaulting to '%s'.", style, fallback)
        return fallback
    return normalized


def normalize_asset_type(asset_type: Optional[str]) -> str:
    if not asset_type:
        return DEFAULT_ASSET_TYPE
    normalized = asset_type.lower().strip()
    if normalized not in ASSET_TYPES:
        logger.warning("Unsupported asset type: %s. Defaulting to '%s'.", asset_type, DEFAULT_ASSET_TYPE)
        return DEFAULT_ASSET_TYPE
    return normalized


def build_image_prompt(args: ImageArgs) -> str:
    prompt = f"2D {args.style} style {args.asset_type.replace('_', ' ')} for a game: {args.description}"
    prompt += f", {STYLE_HINTS[args.style]}, {ASSET_TYPES[args.asset_type].prompt_hint}"
    if ASSET_TYPES[args.asset_type].requires_transparency:
        prompt += f", isolated on a solid magenta ({CHROMA_KEY_MAGENTA}) background"
    if args.game_type:
        game_type = args.game_type.lower()
        for key, hint in GAME_TYPE_HINTS.items():
            if key in game_type:
                prompt += f", {hint}"
                break
        prompt += f", {args.game_type} game style"
    if args.additional_prompt:
        prompt += f", {args.additional_prompt}"
    return prompt


class ImageAssetJob(JobVariant):
    family = JobFamily.IMAGE
    name = "image_asset_generate"
    description = """Generates 2D image assets for game development.

Supported asset types: character, item, background, tilemap, ui_icon,
ui_button, ui_frame, fx_particle, fx_flash. Styles: pixel art, cartoon,
vector, realistic, noir.

Transparent asset types (characters, items, UI, effects) have their
background removed automatically. The result is a permanent URL.

Tips: describe pose, materials, colors and lighting; mention how the
asset is used in the game."""
    input_schema = {
        "type": "object",
        "properties": {
            "description": {"type": "string", "description": "Detailed description of the asset to generate."},
            "style": {
                "type": "string",
                "enum": list(RECRAFT_STYLES),
                "description": "Asset style. Defaults per asset type.",
            },
            "assetType": {
                "type": "string",
                "enum": list(ASSET_TYPES),
                "description": "Asset type.",
                "default": DEFAULT_ASSET_TYPE,
            },
            "width": {"type": "integer", "description": "Asset width in pixels"},
            "height": {"type": "integer", "description": "Asset height in pixels"},
            "gameType": {"type": "string", "description": "Game genre, e.g. platformer, shooter, rpg, puzzle."},
            "additionalPrompt": {"type": "string", "description": "Extra prompt text to fine-tune the result."},
        },
        "required": ["description"],
    }
    categories = [ToolCategory.ASSET_GENERATION, ToolCategory.IMAGE_GENERATION]
    tool_type = TOOL_TYPE_IMAGE_GENERATION_2D

    def __init__(self, fal: FalClient, storage: AssetStorage):
        self.fal = fal
        self.storage = storage

    def sanitize_arguments(self, raw: dict[str, Any]) -> dict[str, Any]:
        asset_type = normalize_asset_type(raw.get("assetType"))
        config = ASSET_TYPES[asset_type]
        try:
            args = ImageArgs(
                description=raw.get("description") or "",
                style=normalize_style(raw.get("style"), config.style),
                asset_type=asset_type,
                width=config.width if raw.get("width") is None else raw["width"],
                height=config.height if raw.get("height") is None else raw["height"],
                game_type=raw.get("gameType"),
                additional_prompt=raw.get("additionalPrompt"),
            )
        except ValidationError as exc:
            raise ToolInputError(describe_exception(exc)) from exc
        return args.model_dump()

    def resolve_endpoint(self, args: dict[str, Any]) -> str:
        return IMAGE_ENDPOINT

    async def perform_submission(self, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> Any:
        parsed = ImageArgs(**args)
        await ctx.report(
            0.3,
            message=f"Generating {parsed.style} style {parsed.asset_type}... ({parsed.width}x{parsed.height})",
        )
        return await self.fal.run_direct(endpoint, {
            "prompt": build_image_prompt(parsed),
            "image_size": {"width": parsed.width, "height": parsed.height},
            "style": RECRAFT_STYLES[parsed.style],
        })

    async def remove_background(self, image_url: str) -> str:
        result = await self.fal.run_direct(BACKGROUND_REMOVAL_ENDPOINT, {
            "image_url": image_url,
            "format": "png",
            "remove_color": CHROMA_KEY_MAGENTA,
        })
        image = result.get("image") if isinstance(result, dict) else None
        url = image.get("url") if isinstance(image, dict) else None
        if not url:
            raise ProviderError("Background removal failed: No image URL in response",
                                endpoint=BACKGROUND_REMOVAL_ENDPOINT)
        return url

    async def shape_result(self, raw: Any, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> dict[str, Any]:
        images = raw.get("images") if isinstance(raw, dict) else None
        image_url = images[0].get("url") if images and isinstance(images[0], dict) else None
        if not image_url:
            raise ProviderError("Image generation failed: No image URL in response", endpoint=endpoint)

        asset_type = args["asset_type"]
        if ASSET_TYPES[asset_type].requires_transparency:
            await ctx.report(0.6, message="Removing background...")
            image_url = await self.remove_background(image_url)

        await ctx.report(0.8, message="Uploading processed image...")
        # Image assets are only ever returned from owned storage
        owned_url = await self.storage.upload_asset(image_url, asset_type)

        await ctx.report(0.9, message="Image asset ready")
        return {
            "url": owned_url,
            "original_url": image_url,
            "message": "Asset successfully generated and processed",
            "assetType": asset_type,
            "style": args["style"],
            "dimensions": {"width": args["width"], "height": args["height"]},
        }

    def usage_description(self, args: dict[str, Any]) -> str:
        style = args.get("style") or "pixel art"
        asset_type = args.get("assetType") or DEFAULT_ASSET_TYPE
        return f'2D {style} {asset_type} image generation: "{str(args.get("description", ""))[:30]}..."'


def register_image_tools(registry: ToolRegistry, services: Services) -> None:
    registry.register(AssetGenerator(ImageAssetJob(services.fal, services.storage), services.meter))
