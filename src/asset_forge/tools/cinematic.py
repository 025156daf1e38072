"""Cinematic (video) tools: cinematic_generate, cinematic_status, cinematic_result."""

import logging
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from ..core.context import ExecutionContext
from ..core.envelope import describe_exception
from ..core.job import TOOL_TYPE_VIDEO_GENERATION, AssetGenerator, JobFamily, JobVariant
from ..core.lifecycle import WAIT_TOOL_NAME, JobHandle, JobResultTool, JobStatusTool
from ..core.registry import ToolRegistry
from ..core.tool import ToolCategory
from ..errors import ToolInputError
from ..providers.fal import FalClient
from ..services import Services
from ._queue import queued_handle, submit_queued

logger = logging.getLogger(__name__)

CINEMATIC_ENDPOINT = "fal-ai/vidu/reference-to-video"
MAX_REFERENCE_IMAGES = 3
MAX_PROMPT_LENGTH = 1500
CINEMATIC_SUFFIX = "photorealistic, high quality, detailed, 4k, cinematic lighting"

CINEMATIC_CATEGORIES = [ToolCategory.ASSET_GENERATION, ToolCategory.CINEMATIC_GENERATION]


class CinematicArgs(BaseModel):
    prompt: str = Field(min_length=1, max_length=MAX_PROMPT_LENGTH)
    reference_image_urls: list[str] = Field(min_length=1, max_length=MAX_REFERENCE_IMAGES)
    aspect_ratio: Literal["16:9", "9:16", "1:1"] = "16:9"
    movement_amplitude: Literal["auto", "small", "medium", "large"] = "auto"
    seed: Optional[int] = None


def enhance_cinematic_prompt(prompt: str) -> str:
    return f"{prompt}, {CINEMATIC_SUFFIX}"


class CinematicJob(JobVariant):
    family = JobFamily.CINEMATIC
    name = "cinematic_generate"
    description = f"""Generates a game cinematic (video) from a prompt and reference images.

Use for story scenes, trailers, cutscenes and promotional clips. Reference
images keep characters and style consistent with your game; at most
{MAX_REFERENCE_IMAGES} are used.

This tool only submits the request. Then call {WAIT_TOOL_NAME} (about 60
seconds), check cinematic_status, and call cinematic_result once the status
is COMPLETED."""
    input_schema = {
        "type": "object",
        "properties": {
            "prompt": {
                "type": "string",
                "description": f"Text prompt for video generation, max {MAX_PROMPT_LENGTH} characters",
                "maxLength": MAX_PROMPT_LENGTH,
            },
            "reference_image_urls": {
                "type": "array",
                "items": {"type": "string"},
                "description": f"Reference image URLs for consistent subjects. Maximum {MAX_REFERENCE_IMAGES} are used.",
            },
            "aspect_ratio": {
                "type": "string",
                "enum": ["16:9", "9:16", "1:1"],
                "description": "The aspect ratio of the output video",
                "default": "16:9",
            },
            "movement_amplitude": {
                "type": "string",
                "enum": ["auto", "small", "medium", "large"],
                "description": "The movement amplitude of objects in the frame",
                "default": "auto",
            },
            "seed": {"type": "integer", "description": "Random seed for generation"},
        },
        "required": ["prompt", "reference_image_urls"],
    }
    categories = CINEMATIC_CATEGORIES
    tool_type = TOOL_TYPE_VIDEO_GENERATION

    def __init__(self, fal: FalClient):
        self.fal = fal

    def sanitize_arguments(self, raw: dict[str, Any]) -> dict[str, Any]:
        references = raw.get("reference_image_urls") or []
        if isinstance(references, str):
            references = [references]
        if len(references) > MAX_REFERENCE_IMAGES:
            logger.warning(
                "Too many reference images provided (%d). Maximum allowed is %d. Using only the first %d images.",
                len(references), MAX_REFERENCE_IMAGES, MAX_REFERENCE_IMAGES,
            )
            references = references[:MAX_REFERENCE_IMAGES]
        try:
            args = CinematicArgs(
                prompt=raw.get("prompt") or "",
                reference_image_urls=references,
                aspect_ratio=raw.get("aspect_ratio") or "16:9",
                movement_amplitude=raw.get("movement_amplitude") or "auto",
                seed=raw.get("seed"),
            )
        except ValidationError as exc:
            raise ToolInputError(describe_exception(exc)) from exc
        return args.model_dump()

    def resolve_endpoint(self, args: dict[str, Any]) -> str:
        return CINEMATIC_ENDPOINT

    async def perform_submission(self, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> Any:
        await ctx.report(
            0.3,
            message=(
                f"Submitting cinematic with {len(args['reference_image_urls'])} reference image(s)... "
                f"({args['aspect_ratio']}, {args['movement_amplitude']} movement)"
            ),
        )
        parameters = dict(args, prompt=enhance_cinematic_prompt(args["prompt"]))
        return await submit_queued(self.fal, endpoint, parameters, "cinematic generation")

    async def shape_result(self, raw: Any, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> dict[str, Any]:
        await ctx.report(0.9, message="Cinematic generation request submitted to queue")
        return queued_handle(raw, endpoint, "cinematic generation", "cinematic_status")

    def usage_description(self, args: dict[str, Any]) -> str:
        return f'Cinematic generation: "{str(args.get("prompt", ""))[:30]}..."'


def register_cinematic_tools(registry: ToolRegistry, services: Services) -> None:
    fal = services.fal

    async def fetch_status(handle: JobHandle) -> Any:
        return await fal.queue_status(handle.endpoint, handle.request_id)

    async def fetch_result(handle: JobHandle) -> Any:
        return await fal.queue_result(handle.endpoint, handle.request_id)

    registry.register(AssetGenerator(CinematicJob(fal), services.meter))
    registry.register(JobStatusTool(
        name="cinematic_status",
        family=JobFamily.CINEMATIC,
        fetch_status=fetch_status,
        result_tool="cinematic_result",
        default_endpoint=CINEMATIC_ENDPOINT,
        categories=CINEMATIC_CATEGORIES,
    ))
    registry.register(JobResultTool(
        name="cinematic_result",
        family=JobFamily.CINEMATIC,
        fetch_result=fetch_result,
        storage=services.storage,
        default_endpoint=CINEMATIC_ENDPOINT,
        categories=CINEMATIC_CATEGORIES,
    ))
