"""Audio tools: music_generate, sfx_generate, audio_status, audio_result."""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..core.context import ExecutionContext
from ..core.envelope import describe_exception
from ..core.job import TOOL_TYPE_AUDIO_GENERATION, AssetGenerator, JobFamily, JobVariant
from ..core.lifecycle import WAIT_TOOL_NAME, JobHandle, JobResultTool, JobStatusTool
from ..core.registry import ToolRegistry
from ..core.tool import ToolCategory
from ..errors import ToolInputError
from ..providers.audio import transcode_audio
from ..providers.fal import FalClient
from ..services import Services
from ._queue import queued_handle, submit_queued

logger = logging.getLogger(__name__)

MUSIC_ENDPOINT = "CassetteAI/music-generator"
SFX_ENDPOINT = "CassetteAI/sound-effects-generator"
DEFAULT_MUSIC_DURATION = 30
DEFAULT_SFX_DURATION = 5

AUDIO_CATEGORIES = [ToolCategory.ASSET_GENERATION, ToolCategory.AUDIO_GENERATION]

_WORKFLOW = f"""
This tool only submits the request and returns a request_id. Then:
  1. Call {WAIT_TOOL_NAME} (5-10 seconds)
  2. Call audio_status with the request_id
  3. When the status is COMPLETED, call audio_result for the final URL
  4. Otherwise wait again and re-check

Prompts must be written in English. Output is delivered as OGG."""


class MusicArgs(BaseModel):
    prompt: str = Field(min_length=1)
    duration: int = Field(default=DEFAULT_MUSIC_DURATION, ge=10, le=180)


class _QueuedAudioJob(JobVariant):
    family = JobFamily.AUDIO
    categories = AUDIO_CATEGORIES
    tool_type = TOOL_TYPE_AUDIO_GENERATION
    endpoint: str
    label: str

    def __init__(self, fal: FalClient):
        self.fal = fal

    def resolve_endpoint(self, args: dict[str, Any]) -> str:
        return self.endpoint

    async def perform_submission(self, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> Any:
        await ctx.report(0.3, message=f'Submitting {self.label} generation request: "{args["prompt"][:30]}..."')
        return await submit_queued(self.fal, endpoint, args, f"{self.label} generation")

    async def shape_result(self, raw: Any, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> dict[str, Any]:
        await ctx.report(0.8, message=f"{self.label.capitalize()} generation request submitted to queue")
        return queued_handle(raw, endpoint, f"{self.label} generation", "audio_status")

    def usage_description(self, args: dict[str, Any]) -> str:
        return f'{self.label.capitalize()} generation: "{str(args.get("prompt", ""))[:30]}..."'


class MusicJob(_QueuedAudioJob):
    name = "music_generate"
    endpoint = MUSIC_ENDPOINT
    label = "music"
    description = "Generates music tracks (10-180 seconds) from a text prompt.\n" + _WORKFLOW + \
        "\n\nFor sound effects use sfx_generate instead."
    input_schema = {
        "type": "object",
        "properties": {
            "prompt": {"type": "string", "description": "Description of the music to generate (English)."},
            "duration": {
                "type": "integer",
                "description": "Duration of the track in seconds (10-180)",
                "default": DEFAULT_MUSIC_DURATION,
                "minimum": 10,
                "maximum": 180,
            },
        },
        "required": ["prompt"],
    }

    def sanitize_arguments(self, raw: dict[str, Any]) -> dict[str, Any]:
        try:
            args = MusicArgs(
                prompt=raw.get("prompt") or "",
                duration=DEFAULT_MUSIC_DURATION if raw.get("duration") is None else raw["duration"],
            )
        except ValidationError as exc:
            raise ToolInputError(describe_exception(exc)) from exc
        return args.model_dump()


class SfxJob(_QueuedAudioJob):
    name = "sfx_generate"
    endpoint = SFX_ENDPOINT
    label = "sound effect"
    description = "Generates sound effects (1-30 seconds) from a text prompt.\n" + _WORKFLOW + \
        "\n\nFor music tracks use music_generate instead."
    input_schema = {
        "type": "object",
        "properties": {
            "prompt": {"type": "string", "description": "Description of the sound effect to generate (English)."},
            "duration": {
                "type": "integer",
                "description": "Duration of the sound effect in seconds (1-30, integer values only)",
                "default": DEFAULT_SFX_DURATION,
                "minimum": 1,
                "maximum": 30,
            },
        },
        "required": ["prompt"],
    }

    def sanitize_arguments(self, raw: dict[str, Any]) -> dict[str, Any]:
        prompt = raw.get("prompt")
        if not prompt or not isinstance(prompt, str):
            raise ToolInputError("prompt is required")
        duration = raw.get("duration")
        if duration is None:
            duration = DEFAULT_SFX_DURATION
        if isinstance(duration, float) and duration.is_integer():
            duration = int(duration)
        if isinstance(duration, bool) or not isinstance(duration, int) or not 1 <= duration <= 30:
            raise ToolInputError("Duration must be an integer between 1 and 30 seconds.")
        return {"prompt": prompt, "duration": duration}


def register_audio_tools(registry: ToolRegistry, services: Services) -> None:
    fal = services.fal

    async def fetch_status(handle: JobHandle) -> Any:
        return await fal.queue_status(handle.endpoint, handle.request_id)

    async def fetch_result(handle: JobHandle) -> Any:
        return await fal.queue_result(handle.endpoint, handle.request_id)

    registry.register(AssetGenerator(MusicJob(fal), services.meter))
    registry.register(AssetGenerator(SfxJob(fal), services.meter))
    registry.register(JobStatusTool(
        name="audio_status",
        family=JobFamily.AUDIO,
        fetch_status=fetch_status,
        result_tool="audio_result",
        default_endpoint=MUSIC_ENDPOINT,
        categories=AUDIO_CATEGORIES,
        description=(
            "Checks the status of a queued music or sound effect request. Allow 5-10 seconds "
            f"between checks ({WAIT_TOOL_NAME}). When the status is COMPLETED, call audio_result "
            "with the same request_id and model."
        ),
    ))
    registry.register(JobResultTool(
        name="audio_result",
        family=JobFamily.AUDIO,
        fetch_result=fetch_result,
        storage=services.storage,
        default_endpoint=MUSIC_ENDPOINT,
        categories=AUDIO_CATEGORIES,
        asset_keys=("audio_file", "audio", "file"),
        post_process=transcode_audio,
        description=(
            "Retrieves the final audio of a completed music or sound effect request. WAV output "
            "is converted to OGG and stored permanently; if that fails the provider URL is returned."
        ),
    ))
