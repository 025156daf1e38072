"""Job adapter: the shared skeleton of every "submit a slow external job" tool.

Each job family supplies a `JobVariant` implementing four hooks; a single
`AssetGenerator` tool drives any variant through the same sequence:

    starting -> meter (identified callers only) -> sanitize -> resolve
    endpoint -> submit -> shape -> complete

Failures at any step come back as an error envelope.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from mcp.types import CallToolResult, ToolAnnotations

from ..errors import MeteringError
from .context import CallerIdentity, ExecutionContext
from .envelope import describe_exception, error_result, json_result
from .tool import SUBMITS_JOB, Tool, ToolCategory

logger = logging.getLogger(__name__)


class JobFamily(str, Enum):
    IMAGE = "image"
    AUDIO = "audio"
    CINEMATIC = "cinematic"
    SKYBOX = "skybox"


# Credit tool types understood by the metering service
TOOL_TYPE_IMAGE_GENERATION_2D = "imageGeneration2D"
TOOL_TYPE_VIDEO_GENERATION = "videoGeneration"
TOOL_TYPE_AUDIO_GENERATION = "audioGeneration"
TOOL_TYPE_SKYBOX_GENERATION = "skyboxGeneration"

Meter = Callable[[CallerIdentity, str, int, str], Awaitable[None]]


class JobVariant(ABC):
    """Provider-specific half of a generation tool."""

    family: JobFamily
    name: str
    description: str
    input_schema: dict[str, Any]
    categories: list[ToolCategory] = [ToolCategory.ASSET_GENERATION]
    annotations: Optional[ToolAnnotations] = SUBMITS_JOB
    tool_type: str

    @abstractmethod
    def sanitize_arguments(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Validate and apply defaults. Raise ToolInputError on bad input."""

    @abstractmethod
    def resolve_endpoint(self, args: dict[str, Any]) -> str:
        ...

    @abstractmethod
    async def perform_submission(self, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> Any:
        ...

    @abstractmethod
    async def shape_result(self, raw: Any, args: dict[str, Any], endpoint: str, ctx: ExecutionContext) -> dict[str, Any]:
        ...

    def usage_count(self, args: dict[str, Any]) -> int:
        return 1

    def usage_description(self, args: dict[str, Any]) -> str:
        return f"{self.name} request"


class AssetGenerator(Tool):
    """Tool wrapper that runs a `JobVariant` through the submit sequence."""

    def __init__(self, variant: JobVariant, meter: Optional[Meter] = None):
        self.variant = variant
        self.meter = meter
        self.name = variant.name
        self.description = variant.description
        self.input_schema = variant.input_schema
        self.categories = list(variant.categories)
        self.annotations = variant.annotations

    @property
    def job_family(self) -> JobFamily:
        return self.variant.family

    async def _consume_credits(self, arguments: dict[str, Any], ctx: ExecutionContext) -> None:
        caller = ctx.caller
        if caller is None:
            logger.debug("No caller identity for %s, skipping metering", self.name)
            return
        variant = self.variant
        try:
            if self.meter is None:
                raise MeteringError("metering is not configured")
            await self.meter(
                caller,
                variant.tool_type,
                variant.usage_count(arguments),
                variant.usage_description(arguments),
            )
        except Exception as exc:
            logger.error("Failed to consume credits for %s (user %s): %s", self.name, caller.user_uid, exc)
            raise MeteringError(f"Credit consumption failed: {describe_exception(exc)}") from exc
        await ctx.report(0.15, message=f"Credits consumed for {self.name}")

    async def execute(self, arguments: dict[str, Any], ctx: ExecutionContext) -> CallToolResult:
        variant = self.variant
        try:
            await ctx.report(0.1, message="Starting asset generation")
            await self._consume_credits(arguments, ctx)

            args = variant.sanitize_arguments(arguments)
            endpoint = variant.resolve_endpoint(args)
            raw = await variant.perform_submission(args, endpoint, ctx)
            shaped = await variant.shape_result(raw, args, endpoint, ctx)

            await ctx.report(1.0, message=f"{self.name} generation completed successfully")
            return json_result(shaped)
        except Exception as exc:
            logger.error("%s failed: %s", self.name, describe_exception(exc))
            return error_result(describe_exception(exc))
