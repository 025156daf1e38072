"""Prompt registry and the built-in asset generation workflow prompt."""

import logging
from typing import Callable, Literal, Optional

from mcp.types import GetPromptResult, Prompt, PromptArgument, PromptMessage, TextContent
from pydantic import BaseModel, Field, ValidationError

from .core.envelope import describe_exception
from .errors import PromptNotFoundError, ToolInputError

logger = logging.getLogger(__name__)

PromptGenerator = Callable[[BaseModel], list[PromptMessage]]


class PromptDefinition(BaseModel):
    name: str
    description: str
    arguments_model: type[BaseModel]
    generator: PromptGenerator


class PromptRegistry:
    def __init__(self) -> None:
        self._prompts: dict[str, PromptDefinition] = {}

    def register(
        self,
        name: str,
        description: str,
        arguments_model: type[BaseModel],
        generator: PromptGenerator,
    ) -> None:
        if name in self._prompts:
            logger.warning("Prompt '%s' is already registered, replacing", name)
        self._prompts[name] = PromptDefinition(
            name=name, description=description, arguments_model=arguments_model, generator=generator
        )
        logger.info("Prompt '%s' registered", name)

    def get(self, name: str) -> Optional[PromptDefinition]:
        return self._prompts.get(name)

    def list(self) -> list[Prompt]:
        return [
            Prompt(
                name=prompt.name,
                description=prompt.description,
                arguments=[
                    PromptArgument(
                        name=field_name,
                        description=field.description or "",
                        required=field.is_required(),
                    )
                    for field_name, field in prompt.arguments_model.model_fields.items()
                ],
            )
            for prompt in self._prompts.values()
        ]

    def execute(self, name: str, arguments: Optional[dict[str, str]] = None) -> GetPromptResult:
        prompt = self._prompts.get(name)
        if prompt is None:
            raise PromptNotFoundError(f"Prompt '{name}' not found.")
        try:
            validated = prompt.arguments_model.model_validate(arguments or {})
        except ValidationError as exc:
            logger.error("Prompt '%s' argument validation failed: %s", name, exc)
            raise ToolInputError(f"Prompt argument validation failed: {describe_exception(exc)}") from exc
        return GetPromptResult(description=prompt.description, messages=prompt.generator(validated))


class WorkflowArgs(BaseModel):
    family: Literal["image", "audio", "cinematic", "skybox"] = Field(
        description="Job family to generate: image, audio, cinematic or skybox"
    )
    goal: Optional[str] = Field(default=None, description="What the asset is for")


_FAMILY_STEPS = {
    "image": (
        "Call image_asset_generate. It returns the final URL directly; no polling is needed."
    ),
    "audio": (
        "1. Submit with music_generate or sfx_generate and keep the request_id and model.\n"
        "2. Call asset_wait for 5-10 seconds.\n"
        "3. Call audio_status with request_id and model.\n"
        "4. Repeat 2-3 until the status is COMPLETED, then call audio_result."
    ),
    "cinematic": (
        "1. Submit with cinematic_generate (1-3 reference images) and keep the request_id.\n"
        "2. Call asset_wait for about 60 seconds.\n"
        "3. Call cinematic_status with the request_id.\n"
        "4. Repeat 2-3 until the status is COMPLETED, then call cinematic_result."
    ),
    "skybox": (
        "1. Optionally call skybox_styles and choose a style id.\n"
        "2. Submit with skybox_generate and keep the request_id.\n"
        "3. Call asset_wait for 10-20 seconds, then skybox_status.\n"
        "4. Repeat 3 until the status is COMPLETED, then call skybox_result."
    ),
}


def asset_generation_workflow(args: WorkflowArgs) -> list[PromptMessage]:
    text = f"Generate a {args.family} asset"
    if args.goal:
        text += f" for: {args.goal}"
    text += (
        ".\n\nGeneration runs as a background job. Follow these steps exactly:\n"
        f"{_FAMILY_STEPS[args.family]}\n\n"
        "A status of ERROR or ABORTED means the job failed; submit a new request."
    )
    return [PromptMessage(role="user", content=TextContent(type="text", text=text))]


def register_builtin_prompts(registry: PromptRegistry) -> None:
    registry.register(
        "asset-generation-workflow",
        "Step-by-step instructions for generating a game asset with the submit/wait/status/result tools",
        WorkflowArgs,
        asset_generation_workflow,
    )
