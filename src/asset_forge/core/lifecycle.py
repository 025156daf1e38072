"""Async job lifecycle: status, result and wait tools shared by every family.

A submitted job is identified by a `JobHandle`. Callers poll the status
tool, sleep with `asset_wait` between polls, and fetch the artifact once
with the result tool. Nothing here blocks waiting on a provider.
"""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from mcp.types import CallToolResult
from pydantic import BaseModel, Field, ValidationError

from ..errors import AssetForgeError, StorageUploadError, ToolInputError, TranscodeError
from .context import ExecutionContext
from .envelope import describe_exception, error_result, json_result, text_result
from .extract import DEFAULT_ASSET_KEYS, extract_asset_urls
from .job import JobFamily
from .tool import LOCAL_ONLY, QUERIES_JOB, SUBMITS_JOB, Tool, ToolCategory

if TYPE_CHECKING:
    from ..providers.storage import AssetStorage

logger = logging.getLogger(__name__)

WAIT_TOOL_NAME = "asset_wait"
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 120
DEFAULT_WAIT_SECONDS = 10
TICK_SECONDS = 1.0


class JobState(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    ABORTED = "ABORTED"


# fal reports upper-case queue states, Blockade lower-case words
_PROVIDER_STATES = {
    "pending": JobState.PENDING,
    "in_queue": JobState.PENDING,
    "queued": JobState.PENDING,
    "dispatched": JobState.PENDING,
    "processing": JobState.PROCESSING,
    "in_progress": JobState.PROCESSING,
    "completed": JobState.COMPLETED,
    "complete": JobState.COMPLETED,
    "error": JobState.ERROR,
    "failed": JobState.ERROR,
    "abort": JobState.ABORTED,
    "aborted": JobState.ABORTED,
}


def normalize_status(raw: Any) -> JobState:
    """Map a provider status string onto a JobState.

    Unknown or missing values are reported as PENDING so the caller keeps
    polling instead of failing the workflow.
    """
    if isinstance(raw, str):
        state = _PROVIDER_STATES.get(raw.strip().lower())
        if state is not None:
            return state
    logger.warning("Invalid status received: %r, defaulting to PENDING", raw)
    return JobState.PENDING


class JobHandle(BaseModel):
    request_id: str = Field(min_length=1)
    endpoint: str = ""

    @classmethod
    def from_arguments(cls, arguments: dict[str, Any], default_endpoint: str = "") -> "JobHandle":
        request_id = arguments.get("request_id") or arguments.get("obfuscated_id")
        if not request_id:
            raise ToolInputError("request_id is required")
        try:
            return cls(request_id=str(request_id), endpoint=arguments.get("model") or default_endpoint)
        except ValidationError as exc:
            raise ToolInputError(describe_exception(exc)) from exc


def _handle_schema(id_description: str, default_endpoint: str, model_argument: bool) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "request_id": {"type": "string", "description": id_description},
    }
    if model_argument:
        properties["model"] = {
            "type": "string",
            "description": "The model path the job was submitted to.",
            "default": default_endpoint,
        }
    return {"type": "object", "properties": properties, "required": ["request_id"]}


FetchRecord = Callable[[JobHandle], Awaitable[Any]]
StatusExtras = Callable[[dict[str, Any]], dict[str, Any]]
PostProcess = Callable[[bytes, str], Awaitable[tuple[bytes, str]]]


class JobStatusTool(Tool):
    """One non-blocking status query for a family's jobs."""

    annotations = QUERIES_JOB

    def __init__(
        self,
        name: str,
        family: JobFamily,
        fetch_status: FetchRecord,
        result_tool: str,
        description: str = "",
        default_endpoint: str = "",
        categories: Optional[list[ToolCategory]] = None,
        extras: Optional[StatusExtras] = None,
        model_argument: bool = True,
    ):
        self.name = name
        self.family = family
        self.fetch_status = fetch_status
        self.result_tool = result_tool
        self.default_endpoint = default_endpoint
        self.extras = extras
        self.categories = categories or [ToolCategory.ASSET_GENERATION]
        self.description = description or (
            f"Checks the status of a queued {family.value} generation request. "
            f"When the status is COMPLETED, call {result_tool} with the same request_id; "
            f"otherwise call {WAIT_TOOL_NAME} and check again."
        )
        self.input_schema = _handle_schema(
            f"The request_id returned by the {family.value} generation tool.", default_endpoint, model_argument
        )

    def _next_step(self, state: JobState) -> str:
        if state is JobState.COMPLETED:
            return f"Use {self.result_tool} tool with this request_id to get the final result."
        return f"Use {WAIT_TOOL_NAME} tool to wait before checking again."

    async def execute(self, arguments: dict[str, Any], ctx: ExecutionContext) -> CallToolResult:
        try:
            handle = JobHandle.from_arguments(arguments, self.default_endpoint)
            await ctx.report(0.5, message=f"Checking status of request {handle.request_id}...")

            raw = await self.fetch_status(handle)
            record = raw if isinstance(raw, dict) else {"status": raw}
            state = normalize_status(record.get("status"))

            payload: dict[str, Any] = {
                "request_id": handle.request_id,
                "model": handle.endpoint,
                "status": state.value,
                "is_complete": state is JobState.COMPLETED,
            }
            if record.get("queue_position") is not None:
                payload["queue_position"] = record["queue_position"]
            if self.extras is not None:
                payload.update(self.extras(record))
            payload["details"] = record
            payload["message"] = f"Request status: {state.value}. {self._next_step(state)}"

            await ctx.report(1.0, message=f"Status check completed: {state.value}")
            return json_result(payload)
        except Exception as exc:
            logger.error("Failed to check %s status: %s", self.family.value, describe_exception(exc))
            return error_result(describe_exception(exc))


class JobResultTool(Tool):
    """Fetch a finished job once and move its artifacts into owned storage.

    When `require_owned_url` is false an upload failure falls back to the
    provider URL; otherwise it fails the call.
    """

    annotations = SUBMITS_JOB

    def __init__(
        self,
        name: str,
        family: JobFamily,
        fetch_result: FetchRecord,
        storage: "AssetStorage",
        description: str = "",
        default_endpoint: str = "",
        categories: Optional[list[ToolCategory]] = None,
        asset_keys: tuple[str, ...] = DEFAULT_ASSET_KEYS,
        post_process: Optional[PostProcess] = None,
        require_owned_url: bool = False,
        model_argument: bool = True,
    ):
        self.name = name
        self.family = family
        self.fetch_result = fetch_result
        self.storage = storage
        self.default_endpoint = default_endpoint
        self.asset_keys = asset_keys
        self.post_process = post_process
        self.require_owned_url = require_owned_url
        self.categories = categories or [ToolCategory.ASSET_GENERATION]
        self.description = description or (
            f"Retrieves the final result of a completed {family.value} generation request "
            "and returns a permanent URL for the generated asset."
        )
        self.input_schema = _handle_schema(
            f"The request_id returned by the {family.value} generation tool.", default_endpoint, model_argument
        )

    async def _own(self, url: str, file_stem: str) -> str:
        data, content_type = await self.storage.download(url)
        if self.post_process is not None:
            try:
                data, content_type = await self.post_process(data, content_type)
            except TranscodeError as exc:
                logger.warning("Post-processing failed for %s, uploading original: %s", url, exc)
        file_name = file_stem + self.storage.extension_for(content_type, url)
        return await self.storage.upload(data, content_type, self.family.value, file_name)

    async def execute(self, arguments: dict[str, Any], ctx: ExecutionContext) -> CallToolResult:
        try:
            handle = JobHandle.from_arguments(arguments, self.default_endpoint)
            await ctx.report(0.3, message=f"Retrieving result for request {handle.request_id}...")

            raw = await self.fetch_result(handle)
            provider_urls = extract_asset_urls(raw, self.asset_keys)

            await ctx.report(0.6, message="Uploading generated asset to storage...")
            owned: list[str] = []
            for index, url in enumerate(provider_urls):
                stem = f"{self.family.value}-{handle.request_id}"
                if len(provider_urls) > 1:
                    stem = f"{stem}-{index + 1}"
                try:
                    owned.append(await self._own(url, stem))
                except StorageUploadError as exc:
                    if self.require_owned_url:
                        raise
                    logger.warning("Upload failed, returning provider URL %s: %s", url, exc)
                    owned.append(url)

            await ctx.report(1.0, message=f"{self.family.value} result retrieved successfully")
            return json_result({
                "request_id": handle.request_id,
                "model": handle.endpoint,
                "url": owned[0],
                "urls": owned,
                "original_url": provider_urls[0],
                "message": f"{self.family.value.capitalize()} result retrieved successfully",
            })
        except Exception as exc:
            logger.error("Failed to get %s result: %s", self.family.value, describe_exception(exc))
            return error_result(describe_exception(exc))


class WaitTool(Tool):
    """Hold the call open for a bounded number of seconds, ticking progress."""

    name = WAIT_TOOL_NAME
    description = (
        "Waits for a specified number of seconds (1-120) while reporting progress.\n\n"
        "Use between status checks of any asset generation job:\n"
        "- cinematic: about 60 seconds\n"
        "- skybox: 10-20 seconds\n"
        "- audio: 5-10 seconds"
    )
    input_schema = {
        "type": "object",
        "properties": {
            "seconds": {
                "type": "integer",
                "description": "Number of seconds to wait",
                "default": DEFAULT_WAIT_SECONDS,
                "minimum": MIN_WAIT_SECONDS,
                "maximum": MAX_WAIT_SECONDS,
            },
            "status_message": {
                "type": "string",
                "description": "Message shown with each progress update.",
            },
        },
        "required": ["seconds"],
    }
    categories = [
        ToolCategory.ASSET_GENERATION,
        ToolCategory.IMAGE_GENERATION,
        ToolCategory.CINEMATIC_GENERATION,
        ToolCategory.AUDIO_GENERATION,
        ToolCategory.SKYBOX_GENERATION,
    ]
    annotations = LOCAL_ONLY

    @staticmethod
    def clamp_seconds(value: Any) -> int:
        if value is None:
            return DEFAULT_WAIT_SECONDS
        try:
            seconds = int(value)
        except (TypeError, ValueError) as exc:
            raise ToolInputError(f"seconds must be an integer, got {value!r}") from exc
        return max(MIN_WAIT_SECONDS, min(MAX_WAIT_SECONDS, seconds))

    async def execute(self, arguments: dict[str, Any], ctx: ExecutionContext) -> CallToolResult:
        try:
            total = self.clamp_seconds(arguments.get("seconds"))
            status = arguments.get("status_message") or f"Waiting {total} seconds..."

            await ctx.report(0, total, status)
            for elapsed in range(1, total + 1):
                ctx.raise_if_cancelled()
                await asyncio.sleep(TICK_SECONDS)
                ctx.raise_if_cancelled()
                await ctx.report(elapsed, total, f"{status} ({elapsed}/{total}s)")
            await ctx.report(total, total, "Wait completed.")

            return text_result(f"Waited for {total} seconds. You can now continue.")
        except AssetForgeError as exc:
            logger.info("Wait stopped: %s", exc)
            return error_result(str(exc))
