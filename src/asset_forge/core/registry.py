"""Tool registry and the dispatcher that turns one call into one result."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from mcp.types import CallToolResult
from pydantic import BaseModel

from ..errors import RegistryFrozenError
from .context import CallerIdentity, ExecutionContext, ProgressEvent
from .envelope import describe_exception, error_result
from .tool import Tool, ToolDescriptor

logger = logging.getLogger(__name__)

ProgressToken = Union[str, int]
Notifier = Callable[[ProgressToken, ProgressEvent], Awaitable[None]]


class InvocationRequest(BaseModel):
    name: str
    arguments: Optional[dict[str, Any]] = None
    progress_token: Optional[ProgressToken] = None


class ToolRegistry:
    """Name-keyed map of tools.

    Written only while tools are being registered at startup; `freeze()`
    is called before the server accepts calls and later writes raise.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._frozen = False

    def register(self, tool: Tool) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register '{tool.name}': registry is frozen")
        if tool.name in self._tools:
            logger.warning("Tool '%s' is already registered, replacing", tool.name)
        self._tools[tool.name] = tool
        logger.info("Tool '%s' registered", tool.name)

    def freeze(self) -> None:
        self._frozen = True

    def list(self) -> list[ToolDescriptor]:
        return [tool.descriptor() for tool in self._tools.values()]

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def execute(
        self,
        request: InvocationRequest,
        cancel_event: Optional[asyncio.Event] = None,
        notifier: Optional[Notifier] = None,
        caller: Optional[CallerIdentity] = None,
    ) -> CallToolResult:
        """Resolve, run and normalize a single tool invocation."""
        name = request.name
        tool = self._tools.get(name)
        if tool is None:
            logger.error("Tool '%s' not found", name)
            return error_result(f"Tool '{name}' not found")

        arguments = request.arguments or {}
        ctx = ExecutionContext(
            cancel_event=cancel_event or asyncio.Event(),
            caller=caller,
        )
        token = request.progress_token
        if token is not None and notifier is not None:
            async def forward(event: ProgressEvent) -> None:
                logger.debug("Progress for %s (token %s): %s", name, token, event)
                await notifier(token, event)

            ctx.progress_callback = forward

        try:
            result = await tool.execute(arguments, ctx)
        except Exception as exc:
            logger.exception("Error executing tool '%s'", name)
            return error_result(f"Error executing tool '{name}': {describe_exception(exc)}")
        finally:
            ctx.close()

        if not isinstance(result, CallToolResult) or not result.content:
            logger.error("Tool '%s' returned a malformed result: %r", name, result)
            return error_result(f"Error executing tool '{name}': tool returned no content")
        return result
