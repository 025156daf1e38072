"""MCP server for asset-forge.

Builds the tool and prompt registries, binds them to a low-level MCP
server and runs it over stdio or streamable HTTP.
"""

import argparse
import asyncio
import contextlib
import logging
from typing import Any, AsyncIterator, Callable, Optional

import anyio
import mcp.types as types
import uvicorn
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.routing import Mount

from .auth import resolve_caller
from .config import Settings, get_settings
from .core.context import ProgressEvent
from .core.envelope import error_result
from .core.registry import InvocationRequest, ProgressToken, ToolRegistry
from .errors import AuthenticationError, PromptNotFoundError
from .logging_setup import configure_logging
from .prompts import PromptRegistry, register_builtin_prompts
from .services import Services
from .tools.audio import register_audio_tools
from .tools.catalog import register_catalog_tools
from .tools.cinematic import register_cinematic_tools
from .tools.image import register_image_tools
from .tools.skybox import register_skybox_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "asset-forge"
SERVER_VERSION = "0.1.0"
INSTRUCTIONS = (
    "Generate game assets: 2D images, music and sound effects, cinematics and 360 skyboxes. "
    "Slow jobs are submitted, then polled with the matching *_status tool between asset_wait "
    "calls, then collected with the *_result tool."
)

TOOL_GROUPS: list[tuple[str, Callable[[ToolRegistry, Services], None]]] = [
    ("image", register_image_tools),
    ("audio", register_audio_tools),
    ("cinematic", register_cinematic_tools),
    ("skybox", register_skybox_tools),
]


def build_tool_registry(services: Services) -> ToolRegistry:
    registry = ToolRegistry()
    register_catalog_tools(registry, services)
    for group, register in TOOL_GROUPS:
        if services.settings.group_enabled(group):
            register(registry, services)
        else:
            logger.info("Tool group '%s' is disabled", group)
    return registry


def create_server(settings: Optional[Settings] = None) -> Server:
    settings = settings or get_settings()
    services = Services(settings)
    tools = build_tool_registry(services)
    prompts = PromptRegistry()
    register_builtin_prompts(prompts)

    server: Server = Server(SERVER_NAME, version=SERVER_VERSION, instructions=INSTRUCTIONS)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [descriptor.to_mcp() for descriptor in tools.list()]

    # Tools validate their own arguments and report failures in the envelope
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        ctx = server.request_context
        token = ctx.meta.progressToken if ctx.meta is not None else None

        try:
            caller = await resolve_caller(settings, ctx.request)
        except AuthenticationError as exc:
            logger.warning("Rejected call to '%s': %s", name, exc)
            return error_result(str(exc))

        async def notify(progress_token: ProgressToken, event: ProgressEvent) -> None:
            await ctx.session.send_progress_notification(
                progress_token,
                event.progress,
                total=event.total,
                message=event.message,
                related_request_id=ctx.request_id,
            )

        # A protocol cancel arrives as task cancellation; the SDK replies with
        # its own "Request cancelled" error once this handler unwinds.
        cancel_event = asyncio.Event()
        request = InvocationRequest(name=name, arguments=arguments, progress_token=token)
        try:
            return await tools.execute(request, cancel_event=cancel_event, notifier=notify, caller=caller)
        except asyncio.CancelledError:
            cancel_event.set()
            logger.info("Call to '%s' cancelled by the client", name)
            raise

    @server.list_prompts()
    async def list_prompts() -> list[types.Prompt]:
        return prompts.list()

    @server.get_prompt()
    async def get_prompt(name: str, arguments: Optional[dict[str, str]]) -> types.GetPromptResult:
        try:
            return prompts.execute(name, arguments)
        except PromptNotFoundError as exc:
            raise ValueError(str(exc)) from exc

    tools.freeze()
    logger.info("%s ready with %d tools", SERVER_NAME, len(tools))
    return server


async def run_stdio(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def create_http_app(server: Server) -> Starlette:
    session_manager = StreamableHTTPSessionManager(app=server, event_store=None, json_response=False)

    async def handle_streamable_http(scope, receive, send) -> None:
        await session_manager.handle_request(scope, receive, send)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            logger.info("Streamable HTTP session manager started")
            yield

    return Starlette(routes=[Mount("/mcp", app=handle_streamable_http)], lifespan=lifespan)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="asset-forge", description="Game asset generation MCP server")
    parser.add_argument("--transport", choices=["stdio", "streamable-http"], default=None,
                        help="Transport to serve on (default: ASSET_FORGE_TRANSPORT or stdio)")
    parser.add_argument("--host", default=None, help="Bind address for streamable-http")
    parser.add_argument("--port", type=int, default=None, help="Port for streamable-http")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--debug", action="store_true", help="Shortcut for --log-level DEBUG")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    level = "DEBUG" if args.debug else (args.log_level or settings.log_level)
    configure_logging(level, args.log_file or settings.log_file)

    transport = args.transport or settings.asset_forge_transport
    server = create_server(settings)

    if transport == "streamable-http":
        host = args.host or settings.asset_forge_host
        port = args.port or settings.asset_forge_port
        logger.info("Serving %s over streamable HTTP on %s:%d/mcp", SERVER_NAME, host, port)
        uvicorn.run(create_http_app(server), host=host, port=port, log_level=level.lower())
    else:
        logger.info("Serving %s over stdio", SERVER_NAME)
        anyio.run(run_stdio, server)


if __name__ == "__main__":
    main()
