"""Builders for the uniform `{content, isError}` result envelope."""

import json
from typing import Any

from mcp.types import CallToolResult, TextContent
from pydantic import ValidationError


def text_result(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=False)


def json_result(payload: Any) -> CallToolResult:
    return text_result(json.dumps(payload, default=str))


def error_result(message: str) -> CallToolResult:
    if not message.startswith("Error"):
        message = f"Error: {message}"
    return CallToolResult(content=[TextContent(type="text", text=message)], isError=True)


def describe_exception(exc: BaseException) -> str:
    """Render an exception as a one-line message suitable for an agent."""
    if isinstance(exc, ValidationError):
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
            parts.append(f"{loc}: {err.get('msg')}")
        return "Invalid arguments - " + "; ".join(parts)
    text = str(exc)
    return text or exc.__class__.__name__
