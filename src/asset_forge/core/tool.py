"""The uniform tool contract and its declarative descriptor."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from mcp.types import CallToolResult, ToolAnnotations
from mcp.types import Tool as McpTool
from pydantic import BaseModel, Field

from .context import ExecutionContext


class ToolCategory(str, Enum):
    ASSET_GENERATION = "asset_generation"
    IMAGE_GENERATION = "image_generation"
    AUDIO_GENERATION = "audio_generation"
    CINEMATIC_GENERATION = "cinematic_generation"
    SKYBOX_GENERATION = "skybox_generation"
    UTILITY = "utility"


class ToolDescriptor(BaseModel):
    name: str
    description: str
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    categories: list[ToolCategory] = Field(default_factory=list)
    annotations: Optional[ToolAnnotations] = None

    def to_mcp(self) -> McpTool:
        return McpTool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
            annotations=self.annotations,
            _meta={"categories": [c.value for c in self.categories]},
        )


# Shared hint sets for the catalog
SUBMITS_JOB = ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True)
QUERIES_JOB = ToolAnnotations(readOnlyHint=True, openWorldHint=True)
LOCAL_ONLY = ToolAnnotations(readOnlyHint=True, openWorldHint=False)


class Tool(ABC):
    """A named, schema-described capability an agent can invoke.

    Subclasses set the class attributes and implement `execute`, which must
    return an envelope rather than raise.
    """

    name: str
    description: str
    input_schema: dict[str, Any] = {"type": "object", "properties": {}}
    categories: list[ToolCategory] = []
    annotations: Optional[ToolAnnotations] = None

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
            categories=list(self.categories),
            annotations=self.annotations,
        )

    @abstractmethod
    async def execute(self, arguments: dict[str, Any], ctx: ExecutionContext) -> CallToolResult:
        ...
