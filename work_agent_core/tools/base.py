"""
Tool abstractions shared by MCP and builtin tools.

A Tool is what an agent context hands to the model: a name, a description,
an input schema and an async call(). McpTool forwards calls over a
ToolConnection; BuiltinTool calls an in-process handler.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

ToolHandler = Callable[[dict], Awaitable[Any]]


@dataclass
class ToolInfo:
    """A tool as advertised by a tool server."""

    name: str
    description: str = ""
    input_schema: dict = field(default_factory=lambda: {"type": "object", "properties": {}})


class ToolConnection(ABC):
    """
    A live connection to one tool server.

    Implementations own whatever process or socket backs the connection.
    """

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def list_tools(self) -> list[ToolInfo]:
        ...

    @abstractmethod
    async def call_tool(self, name: str, arguments: dict) -> Any:
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...


class Tool(ABC):
    """A callable tool exposed to an agent."""

    def __init__(
        self,
        name: str,
        description: str = "",
        input_schema: Optional[dict] = None,
        tool_id: Optional[str] = None,
    ):
        self.name = name
        self.description = description
        self.input_schema = input_schema or {"type": "object", "properties": {}}
        self.tool_id = tool_id  # catalog entry the tool came from

    @abstractmethod
    async def call(self, arguments: dict) -> Any:
        ...

    def to_schema(self) -> dict:
        """Tool definition in the Anthropic messages format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, tool_id={self.tool_id!r})"


class McpTool(Tool):
    """A tool served by an MCP server."""

    def __init__(self, connection: ToolConnection, info: ToolInfo, tool_id: Optional[str] = None):
        super().__init__(info.name, info.description, info.input_schema, tool_id=tool_id)
        self.connection = connection

    async def call(self, arguments: dict) -> Any:
        return await self.connection.call_tool(self.name, arguments)


class BuiltinTool(Tool):
    """A tool implemented in-process."""

    def __init__(
        self,
        name: str,
        handler: ToolHandler,
        description: str = "",
        input_schema: Optional[dict] = None,
        tool_id: Optional[str] = None,
    ):
        super().__init__(name, description, input_schema, tool_id=tool_id)
        self.handler = handler

    async def call(self, arguments: dict) -> Any:
        return await self.handler(arguments)
