"""MCP (Model Context Protocol) client connections for catalog tools."""

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamable_http_client

from work_agent_core.config_schema import ToolDef
from work_agent_core.exceptions import ToolConnectionError, UnsupportedTransportError
from work_agent_core.tools.base import ToolConnection, ToolInfo

logger = logging.getLogger(__name__)

STDIO_TRANSPORTS = ("stdio", "process")
# ws endpoints are served over streamable HTTP, as MCP has no websocket transport of its own
HTTP_TRANSPORTS = ("http", "ws")
SSE_TRANSPORTS = ("sse",)


def _result_to_text(result: Any) -> str:
    """Flatten an MCP CallToolResult into text."""
    if not result.content:
        return ""
    texts = []
    for item in result.content:
        if hasattr(item, "text"):
            texts.append(item.text)
        else:
            texts.append(json.dumps(item.model_dump()))
    return "\n".join(texts)


class McpConnection(ToolConnection):
    """
    Connection to one MCP server described by a ToolDef.

    The transport streams and the session are held open in an AsyncExitStack
    until disconnect().
    """

    def __init__(self, tool_def: ToolDef):
        self.tool_def = tool_def
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    def _startup_timeout(self) -> Optional[float]:
        if self.tool_def.startup_timeout_ms is None:
            return None
        return self.tool_def.startup_timeout_ms / 1000

    def _request_timeout(self) -> Optional[timedelta]:
        if self.tool_def.request_timeout_ms is None:
            return None
        return timedelta(milliseconds=self.tool_def.request_timeout_ms)

    async def _open_streams(self, stack: AsyncExitStack):
        tool_def = self.tool_def
        transport = tool_def.transport

        if transport in STDIO_TRANSPORTS:
            if not tool_def.command:
                raise ToolConnectionError(tool_def.id, "stdio transport requires a command")
            params = StdioServerParameters(
                command=tool_def.command,
                args=tool_def.args or [],
                env=tool_def.env,
            )
            read, write = await stack.enter_async_context(stdio_client(params))
            return read, write

        if not tool_def.endpoint and transport in HTTP_TRANSPORTS + SSE_TRANSPORTS:
            raise ToolConnectionError(tool_def.id, f"{transport} transport requires an endpoint")

        if transport in HTTP_TRANSPORTS:
            read, write, _ = await stack.enter_async_context(streamable_http_client(tool_def.endpoint))
            return read, write

        if transport in SSE_TRANSPORTS:
            read, write = await stack.enter_async_context(sse_client(tool_def.endpoint))
            return read, write

        raise UnsupportedTransportError(tool_def.id, transport)

    async def connect(self) -> None:
        if self._session is not None:
            return

        stack = AsyncExitStack()
        try:
            read, write = await self._open_streams(stack)
            session = await stack.enter_async_context(
                ClientSession(read, write, read_timeout_seconds=self._request_timeout())
            )
            await asyncio.wait_for(session.initialize(), timeout=self._startup_timeout())
        except (UnsupportedTransportError, ToolConnectionError):
            await stack.aclose()
            raise
        except asyncio.TimeoutError as e:
            await stack.aclose()
            raise ToolConnectionError(self.tool_def.id, "timed out during startup") from e
        except Exception as e:
            await stack.aclose()
            raise ToolConnectionError(self.tool_def.id, str(e)) from e

        self._stack = stack
        self._session = session
        logger.debug(f"Connected to MCP server '{self.tool_def.id}' over {self.tool_def.transport}")

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise ToolConnectionError(self.tool_def.id, "not connected")
        return self._session

    async def list_tools(self) -> list[ToolInfo]:
        result = await self._require_session().list_tools()
        return [
            ToolInfo(
                name=tool.name,
                description=tool.description or "",
                input_schema=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: dict) -> str:
        result = await self._require_session().call_tool(name, arguments)
        if getattr(result, "isError", False):
            logger.warning(f"MCP tool '{name}' on '{self.tool_def.id}' returned an error")
        return _result_to_text(result)

    async def disconnect(self) -> None:
        stack, self._stack, self._session = self._stack, None, None
        if stack is not None:
            await stack.aclose()


def create_mcp_connection(tool_def: ToolDef) -> ToolConnection:
    """Default connection factory used by the ToolLoader."""
    return McpConnection(tool_def)
