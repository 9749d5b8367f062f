"""
Tools for agents: catalog resolution, MCP connections and builtin tools.

Example:
    from work_agent_core.config_loader import ConfigLoader
    from work_agent_core.tools import ToolLoader

    loader = ToolLoader(ConfigLoader())
    tools = await loader.load_tools("writer", spec.tools)
    ...
    await loader.release("writer")
"""

from work_agent_core.tools.base import (
    BuiltinTool,
    McpTool,
    Tool,
    ToolConnection,
    ToolHandler,
    ToolInfo,
)
from work_agent_core.tools.loader import (
    BuiltinFactory,
    CachedConnection,
    ConnectionFactory,
    ToolLoader,
)
from work_agent_core.tools.mcp import McpConnection, create_mcp_connection

__all__ = [
    "Tool",
    "McpTool",
    "BuiltinTool",
    "ToolInfo",
    "ToolConnection",
    "ToolHandler",
    "ToolLoader",
    "CachedConnection",
    "ConnectionFactory",
    "BuiltinFactory",
    "McpConnection",
    "create_mcp_connection",
]
