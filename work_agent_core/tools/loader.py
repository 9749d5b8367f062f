"""
Resolve an agent's tool list from the tool catalog.

MCP connections are cached per (agent slug, tool id) together with the tools
they advertised, so rebuilding an agent reuses its servers instead of
spawning new ones. Entries live until release() of their agent.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from work_agent_core.config_schema import ToolDef, ToolsSpec
from work_agent_core.exceptions import (
    ToolConnectionError,
    UnsupportedTransportError,
    WorkAgentError,
)
from work_agent_core.tools.base import McpTool, Tool, ToolConnection, ToolInfo
from work_agent_core.tools.mcp import create_mcp_connection

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[ToolDef], ToolConnection]
BuiltinFactory = Callable[[ToolDef], Tool]


class ToolCatalog(Protocol):
    async def load_tool(self, tool_id: str) -> ToolDef:
        ...


@dataclass
class CachedConnection:
    connection: ToolConnection
    tools: list[ToolInfo]


class ToolLoader:
    """
    Builds Tool objects for agents and owns their MCP connections.

    Builtin tools come from factories registered by policy name. None ship
    with the package; unknown policy names are skipped with a warning.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        self._catalog = catalog
        self._connection_factory = connection_factory or create_mcp_connection
        self._builtin_factories: dict[str, BuiltinFactory] = {}
        self._cache: dict[tuple[str, str], CachedConnection] = {}

    def register_builtin(self, policy_name: str, factory: BuiltinFactory) -> None:
        """Register the factory for builtin tools whose policy carries this name."""
        self._builtin_factories[policy_name] = factory

    def is_cached(self, agent_slug: str, tool_id: str) -> bool:
        return (agent_slug, tool_id) in self._cache

    def cached_tool_ids(self, agent_slug: str) -> list[str]:
        return sorted(tool_id for slug, tool_id in self._cache if slug == agent_slug)

    async def load_tools(self, agent_slug: str, tools_spec: ToolsSpec) -> list[Tool]:
        """
        Resolve every tool an agent uses, then apply its allow-list.

        A tool that fails to load is logged and left out; the rest still load.
        """
        tools: list[Tool] = []
        for name in tools_spec.use:
            tool_id = tools_spec.aliases.get(name, name)
            try:
                tools.extend(await self._load_tool(agent_slug, tool_id))
            except Exception as e:
                logger.error(f"Failed to load tool '{tool_id}' for agent '{agent_slug}': {e}")

        return self._apply_allow_list(agent_slug, tools_spec, tools)

    async def _load_tool(self, agent_slug: str, tool_id: str) -> list[Tool]:
        tool_def = await self._catalog.load_tool(tool_id)
        if tool_def.kind == "mcp":
            return await self._load_mcp_tools(agent_slug, tool_id, tool_def)

        tool = self._build_builtin(tool_def)
        return [tool] if tool is not None else []

    async def _load_mcp_tools(self, agent_slug: str, tool_id: str, tool_def: ToolDef) -> list[Tool]:
        key = (agent_slug, tool_id)
        cached = self._cache.get(key)
        if cached is None:
            if not tool_def.transport:
                raise UnsupportedTransportError(tool_id, tool_def.transport)
            connection = self._connection_factory(tool_def)
            try:
                await connection.connect()
            except WorkAgentError:
                raise
            except Exception as e:
                raise ToolConnectionError(tool_id, str(e)) from e
            try:
                infos = await connection.list_tools()
            except Exception as e:
                await self._disconnect_quietly(tool_id, connection)
                raise ToolConnectionError(tool_id, f"tool discovery failed: {e}") from e
            cached = CachedConnection(connection=connection, tools=infos)
            self._cache[key] = cached
            logger.info(f"MCP tools loaded for agent '{agent_slug}' from '{tool_id}': {len(infos)}")

        return [McpTool(cached.connection, info, tool_id=tool_id) for info in cached.tools]

    def _build_builtin(self, tool_def: ToolDef) -> Optional[Tool]:
        policy_name = tool_def.builtin_policy.name if tool_def.builtin_policy else None
        factory = self._builtin_factories.get(policy_name)
        if factory is None:
            logger.warning(f"No builtin implementation for tool '{tool_def.id}' (policy '{policy_name}')")
            return None
        tool = factory(tool_def)
        tool.tool_id = tool_def.id
        return tool

    def _apply_allow_list(self, agent_slug: str, tools_spec: ToolsSpec, tools: list[Tool]) -> list[Tool]:
        if tools_spec.allows_everything():
            return tools

        allowed = set(tools_spec.allowed)
        unmatched = allowed - {tool.name for tool in tools}
        if unmatched:
            logger.warning(
                f"Allow-list entries for agent '{agent_slug}' match no loaded tool: "
                f"{', '.join(sorted(unmatched))}"
            )
        return [tool for tool in tools if tool.name in allowed]

    async def _disconnect_quietly(self, tool_id: str, connection: ToolConnection) -> None:
        try:
            await connection.disconnect()
        except Exception as e:
            logger.error(f"Failed to disconnect tool '{tool_id}': {e}")

    async def release(self, agent_slug: str) -> None:
        """Disconnect and forget every cached connection of an agent."""
        for key in [k for k in self._cache if k[0] == agent_slug]:
            cached = self._cache.pop(key)
            await self._disconnect_quietly(key[1], cached.connection)
            logger.info(f"MCP disconnected: {agent_slug}:{key[1]}")

    async def close(self) -> None:
        for agent_slug in sorted({slug for slug, _ in self._cache}):
            await self.release(agent_slug)
