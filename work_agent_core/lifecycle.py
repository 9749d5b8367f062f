"""
Agent lifecycle management.

Each agent slug moves through IDLE -> WAITING -> TEARDOWN -> BUILD -> READY.
Transitions for one slug are serialized by a per-slug asyncio.Lock;
different slugs build concurrently and never affect each other.

Example:
    manager = AgentLifecycleManager()
    summary = await manager.initialize()

    writer = await manager.switch_to("writer")
    response = await writer.model_client.generate(
        await writer.memory.read_messages("conv-1"),
        system=writer.spec.prompt,
        tools=writer.tools,
    )

    await manager.shutdown()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from work_agent_core.config import get_config
from work_agent_core.config_loader import ConfigLoader
from work_agent_core.config_schema import AgentSpec
from work_agent_core.llm.bedrock import ModelSettings, create_bedrock_client
from work_agent_core.persistence.manager import (
    PersistenceConfig,
    PersistenceManager,
    ResourceMemory,
)
from work_agent_core.tools.base import Tool
from work_agent_core.tools.loader import ToolLoader

logger = logging.getLogger(__name__)

ModelClientFactory = Callable[[ModelSettings], Any]


class AgentState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    TEARDOWN = "teardown"
    BUILD = "build"
    READY = "ready"


@dataclass
class AgentContext:
    """Everything a running agent needs: spec, model client, memory and tools."""

    slug: str
    spec: AgentSpec
    model_settings: ModelSettings
    model_client: Any
    memory: ResourceMemory
    tools: list[Tool] = field(default_factory=list)

    def get_tool(self, name: str) -> Optional[Tool]:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None


@dataclass
class StartupSummary:
    """Result of initialize(): which agents loaded and why the others failed."""

    loaded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # slug -> error text

    @property
    def ok(self) -> bool:
        return not self.failed


class AgentLifecycleManager:
    """
    Builds, switches and tears down per-agent runtime contexts.

    Several agents can be READY at once. Switching to an agent builds it if
    needed and leaves every other agent untouched.
    """

    def __init__(
        self,
        config_loader: Optional[ConfigLoader] = None,
        persistence: Optional[PersistenceManager] = None,
        tool_loader: Optional[ToolLoader] = None,
        model_client_factory: Optional[ModelClientFactory] = None,
    ):
        self.config_loader = config_loader or ConfigLoader()
        self.persistence = persistence or PersistenceManager(
            PersistenceConfig(root_dir=self.config_loader.work_agent_dir)
        )
        self.tool_loader = tool_loader or ToolLoader(self.config_loader)
        self._model_client_factory = model_client_factory or create_bedrock_client

        self._locks: dict[str, asyncio.Lock] = {}
        self._states: dict[str, AgentState] = {}
        self._active: dict[str, AgentContext] = {}

    def _lock_for(self, slug: str) -> asyncio.Lock:
        lock = self._locks.get(slug)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[slug] = lock
        return lock

    def state_of(self, slug: str) -> AgentState:
        return self._states.get(slug, AgentState.IDLE)

    def get_agent(self, slug: str) -> Optional[AgentContext]:
        return self._active.get(slug)

    def list_agents(self) -> list[str]:
        """Slugs of the agents currently READY."""
        return list(self._active)

    async def initialize(self) -> StartupSummary:
        """
        Build every agent found by the config loader.

        One agent failing to build never prevents the others from loading;
        failures are reported in the summary with their error text.
        """
        await self.config_loader.load_app_config()

        summary = StartupSummary()
        for agent in await self.config_loader.list_agents():
            try:
                await self.build(agent.slug)
            except Exception as e:
                logger.error(f"Failed to load agent '{agent.slug}': {e}")
                summary.failed[agent.slug] = str(e)
            else:
                summary.loaded.append(agent.slug)

        logger.info(
            f"Startup complete: {len(summary.loaded)} agent(s) loaded, "
            f"{len(summary.failed)} failed"
        )
        return summary

    async def build(self, slug: str) -> AgentContext:
        """
        Build (or rebuild) the context of an agent.

        Rebuilding a READY agent replaces its context but keeps its cached tool
        connections. On failure the agent returns to IDLE and the error is
        re-raised.
        """
        lock = self._lock_for(slug)
        if self.state_of(slug) == AgentState.IDLE:
            self._states[slug] = AgentState.WAITING
        async with lock:
            return await self._build_locked(slug)

    async def _build_locked(self, slug: str) -> AgentContext:
        if slug in self._active:
            self._states[slug] = AgentState.TEARDOWN
            del self._active[slug]

        self._states[slug] = AgentState.BUILD
        try:
            context = await self._create_context(slug)
        except Exception:
            self._states[slug] = AgentState.IDLE
            raise

        self._active[slug] = context
        self._states[slug] = AgentState.READY
        logger.info(f"Agent '{slug}' ready with {len(context.tools)} tool(s) on {context.model_settings.model_id}")
        return context

    async def _create_context(self, slug: str) -> AgentContext:
        spec = await self.config_loader.load_agent(slug)
        app_config = await self.config_loader.load_app_config()

        settings = ModelSettings(
            model_id=spec.model or app_config.default_model,
            region=spec.region or app_config.region,
            credentials=get_config().get_aws_credentials(),
            guardrails=spec.guardrails,
        )
        model_client = self._model_client_factory(settings)
        memory = self.persistence.for_resource(slug)
        tools = await self.tool_loader.load_tools(slug, spec.tools)

        return AgentContext(
            slug=slug,
            spec=spec,
            model_settings=settings,
            model_client=model_client,
            memory=memory,
            tools=tools,
        )

    async def switch_to(self, slug: str) -> AgentContext:
        """Return the READY context of an agent, building it first if needed."""
        lock = self._lock_for(slug)
        if self.state_of(slug) == AgentState.IDLE:
            self._states[slug] = AgentState.WAITING
        async with lock:
            context = self._active.get(slug)
            if context is not None:
                logger.debug(f"Agent '{slug}' already loaded")
                return context
            logger.info(f"Switching to agent '{slug}'")
            return await self._build_locked(slug)

    async def teardown(self, slug: str) -> bool:
        """
        Release an agent's tool connections and drop its context.

        Returns True if the agent was active. Disconnect failures are logged.
        """
        async with self._lock_for(slug):
            self._states[slug] = AgentState.TEARDOWN
            await self.tool_loader.release(slug)
            context = self._active.pop(slug, None)
            self._states[slug] = AgentState.IDLE
        if context is not None:
            logger.info(f"Agent '{slug}' torn down")
        return context is not None

    async def shutdown(self) -> None:
        """Tear down every agent and close the tool loader."""
        logger.info("Shutting down agent runtime")
        for slug in list(self._active):
            await self.teardown(slug)
        await self.tool_loader.close()
        await self.persistence.close()
        logger.info("Shutdown complete")
