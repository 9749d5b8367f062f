"""
File-backed loader for app, agent and tool configuration.

Layout under the work agent directory:
- config/app.json
- agents/<slug>/agent.json
- tools/<id>/tool.json
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from work_agent_core.config import get_config
from work_agent_core.config_schema import AgentSpec, AppConfig, ToolDef
from work_agent_core.exceptions import (
    AgentNotFoundError,
    ToolNotFoundError,
    ValidationError,
    WorkAgentError,
)

logger = logging.getLogger(__name__)


@dataclass
class AgentMetadata:
    slug: str
    name: str
    model: Optional[str]
    updated_at: str


@dataclass
class ToolMetadata:
    id: str
    kind: str
    display_name: Optional[str] = None
    description: Optional[str] = None


def _read_json(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(str(path), f"invalid JSON: {e}") from e


def _write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(json.dumps(data, indent=2))


class ConfigLoader:
    """Reads and writes configuration documents below one root directory."""

    def __init__(self, work_agent_dir: Optional[Path] = None):
        if work_agent_dir is None:
            work_agent_dir = get_config().root_dir
        self._root = Path(work_agent_dir).expanduser().resolve()

    @property
    def work_agent_dir(self) -> Path:
        return self._root

    def _app_path(self) -> Path:
        return self._root / "config" / "app.json"

    def _agent_path(self, slug: str) -> Path:
        return self._root / "agents" / slug / "agent.json"

    def _tool_path(self, tool_id: str) -> Path:
        return self._root / "tools" / tool_id / "tool.json"

    # App config

    async def load_app_config(self) -> AppConfig:
        """Load app config, writing the defaults on first run."""
        path = self._app_path()
        if not path.exists():
            config = get_config()
            app_config = AppConfig(
                region=config.default_region,
                default_model=config.default_model,
            )
            await self.save_app_config(app_config)
            return app_config
        return AppConfig.from_dict(_read_json(path))

    async def save_app_config(self, app_config: AppConfig) -> None:
        _write_json(self._app_path(), app_config.to_dict())

    # Agents

    async def load_agent(self, slug: str) -> AgentSpec:
        path = self._agent_path(slug)
        if not path.exists():
            raise AgentNotFoundError(slug)
        return AgentSpec.from_dict(_read_json(path))

    async def save_agent(self, slug: str, spec: AgentSpec) -> None:
        agent_dir = self._root / "agents" / slug
        (agent_dir / "memory" / "sessions").mkdir(parents=True, exist_ok=True)
        _write_json(self._agent_path(slug), spec.to_dict())

    async def agent_exists(self, slug: str) -> bool:
        return self._agent_path(slug).exists()

    async def list_agents(self) -> list[AgentMetadata]:
        """List agents with a readable spec, most recently modified first."""
        agents_dir = self._root / "agents"
        if not agents_dir.exists():
            return []

        agents = []
        for entry in sorted(agents_dir.iterdir()):
            agent_path = entry / "agent.json"
            if not entry.is_dir() or not agent_path.exists():
                continue
            try:
                spec = await self.load_agent(entry.name)
            except WorkAgentError as e:
                logger.error(f"Failed to load agent '{entry.name}': {e}")
                continue
            mtime = datetime.fromtimestamp(agent_path.stat().st_mtime, tz=timezone.utc)
            agents.append(AgentMetadata(
                slug=entry.name,
                name=spec.name,
                model=spec.model,
                updated_at=mtime.isoformat(),
            ))

        agents.sort(key=lambda a: a.updated_at, reverse=True)
        return agents

    # Tools

    async def load_tool(self, tool_id: str) -> ToolDef:
        path = self._tool_path(tool_id)
        if not path.exists():
            raise ToolNotFoundError(tool_id)
        return ToolDef.from_dict(_read_json(path))

    async def save_tool(self, tool_id: str, tool_def: ToolDef) -> None:
        _write_json(self._tool_path(tool_id), tool_def.to_dict())

    async def tool_exists(self, tool_id: str) -> bool:
        return self._tool_path(tool_id).exists()

    async def list_tools(self) -> list[ToolMetadata]:
        tools_dir = self._root / "tools"
        if not tools_dir.exists():
            return []

        tools = []
        for entry in sorted(tools_dir.iterdir()):
            if not entry.is_dir() or not (entry / "tool.json").exists():
                continue
            try:
                tool_def = await self.load_tool(entry.name)
            except WorkAgentError as e:
                logger.error(f"Failed to load tool '{entry.name}': {e}")
                continue
            tools.append(ToolMetadata(
                id=tool_def.id,
                kind=tool_def.kind,
                display_name=tool_def.display_name,
                description=tool_def.description,
            ))
        return tools
