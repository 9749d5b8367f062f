"""
Configuration documents for agents, tools and the application.

These are the portable JSON shapes stored under the work agent directory:
- config/app.json: AppConfig
- agents/<slug>/agent.json: AgentSpec
- tools/<id>/tool.json: ToolDef

Keys are camelCase on disk. from_dict() performs structural checks and raises
ValidationError with the dotted path of the offending field.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from work_agent_core.exceptions import ValidationError

TOOL_KINDS = ("mcp", "builtin")
TRANSPORTS = ("stdio", "process", "ws", "tcp", "http", "sse")
WILDCARD = "*"


def _require_str(data: dict, key: str, path: str) -> str:
    value = data.get(key)
    if value is None:
        raise ValidationError(f"{path}{key}", "missing required property")
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{path}{key}", "must be a non-empty string")
    return value


def _optional_str(data: dict, key: str, path: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{path}{key}", "must be a string")
    return value


def _str_list(data: dict, key: str, path: str) -> Optional[list[str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError(f"{path}{key}", "must be an array")
    for i, item in enumerate(value):
        if not isinstance(item, str):
            raise ValidationError(f"{path}{key}.{i}", "must be a string")
    return list(value)


def _str_map(data: dict, key: str, path: str) -> Optional[dict[str, str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError(f"{path}{key}", "must be an object")
    for k, v in value.items():
        if not isinstance(v, str):
            raise ValidationError(f"{path}{key}.{k}", "must be a string")
    return dict(value)


def _require_object(data: Any, path: str) -> dict:
    if not isinstance(data, dict):
        raise ValidationError(path or "/", "must be an object")
    return data


@dataclass
class AppConfig:
    """Application-wide defaults for model selection."""

    region: str
    default_model: str

    def to_dict(self) -> dict:
        return {"region": self.region, "defaultModel": self.default_model}

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        data = _require_object(data, "")
        return cls(
            region=_require_str(data, "region", ""),
            default_model=_require_str(data, "defaultModel", ""),
        )


@dataclass
class Guardrails:
    """Sampling limits applied to every model call of an agent."""

    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop_sequences: Optional[list[str]] = None

    def to_dict(self) -> dict:
        result = {
            "maxTokens": self.max_tokens,
            "temperature": self.temperature,
            "topP": self.top_p,
            "stopSequences": self.stop_sequences,
        }
        return {k: v for k, v in result.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict, path: str = "guardrails.") -> "Guardrails":
        data = _require_object(data, path.rstrip("."))
        max_tokens = data.get("maxTokens")
        if max_tokens is not None and (not isinstance(max_tokens, int) or max_tokens <= 0):
            raise ValidationError(f"{path}maxTokens", "must be a positive integer")
        for key in ("temperature", "topP"):
            value = data.get(key)
            if value is not None and not isinstance(value, (int, float)):
                raise ValidationError(f"{path}{key}", "must be a number")
        return cls(
            max_tokens=max_tokens,
            temperature=data.get("temperature"),
            top_p=data.get("topP"),
            stop_sequences=_str_list(data, "stopSequences", path),
        )


@dataclass
class ToolsSpec:
    """Which catalog tools an agent uses and which of them it may invoke."""

    use: list[str] = field(default_factory=list)
    allowed: Optional[list[str]] = None  # None means no filtering
    aliases: dict[str, str] = field(default_factory=dict)  # alias -> tool id

    def allows_everything(self) -> bool:
        return self.allowed is None or WILDCARD in self.allowed

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"use": list(self.use)}
        if self.allowed is not None:
            result["allowed"] = list(self.allowed)
        if self.aliases:
            result["aliases"] = dict(self.aliases)
        return result

    @classmethod
    def from_dict(cls, data: dict, path: str = "tools.") -> "ToolsSpec":
        data = _require_object(data, path.rstrip("."))
        use = _str_list(data, "use", path)
        if use is None:
            raise ValidationError(f"{path}use", "missing required property")
        return cls(
            use=use,
            allowed=_str_list(data, "allowed", path),
            aliases=_str_map(data, "aliases", path) or {},
        )


@dataclass
class AgentSpec:
    """
    Definition of one agent.

    `model` and `region` override the application defaults when set.
    """

    name: str
    prompt: str
    model: Optional[str] = None
    region: Optional[str] = None
    guardrails: Optional[Guardrails] = None
    tools: ToolsSpec = field(default_factory=ToolsSpec)

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"name": self.name, "prompt": self.prompt}
        if self.model:
            result["model"] = self.model
        if self.region:
            result["region"] = self.region
        if self.guardrails:
            result["guardrails"] = self.guardrails.to_dict()
        result["tools"] = self.tools.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "AgentSpec":
        data = _require_object(data, "")
        guardrails = None
        if data.get("guardrails") is not None:
            guardrails = Guardrails.from_dict(data["guardrails"])
        tools = ToolsSpec()
        if data.get("tools") is not None:
            tools = ToolsSpec.from_dict(data["tools"])
        return cls(
            name=_require_str(data, "name", ""),
            prompt=_require_str(data, "prompt", ""),
            model=_optional_str(data, "model", ""),
            region=_optional_str(data, "region", ""),
            guardrails=guardrails,
            tools=tools,
        )


@dataclass
class ToolPermissions:
    filesystem: bool = False
    network: bool = False
    allowed_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "filesystem": self.filesystem,
            "network": self.network,
            "allowedPaths": list(self.allowed_paths),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ToolPermissions":
        data = _require_object(data, "permissions")
        return cls(
            filesystem=bool(data.get("filesystem", False)),
            network=bool(data.get("network", False)),
            allowed_paths=_str_list(data, "allowedPaths", "permissions.") or [],
        )


@dataclass
class BuiltinPolicy:
    """Policy document for an in-process tool."""

    name: str
    allowed_paths: list[str] = field(default_factory=list)
    timeout: Optional[float] = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"name": self.name, "allowedPaths": list(self.allowed_paths)}
        if self.timeout is not None:
            result["timeout"] = self.timeout
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "BuiltinPolicy":
        data = _require_object(data, "builtinPolicy")
        return cls(
            name=_require_str(data, "name", "builtinPolicy."),
            allowed_paths=_str_list(data, "allowedPaths", "builtinPolicy.") or [],
            timeout=data.get("timeout"),
        )


@dataclass
class ToolDef:
    """
    Catalog entry for a tool.

    MCP tools describe how to reach the server (transport plus command/args or
    endpoint). Builtin tools carry a policy naming the in-process implementation.
    """

    id: str
    kind: str
    display_name: Optional[str] = None
    description: Optional[str] = None

    # MCP
    transport: Optional[str] = None
    command: Optional[str] = None
    args: list[str] = field(default_factory=list)
    endpoint: Optional[str] = None
    env: Optional[dict[str, str]] = None

    # Builtin
    builtin_policy: Optional[BuiltinPolicy] = None

    permissions: ToolPermissions = field(default_factory=ToolPermissions)
    startup_timeout_ms: Optional[int] = None
    request_timeout_ms: Optional[int] = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"id": self.id, "kind": self.kind}
        if self.display_name:
            result["displayName"] = self.display_name
        if self.description:
            result["description"] = self.description
        if self.transport:
            result["transport"] = self.transport
        if self.command:
            result["command"] = self.command
        if self.args:
            result["args"] = list(self.args)
        if self.endpoint:
            result["endpoint"] = self.endpoint
        if self.env:
            result["env"] = dict(self.env)
        if self.builtin_policy:
            result["builtinPolicy"] = self.builtin_policy.to_dict()
        result["permissions"] = self.permissions.to_dict()
        timeouts = {}
        if self.startup_timeout_ms is not None:
            timeouts["startupMs"] = self.startup_timeout_ms
        if self.request_timeout_ms is not None:
            timeouts["requestMs"] = self.request_timeout_ms
        if timeouts:
            result["timeouts"] = timeouts
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ToolDef":
        data = _require_object(data, "")
        kind = _require_str(data, "kind", "")
        if kind not in TOOL_KINDS:
            raise ValidationError("kind", f"must be one of: {', '.join(TOOL_KINDS)}")

        transport = _optional_str(data, "transport", "")
        if transport is not None and transport not in TRANSPORTS:
            raise ValidationError("transport", f"must be one of: {', '.join(TRANSPORTS)}")

        builtin_policy = None
        if data.get("builtinPolicy") is not None:
            builtin_policy = BuiltinPolicy.from_dict(data["builtinPolicy"])
        if kind == "builtin" and builtin_policy is None:
            raise ValidationError("builtinPolicy", "required for builtin tools")

        permissions = ToolPermissions()
        if data.get("permissions") is not None:
            permissions = ToolPermissions.from_dict(data["permissions"])

        timeouts = {}
        if data.get("timeouts") is not None:
            timeouts = _require_object(data["timeouts"], "timeouts")
            for key in ("startupMs", "requestMs"):
                value = timeouts.get(key)
                if value is not None and (
                    not isinstance(value, int) or isinstance(value, bool) or value <= 0
                ):
                    raise ValidationError(f"timeouts.{key}", "must be a positive integer")
        return cls(
            id=_require_str(data, "id", ""),
            kind=kind,
            display_name=_optional_str(data, "displayName", ""),
            description=_optional_str(data, "description", ""),
            transport=transport,
            command=_optional_str(data, "command", ""),
            args=_str_list(data, "args", "") or [],
            endpoint=_optional_str(data, "endpoint", ""),
            env=_str_map(data, "env", ""),
            builtin_policy=builtin_policy,
            permissions=permissions,
            startup_timeout_ms=timeouts.get("startupMs"),
            request_timeout_ms=timeouts.get("requestMs"),
        )
