"""
work_agent_core - local-first persistence and lifecycle for conversational agents.

This package provides:
- File-backed stores for conversations, message logs, working memory and
  workflow checkpoints
- A tool loader with cached MCP connections and allow-list enforcement
- An agent lifecycle manager (build, switch, teardown) over a Bedrock model client
- Config documents for agents, tools and the application

Example usage:
    from work_agent_core import AgentLifecycleManager, configure

    configure(work_agent_dir="~/.work-agent")

    manager = AgentLifecycleManager()
    summary = await manager.initialize()
    writer = await manager.switch_to("writer")

    await writer.memory.create_conversation("alice", "conv-1", title="Draft")
    await writer.memory.append_message("conv-1", {"role": "user", "content": "Hello"})
"""

__version__ = "0.1.0"

# Config
from work_agent_core.config import (
    RuntimeConfig,
    configure,
    configure_logging,
    get_config,
    reset_config,
)

# Errors
from work_agent_core.exceptions import (
    AgentNotFoundError,
    ConversationNotFoundError,
    NotFoundError,
    ParseError,
    ToolConnectionError,
    ToolNotFoundError,
    UnsupportedTransportError,
    ValidationError,
    WorkAgentError,
    WorkflowStateNotFoundError,
)

# Config documents
from work_agent_core.config_schema import (
    AgentSpec,
    AppConfig,
    BuiltinPolicy,
    Guardrails,
    ToolDef,
    ToolPermissions,
    ToolsSpec,
)
from work_agent_core.config_loader import AgentMetadata, ConfigLoader, ToolMetadata

# Persistence
from work_agent_core.persistence import (
    Conversation,
    ConversationQuery,
    FileConversationStore,
    FileMessageLog,
    FileWorkflowStateStore,
    FileWorkingMemoryStore,
    PersistenceConfig,
    PersistenceManager,
    ResourceMemory,
    SortDirection,
    Suspension,
    WorkflowStateEntry,
    WorkflowStatus,
    WorkingMemoryRecord,
    WorkingMemoryScope,
)

# Tools
from work_agent_core.tools import (
    BuiltinTool,
    McpConnection,
    McpTool,
    Tool,
    ToolConnection,
    ToolInfo,
    ToolLoader,
)

# Model client
from work_agent_core.llm import BedrockModelClient, LLMResponse, ModelSettings

# Lifecycle
from work_agent_core.lifecycle import (
    AgentContext,
    AgentLifecycleManager,
    AgentState,
    StartupSummary,
)

__all__ = [
    "__version__",
    # Config
    "RuntimeConfig",
    "configure",
    "configure_logging",
    "get_config",
    "reset_config",
    # Errors
    "WorkAgentError",
    "NotFoundError",
    "ConversationNotFoundError",
    "AgentNotFoundError",
    "ToolNotFoundError",
    "WorkflowStateNotFoundError",
    "ValidationError",
    "ParseError",
    "ToolConnectionError",
    "UnsupportedTransportError",
    # Config documents
    "AppConfig",
    "AgentSpec",
    "Guardrails",
    "ToolsSpec",
    "ToolDef",
    "ToolPermissions",
    "BuiltinPolicy",
    "ConfigLoader",
    "AgentMetadata",
    "ToolMetadata",
    # Persistence
    "Conversation",
    "ConversationQuery",
    "SortDirection",
    "WorkingMemoryRecord",
    "WorkingMemoryScope",
    "WorkflowStateEntry",
    "WorkflowStatus",
    "Suspension",
    "FileConversationStore",
    "FileMessageLog",
    "FileWorkingMemoryStore",
    "FileWorkflowStateStore",
    "PersistenceConfig",
    "PersistenceManager",
    "ResourceMemory",
    # Tools
    "Tool",
    "McpTool",
    "BuiltinTool",
    "ToolInfo",
    "ToolConnection",
    "McpConnection",
    "ToolLoader",
    # Model client
    "BedrockModelClient",
    "LLMResponse",
    "ModelSettings",
    # Lifecycle
    "AgentLifecycleManager",
    "AgentContext",
    "AgentState",
    "StartupSummary",
]
