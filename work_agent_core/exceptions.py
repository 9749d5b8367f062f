"""Custom exceptions for work_agent_core."""

from typing import Optional


class WorkAgentError(Exception):
    """Base exception for all work_agent_core errors."""

    pass


class NotFoundError(WorkAgentError):
    """Raised when a required record or resource does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' not found")


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation cannot be found under any resource."""

    def __init__(self, conversation_id: str):
        super().__init__("Conversation", conversation_id)


class AgentNotFoundError(NotFoundError):
    """Raised when an agent spec does not exist."""

    def __init__(self, slug: str):
        super().__init__("Agent", slug)


class ToolNotFoundError(NotFoundError):
    """Raised when a tool definition does not exist in the catalog."""

    def __init__(self, tool_id: str):
        super().__init__("Tool", tool_id)


class WorkflowStateNotFoundError(NotFoundError):
    """Raised when a workflow state entry does not exist."""

    def __init__(self, execution_id: str):
        super().__init__("Workflow state", execution_id)


class ValidationError(WorkAgentError):
    """Raised when a config document fails structural checks."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ParseError(WorkAgentError):
    """Raised when a stored record cannot be decoded."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Failed to parse {source}: {message}")


class ToolConnectionError(WorkAgentError):
    """Raised when a tool connection cannot be established."""

    def __init__(self, tool_id: str, message: str):
        self.tool_id = tool_id
        super().__init__(f"Tool '{tool_id}' failed to connect: {message}")


class UnsupportedTransportError(WorkAgentError):
    """Raised when a tool declares a transport with no loader implementation."""

    def __init__(self, tool_id: str, transport: Optional[str]):
        self.tool_id = tool_id
        self.transport = transport
        super().__init__(f"Unsupported transport for tool '{tool_id}': {transport}")
