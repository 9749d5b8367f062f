"""
Abstract base classes and records for the storage engine.

Every store addresses data by an explicit resource id (the slug of the agent
that owns it). Workflow state is the exception: it is namespaced globally
because one execution may outlive or span resources.

Lookups return Optional values; operations that require an existing record
raise a NotFoundError subclass instead.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

DEFAULT_RESOURCE_ID = "default"

_SCOPED_USER_ID = re.compile(r"^agent:([^:]+)(?::user:(.*))?$")

# A message is an opaque JSON object with at least "role" and "content".
Message = dict[str, Any]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def split_scoped_user_id(user_id: str) -> tuple[Optional[str], str]:
    """
    Split a legacy `agent:<slug>:user:<id>` user id into (slug, id).

    Compatibility shim for callers that still encode the owning resource in the
    user id. Plain user ids return (None, user_id).
    """
    match = _SCOPED_USER_ID.match(user_id or "")
    if not match:
        return None, user_id
    return match.group(1), match.group(2) or user_id


class WorkingMemoryScope(str, Enum):
    """Key namespace for a working memory note."""

    CONVERSATION = "conversation"
    USER = "user"


class WorkflowStatus(str, Enum):
    """Status of a workflow execution."""

    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    ERROR = "error"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


ORDER_BY_FIELDS = ("created_at", "updated_at", "title")


@dataclass
class Conversation:
    """Metadata for one conversation. Messages live in the message log."""

    id: str
    resource_id: str
    user_id: str
    title: str = ""
    metadata: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ConversationQuery:
    """Filters, ordering and pagination for ConversationStore.query()."""

    user_id: Optional[str] = None
    resource_id: Optional[str] = None
    order_by: str = "updated_at"
    direction: SortDirection = SortDirection.DESC
    limit: Optional[int] = None
    offset: int = 0

    # Exact-match filters on conversation metadata
    filters: dict = field(default_factory=dict)


@dataclass
class WorkingMemoryRecord:
    """A small free-text note scoped to a conversation or a user."""

    scope: WorkingMemoryScope
    owner_key: str
    content: str
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Suspension:
    """Checkpoint captured when a workflow execution suspends."""

    checkpoint: Any = None
    suspended_at: datetime = field(default_factory=utcnow)
    reason: Optional[str] = None


@dataclass
class WorkflowStateEntry:
    """Durable checkpoint record for one workflow execution."""

    execution_id: str
    workflow_id: str
    status: WorkflowStatus = WorkflowStatus.RUNNING
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    suspension: Optional[Suspension] = None

    user_id: Optional[str] = None
    input: Any = None
    context: dict = field(default_factory=dict)
    output: Any = None
    metadata: dict = field(default_factory=dict)


class ConversationStore(ABC):
    """
    Abstract interface for conversation metadata.

    Conversation ids are globally unique, so get/update/delete/touch take only
    the id and resolve the owning resource themselves.
    """

    @abstractmethod
    async def create(
        self,
        resource_id: Optional[str],
        user_id: str,
        conversation_id: str,
        title: str = "",
        metadata: Optional[dict] = None,
    ) -> Conversation:
        """Create or replace a conversation record."""
        ...

    @abstractmethod
    async def get(self, conversation_id: str) -> Optional[Conversation]:
        """Get a conversation by id from whichever resource owns it."""
        ...

    @abstractmethod
    async def resolve_resource(self, conversation_id: str) -> Optional[str]:
        """Return the id of the resource owning a conversation."""
        ...

    @abstractmethod
    async def list_conversations(self, resource_id: str) -> list[Conversation]:
        """List every conversation of a resource, most recently updated first."""
        ...

    @abstractmethod
    async def list_by_user(self, user_id: str) -> list[Conversation]:
        """List every conversation of a user across resources."""
        ...

    @abstractmethod
    async def query(self, query: ConversationQuery) -> list[Conversation]:
        """Filter, sort and paginate conversations."""
        ...

    @abstractmethod
    async def update(self, conversation_id: str, partial: dict) -> Conversation:
        """Merge fields into a conversation. Raises ConversationNotFoundError."""
        ...

    @abstractmethod
    async def delete(self, conversation_id: str) -> bool:
        """Delete a conversation with its messages and working memory."""
        ...

    @abstractmethod
    async def touch(self, conversation_id: str) -> Conversation:
        """Bump updated_at. Raises ConversationNotFoundError."""
        ...

    async def close(self) -> None:
        """Close any connections. Override if needed."""
        pass


class MessageLog(ABC):
    """
    Abstract interface for append-only message histories.

    Entries are never rewritten: a log only grows or is truncated as a whole.
    """

    @abstractmethod
    async def append(
        self,
        resource_id: Optional[str],
        conversation_id: str,
        message: Message,
    ) -> None:
        """Append one message."""
        ...

    @abstractmethod
    async def append_batch(
        self,
        resource_id: Optional[str],
        conversation_id: str,
        messages: list[Message],
    ) -> None:
        """Append several messages in one write."""
        ...

    @abstractmethod
    async def read(
        self,
        resource_id: Optional[str],
        conversation_id: str,
        limit: Optional[int] = None,
    ) -> list[Message]:
        """Read messages in append order; with a limit, only the last `limit`."""
        ...

    @abstractmethod
    async def clear(self, conversation_id: str, resource_id: Optional[str] = None) -> None:
        """Truncate a conversation's log, keeping the file."""
        ...

    @abstractmethod
    async def delete(self, resource_id: str, conversation_id: str) -> bool:
        """Remove a conversation's log entirely."""
        ...

    async def close(self) -> None:
        """Close any connections. Override if needed."""
        pass


class WorkingMemoryStore(ABC):
    """Abstract interface for scoped working memory notes."""

    @abstractmethod
    async def get(
        self,
        resource_id: str,
        scope: WorkingMemoryScope,
        key: str,
    ) -> Optional[WorkingMemoryRecord]:
        """Get a note by scope and owner key."""
        ...

    @abstractmethod
    async def set(
        self,
        resource_id: str,
        scope: WorkingMemoryScope,
        key: str,
        content: str,
    ) -> WorkingMemoryRecord:
        """Create or replace a note."""
        ...

    @abstractmethod
    async def delete(self, resource_id: str, scope: WorkingMemoryScope, key: str) -> bool:
        """Delete a note. Returns True if it existed."""
        ...

    async def close(self) -> None:
        """Close any connections. Override if needed."""
        pass


class WorkflowStateStore(ABC):
    """Abstract interface for suspend/resume checkpoints."""

    @abstractmethod
    async def get(self, execution_id: str) -> Optional[WorkflowStateEntry]:
        ...

    @abstractmethod
    async def set(self, entry: WorkflowStateEntry) -> None:
        """Write an entry, replacing any previous one with the same id."""
        ...

    @abstractmethod
    async def update(self, execution_id: str, partial: dict) -> WorkflowStateEntry:
        """Merge fields into an entry. Raises WorkflowStateNotFoundError."""
        ...

    @abstractmethod
    async def get_suspended(self, workflow_id: str) -> list[WorkflowStateEntry]:
        """All suspended executions of a workflow."""
        ...

    @abstractmethod
    async def delete(self, execution_id: str) -> bool:
        ...

    @abstractmethod
    async def list_states(self, status: Optional[WorkflowStatus] = None) -> list[WorkflowStateEntry]:
        ...

    async def close(self) -> None:
        """Close any connections. Override if needed."""
        pass
