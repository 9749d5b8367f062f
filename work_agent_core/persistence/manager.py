"""
Persistence manager for wiring the storage backends together.

The file-backed stores depend on each other in one direction each:
the message log touches conversations after every append, and deleting a
conversation cascades to the message log and working memory. The
PersistenceManager builds the stores and connects them.

Stores can be swapped by passing either pre-instantiated stores or store
classes in a PersistenceConfig.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Type

from work_agent_core.config import get_config
from work_agent_core.persistence.base import (
    Conversation,
    ConversationQuery,
    ConversationStore,
    Message,
    MessageLog,
    WorkflowStateStore,
    WorkingMemoryRecord,
    WorkingMemoryScope,
    WorkingMemoryStore,
)
from work_agent_core.persistence.file import (
    FileConversationStore,
    FileMessageLog,
    FileWorkflowStateStore,
    FileWorkingMemoryStore,
)


@dataclass
class PersistenceConfig:
    """
    Configuration for persistence backends.

    Pre-instantiated stores take precedence over classes. Custom message log
    classes are expected to accept a `bind(conversations)` call if they need
    the conversation store.
    """

    root_dir: Optional[Path] = None

    conversation_store_class: Type[ConversationStore] = FileConversationStore
    message_log_class: Type[MessageLog] = FileMessageLog
    working_memory_store_class: Type[WorkingMemoryStore] = FileWorkingMemoryStore
    workflow_store_class: Type[WorkflowStateStore] = FileWorkflowStateStore

    conversation_store: Optional[ConversationStore] = None
    message_log: Optional[MessageLog] = None
    working_memory_store: Optional[WorkingMemoryStore] = None
    workflow_store: Optional[WorkflowStateStore] = None

    extra_kwargs: dict = field(default_factory=dict)


class PersistenceManager:
    """
    Unified access to the four stores, all rooted at one directory.

    Example:
        manager = PersistenceManager(PersistenceConfig(root_dir=Path("/tmp/wa")))

        await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append("writer", "c1", {"role": "user", "content": "hi"})

        memory = manager.for_resource("writer")
        history = await memory.read_messages("c1")
    """

    def __init__(self, config: Optional[PersistenceConfig] = None):
        self._config = config or PersistenceConfig()
        self._root = Path(self._config.root_dir or get_config().root_dir)

        self._working_memory = self._config.working_memory_store or self._config.working_memory_store_class(
            self._root, **self._config.extra_kwargs
        )
        self._messages = self._config.message_log or self._config.message_log_class(
            self._root, **self._config.extra_kwargs
        )
        self._conversations = self._config.conversation_store or self._config.conversation_store_class(
            self._root,
            message_log=self._messages,
            working_memory=self._working_memory,
            **self._config.extra_kwargs,
        )
        self._workflows = self._config.workflow_store or self._config.workflow_store_class(
            self._root, **self._config.extra_kwargs
        )

        bind = getattr(self._messages, "bind", None)
        if bind is not None:
            bind(self._conversations)

    @property
    def root_dir(self) -> Path:
        return self._root

    @property
    def conversations(self) -> ConversationStore:
        """Get the conversation store."""
        return self._conversations

    @property
    def messages(self) -> MessageLog:
        """Get the message log."""
        return self._messages

    @property
    def working_memory(self) -> WorkingMemoryStore:
        """Get the working memory store."""
        return self._working_memory

    @property
    def workflows(self) -> WorkflowStateStore:
        """Get the workflow state store."""
        return self._workflows

    def for_resource(self, resource_id: str) -> "ResourceMemory":
        """Bind the stores to one resource."""
        return ResourceMemory(self, resource_id)

    async def close(self) -> None:
        """Close all stores."""
        await self._messages.close()
        await self._conversations.close()
        await self._working_memory.close()
        await self._workflows.close()


class ResourceMemory:
    """
    The stores seen from one resource (agent).

    Every call passes the bound resource id explicitly, so an agent never reads
    or writes another agent's conversations by accident.
    """

    def __init__(self, manager: PersistenceManager, resource_id: str):
        self._manager = manager
        self.resource_id = resource_id

    async def create_conversation(
        self,
        user_id: str,
        conversation_id: str,
        title: str = "",
        metadata: Optional[dict] = None,
    ) -> Conversation:
        return await self._manager.conversations.create(
            self.resource_id, user_id, conversation_id, title=title, metadata=metadata
        )

    async def list_conversations(self) -> list[Conversation]:
        return await self._manager.conversations.list_conversations(self.resource_id)

    async def query_conversations(self, query: ConversationQuery) -> list[Conversation]:
        return await self._manager.conversations.query(replace(query, resource_id=self.resource_id))

    async def append_message(self, conversation_id: str, message: Message) -> None:
        await self._manager.messages.append(self.resource_id, conversation_id, message)

    async def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        await self._manager.messages.append_batch(self.resource_id, conversation_id, messages)

    async def read_messages(self, conversation_id: str, limit: Optional[int] = None) -> list[Message]:
        return await self._manager.messages.read(self.resource_id, conversation_id, limit=limit)

    async def clear_messages(self, conversation_id: str) -> None:
        await self._manager.messages.clear(conversation_id, resource_id=self.resource_id)

    async def get_working_memory(
        self,
        scope: WorkingMemoryScope,
        key: str,
    ) -> Optional[WorkingMemoryRecord]:
        return await self._manager.working_memory.get(self.resource_id, scope, key)

    async def set_working_memory(
        self,
        scope: WorkingMemoryScope,
        key: str,
        content: str,
    ) -> WorkingMemoryRecord:
        return await self._manager.working_memory.set(self.resource_id, scope, key, content)
