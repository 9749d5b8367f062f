"""
Persistence for conversations, message histories, working memory and
workflow checkpoints.

Example usage:
    from work_agent_core.persistence import PersistenceManager, WorkingMemoryScope

    manager = PersistenceManager()

    await manager.conversations.create("writer", "alice", "conv-1", title="Draft")
    await manager.messages.append("writer", "conv-1", {"role": "user", "content": "hi"})

    await manager.working_memory.set(
        "writer", WorkingMemoryScope.USER, "alice", "Prefers short answers"
    )
"""

from work_agent_core.persistence.base import (
    DEFAULT_RESOURCE_ID,
    Conversation,
    ConversationQuery,
    ConversationStore,
    Message,
    MessageLog,
    SortDirection,
    Suspension,
    WorkflowStateEntry,
    WorkflowStateStore,
    WorkflowStatus,
    WorkingMemoryRecord,
    WorkingMemoryScope,
    WorkingMemoryStore,
    split_scoped_user_id,
)

from work_agent_core.persistence.file import (
    FileConversationStore,
    FileMessageLog,
    FileWorkflowStateStore,
    FileWorkingMemoryStore,
    sanitize_user_id,
)

from work_agent_core.persistence.manager import (
    PersistenceConfig,
    PersistenceManager,
    ResourceMemory,
)

__all__ = [
    # Abstract interfaces
    "ConversationStore",
    "MessageLog",
    "WorkingMemoryStore",
    "WorkflowStateStore",
    # Data classes
    "Conversation",
    "ConversationQuery",
    "Message",
    "SortDirection",
    "Suspension",
    "WorkflowStateEntry",
    "WorkflowStatus",
    "WorkingMemoryRecord",
    "WorkingMemoryScope",
    "DEFAULT_RESOURCE_ID",
    "split_scoped_user_id",
    # File implementations
    "FileConversationStore",
    "FileMessageLog",
    "FileWorkingMemoryStore",
    "FileWorkflowStateStore",
    "sanitize_user_id",
    # Manager
    "PersistenceConfig",
    "PersistenceManager",
    "ResourceMemory",
]
