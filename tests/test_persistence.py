"""Tests for the persistence module."""

import json
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from work_agent_core.exceptions import (
    ConversationNotFoundError,
    ValidationError,
    WorkflowStateNotFoundError,
)
from work_agent_core.persistence import (
    ConversationQuery,
    FileMessageLog,
    PersistenceConfig,
    PersistenceManager,
    SortDirection,
    Suspension,
    WorkflowStateEntry,
    WorkflowStatus,
    WorkingMemoryScope,
    sanitize_user_id,
    split_scoped_user_id,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp = tempfile.mkdtemp()
    yield Path(temp)
    shutil.rmtree(temp)


@pytest.fixture
def manager(temp_dir):
    """Create a PersistenceManager rooted at the temp directory."""
    return PersistenceManager(PersistenceConfig(root_dir=temp_dir))


def memory_dir(root: Path, resource_id: str) -> Path:
    return root / "agents" / resource_id / "memory"


class TestScopedUserId:
    """Tests for the agent:<slug>:user:<id> compatibility shim."""

    def test_plain_user_id(self):
        assert split_scoped_user_id("alice") == (None, "alice")

    def test_scoped_user_id(self):
        assert split_scoped_user_id("agent:writer:user:alice") == ("writer", "alice")

    def test_agent_only(self):
        slug, user_id = split_scoped_user_id("agent:writer")
        assert slug == "writer"
        assert user_id == "agent:writer"

    def test_sanitize_user_id(self):
        assert sanitize_user_id("alice@example.com") == "alice_example.com"
        assert sanitize_user_id("a/b\\c d") == "a_b_c_d"


class TestFileConversationStore:
    """Tests for FileConversationStore."""

    async def test_create_and_get(self, manager, temp_dir):
        """Test creating and getting a conversation."""
        created = await manager.conversations.create(
            "writer", "alice", "c1", title="Draft", metadata={"topic": "poems"}
        )

        path = memory_dir(temp_dir, "writer") / "conversations" / "c1.json"
        assert path.exists()

        loaded = await manager.conversations.get("c1")
        assert loaded is not None
        assert loaded.id == "c1"
        assert loaded.resource_id == "writer"
        assert loaded.user_id == "alice"
        assert loaded.title == "Draft"
        assert loaded.metadata == {"topic": "poems"}
        assert loaded.created_at == created.created_at

    async def test_timestamps_stored_as_iso_strings(self, manager, temp_dir):
        """Timestamps are ISO-8601 strings with camelCase keys on disk."""
        await manager.conversations.create("writer", "alice", "c1")

        path = memory_dir(temp_dir, "writer") / "conversations" / "c1.json"
        data = json.loads(path.read_text())
        assert data["resourceId"] == "writer"
        assert isinstance(data["createdAt"], str)
        assert datetime.fromisoformat(data["updatedAt"])

    async def test_get_nonexistent(self, manager):
        """Test getting a nonexistent conversation."""
        assert await manager.conversations.get("missing") is None
        assert await manager.conversations.resolve_resource("missing") is None

    async def test_get_resolves_across_resources(self, temp_dir, manager):
        """A fresh store finds conversations by scanning resource directories."""
        await manager.conversations.create("writer", "alice", "c1")
        await manager.conversations.create("coder", "bob", "c2")

        fresh = PersistenceManager(PersistenceConfig(root_dir=temp_dir))
        assert (await fresh.conversations.get("c2")).resource_id == "coder"
        assert await fresh.conversations.resolve_resource("c1") == "writer"

    async def test_create_is_create_or_replace(self, manager):
        """Creating an existing id replaces it instead of failing."""
        await manager.conversations.create("writer", "alice", "c1", title="First")
        await manager.conversations.create("writer", "alice", "c1", title="Second")

        loaded = await manager.conversations.get("c1")
        assert loaded.title == "Second"
        assert len(await manager.conversations.list_conversations("writer")) == 1

    async def test_one_owner_per_conversation(self, manager, temp_dir):
        """Re-creating a conversation under another resource moves it."""
        await manager.conversations.create("writer", "alice", "c1")
        await manager.conversations.create("coder", "alice", "c1")

        assert not (memory_dir(temp_dir, "writer") / "conversations" / "c1.json").exists()
        assert (await manager.conversations.get("c1")).resource_id == "coder"

    async def test_create_with_scoped_user_id(self, manager):
        """Without a resource id the owner comes from the scoped user id."""
        conversation = await manager.conversations.create(None, "agent:writer:user:alice", "c1")
        assert conversation.resource_id == "writer"

        by_user = await manager.conversations.list_by_user("alice")
        assert [c.id for c in by_user] == ["c1"]

    async def test_create_without_resource_uses_default(self, manager):
        conversation = await manager.conversations.create(None, "alice", "c1")
        assert conversation.resource_id == "default"

    async def test_update(self, manager):
        """Test merging fields into a conversation."""
        created = await manager.conversations.create("writer", "alice", "c1", title="Old")

        updated = await manager.conversations.update(
            "c1", {"title": "New", "id": "ignored", "created_at": "ignored"}
        )
        assert updated.title == "New"
        assert updated.id == "c1"
        assert updated.resource_id == "writer"
        assert updated.created_at == created.created_at
        assert updated.updated_at >= created.updated_at

    async def test_update_unknown_field(self, manager):
        await manager.conversations.create("writer", "alice", "c1")
        with pytest.raises(ValidationError):
            await manager.conversations.update("c1", {"colour": "blue"})

    async def test_update_missing_writes_nothing(self, manager, temp_dir):
        """Updating a ghost conversation raises and leaves the disk alone."""
        with pytest.raises(ConversationNotFoundError):
            await manager.conversations.update("ghost", {"title": "x"})
        with pytest.raises(ConversationNotFoundError):
            await manager.conversations.touch("ghost")

        assert list(temp_dir.iterdir()) == []

    async def test_touch(self, manager):
        created = await manager.conversations.create("writer", "alice", "c1", title="T")
        touched = await manager.conversations.touch("c1")
        assert touched.title == "T"
        assert touched.updated_at >= created.updated_at

    async def test_delete_cascades(self, manager, temp_dir):
        """Deleting a conversation removes its messages and working memory."""
        await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append("writer", "c1", {"role": "user", "content": "hi"})
        await manager.working_memory.set("writer", WorkingMemoryScope.CONVERSATION, "c1", "note")
        await manager.working_memory.set("writer", WorkingMemoryScope.USER, "alice", "keep me")

        assert await manager.conversations.delete("c1") is True

        memory = memory_dir(temp_dir, "writer")
        assert not (memory / "conversations" / "c1.json").exists()
        assert not (memory / "sessions" / "c1.ndjson").exists()
        assert not (memory / "working" / "conversation" / "c1.json").exists()
        assert await manager.conversations.get("c1") is None
        assert await manager.working_memory.get("writer", WorkingMemoryScope.USER, "alice") is not None

    async def test_delete_nonexistent(self, manager):
        assert await manager.conversations.delete("missing") is False

    async def test_ids_with_path_separators_rejected(self, manager, temp_dir):
        """Ids are file names: a/b is rejected instead of colliding with a_b."""
        await manager.conversations.create("writer", "alice", "a_b")

        with pytest.raises(ValidationError) as exc_info:
            await manager.conversations.create("writer", "alice", "a/b")
        assert exc_info.value.field == "conversation_id"
        with pytest.raises(ValidationError):
            await manager.conversations.create("../etc", "alice", "c1")

        files = list((memory_dir(temp_dir, "writer") / "conversations").iterdir())
        assert [f.name for f in files] == ["a_b.json"]

    async def test_list_and_query(self, manager):
        """Test filtering, ordering and pagination."""
        await manager.conversations.create("writer", "alice", "c1", title="b")
        await manager.conversations.create("writer", "bob", "c2", title="a")
        await manager.conversations.create("writer", "alice", "c3", title="c")
        await manager.conversations.create("coder", "alice", "c4", title="d")

        assert len(await manager.conversations.list_conversations("writer")) == 3
        assert {c.id for c in await manager.conversations.list_by_user("alice")} == {"c1", "c3", "c4"}

        by_title = await manager.conversations.query(
            ConversationQuery(resource_id="writer", order_by="title", direction=SortDirection.ASC)
        )
        assert [c.title for c in by_title] == ["a", "b", "c"]

        page = await manager.conversations.query(
            ConversationQuery(order_by="title", direction="desc", limit=2, offset=1)
        )
        assert [c.title for c in page] == ["c", "b"]

        alice_writer = await manager.conversations.query(
            ConversationQuery(user_id="alice", resource_id="writer", order_by="title", direction="ASC")
        )
        assert [c.id for c in alice_writer] == ["c1", "c3"]

    async def test_query_metadata_filters(self, manager):
        await manager.conversations.create("writer", "alice", "c1", metadata={"pinned": True})
        await manager.conversations.create("writer", "alice", "c2", metadata={"pinned": False})

        pinned = await manager.conversations.query(ConversationQuery(filters={"pinned": True}))
        assert [c.id for c in pinned] == ["c1"]

    async def test_query_rejects_unknown_order(self, manager):
        with pytest.raises(ValidationError):
            await manager.conversations.query(ConversationQuery(order_by="size"))

    async def test_query_skips_corrupt_records(self, manager, temp_dir):
        await manager.conversations.create("writer", "alice", "c1")
        corrupt = memory_dir(temp_dir, "writer") / "conversations" / "broken.json"
        corrupt.write_text("{not json")

        conversations = await manager.conversations.list_conversations("writer")
        assert [c.id for c in conversations] == ["c1"]


class TestFileMessageLog:
    """Tests for FileMessageLog."""

    async def test_append_and_read(self, manager, temp_dir):
        """Messages come back in append order, one NDJSON line each."""
        await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append("writer", "c1", {"role": "user", "content": "one"})
        await manager.messages.append_batch("writer", "c1", [
            {"role": "assistant", "content": "two"},
            {"role": "user", "content": "three"},
        ])

        path = memory_dir(temp_dir, "writer") / "sessions" / "c1.ndjson"
        assert len(path.read_text().splitlines()) == 3

        messages = await manager.messages.read("writer", "c1")
        assert [m["content"] for m in messages] == ["one", "two", "three"]

    async def test_read_limit_returns_last(self, manager):
        await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append_batch(
            "writer", "c1", [{"role": "user", "content": str(i)} for i in range(5)]
        )

        messages = await manager.messages.read("writer", "c1", limit=2)
        assert [m["content"] for m in messages] == ["3", "4"]
        assert await manager.messages.read("writer", "c1", limit=0) == []

    async def test_read_missing_is_empty(self, manager):
        assert await manager.messages.read("writer", "nothing") == []
        assert await manager.messages.read(None, "nothing") == []

    async def test_append_touches_conversation(self, manager):
        created = await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append("writer", "c1", {"role": "user", "content": "hi"})

        loaded = await manager.conversations.get("c1")
        assert loaded.updated_at >= created.updated_at
        assert loaded.created_at == created.created_at

    async def test_append_moves_conversation_to_front(self, manager):
        await manager.conversations.create("writer", "alice", "old")
        await manager.conversations.create("writer", "alice", "new")
        await manager.messages.append("writer", "old", {"role": "user", "content": "hi"})

        recent = await manager.conversations.query(
            ConversationQuery(order_by="updated_at", direction=SortDirection.DESC)
        )
        assert [c.id for c in recent] == ["old", "new"]

    async def test_append_under_other_resource_rejected(self, manager, temp_dir):
        """History stays with the owning resource."""
        await manager.conversations.create("writer", "u1", "c1")

        with pytest.raises(ValidationError) as exc_info:
            await manager.messages.append("coder", "c1", {"role": "user", "content": "hi"})
        assert exc_info.value.field == "resource_id"
        assert not (memory_dir(temp_dir, "coder") / "sessions" / "c1.ndjson").exists()

        await manager.messages.append(None, "c1", {"role": "user", "content": "hi"})
        assert len(await manager.messages.read(None, "c1")) == 1
        assert (await manager.conversations.get("c1")).resource_id == "writer"

    async def test_append_creates_conversation_for_known_resource(self, manager):
        """The first message for a known resource creates the conversation."""
        await manager.messages.append("writer", "c9", {"role": "user", "content": "hi"})

        conversation = await manager.conversations.get("c9")
        assert conversation is not None
        assert conversation.resource_id == "writer"

    async def test_append_without_resource_resolves_owner(self, manager):
        await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append(None, "c1", {"role": "user", "content": "hi"})

        assert len(await manager.messages.read(None, "c1")) == 1

    async def test_append_to_ghost_raises(self, manager, temp_dir):
        """Appending without a resource to an unknown conversation writes nothing."""
        with pytest.raises(ConversationNotFoundError):
            await manager.messages.append(None, "ghost", {"role": "user", "content": "hi"})
        assert list(temp_dir.iterdir()) == []

    async def test_malformed_lines_skipped(self, manager, temp_dir):
        await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append("writer", "c1", {"role": "user", "content": "ok"})

        path = memory_dir(temp_dir, "writer") / "sessions" / "c1.ndjson"
        with open(path, "a") as f:
            f.write("{broken\n\n")
        await manager.messages.append("writer", "c1", {"role": "assistant", "content": "fine"})

        messages = await manager.messages.read("writer", "c1")
        assert [m["content"] for m in messages] == ["ok", "fine"]

    async def test_undecodable_lines_skipped(self, manager, temp_dir):
        await manager.messages.append("writer", "c1", {"role": "user", "content": "one"})

        path = memory_dir(temp_dir, "writer") / "sessions" / "c1.ndjson"
        with open(path, "ab") as f:
            f.write(b'{"role":"user","content":"\xff\xfe"}\n')
        await manager.messages.append("writer", "c1", {"role": "user", "content": "two"})

        messages = await manager.messages.read("writer", "c1")
        assert [m["content"] for m in messages] == ["one", "two"]

    async def test_clear_truncates(self, manager, temp_dir):
        """Clearing keeps the file but empties it."""
        await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append("writer", "c1", {"role": "user", "content": "hi"})

        await manager.messages.clear("c1")

        path = memory_dir(temp_dir, "writer") / "sessions" / "c1.ndjson"
        assert path.exists()
        assert path.stat().st_size == 0
        assert await manager.messages.read("writer", "c1") == []

    async def test_read_rescans_when_conversation_moved(self, manager, temp_dir):
        """A stale cached owner is re-resolved before giving up on history."""
        await manager.conversations.create("writer", "alice", "c1")
        await manager.messages.append("writer", "c1", {"role": "user", "content": "hi"})
        assert await manager.conversations.resolve_resource("c1") == "writer"

        shutil.move(str(memory_dir(temp_dir, "writer")), str(memory_dir(temp_dir, "coder")))

        messages = await manager.messages.read(None, "c1")
        assert [m["content"] for m in messages] == ["hi"]

    async def test_unbound_log_requires_resource(self, temp_dir):
        log = FileMessageLog(temp_dir)
        await log.append("writer", "c1", {"role": "user", "content": "hi"})
        assert len(await log.read("writer", "c1")) == 1

        with pytest.raises(ConversationNotFoundError):
            await log.append(None, "c1", {"role": "user", "content": "hi"})


class TestFileWorkingMemoryStore:
    """Tests for FileWorkingMemoryStore."""

    async def test_set_and_get(self, manager, temp_dir):
        record = await manager.working_memory.set(
            "writer", WorkingMemoryScope.CONVERSATION, "c1", "Outline drafted"
        )
        assert record.content == "Outline drafted"

        path = memory_dir(temp_dir, "writer") / "working" / "conversation" / "c1.json"
        data = json.loads(path.read_text())
        assert data["content"] == "Outline drafted"
        assert "updatedAt" in data

        loaded = await manager.working_memory.get("writer", WorkingMemoryScope.CONVERSATION, "c1")
        assert loaded.content == "Outline drafted"
        assert loaded.scope == WorkingMemoryScope.CONVERSATION

    async def test_scopes_do_not_collide(self, manager):
        """The same key in both scopes holds two separate notes."""
        await manager.working_memory.set("writer", WorkingMemoryScope.CONVERSATION, "x", "conversation note")
        await manager.working_memory.set("writer", WorkingMemoryScope.USER, "x", "user note")

        conversation = await manager.working_memory.get("writer", WorkingMemoryScope.CONVERSATION, "x")
        user = await manager.working_memory.get("writer", WorkingMemoryScope.USER, "x")
        assert conversation.content == "conversation note"
        assert user.content == "user note"

    async def test_user_scope_sanitizes_key(self, manager, temp_dir):
        await manager.working_memory.set("writer", "user", "alice@example.com", "Likes haiku")

        path = memory_dir(temp_dir, "writer") / "working" / "user" / "alice_example.com.json"
        assert path.exists()
        loaded = await manager.working_memory.get("writer", WorkingMemoryScope.USER, "alice@example.com")
        assert loaded.content == "Likes haiku"

    async def test_get_nonexistent(self, manager):
        assert await manager.working_memory.get("writer", WorkingMemoryScope.USER, "nobody") is None

    async def test_legacy_fallback(self, manager, temp_dir):
        """Conversation notes fall back to the flat legacy file."""
        legacy = memory_dir(temp_dir, "writer") / "working" / "c1.json"
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({
            "conversationId": "c1",
            "memory": "legacy note",
            "updatedAt": "2024-05-01T10:00:00.000Z",
        }))

        loaded = await manager.working_memory.get("writer", WorkingMemoryScope.CONVERSATION, "c1")
        assert loaded.content == "legacy note"
        assert loaded.updated_at.year == 2024

        # User scope never reads the legacy layout
        assert await manager.working_memory.get("writer", WorkingMemoryScope.USER, "c1") is None

    async def test_new_layout_wins_over_legacy(self, manager, temp_dir):
        legacy = memory_dir(temp_dir, "writer") / "working" / "c1.json"
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({"memory": "old", "updatedAt": "2024-05-01T10:00:00Z"}))
        await manager.working_memory.set("writer", WorkingMemoryScope.CONVERSATION, "c1", "new")

        loaded = await manager.working_memory.get("writer", WorkingMemoryScope.CONVERSATION, "c1")
        assert loaded.content == "new"

    async def test_delete(self, manager):
        await manager.working_memory.set("writer", WorkingMemoryScope.USER, "alice", "note")
        assert await manager.working_memory.delete("writer", WorkingMemoryScope.USER, "alice") is True
        assert await manager.working_memory.get("writer", WorkingMemoryScope.USER, "alice") is None
        assert await manager.working_memory.delete("writer", WorkingMemoryScope.USER, "alice") is False


class TestFileWorkflowStateStore:
    """Tests for FileWorkflowStateStore."""

    async def test_set_and_get(self, manager, temp_dir):
        entry = WorkflowStateEntry(execution_id="e1", workflow_id="publish", input={"doc": 1})
        await manager.workflows.set(entry)

        path = temp_dir / "workflows" / "states" / "e1.json"
        data = json.loads(path.read_text())
        assert data["id"] == "e1"
        assert data["status"] == "running"

        loaded = await manager.workflows.get("e1")
        assert loaded.workflow_id == "publish"
        assert loaded.status == WorkflowStatus.RUNNING
        assert loaded.input == {"doc": 1}
        assert loaded.created_at == entry.created_at

    async def test_get_nonexistent(self, manager):
        assert await manager.workflows.get("missing") is None

    async def test_update_preserves_identity(self, manager):
        entry = WorkflowStateEntry(execution_id="e1", workflow_id="publish")
        await manager.workflows.set(entry)

        updated = await manager.workflows.update(
            "e1", {"status": "completed", "output": "done", "created_at": "ignored"}
        )
        assert updated.status == WorkflowStatus.COMPLETED
        assert updated.output == "done"
        assert updated.execution_id == "e1"
        assert updated.created_at == entry.created_at
        assert updated.updated_at >= entry.updated_at

    async def test_update_merges_suspension(self, manager):
        """Suspension fields are merged, not replaced."""
        await manager.workflows.set(WorkflowStateEntry(
            execution_id="e1",
            workflow_id="publish",
            status=WorkflowStatus.SUSPENDED,
            suspension=Suspension(checkpoint={"step": 2}, reason="needs approval"),
        ))

        updated = await manager.workflows.update("e1", {"suspension": {"checkpoint": {"step": 3}}})
        assert updated.suspension.checkpoint == {"step": 3}
        assert updated.suspension.reason == "needs approval"

        cleared = await manager.workflows.update("e1", {"status": "running", "suspension": None})
        assert cleared.suspension is None

    async def test_update_missing(self, manager, temp_dir):
        with pytest.raises(WorkflowStateNotFoundError):
            await manager.workflows.update("missing", {"status": "completed"})
        assert not (temp_dir / "workflows" / "states" / "missing.json").exists()

    async def test_get_suspended_skips_corrupt(self, manager, temp_dir):
        await manager.workflows.set(WorkflowStateEntry(
            execution_id="e1", workflow_id="publish", status=WorkflowStatus.SUSPENDED,
            suspension=Suspension(checkpoint="a"),
        ))
        await manager.workflows.set(WorkflowStateEntry(
            execution_id="e2", workflow_id="publish", status=WorkflowStatus.RUNNING,
        ))
        await manager.workflows.set(WorkflowStateEntry(
            execution_id="e3", workflow_id="review", status=WorkflowStatus.SUSPENDED,
        ))
        (temp_dir / "workflows" / "states" / "corrupt.json").write_text("not json")

        suspended = await manager.workflows.get_suspended("publish")
        assert [e.execution_id for e in suspended] == ["e1"]
        assert suspended[0].suspension.checkpoint == "a"

    async def test_set_keeps_created_at(self, manager):
        first = WorkflowStateEntry(
            execution_id="e1", workflow_id="w", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        await manager.workflows.set(first)
        await manager.workflows.set(WorkflowStateEntry(
            execution_id="e1", workflow_id="w", status=WorkflowStatus.COMPLETED,
        ))

        loaded = await manager.workflows.get("e1")
        assert loaded.status == WorkflowStatus.COMPLETED
        assert loaded.created_at == first.created_at

    async def test_get_suspended_drops_resumed_entries(self, manager):
        await manager.workflows.set(WorkflowStateEntry(
            execution_id="e1", workflow_id="publish", status=WorkflowStatus.SUSPENDED,
            suspension=Suspension(checkpoint="a"),
        ))
        assert [e.execution_id for e in await manager.workflows.get_suspended("publish")] == ["e1"]

        await manager.workflows.update("e1", {"status": "running", "suspension": None})
        assert await manager.workflows.get_suspended("publish") == []

    async def test_list_and_delete(self, manager):
        await manager.workflows.set(WorkflowStateEntry(execution_id="e1", workflow_id="w"))
        await manager.workflows.set(WorkflowStateEntry(
            execution_id="e2", workflow_id="w", status=WorkflowStatus.ERROR,
        ))

        assert {e.execution_id for e in await manager.workflows.list_states()} == {"e1", "e2"}
        errors = await manager.workflows.list_states(status=WorkflowStatus.ERROR)
        assert [e.execution_id for e in errors] == ["e2"]

        assert await manager.workflows.delete("e1") is True
        assert await manager.workflows.get("e1") is None
        assert await manager.workflows.delete("e1") is False


class TestResourceMemory:
    """Tests for the per-resource memory binding."""

    async def test_bound_operations(self, manager):
        memory = manager.for_resource("writer")
        await memory.create_conversation("alice", "c1", title="Draft")
        await memory.append_message("c1", {"role": "user", "content": "hi"})
        await memory.append_messages("c1", [{"role": "assistant", "content": "hello"}])

        assert [c.id for c in await memory.list_conversations()] == ["c1"]
        assert len(await memory.read_messages("c1")) == 2

        await memory.set_working_memory(WorkingMemoryScope.USER, "alice", "note")
        assert (await memory.get_working_memory(WorkingMemoryScope.USER, "alice")).content == "note"

        await memory.clear_messages("c1")
        assert await memory.read_messages("c1") == []

    async def test_resources_are_isolated(self, manager):
        writer = manager.for_resource("writer")
        coder = manager.for_resource("coder")
        await writer.create_conversation("alice", "c1")
        await coder.create_conversation("alice", "c2")

        assert [c.id for c in await writer.list_conversations()] == ["c1"]
        query = ConversationQuery(user_id="alice")
        assert [c.id for c in await coder.query_conversations(query)] == ["c2"]
        assert query.resource_id is None
