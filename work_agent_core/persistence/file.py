"""
File-based implementations of the persistence stores.

Everything lives below one root directory (the work agent directory):
- {root}/agents/{resource_id}/memory/conversations/{conversation_id}.json
- {root}/agents/{resource_id}/memory/sessions/{conversation_id}.ndjson
- {root}/agents/{resource_id}/memory/working/conversation/{conversation_id}.json
- {root}/agents/{resource_id}/memory/working/user/{sanitized_user_id}.json
- {root}/workflows/states/{execution_id}.json

Records are JSON with camelCase keys; message logs hold one JSON object per
line. There is no central index: conversation ownership is resolved by
scanning resource directories, with an in-memory cache in front.
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiofiles
import aiofiles.os

from work_agent_core.exceptions import (
    ConversationNotFoundError,
    ParseError,
    ValidationError,
    WorkflowStateNotFoundError,
)
from work_agent_core.persistence.base import (
    DEFAULT_RESOURCE_ID,
    ORDER_BY_FIELDS,
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
    utcnow,
)

logger = logging.getLogger(__name__)

_UNSAFE_USER_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _safe_id(value: str, field: str = "id") -> str:
    """Check that an identifier can be used as a file name as-is."""
    if not value or value in (".", "..") or "/" in value or "\\" in value:
        raise ValidationError(field, f"{value!r} is not a valid identifier")
    return value


def sanitize_user_id(user_id: str) -> str:
    return _UNSAFE_USER_CHARS.sub("_", user_id)


def _memory_dir(root: Path, resource_id: str) -> Path:
    return root / "agents" / _safe_id(resource_id, "resource_id") / "memory"


def _format_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 string, accepting a trailing Z."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    raise ValueError(f"Not a timestamp: {value!r}")


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, indent=2)


async def _read_json(path: Path) -> dict:
    """Read a JSON record, raising ParseError if it is not a JSON object."""
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        raw = await f.read()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ParseError(str(path), "expected a JSON object")
    return data


async def _write_json(path: Path, data: dict) -> None:
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(_json_dumps(data))


async def _remove(path: Path) -> bool:
    if await aiofiles.os.path.exists(path):
        await aiofiles.os.remove(path)
        return True
    return False


async def _list_json_files(directory: Path, suffix: str = ".json") -> list[Path]:
    if not await aiofiles.os.path.isdir(directory):
        return []
    names = await aiofiles.os.listdir(directory)
    return [directory / name for name in sorted(names) if name.endswith(suffix)]


class FileConversationStore(ConversationStore):
    """
    File-based conversation metadata store.

    Deleting a conversation cascades to the message log and to the
    conversation-scoped working memory when those stores are provided.

    Concurrent create/update calls for the same id are last-write-wins.
    """

    _UPDATABLE_FIELDS = {"title", "metadata", "user_id"}
    _PRESERVED_FIELDS = {"id", "resource_id", "created_at", "updated_at"}

    def __init__(
        self,
        root_dir: Path,
        message_log: Optional[MessageLog] = None,
        working_memory: Optional[WorkingMemoryStore] = None,
    ):
        self._root = Path(root_dir)
        self._message_log = message_log
        self._working_memory = working_memory
        # conversation id -> owning resource id
        self._resource_cache: dict[str, str] = {}

    def _get_conversations_path(self, resource_id: str) -> Path:
        return _memory_dir(self._root, resource_id) / "conversations"

    def _get_conversation_path(self, resource_id: str, conversation_id: str) -> Path:
        return self._get_conversations_path(resource_id) / f"{_safe_id(conversation_id, 'conversation_id')}.json"

    async def _known_resources(self) -> list[str]:
        agents_dir = self._root / "agents"
        if not await aiofiles.os.path.isdir(agents_dir):
            return []
        return sorted(await aiofiles.os.listdir(agents_dir))

    def _serialize(self, conversation: Conversation) -> dict:
        return {
            "id": conversation.id,
            "resourceId": conversation.resource_id,
            "userId": conversation.user_id,
            "title": conversation.title,
            "metadata": conversation.metadata,
            "createdAt": _format_datetime(conversation.created_at),
            "updatedAt": _format_datetime(conversation.updated_at),
        }

    def _deserialize(self, data: dict, resource_id: str) -> Conversation:
        return Conversation(
            id=data["id"],
            # The directory a record lives in is its owner
            resource_id=resource_id,
            user_id=data.get("userId", ""),
            title=data.get("title") or "",
            metadata=data.get("metadata") or {},
            created_at=_parse_datetime(data["createdAt"]),
            updated_at=_parse_datetime(data["updatedAt"]),
        )

    async def _load(self, path: Path, resource_id: str) -> Conversation:
        data = await _read_json(path)
        try:
            return self._deserialize(data, resource_id)
        except (KeyError, ValueError, TypeError) as e:
            raise ParseError(str(path), str(e)) from e

    async def _save(self, conversation: Conversation) -> None:
        path = self._get_conversation_path(conversation.resource_id, conversation.id)
        await _write_json(path, self._serialize(conversation))
        self._resource_cache[conversation.id] = conversation.resource_id

    async def _load_resource(self, resource_id: str) -> list[Conversation]:
        conversations = []
        for path in await _list_json_files(self._get_conversations_path(resource_id)):
            try:
                conversation = await self._load(path, resource_id)
            except (ParseError, OSError) as e:
                logger.warning(f"Skipping unreadable conversation record {path}: {e}")
                continue
            self._resource_cache[conversation.id] = resource_id
            conversations.append(conversation)
        return conversations

    async def _require(self, conversation_id: str) -> Conversation:
        conversation = await self.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def resolve_resource(self, conversation_id: str) -> Optional[str]:
        cached = self._resource_cache.get(conversation_id)
        if cached is not None:
            if await aiofiles.os.path.exists(self._get_conversation_path(cached, conversation_id)):
                return cached
            del self._resource_cache[conversation_id]

        for resource_id in await self._known_resources():
            path = self._get_conversation_path(resource_id, conversation_id)
            if await aiofiles.os.path.exists(path):
                self._resource_cache[conversation_id] = resource_id
                return resource_id
        return None

    async def create(
        self,
        resource_id: Optional[str],
        user_id: str,
        conversation_id: str,
        title: str = "",
        metadata: Optional[dict] = None,
    ) -> Conversation:
        if resource_id is None:
            slug, _ = split_scoped_user_id(user_id)
            resource_id = slug or DEFAULT_RESOURCE_ID

        previous_owner = await self.resolve_resource(conversation_id)
        if previous_owner is not None and previous_owner != resource_id:
            logger.warning(
                f"Conversation {conversation_id} moves from resource "
                f"'{previous_owner}' to '{resource_id}'"
            )
            await _remove(self._get_conversation_path(previous_owner, conversation_id))

        now = utcnow()
        conversation = Conversation(
            id=conversation_id,
            resource_id=resource_id,
            user_id=user_id,
            title=title or "",
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        await self._save(conversation)
        return conversation

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        resource_id = await self.resolve_resource(conversation_id)
        if resource_id is None:
            return None
        path = self._get_conversation_path(resource_id, conversation_id)
        try:
            return await self._load(path, resource_id)
        except ParseError as e:
            logger.warning(str(e))
            return None

    async def list_conversations(self, resource_id: str) -> list[Conversation]:
        return await self.query(ConversationQuery(resource_id=resource_id))

    async def list_by_user(self, user_id: str) -> list[Conversation]:
        return await self.query(ConversationQuery(user_id=user_id))

    async def query(self, query: ConversationQuery) -> list[Conversation]:
        if query.order_by not in ORDER_BY_FIELDS:
            raise ValidationError(
                "order_by", f"must be one of: {', '.join(ORDER_BY_FIELDS)}"
            )
        direction = query.direction
        if not isinstance(direction, SortDirection):
            direction = SortDirection(str(direction).upper())

        if query.resource_id is not None:
            resources = [query.resource_id]
        else:
            resources = await self._known_resources()

        conversations = []
        for resource_id in resources:
            for conversation in await self._load_resource(resource_id):
                if query.user_id is not None and not self._matches_user(conversation, query.user_id):
                    continue
                if any(conversation.metadata.get(k) != v for k, v in query.filters.items()):
                    continue
                conversations.append(conversation)

        conversations.sort(
            key=lambda c: getattr(c, query.order_by),
            reverse=direction == SortDirection.DESC,
        )

        start = max(query.offset, 0)
        if query.limit is None:
            return conversations[start:]
        return conversations[start:start + query.limit]

    @staticmethod
    def _matches_user(conversation: Conversation, user_id: str) -> bool:
        if conversation.user_id == user_id:
            return True
        _, plain_id = split_scoped_user_id(conversation.user_id)
        return plain_id == user_id

    async def update(self, conversation_id: str, partial: dict) -> Conversation:
        unknown = set(partial) - self._UPDATABLE_FIELDS - self._PRESERVED_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not an updatable conversation field")

        conversation = await self._require(conversation_id)
        for key in self._UPDATABLE_FIELDS:
            if key in partial:
                setattr(conversation, key, partial[key])
        conversation.updated_at = utcnow()
        await self._save(conversation)
        return conversation

    async def touch(self, conversation_id: str) -> Conversation:
        conversation = await self._require(conversation_id)
        conversation.updated_at = utcnow()
        await self._save(conversation)
        return conversation

    async def delete(self, conversation_id: str) -> bool:
        resource_id = await self.resolve_resource(conversation_id)
        if resource_id is None:
            return False

        await _remove(self._get_conversation_path(resource_id, conversation_id))
        if self._message_log is not None:
            await self._message_log.delete(resource_id, conversation_id)
        if self._working_memory is not None:
            await self._working_memory.delete(
                resource_id, WorkingMemoryScope.CONVERSATION, conversation_id
            )
        self._resource_cache.pop(conversation_id, None)
        return True


class FileMessageLog(MessageLog):
    """
    NDJSON message log, one file per conversation.

    Each append invocation is a single write call sized to its payload and is
    followed by a touch of the conversation record. The two are not
    transactional: a crash in between leaves updated_at stale.
    """

    def __init__(self, root_dir: Path, conversations: Optional[ConversationStore] = None):
        self._root = Path(root_dir)
        self._conversations = conversations

    def bind(self, conversations: ConversationStore) -> None:
        """Attach the conversation store used for touches and owner resolution."""
        self._conversations = conversations

    def _get_sessions_path(self, resource_id: str) -> Path:
        return _memory_dir(self._root, resource_id) / "sessions"

    def _get_messages_path(self, resource_id: str, conversation_id: str) -> Path:
        return self._get_sessions_path(resource_id) / f"{_safe_id(conversation_id, 'conversation_id')}.ndjson"

    async def _resolve(self, resource_id: Optional[str], conversation_id: str) -> Optional[str]:
        if resource_id is not None:
            return resource_id
        if self._conversations is None:
            return None
        return await self._conversations.resolve_resource(conversation_id)

    async def _resolve_for_write(self, resource_id: Optional[str], conversation_id: str) -> Optional[str]:
        if self._conversations is None:
            return resource_id
        owner = await self._conversations.resolve_resource(conversation_id)
        if owner is None:
            return resource_id
        if resource_id is not None and resource_id != owner:
            raise ValidationError(
                "resource_id",
                f"conversation {conversation_id} belongs to '{owner}', not '{resource_id}'",
            )
        return owner

    async def _after_append(self, resource_id: str, conversation_id: str) -> None:
        if self._conversations is None:
            return
        try:
            await self._conversations.touch(conversation_id)
        except ConversationNotFoundError:
            # First message of a conversation nobody created explicitly
            await self._conversations.create(resource_id, "", conversation_id)

    async def append(
        self,
        resource_id: Optional[str],
        conversation_id: str,
        message: Message,
    ) -> None:
        await self.append_batch(resource_id, conversation_id, [message])

    async def append_batch(
        self,
        resource_id: Optional[str],
        conversation_id: str,
        messages: list[Message],
    ) -> None:
        resolved = await self._resolve_for_write(resource_id, conversation_id)
        if resolved is None:
            raise ConversationNotFoundError(conversation_id)
        if not messages:
            return

        path = self._get_messages_path(resolved, conversation_id)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        payload = "".join(json.dumps(m) + "\n" for m in messages)
        async with aiofiles.open(path, "a", encoding="utf-8") as f:
            await f.write(payload)

        await self._after_append(resolved, conversation_id)

    async def read(
        self,
        resource_id: Optional[str],
        conversation_id: str,
        limit: Optional[int] = None,
    ) -> list[Message]:
        path = await self._locate(resource_id, conversation_id)
        if path is None:
            return []

        messages: list[Message] = []
        async with aiofiles.open(path, "rb") as f:
            line_number = 0
            async for line in f:
                line_number += 1
                if not line.strip():
                    continue
                try:
                    messages.append(json.loads(line.decode("utf-8")))
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    logger.warning(f"Skipping malformed message at {path}:{line_number}: {e}")

        if limit is not None and len(messages) > limit:
            return messages[-limit:] if limit > 0 else []
        return messages

    async def _locate(self, resource_id: Optional[str], conversation_id: str) -> Optional[Path]:
        """
        Find the log file of a conversation.

        When only the conversation id is known and the path derived from the
        cached owner does not exist, the owner is resolved again by scanning
        before concluding the conversation has no history.
        """
        resolved = await self._resolve(resource_id, conversation_id)
        if resolved is not None:
            path = self._get_messages_path(resolved, conversation_id)
            if await aiofiles.os.path.exists(path):
                return path
        if resource_id is not None or self._conversations is None:
            return None

        # The cached owner may be stale: resolve_resource drops it when the
        # metadata file has moved, so a second lookup rescans the resources.
        rescanned = await self._conversations.resolve_resource(conversation_id)
        if rescanned is None or rescanned == resolved:
            return None
        path = self._get_messages_path(rescanned, conversation_id)
        if await aiofiles.os.path.exists(path):
            return path
        return None

    async def clear(self, conversation_id: str, resource_id: Optional[str] = None) -> None:
        path = await self._locate(resource_id, conversation_id)
        if path is None:
            return
        async with aiofiles.open(path, "w", encoding="utf-8"):
            pass

    async def delete(self, resource_id: str, conversation_id: str) -> bool:
        return await _remove(self._get_messages_path(resource_id, conversation_id))


class FileWorkingMemoryStore(WorkingMemoryStore):
    """
    Working memory notes as JSON files `{content, updatedAt}`.

    Conversation and user notes live in separate subdirectories, so the two
    key namespaces never collide.
    """

    def __init__(self, root_dir: Path):
        self._root = Path(root_dir)

    def _get_working_path(self, resource_id: str) -> Path:
        return _memory_dir(self._root, resource_id) / "working"

    def _get_note_path(self, resource_id: str, scope: WorkingMemoryScope, key: str) -> Path:
        scope = WorkingMemoryScope(scope)
        if scope == WorkingMemoryScope.USER:
            file_key = sanitize_user_id(key)
        else:
            file_key = _safe_id(key)
        return self._get_working_path(resource_id) / scope.value / f"{file_key}.json"

    def _get_legacy_path(self, resource_id: str, conversation_id: str) -> Path:
        # Flat layout used before notes were split by scope
        return self._get_working_path(resource_id) / f"{_safe_id(conversation_id)}.json"

    async def get(
        self,
        resource_id: str,
        scope: WorkingMemoryScope,
        key: str,
    ) -> Optional[WorkingMemoryRecord]:
        scope = WorkingMemoryScope(scope)
        path = self._get_note_path(resource_id, scope, key)
        if await aiofiles.os.path.exists(path):
            return await self._load(path, scope, key, content_key="content")

        if scope == WorkingMemoryScope.CONVERSATION:
            legacy = self._get_legacy_path(resource_id, key)
            if await aiofiles.os.path.exists(legacy):
                return await self._load(legacy, scope, key, content_key="memory")
        return None

    async def _load(
        self,
        path: Path,
        scope: WorkingMemoryScope,
        key: str,
        content_key: str,
    ) -> Optional[WorkingMemoryRecord]:
        try:
            data = await _read_json(path)
            content = data.get(content_key)
            if content is None:
                return None
            return WorkingMemoryRecord(
                scope=scope,
                owner_key=key,
                content=content,
                updated_at=_parse_datetime(data["updatedAt"]),
            )
        except (ParseError, KeyError, ValueError) as e:
            logger.warning(f"Unreadable working memory at {path}: {e}")
            return None

    async def set(
        self,
        resource_id: str,
        scope: WorkingMemoryScope,
        key: str,
        content: str,
    ) -> WorkingMemoryRecord:
        scope = WorkingMemoryScope(scope)
        record = WorkingMemoryRecord(scope=scope, owner_key=key, content=content)
        await _write_json(
            self._get_note_path(resource_id, scope, key),
            {"content": content, "updatedAt": _format_datetime(record.updated_at)},
        )
        return record

    async def delete(self, resource_id: str, scope: WorkingMemoryScope, key: str) -> bool:
        scope = WorkingMemoryScope(scope)
        removed = await _remove(self._get_note_path(resource_id, scope, key))
        if scope == WorkingMemoryScope.CONVERSATION:
            removed = await _remove(self._get_legacy_path(resource_id, key)) or removed
        return removed


class FileWorkflowStateStore(WorkflowStateStore):
    """
    Workflow checkpoints in a global directory: {root}/workflows/states/.

    Scans (get_suspended, list_states) read every entry; corrupt entries are
    logged and skipped.
    """

    _UPDATABLE_FIELDS = {"workflow_id", "status", "suspension", "user_id", "input", "context", "output", "metadata"}
    _PRESERVED_FIELDS = {"execution_id", "created_at", "updated_at"}
    _SUSPENSION_FIELDS = {"checkpoint", "suspended_at", "reason"}

    def __init__(self, root_dir: Path):
        self._root = Path(root_dir)

    def _get_states_path(self) -> Path:
        return self._root / "workflows" / "states"

    def _get_state_path(self, execution_id: str) -> Path:
        return self._get_states_path() / f"{_safe_id(execution_id, 'execution_id')}.json"

    def _serialize(self, entry: WorkflowStateEntry) -> dict:
        suspension = None
        if entry.suspension is not None:
            suspension = {
                "checkpoint": entry.suspension.checkpoint,
                "suspendedAt": _format_datetime(entry.suspension.suspended_at),
                "reason": entry.suspension.reason,
            }
        return {
            "id": entry.execution_id,
            "workflowId": entry.workflow_id,
            "status": WorkflowStatus(entry.status).value,
            "createdAt": _format_datetime(entry.created_at),
            "updatedAt": _format_datetime(entry.updated_at),
            "suspension": suspension,
            "userId": entry.user_id,
            "input": entry.input,
            "context": entry.context,
            "output": entry.output,
            "metadata": entry.metadata,
        }

    def _deserialize(self, data: dict) -> WorkflowStateEntry:
        suspension = None
        raw_suspension = data.get("suspension")
        if raw_suspension:
            suspension = Suspension(
                checkpoint=raw_suspension.get("checkpoint"),
                suspended_at=_parse_datetime(raw_suspension["suspendedAt"]),
                reason=raw_suspension.get("reason"),
            )
        return WorkflowStateEntry(
            execution_id=data.get("id") or data["executionId"],
            workflow_id=data["workflowId"],
            status=WorkflowStatus(data["status"]),
            created_at=_parse_datetime(data["createdAt"]),
            updated_at=_parse_datetime(data["updatedAt"]),
            suspension=suspension,
            user_id=data.get("userId"),
            input=data.get("input"),
            context=data.get("context") or {},
            output=data.get("output"),
            metadata=data.get("metadata") or {},
        )

    async def _load(self, path: Path) -> WorkflowStateEntry:
        data = await _read_json(path)
        try:
            return self._deserialize(data)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise ParseError(str(path), str(e)) from e

    async def get(self, execution_id: str) -> Optional[WorkflowStateEntry]:
        path = self._get_state_path(execution_id)
        if not await aiofiles.os.path.exists(path):
            return None
        return await self._load(path)

    async def set(self, entry: WorkflowStateEntry) -> None:
        """Store an entry; an existing entry keeps its original created_at."""
        try:
            existing = await self.get(entry.execution_id)
        except ParseError as e:
            logger.warning(f"Overwriting corrupt workflow state: {e}")
            existing = None
        if existing is not None:
            entry.created_at = existing.created_at
        await _write_json(self._get_state_path(entry.execution_id), self._serialize(entry))

    async def update(self, execution_id: str, partial: dict) -> WorkflowStateEntry:
        unknown = set(partial) - self._UPDATABLE_FIELDS - self._PRESERVED_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not an updatable workflow state field")

        entry = await self.get(execution_id)
        if entry is None:
            raise WorkflowStateNotFoundError(execution_id)

        for key in self._UPDATABLE_FIELDS - {"suspension", "status"}:
            if key in partial:
                setattr(entry, key, partial[key])
        if "status" in partial:
            entry.status = WorkflowStatus(partial["status"])
        if "suspension" in partial:
            entry.suspension = self._merge_suspension(entry.suspension, partial["suspension"])

        entry.updated_at = utcnow()
        await self.set(entry)
        return entry

    def _merge_suspension(
        self,
        existing: Optional[Suspension],
        partial: Optional[Any],
    ) -> Optional[Suspension]:
        """Merge suspension fields; None clears the suspension."""
        if partial is None:
            return None
        if isinstance(partial, Suspension):
            partial = {
                "checkpoint": partial.checkpoint,
                "suspended_at": partial.suspended_at,
                "reason": partial.reason,
            }
        unknown = set(partial) - self._SUSPENSION_FIELDS
        if unknown:
            raise ValidationError(f"suspension.{sorted(unknown)[0]}", "is not a suspension field")

        merged = existing or Suspension()
        if "checkpoint" in partial:
            merged.checkpoint = partial["checkpoint"]
        if "suspended_at" in partial:
            merged.suspended_at = _parse_datetime(partial["suspended_at"])
        if "reason" in partial:
            merged.reason = partial["reason"]
        return merged

    async def _scan(self) -> list[WorkflowStateEntry]:
        entries = []
        for path in await _list_json_files(self._get_states_path()):
            try:
                entries.append(await self._load(path))
            except (ParseError, OSError) as e:
                logger.warning(f"Skipping corrupt workflow state {path}: {e}")
        return entries

    async def get_suspended(self, workflow_id: str) -> list[WorkflowStateEntry]:
        return [
            entry for entry in await self._scan()
            if entry.status == WorkflowStatus.SUSPENDED and entry.workflow_id == workflow_id
        ]

    async def list_states(self, status: Optional[WorkflowStatus] = None) -> list[WorkflowStateEntry]:
        entries = await self._scan()
        if status is not None:
            entries = [e for e in entries if e.status == WorkflowStatus(status)]
        entries.sort(key=lambda e: e.updated_at, reverse=True)
        return entries

    async def delete(self, execution_id: str) -> bool:
        return await _remove(self._get_state_path(execution_id))
