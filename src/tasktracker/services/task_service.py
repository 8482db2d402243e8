"""Task repository — owner-scoped task CRUD.

Learn: Every query this service builds starts from {"owner_id": owner_id}.
There is no code path that looks a task up by id alone, so another user's
task is simply never found: update/delete of a foreign id return NotFound,
the same as a missing id. The caller can't tell the two apart.

Search (`q`) matches the title only, case-insensitively. The description
is deliberately not searched.

Defaults (status "todo", priority "medium", empty description, timestamps)
are filled in here before the insert; the store doesn't invent values.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

import structlog

from tasktracker.db.store import Contains, DocumentStore
from tasktracker.errors import ErrorKind, Result

logger = structlog.get_logger()

TASKS = "tasks"

STATUSES = ("todo", "in-progress", "completed")
PRIORITIES = ("low", "medium", "high")
DEFAULT_STATUS = "todo"
DEFAULT_PRIORITY = "medium"

UPDATABLE_FIELDS = ("title", "description", "status", "priority")
PUBLIC_FIELDS = ("id", "title", "description", "status", "priority", "created_at", "updated_at")


def public_task(document: Mapping[str, Any]) -> dict[str, Any]:
    """Project a stored task onto its public shape (owner_id stays internal)."""
    return {field: document[field] for field in PUBLIC_FIELDS}


def _validation(field: str, message: str) -> Result:
    return Result.failure(
        ErrorKind.VALIDATION,
        "Validation failed",
        details=[{"field": field, "message": message}],
    )


class TaskRepository:
    """Business logic for tasks. All operations take the caller's user id."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ─── Read ────────────────────────────────────────────

    async def list(
        self,
        owner_id: uuid.UUID,
        q: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> Result[list[dict]]:
        """List the owner's tasks, newest first.

        Filters are applied conditionally — only when the caller provides them.
        """
        where: dict[str, Any] = {"owner_id": owner_id}
        if status:
            where["status"] = status
        if priority:
            where["priority"] = priority
        if q and q.strip():
            where["title"] = Contains(q.strip())

        tasks = await self.store.find(TASKS, where, order_by="created_at", descending=True)
        return Result.success([public_task(t) for t in tasks])

    # ─── Create ──────────────────────────────────────────

    async def create(
        self,
        owner_id: uuid.UUID,
        title: str,
        description: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> Result[dict]:
        """Create a task bound to owner_id."""
        title = (title or "").strip()
        if not title:
            return _validation("title", "Title is required")
        status = status or DEFAULT_STATUS
        priority = priority or DEFAULT_PRIORITY
        if status not in STATUSES:
            return _validation("status", f"Status must be one of {', '.join(STATUSES)}")
        if priority not in PRIORITIES:
            return _validation("priority", f"Priority must be one of {', '.join(PRIORITIES)}")

        now = self._clock()
        task = await self.store.insert(
            TASKS,
            {
                "id": uuid.uuid4(),
                "owner_id": owner_id,
                "title": title,
                "description": (description or "").strip(),
                "status": status,
                "priority": priority,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info("tasks.created", task_id=str(task["id"]), owner_id=str(owner_id))
        return Result.success(public_task(task))

    # ─── Update ──────────────────────────────────────────

    async def update(
        self,
        owner_id: uuid.UUID,
        task_id: uuid.UUID,
        changes: Mapping[str, Any],
    ) -> Result[dict]:
        """Apply a partial update. Only keys present in `changes` are written.

        updated_at is always refreshed, even for an empty change set.
        """
        values: dict[str, Any] = {}
        for field, value in changes.items():
            if field not in UPDATABLE_FIELDS:
                continue
            if field == "title":
                value = (value or "").strip()
                if not value:
                    return _validation("title", "Title cannot be empty")
            elif field == "description":
                value = (value or "").strip()
            elif field == "status" and value not in STATUSES:
                return _validation("status", f"Status must be one of {', '.join(STATUSES)}")
            elif field == "priority" and value not in PRIORITIES:
                return _validation("priority", f"Priority must be one of {', '.join(PRIORITIES)}")
            values[field] = value
        values["updated_at"] = self._clock()

        task = await self.store.update_one(
            TASKS, {"id": task_id, "owner_id": owner_id}, values
        )
        if task is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Task not found")

        logger.info("tasks.updated", task_id=str(task_id), fields=sorted(values))
        return Result.success(public_task(task))

    # ─── Delete ──────────────────────────────────────────

    async def delete(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Result[None]:
        deleted = await self.store.delete_one(TASKS, {"id": task_id, "owner_id": owner_id})
        if not deleted:
            return Result.failure(ErrorKind.NOT_FOUND, "Task not found")

        logger.info("tasks.deleted", task_id=str(task_id))
        return Result.success()
