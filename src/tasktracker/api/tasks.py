"""Task API routes.

Learn: These routes are the HTTP interface to TaskRepository. The owner is
always the authenticated principal — it is never read from the request
body or query string. The service handles ownership scoping and defaults;
routes just translate HTTP to service calls.

Key patterns:
- Query params for filtering (q, status, priority)
- PUT applies a partial update: only fields present in the body change
- Foreign and missing task ids both yield 404
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from tasktracker.auth.dependencies import Principal, get_current_principal
from tasktracker.schemas.task import (
    PRIORITY_PATTERN,
    STATUS_PATTERN,
    TaskCreate,
    TaskRead,
    TaskUpdate,
)
from tasktracker.services.task_service import TaskRepository

router = APIRouter(prefix="/tasks")


def _task_repo(request: Request) -> TaskRepository:
    return request.app.state.tasks


@router.get("", response_model=list[TaskRead])
async def list_tasks(
    q: Optional[str] = Query(None, description="Case-insensitive search in task titles"),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN, description="Filter by status"),
    priority: Optional[str] = Query(None, pattern=PRIORITY_PATTERN, description="Filter by priority"),
    principal: Principal = Depends(get_current_principal),
    repo: TaskRepository = Depends(_task_repo),
):
    """List the caller's tasks, newest first."""
    result = await repo.list(principal.user_id, q=q, status=status, priority=priority)
    return result.unwrap()


@router.post("", response_model=TaskRead, status_code=201)
async def create_task(
    body: TaskCreate,
    principal: Principal = Depends(get_current_principal),
    repo: TaskRepository = Depends(_task_repo),
):
    """Create a task owned by the caller. Defaults: status todo, priority medium."""
    result = await repo.create(
        principal.user_id,
        title=body.title,
        description=body.description,
        status=body.status,
        priority=body.priority,
    )
    return result.unwrap()


@router.put("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    principal: Principal = Depends(get_current_principal),
    repo: TaskRepository = Depends(_task_repo),
):
    """Update the fields present in the body; everything else is left alone."""
    result = await repo.update(
        principal.user_id, task_id, body.model_dump(exclude_unset=True)
    )
    return result.unwrap()


@router.delete("/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    repo: TaskRepository = Depends(_task_repo),
):
    """Delete one of the caller's tasks."""
    (await repo.delete(principal.user_id, task_id)).unwrap()
    return {"success": True}
