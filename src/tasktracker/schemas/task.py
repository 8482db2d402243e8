"""Pydantic schemas for tasks.

Learn: Separate schemas for create/update/read keeps the API clean.
- TaskCreate: what you POST to create a task
- TaskUpdate: what you PUT to modify a task (all optional; only fields
  actually sent are applied, see model_fields_set / exclude_unset)
- TaskRead: what the API returns (owner id is never exposed)
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

STATUS_PATTERN = r"^(todo|in-progress|completed)$"
PRIORITY_PATTERN = r"^(low|medium|high)$"


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("title cannot be blank")
        return s


class TaskUpdate(BaseModel):
    """Partial update — only fields present in the request body are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)

    @field_validator("title", "status", "priority")
    @classmethod
    def reject_null(cls, v: Optional[str]) -> str:
        # Runs only for values actually sent; omitted fields keep the default.
        if v is None:
            raise ValueError("may not be null")
        if not v.strip():
            raise ValueError("cannot be blank")
        return v.strip()


class TaskRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    status: str
    priority: str
    created_at: datetime
    updated_at: datetime
