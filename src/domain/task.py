"""Task domain models and enums."""

import json
from datetime import datetime
from enum import StrEnum

from pydantic import Field, field_validator

from src.domain.base import ApiModel
from src.domain.category import CategoryRef


class TaskPriority(StrEnum):
    """Task priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Recurrence(StrEnum):
    """How often a task repeats (informational only)."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


# Numeric weight used by category analytics
PRIORITY_SCORES: dict[str, int] = {
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}
DEFAULT_PRIORITY_SCORE = 2


def parse_tags(value: str | list[str] | None) -> list[str]:
    """Decode tags from their JSON-string wire form into an ordered list.

    Raises:
        ValueError: If the value is not a JSON array of strings
    """
    if value is None or value == "":
        return []
    decoded = json.loads(value) if isinstance(value, str) else value
    if not isinstance(decoded, list) or not all(isinstance(tag, str) for tag in decoded):
        msg = "Tags must be a JSON array of strings"
        raise ValueError(msg)
    return decoded


class Task(ApiModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    completed: bool = Field(default=False, description="Whether the task has been completed")
    due_date: datetime | None = Field(default=None, description="Due date")
    category_id: str | None = Field(default=None, description="Referenced category ID")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    tags: list[str] = Field(default_factory=list, description="Ordered tag list")
    recurrence: Recurrence | None = Field(default=None, description="Recurrence hint")
    document: str = Field(default="", description="Attachment URL, empty when none")
    user_id: str = Field(..., description="Owning user ID")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @field_validator("tags", mode="before")
    @classmethod
    def decode_tags(cls, v: str | list[str] | None) -> list[str]:
        """Tags are stored as JSON text."""
        return parse_tags(v)

    @field_validator("document", mode="before")
    @classmethod
    def default_document(cls, v: str | None) -> str:
        return v or ""


class TaskWithCategory(Task):
    """Task with its category resolved (null when missing or dangling)."""

    category: CategoryRef | None = None


class TaskStatus(StrEnum):
    """List filter over the completed flag."""

    COMPLETED = "completed"
    PENDING = "pending"


class TaskSortField(StrEnum):
    """Sortable task fields (wire names)."""

    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    DUE_DATE = "dueDate"
    TITLE = "title"
    PRIORITY = "priority"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


class TaskListQuery(ApiModel):
    """Filters, paging and sorting for task listings. Filters are AND-combined."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    search: str | None = Field(default=None, description="Case-insensitive title substring")
    sort: TaskSortField = TaskSortField.CREATED_AT
    order: SortOrder = SortOrder.DESC
    category_id: str | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    start_date: datetime | None = Field(default=None, description="Due date range start (needs end_date)")
    end_date: datetime | None = Field(default=None, description="Due date range end (needs start_date)")
