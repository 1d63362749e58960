"""Notification domain models."""

from datetime import datetime

from pydantic import Field

from src.domain.base import ApiModel
from src.domain.task import TaskPriority


class Notification(ApiModel):
    """Reminder bookkeeping record (no actual delivery happens)."""

    id: str = Field(..., description="Unique notification ID from database")
    title: str = Field(..., description="Notification title")
    message: str = Field(..., description="Notification body")
    user_id: str = Field(..., description="Owning user ID")
    task_id: str = Field(..., description="Referenced task ID")
    notify_at: datetime = Field(..., description="When the reminder should fire")
    sent: bool = Field(default=False, description="Whether the reminder was marked as sent")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class TaskSummary(ApiModel):
    """Subset of task fields attached to notification listings."""

    title: str
    description: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority = TaskPriority.MEDIUM


class NotificationWithTask(Notification):
    """Notification with its task summary (null when the task is gone)."""

    task: TaskSummary | None = None
