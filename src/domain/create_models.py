"""Request models for creating records."""

import re
from datetime import datetime

from pydantic import Field, field_validator

from src.core.config import constants
from src.domain.base import ApiModel
from src.domain.task import Recurrence, TaskPriority, parse_tags
from src.domain.user import MAX_NAME_LENGTH, MIN_NAME_LENGTH


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 100
MIN_DESCRIPTION_LENGTH = 3
MAX_DESCRIPTION_LENGTH = 1000
MAX_NOTIFICATION_TITLE_LENGTH = 100
MAX_NOTIFICATION_MESSAGE_LENGTH = 500


def check_length(value: str, *, label: str, min_length: int, max_length: int) -> str:
    """Validate a trimmed string length with a readable message."""
    value = value.strip()
    if not value:
        raise ValueError(f"{label} is required")
    if len(value) < min_length:
        raise ValueError(f"{label} must be at least {min_length} characters long")
    if len(value) > max_length:
        raise ValueError(f"{label} must be less than {max_length} characters long")
    return value


def normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


class RegisterRequest(ApiModel):
    """Payload for registering a new user."""

    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Login email")
    password: str = Field(..., min_length=1, description="Plaintext password")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return check_length(v, label="Name", min_length=MIN_NAME_LENGTH, max_length=MAX_NAME_LENGTH)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class LoginRequest(ApiModel):
    """Payload for logging in."""

    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class CategoryCreate(ApiModel):
    """Payload for creating or renaming a category."""

    name: str = Field(..., description="Category name")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return check_length(v, label="Name", min_length=MIN_NAME_LENGTH, max_length=MAX_NAME_LENGTH)


class TaskCreate(ApiModel):
    """Payload for creating a task.

    ``tags`` arrives as a JSON-encoded string (form encoding) and is decoded here.
    """

    title: str = Field(..., description="Task title, unique per owner")
    description: str | None = Field(default=None, description="Optional description")
    category: str = Field(..., description="Referenced category ID")
    due_date: datetime = Field(..., description="Due date (ISO-8601)")
    priority: TaskPriority = Field(..., description="high, medium or low")
    tags: list[str] = Field(default_factory=list, description="Ordered tag list")
    recurrence: Recurrence | None = Field(default=None, description="Daily, Weekly or Monthly")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return check_length(v, label="Title", min_length=MIN_TITLE_LENGTH, max_length=MAX_TITLE_LENGTH)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return check_length(
            v, label="Description", min_length=MIN_DESCRIPTION_LENGTH, max_length=MAX_DESCRIPTION_LENGTH
        )

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category is required")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def decode_tags(cls, v: str | list[str] | None) -> list[str]:
        try:
            return parse_tags(v)
        except ValueError as e:
            raise ValueError("Tags must be a JSON string") from e

    @field_validator("recurrence", mode="before")
    @classmethod
    def empty_recurrence(cls, v: str | None) -> str | None:
        return v or None


class NotificationCreate(ApiModel):
    """Payload for creating a notification."""

    title: str
    message: str
    task_id: str = Field(..., min_length=1, description="Referenced task ID")
    notify_at: datetime = Field(..., description="Must be strictly in the future")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return check_length(v, label="Title", min_length=1, max_length=MAX_NOTIFICATION_TITLE_LENGTH)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        return check_length(v, label="Message", min_length=1, max_length=MAX_NOTIFICATION_MESSAGE_LENGTH)


class BulkDeleteRequest(ApiModel):
    """Payload for deleting several notifications at once."""

    notification_ids: list[str] = Field(..., min_length=1, max_length=constants.MAX_BULK_DELETE_IDS)
