"""Request models for partial updates.

Every field is optional; only fields that were sent are applied.
"""

from datetime import datetime

from pydantic import Field, field_validator

from src.domain.base import ApiModel
from src.domain.create_models import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NOTIFICATION_MESSAGE_LENGTH,
    MAX_NOTIFICATION_TITLE_LENGTH,
    MAX_TITLE_LENGTH,
    MIN_DESCRIPTION_LENGTH,
    MIN_TITLE_LENGTH,
    check_length,
    normalize_email,
)
from src.domain.task import Recurrence, TaskPriority, parse_tags
from src.domain.user import MAX_NAME_LENGTH, MIN_NAME_LENGTH, MIN_PASSWORD_LENGTH


class UserUpdate(ApiModel):
    """Profile fields a user may change (avatar is uploaded separately)."""

    name: str | None = None
    email: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return check_length(v, label="Name", min_length=MIN_NAME_LENGTH, max_length=MAX_NAME_LENGTH)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        return None if v is None else normalize_email(v)


class PasswordUpdate(ApiModel):
    """Password change request."""

    current_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class TaskUpdate(ApiModel):
    """Partial task update. Completion is not updatable here."""

    title: str | None = None
    description: str | None = None
    category: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority | None = None
    tags: list[str] | None = None
    recurrence: Recurrence | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        if v is None:
            return None
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
    def validate_category(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Category is required")
        return v.strip() if v else v

    @field_validator("tags", mode="before")
    @classmethod
    def decode_tags(cls, v: str | list[str] | None) -> list[str] | None:
        if v is None:
            return None
        try:
            return parse_tags(v)
        except ValueError as e:
            raise ValueError("Tags must be a JSON string") from e

    @field_validator("recurrence", mode="before")
    @classmethod
    def empty_recurrence(cls, v: str | None) -> str | None:
        return v or None


class NotificationUpdate(ApiModel):
    """Partial notification update."""

    title: str | None = None
    message: str | None = None
    notify_at: datetime | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return check_length(v, label="Title", min_length=1, max_length=MAX_NOTIFICATION_TITLE_LENGTH)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return check_length(v, label="Message", min_length=1, max_length=MAX_NOTIFICATION_MESSAGE_LENGTH)
