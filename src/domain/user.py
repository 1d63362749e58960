"""User domain model."""

from datetime import datetime

from pydantic import Field

from src.domain.base import ApiModel


# Constants for validation
MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 50
MIN_PASSWORD_LENGTH = 8


class User(ApiModel):
    """User data transfer object (never carries the password hash)."""

    id: str = Field(..., description="Unique user ID from database")
    name: str = Field(..., description="Display name of the user")
    email: str = Field(..., description="Login email, lower-cased")
    avatar: str | None = Field(default=None, description="Avatar URL")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
