"""Category domain model."""

from datetime import datetime

from pydantic import Field

from src.domain.base import ApiModel


class Category(ApiModel):
    """Category data transfer object."""

    id: str = Field(..., description="Unique category ID from database")
    name: str = Field(..., description="Category name, unique per owner")
    user_id: str = Field(..., description="Owning user ID")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class CategoryRef(ApiModel):
    """Category reference resolved into task listings."""

    id: str
    name: str
