"""Category service: per-owner category CRUD."""

import logging

from src.core import db_client
from src.core.errors import ConflictError, NotFoundError
from src.core.logging import log_event, span
from src.domain.category import Category


logger = logging.getLogger(__name__)


async def _get_owned_record(*, category_id: str, user_id: str) -> dict:
    """Fetch a category owned by the user; missing and foreign look the same."""
    try:
        record = await db_client.get_record(collection="categories", record_id=category_id)
    except db_client.RecordNotFoundError as e:
        raise NotFoundError("Category not found") from e

    if record["user_id"] != user_id:
        log_event(
            logger, "Category ownership mismatch", user_id=user_id, level=logging.WARNING, category_id=category_id
        )
        raise NotFoundError("Category not found")
    return record


async def _ensure_name_available(*, name: str, user_id: str, exclude_id: str | None = None) -> None:
    filter_query = f'user_id = "{db_client.sanitize_param(user_id)}" && name = "{db_client.sanitize_param(name)}"'
    if exclude_id:
        filter_query += f' && id != "{db_client.sanitize_param(exclude_id)}"'
    if await db_client.get_first_record(collection="categories", filter_query=filter_query):
        raise ConflictError("Category already exists")


async def get_owned_category(*, category_id: str, user_id: str) -> Category:
    """Get a category owned by the user.

    Raises:
        NotFoundError: If the category is missing or owned by someone else
    """
    return Category.model_validate(await _get_owned_record(category_id=category_id, user_id=user_id))


async def create_category(*, name: str, user_id: str) -> Category:
    """Create a category.

    Raises:
        ConflictError: If the owner already has a category with this name
    """
    with span("category_service.create_category"):
        await _ensure_name_available(name=name, user_id=user_id)
        record = await db_client.create_record(collection="categories", data={"name": name, "user_id": user_id})
        log_event(logger, "Created category", user_id=user_id, category_id=record["id"])
        return Category.model_validate(record)


async def list_categories(*, user_id: str) -> list[Category]:
    """List all of the owner's categories, oldest first."""
    records = await db_client.list_all_records(
        collection="categories",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
        sort="+created_at",
    )
    return [Category.model_validate(r) for r in records]


async def update_category(*, category_id: str, name: str, user_id: str) -> Category:
    """Rename a category.

    Raises:
        NotFoundError: If the category is missing or owned by someone else
        ConflictError: If the new name collides with another of the owner's categories
    """
    with span("category_service.update_category"):
        await _get_owned_record(category_id=category_id, user_id=user_id)
        await _ensure_name_available(name=name, user_id=user_id, exclude_id=category_id)
        record = await db_client.update_record(collection="categories", record_id=category_id, data={"name": name})
        log_event(logger, "Updated category", user_id=user_id, category_id=category_id)
        return Category.model_validate(record)


async def delete_category(*, category_id: str, user_id: str) -> None:
    """Delete a category. Tasks referencing it keep the dangling id.

    Raises:
        NotFoundError: If the category is missing or owned by someone else
    """
    with span("category_service.delete_category"):
        await _get_owned_record(category_id=category_id, user_id=user_id)
        await db_client.delete_record(collection="categories", record_id=category_id)
        log_event(logger, "Deleted category", user_id=user_id, category_id=category_id)


async def get_category_names(*, user_id: str) -> dict[str, str]:
    """Map of category id to name for the owner's categories."""
    return {c.id: c.name for c in await list_categories(user_id=user_id)}
