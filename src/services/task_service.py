"""Task service: owner-scoped task CRUD, listing and completion.

Every operation on an existing task checks existence and ownership first and
reports a foreign task exactly like a missing one. Any write invalidates the
owner's cached analytics.
"""

import logging
import math
from typing import Any

from src.core import db_client
from src.core.errors import ConflictError, NotFoundError
from src.core.logging import log_event, span
from src.core.storage_client import StorageError, UploadedFile, storage_client
from src.domain.category import CategoryRef
from src.domain.create_models import TaskCreate
from src.domain.task import SortOrder, Task, TaskListQuery, TaskSortField, TaskStatus, TaskWithCategory
from src.domain.update_models import TaskUpdate
from src.models.service_models import TaskPage
from src.services import analytics_service, category_service, user_service


logger = logging.getLogger(__name__)

DOCUMENT_FOLDER = "task-attachments"

_SORT_COLUMNS = {
    TaskSortField.CREATED_AT: "created_at",
    TaskSortField.UPDATED_AT: "updated_at",
    TaskSortField.DUE_DATE: "due_date",
    TaskSortField.TITLE: "title",
    TaskSortField.PRIORITY: "priority",
}


async def _get_owned_record(*, task_id: str, user_id: str) -> dict[str, Any]:
    try:
        record = await db_client.get_record(collection="tasks", record_id=task_id)
    except db_client.RecordNotFoundError as e:
        raise NotFoundError("Task not found") from e

    if record["user_id"] != user_id:
        log_event(logger, "Task ownership mismatch", user_id=user_id, level=logging.WARNING, task_id=task_id)
        raise NotFoundError("Task not found")
    return record


async def _remove_document(url: str, *, task_id: str, user_id: str) -> None:
    """Best-effort attachment removal; failures never block the caller."""
    try:
        await storage_client.remove_by_url(url)
    except StorageError as e:
        log_event(
            logger,
            "Failed to remove task attachment",
            user_id=user_id,
            level=logging.WARNING,
            task_id=task_id,
            error=str(e),
        )


def _with_category(record: dict[str, Any], category_names: dict[str, str]) -> TaskWithCategory:
    """Resolve the category reference; dangling ids resolve to null."""
    task = TaskWithCategory.model_validate(record)
    if task.category_id in category_names:
        task.category = CategoryRef(id=task.category_id, name=category_names[task.category_id])
    return task


async def create_task(*, payload: TaskCreate, user_id: str, document: UploadedFile | None = None) -> Task:
    """Create a task for the owner.

    Args:
        payload: Validated task fields (tags already decoded)
        user_id: Owner ID
        document: Optional attachment to store

    Returns:
        The created Task

    Raises:
        NotFoundError: If the owner or the category does not exist (or the category is foreign)
        ConflictError: If the owner already has a task with this title
        ValidationFailedError: If the attachment is not acceptable
    """
    with span("task_service.create_task"):
        await user_service.ensure_user_exists(user_id=user_id)

        existing = await db_client.get_first_record(
            collection="tasks",
            filter_query=(
                f'user_id = "{db_client.sanitize_param(user_id)}" && title = "{db_client.sanitize_param(payload.title)}"'
            ),
        )
        if existing:
            raise ConflictError("Task already exists")

        await category_service.get_owned_category(category_id=payload.category, user_id=user_id)

        document_url = ""
        if document is not None:
            document_url = await storage_client.upload(document, folder=DOCUMENT_FOLDER)

        record = await db_client.create_record(
            collection="tasks",
            data={
                "title": payload.title,
                "description": payload.description,
                "category_id": payload.category,
                "due_date": payload.due_date,
                "priority": payload.priority.value,
                "tags": payload.tags,
                "recurrence": payload.recurrence.value if payload.recurrence else None,
                "document": document_url,
                "user_id": user_id,
            },
        )
        await analytics_service.invalidate_analytics_cache(user_id=user_id)

        log_event(logger, "Created task", user_id=user_id, task_id=record["id"])
        return Task.model_validate(record)


async def update_task(
    *,
    task_id: str,
    payload: TaskUpdate,
    user_id: str,
    document: UploadedFile | None = None,
) -> Task:
    """Merge the provided fields into an owned task.

    Ownership is never reassigned. Title uniqueness is not re-checked. A new
    attachment replaces the old URL; the old asset is removed best-effort after the write.

    Raises:
        NotFoundError: If the task is missing or foreign, or a new category is missing or foreign
        ValidationFailedError: If the attachment is not acceptable
    """
    with span("task_service.update_task"):
        record = await _get_owned_record(task_id=task_id, user_id=user_id)

        updates: dict[str, Any] = {}
        for field, value in payload.model_dump(exclude_unset=True).items():
            if field == "category":
                if value is None:
                    continue
                await category_service.get_owned_category(category_id=value, user_id=user_id)
                updates["category_id"] = value
            elif field == "tags":
                if value is not None:
                    updates["tags"] = value
            elif field in ("title", "priority") and value is None:
                continue
            else:
                updates[field] = value.value if hasattr(value, "value") else value

        if document is not None:
            updates["document"] = await storage_client.upload(document, folder=DOCUMENT_FOLDER)

        if not updates:
            return Task.model_validate(record)

        updated = await db_client.update_record(collection="tasks", record_id=task_id, data=updates)
        if document is not None and record.get("document"):
            await _remove_document(record["document"], task_id=task_id, user_id=user_id)
        await analytics_service.invalidate_analytics_cache(user_id=user_id)

        log_event(logger, "Updated task", user_id=user_id, task_id=task_id, fields=sorted(updates))
        return Task.model_validate(updated)


def _build_list_filter(*, user_id: str, query: TaskListQuery) -> str:
    conditions = [f'user_id = "{db_client.sanitize_param(user_id)}"']
    if query.category_id:
        conditions.append(f'category_id = "{db_client.sanitize_param(query.category_id)}"')
    if query.priority:
        conditions.append(f'priority = "{query.priority.value}"')
    if query.status:
        conditions.append(f"completed = {'true' if query.status == TaskStatus.COMPLETED else 'false'}")
    if query.search:
        conditions.append(f'title ~ "{db_client.sanitize_param(query.search)}"')
    # The due date range only applies when both ends are given
    if query.start_date and query.end_date:
        conditions.append(f'due_date >= "{db_client.format_timestamp(query.start_date)}"')
        conditions.append(f'due_date <= "{db_client.format_timestamp(query.end_date)}"')
    return " && ".join(conditions)


async def list_tasks(*, user_id: str, query: TaskListQuery) -> TaskPage:
    """List one page of the owner's tasks with categories resolved.

    Raises:
        NotFoundError: If the owner does not exist
    """
    with span("task_service.list_tasks"):
        await user_service.ensure_user_exists(user_id=user_id)

        filter_query = _build_list_filter(user_id=user_id, query=query)
        direction = "-" if query.order == SortOrder.DESC else "+"
        sort = f"{direction}{_SORT_COLUMNS[query.sort]}"

        total_items = await db_client.count_records(collection="tasks", filter_query=filter_query)
        records = await db_client.list_records(
            collection="tasks",
            page=query.page,
            per_page=query.limit,
            filter_query=filter_query,
            sort=sort,
        )

        names = await category_service.get_category_names(user_id=user_id)

        return TaskPage(
            tasks=[_with_category(record, names) for record in records],
            total_pages=math.ceil(total_items / query.limit),
            current_page=query.page,
            total_items=total_items,
        )


async def get_task(*, task_id: str, user_id: str) -> TaskWithCategory:
    """Get one owned task with its category resolved.

    Raises:
        NotFoundError: If the task is missing or foreign
    """
    record = await _get_owned_record(task_id=task_id, user_id=user_id)
    names = await category_service.get_category_names(user_id=user_id)
    return _with_category(record, names)


async def complete_task(*, task_id: str, user_id: str) -> Task:
    """Mark an owned task as completed.

    The flip is a single conditional update guarded on ``completed = false``,
    so of two concurrent calls only one succeeds.

    Raises:
        NotFoundError: If the task is missing or foreign
        ConflictError: If the task is already completed
    """
    with span("task_service.complete_task"):
        record = await _get_owned_record(task_id=task_id, user_id=user_id)
        if record["completed"]:
            raise ConflictError("Task already completed")

        changed = await db_client.update_records(
            collection="tasks",
            filter_query=(
                f'id = "{db_client.sanitize_param(task_id)}" && '
                f'user_id = "{db_client.sanitize_param(user_id)}" && completed = false'
            ),
            data={"completed": True},
        )
        if changed == 0:
            raise ConflictError("Task already completed")

        await analytics_service.invalidate_analytics_cache(user_id=user_id)
        log_event(logger, "Completed task", user_id=user_id, task_id=task_id)
        return Task.model_validate(await db_client.get_record(collection="tasks", record_id=task_id))


async def delete_task(*, task_id: str, user_id: str) -> None:
    """Delete an owned task.

    Attachment removal is attempted first; its failure is logged and the
    record is deleted anyway. Notifications referencing the task are kept.

    Raises:
        NotFoundError: If the task is missing or foreign
    """
    with span("task_service.delete_task"):
        record = await _get_owned_record(task_id=task_id, user_id=user_id)
        if record.get("document"):
            await _remove_document(record["document"], task_id=task_id, user_id=user_id)

        try:
            await db_client.delete_record(collection="tasks", record_id=task_id)
        except db_client.RecordNotFoundError as e:
            raise NotFoundError("Task not found") from e

        await analytics_service.invalidate_analytics_cache(user_id=user_id)
        log_event(logger, "Deleted task", user_id=user_id, task_id=task_id)
