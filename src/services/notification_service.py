"""Notification service: reminder bookkeeping for tasks.

Nothing is delivered here. Notifications are records with a ``notify_at`` time
and a ``sent`` flag that clients flip via mark-as-sent.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any

from src.core import db_client
from src.core.clock import local_day_bounds, local_today, parse_timestamp, utc_now
from src.core.config import Constants
from src.core.errors import NotFoundError, ValidationFailedError
from src.core.logging import log_event, span
from src.domain.create_models import NotificationCreate
from src.domain.notification import Notification, NotificationWithTask, TaskSummary
from src.domain.update_models import NotificationUpdate
from src.models.service_models import (
    BulkDeleteResult,
    GeneratedNotifications,
    NotificationPage,
    NotificationStats,
    Pagination,
)


logger = logging.getLogger(__name__)

REMINDER_TITLE = "Task Reminder: {title}"
REMINDER_MESSAGE = 'Your task "{title}" is due in 1 hour. Priority: {priority}'


def _owner_filter(user_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}"'


def _ensure_future(notify_at: datetime, now: datetime) -> datetime:
    notify_at = parse_timestamp(notify_at)
    if notify_at <= now:
        raise ValidationFailedError("Notification time must be in the future")
    return notify_at


async def _get_owned_record(*, notification_id: str, user_id: str) -> dict[str, Any]:
    try:
        record = await db_client.get_record(collection="notifications", record_id=notification_id)
    except db_client.RecordNotFoundError as e:
        raise NotFoundError("Notification not found") from e

    if record["user_id"] != user_id:
        log_event(
            logger,
            "Notification ownership mismatch",
            user_id=user_id,
            level=logging.WARNING,
            notification_id=notification_id,
        )
        raise NotFoundError("Notification not found")
    return record


async def _task_summaries(*, task_ids: set[str], user_id: str) -> dict[str, TaskSummary]:
    """Fetch summaries of the owner's tasks among the given ids."""
    if not task_ids:
        return {}
    id_group = " || ".join(f'id = "{db_client.sanitize_param(tid)}"' for tid in sorted(task_ids))
    records = await db_client.list_all_records(
        collection="tasks",
        filter_query=f"{_owner_filter(user_id)} && ({id_group})",
    )
    return {r["id"]: TaskSummary.model_validate(r) for r in records}


async def _with_tasks(records: list[dict[str, Any]], *, user_id: str) -> list[NotificationWithTask]:
    summaries = await _task_summaries(task_ids={r["task_id"] for r in records}, user_id=user_id)
    items = []
    for record in records:
        item = NotificationWithTask.model_validate(record)
        item.task = summaries.get(item.task_id)
        items.append(item)
    return items


async def generate_task_notifications(*, user_id: str) -> GeneratedNotifications:
    """Create reminders for the owner's incomplete tasks that have a due date.

    A task is skipped when it already has an unsent notification, or when its
    reminder time (due date minus one hour) is not in the future. Running this
    twice in a row creates nothing the second time.

    Args:
        user_id: Owner ID

    Returns:
        GeneratedNotifications with the created records and their count
    """
    with span("notification_service.generate_task_notifications"):
        now = utc_now()
        tasks = await db_client.list_all_records(
            collection="tasks",
            filter_query=f"{_owner_filter(user_id)} && completed = false && due_date != null",
            sort="+due_date",
        )

        pending = await db_client.list_all_records(
            collection="notifications",
            filter_query=f"{_owner_filter(user_id)} && sent = false",
        )
        tasks_with_pending = {n["task_id"] for n in pending}

        created: list[Notification] = []
        for task in tasks:
            if task["id"] in tasks_with_pending:
                continue

            notify_at = parse_timestamp(task["due_date"]) - timedelta(hours=Constants.REMINDER_LEAD_TIME_HOURS)
            if notify_at <= now:
                continue

            record = await db_client.create_record(
                collection="notifications",
                data={
                    "title": REMINDER_TITLE.format(title=task["title"]),
                    "message": REMINDER_MESSAGE.format(title=task["title"], priority=task["priority"]),
                    "user_id": user_id,
                    "task_id": task["id"],
                    "notify_at": notify_at,
                    "sent": False,
                },
            )
            created.append(Notification.model_validate(record))

        log_event(logger, "Generated task notifications", user_id=user_id, count=len(created))
        return GeneratedNotifications(notifications=created, count=len(created))


async def create_notification(*, payload: NotificationCreate, user_id: str) -> Notification:
    """Create a notification for one of the owner's tasks.

    Raises:
        NotFoundError: If the task is missing or foreign
        ValidationFailedError: If notify_at is not in the future or a per-user cap is reached
    """
    with span("notification_service.create_notification"):
        notify_at = _ensure_future(payload.notify_at, utc_now())

        try:
            task = await db_client.get_record(collection="tasks", record_id=payload.task_id)
        except db_client.RecordNotFoundError as e:
            raise NotFoundError("Task not found") from e
        if task["user_id"] != user_id:
            raise NotFoundError("Task not found")

        total = await db_client.count_records(collection="notifications", filter_query=_owner_filter(user_id))
        if total >= Constants.MAX_NOTIFICATIONS_PER_USER:
            raise ValidationFailedError(
                f"Maximum number of notifications ({Constants.MAX_NOTIFICATIONS_PER_USER}) reached. "
                "Please delete some notifications before creating new ones."
            )
        pending = await db_client.count_records(
            collection="notifications", filter_query=f"{_owner_filter(user_id)} && sent = false"
        )
        if pending >= Constants.MAX_PENDING_NOTIFICATIONS_PER_USER:
            raise ValidationFailedError(
                f"Maximum number of pending notifications ({Constants.MAX_PENDING_NOTIFICATIONS_PER_USER}) reached. "
                "Please wait for some notifications to be sent before creating new ones."
            )

        record = await db_client.create_record(
            collection="notifications",
            data={
                "title": payload.title,
                "message": payload.message,
                "user_id": user_id,
                "task_id": payload.task_id,
                "notify_at": notify_at,
                "sent": False,
            },
        )
        log_event(logger, "Created notification", user_id=user_id, notification_id=record["id"])
        return Notification.model_validate(record)


async def list_notifications(
    *,
    user_id: str,
    page: int = 1,
    limit: int = Constants.DEFAULT_PAGE_SIZE,
    status: str | None = None,
) -> NotificationPage:
    """List the owner's notifications, newest first.

    Args:
        user_id: Owner ID
        page: 1-based page number
        limit: Page size
        status: Optional "sent" or "pending" filter

    Returns:
        NotificationPage with task summaries and a pagination block
    """
    filter_query = _owner_filter(user_id)
    if status == "sent":
        filter_query += " && sent = true"
    elif status == "pending":
        filter_query += " && sent = false"

    total_items = await db_client.count_records(collection="notifications", filter_query=filter_query)
    records = await db_client.list_records(
        collection="notifications",
        page=page,
        per_page=limit,
        filter_query=filter_query,
        sort="-created_at",
    )
    total_pages = math.ceil(total_items / limit)

    return NotificationPage(
        notifications=await _with_tasks(records, user_id=user_id),
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_items=total_items,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
    )


async def get_stats(*, user_id: str) -> NotificationStats:
    """Count the owner's notifications.

    "Today" runs from local midnight to the next local midnight. ``sent_today``
    counts sent notifications that were created today.
    """
    now = utc_now()
    day_start, day_end = local_day_bounds(local_today(now))
    owner = _owner_filter(user_id)
    today = (
        f'created_at >= "{db_client.format_timestamp(day_start)}" && '
        f'created_at < "{db_client.format_timestamp(day_end)}"'
    )

    async def count(filter_query: str) -> int:
        return await db_client.count_records(collection="notifications", filter_query=filter_query)

    return NotificationStats(
        total=await count(owner),
        sent=await count(f"{owner} && sent = true"),
        pending=await count(f"{owner} && sent = false"),
        created_today=await count(f"{owner} && {today}"),
        sent_today=await count(f"{owner} && sent = true && {today}"),
        upcoming=await count(f'{owner} && notify_at > "{db_client.format_timestamp(now)}"'),
    )


async def get_upcoming(*, user_id: str, limit: int = Constants.DEFAULT_UPCOMING_LIMIT) -> list[NotificationWithTask]:
    """Notifications due in the future, soonest first."""
    records = await db_client.list_records(
        collection="notifications",
        per_page=limit,
        filter_query=f'{_owner_filter(user_id)} && notify_at > "{db_client.format_timestamp(utc_now())}"',
        sort="+notify_at",
    )
    return await _with_tasks(records, user_id=user_id)


async def get_notification(*, notification_id: str, user_id: str) -> NotificationWithTask:
    """Get one owned notification.

    Raises:
        NotFoundError: If the notification is missing or foreign
    """
    record = await _get_owned_record(notification_id=notification_id, user_id=user_id)
    return (await _with_tasks([record], user_id=user_id))[0]


async def update_notification(
    *,
    notification_id: str,
    payload: NotificationUpdate,
    user_id: str,
) -> Notification:
    """Update title, message or notify time of an owned notification.

    Raises:
        NotFoundError: If the notification is missing or foreign
        ValidationFailedError: If the new notify_at is not in the future
    """
    with span("notification_service.update_notification"):
        record = await _get_owned_record(notification_id=notification_id, user_id=user_id)

        updates = payload.model_dump(exclude_none=True)
        if "notify_at" in updates:
            updates["notify_at"] = _ensure_future(updates["notify_at"], utc_now())
        if not updates:
            return Notification.model_validate(record)

        updated = await db_client.update_record(collection="notifications", record_id=notification_id, data=updates)
        log_event(logger, "Updated notification", user_id=user_id, notification_id=notification_id)
        return Notification.model_validate(updated)


async def mark_as_sent(*, notification_id: str, user_id: str) -> Notification:
    """Flip ``sent`` to true on an owned notification.

    Raises:
        NotFoundError: If no matching owned notification exists
    """
    with span("notification_service.mark_as_sent"):
        changed = await db_client.update_records(
            collection="notifications",
            filter_query=f'id = "{db_client.sanitize_param(notification_id)}" && {_owner_filter(user_id)}',
            data={"sent": True},
        )
        if changed == 0:
            raise NotFoundError("Notification not found")

        log_event(logger, "Marked notification as sent", user_id=user_id, notification_id=notification_id)
        return Notification.model_validate(
            await db_client.get_record(collection="notifications", record_id=notification_id)
        )


async def delete_notification(*, notification_id: str, user_id: str) -> None:
    """Delete an owned notification.

    Raises:
        NotFoundError: If no matching owned notification exists
    """
    deleted = await db_client.delete_records(
        collection="notifications",
        filter_query=f'id = "{db_client.sanitize_param(notification_id)}" && {_owner_filter(user_id)}',
    )
    if deleted == 0:
        raise NotFoundError("Notification not found")
    log_event(logger, "Deleted notification", user_id=user_id, notification_id=notification_id)


async def bulk_delete(*, notification_ids: list[str], user_id: str) -> BulkDeleteResult:
    """Delete the owned notifications among the given ids.

    Ids that are unknown or belong to someone else are skipped silently.

    Raises:
        ValidationFailedError: If the id list is empty or longer than the maximum
    """
    if not notification_ids or len(notification_ids) > Constants.MAX_BULK_DELETE_IDS:
        raise ValidationFailedError(
            f"Between 1 and {Constants.MAX_BULK_DELETE_IDS} notification IDs are required"
        )

    with span("notification_service.bulk_delete"):
        id_group = " || ".join(f'id = "{db_client.sanitize_param(nid)}"' for nid in dict.fromkeys(notification_ids))
        deleted = await db_client.delete_records(
            collection="notifications",
            filter_query=f"{_owner_filter(user_id)} && ({id_group})",
        )
        log_event(logger, "Bulk deleted notifications", user_id=user_id, deleted=deleted)
        return BulkDeleteResult(deleted_count=deleted)
