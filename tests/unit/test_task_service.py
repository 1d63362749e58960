"""Tests for task_service: ownership, listing and completion."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from src.core.errors import ConflictError, NotFoundError, ValidationFailedError
from src.core.storage_client import UploadedFile
from src.domain.create_models import TaskCreate
from src.domain.task import TaskListQuery
from src.domain.update_models import TaskUpdate
from src.core import db_client
from src.services import analytics_service, task_service
from tests.factories import create_category, create_notification, create_task, create_user, days_ahead


@pytest.fixture
async def owner(test_db):
    """Two users; Alice owns a "Work" category."""
    alice = await create_user()
    bob = await create_user(name="Bob Example", email="bob@example.com")
    work = await create_category(user_id=alice["id"])
    return {"alice": alice["id"], "bob": bob["id"], "work": work["id"]}


def task_payload(category: str, **overrides) -> TaskCreate:
    data = {
        "title": "Write report",
        "description": "Quarterly numbers",
        "category": category,
        "dueDate": days_ahead(2).isoformat(),
        "priority": "high",
        "tags": '["work", "q3"]',
    }
    data.update(overrides)
    return TaskCreate.model_validate(data)


@pytest.mark.unit
class TestCreateTask:
    async def test_create_defaults(self, owner):
        task = await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])

        assert task.completed is False
        assert task.tags == ["work", "q3"]
        assert task.document == ""
        assert task.user_id == owner["alice"]
        assert task.category_id == owner["work"]

    async def test_duplicate_title_for_same_owner_conflicts(self, owner):
        await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])

        with pytest.raises(ConflictError, match="Task already exists"):
            await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])

    async def test_same_title_for_other_owner_is_allowed(self, owner):
        bob_category = await create_category(user_id=owner["bob"])
        await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])

        task = await task_service.create_task(payload=task_payload(bob_category["id"]), user_id=owner["bob"])

        assert task.user_id == owner["bob"]

    async def test_foreign_category_is_rejected(self, owner):
        with pytest.raises(NotFoundError, match="Category not found"):
            await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["bob"])

    async def test_missing_owner_is_rejected(self, owner):
        with pytest.raises(NotFoundError, match="User not found"):
            await task_service.create_task(payload=task_payload(owner["work"]), user_id="999")

    async def test_document_is_stored(self, owner, upload_dir):
        document = UploadedFile(filename="notes.pdf", content_type="application/pdf", data=b"%PDF-1.4")

        task = await task_service.create_task(
            payload=task_payload(owner["work"]), user_id=owner["alice"], document=document
        )

        assert task.document.startswith("/uploads/task-attachments/")
        assert len(list((upload_dir / "task-attachments").iterdir())) == 1

    async def test_oversized_document_is_rejected(self, owner):
        document = UploadedFile(filename="big.txt", content_type="text/plain", data=b"x" * (10 * 1024 * 1024 + 1))

        with pytest.raises(ValidationFailedError, match="File too large"):
            await task_service.create_task(
                payload=task_payload(owner["work"]), user_id=owner["alice"], document=document
            )

    async def test_create_invalidates_analytics(self, owner, memory_cache):
        await analytics_service.get_dashboard(user_id=owner["alice"])
        assert await memory_cache.keys(f"taskdeck:analytics:{owner['alice']}:*")

        await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])

        assert await memory_cache.keys(f"taskdeck:analytics:{owner['alice']}:*") == []


@pytest.mark.unit
class TestUpdateTask:
    async def test_partial_update_keeps_other_fields(self, owner):
        task = await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])

        updated = await task_service.update_task(
            task_id=task.id, payload=TaskUpdate(priority="low"), user_id=owner["alice"]
        )

        assert updated.priority == "low"
        assert updated.title == task.title
        assert updated.tags == task.tags

    async def test_foreign_task_looks_missing(self, owner):
        task = await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])

        with pytest.raises(NotFoundError, match="Task not found"):
            await task_service.update_task(task_id=task.id, payload=TaskUpdate(title="Mine now"), user_id=owner["bob"])

    async def test_new_category_must_be_owned(self, owner):
        task = await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])
        bob_category = await create_category(user_id=owner["bob"])

        with pytest.raises(NotFoundError, match="Category not found"):
            await task_service.update_task(
                task_id=task.id, payload=TaskUpdate(category=bob_category["id"]), user_id=owner["alice"]
            )

    async def test_owner_is_never_reassigned(self, owner):
        task = await task_service.create_task(payload=task_payload(owner["work"]), user_id=owner["alice"])

        updated = await task_service.update_task(
            task_id=task.id, payload=TaskUpdate.model_validate({"title": "Renamed"}), user_id=owner["alice"]
        )

        assert updated.user_id == owner["alice"]

    async def test_new_document_replaces_old_one(self, owner, upload_dir):
        first = UploadedFile(filename="v1.pdf", content_type="application/pdf", data=b"%PDF-1")
        second = UploadedFile(filename="v2.pdf", content_type="application/pdf", data=b"%PDF-2")
        task = await task_service.create_task(
            payload=task_payload(owner["work"]), user_id=owner["alice"], document=first
        )

        updated = await task_service.update_task(
            task_id=task.id, payload=TaskUpdate(), user_id=owner["alice"], document=second
        )

        assert updated.document != task.document
        stored = [p.name for p in (upload_dir / "task-attachments").iterdir()]
        assert stored == [updated.document.rsplit("/", 1)[-1]]

    async def test_old_document_survives_failed_write(self, owner, upload_dir, monkeypatch):
        first = UploadedFile(filename="v1.pdf", content_type="application/pdf", data=b"%PDF-1")
        second = UploadedFile(filename="v2.pdf", content_type="application/pdf", data=b"%PDF-2")
        task = await task_service.create_task(
            payload=task_payload(owner["work"]), user_id=owner["alice"], document=first
        )

        async def failing_update(**_kwargs):
            raise db_client.DatabaseError("disk full")

        monkeypatch.setattr(db_client, "update_record", failing_update)

        with pytest.raises(db_client.DatabaseError):
            await task_service.update_task(
                task_id=task.id, payload=TaskUpdate(), user_id=owner["alice"], document=second
            )

        stored = {p.name for p in (upload_dir / "task-attachments").iterdir()}
        assert task.document.rsplit("/", 1)[-1] in stored


@pytest.mark.unit
class TestListTasks:
    async def test_filters_and_pagination(self, owner):
        alice = owner["alice"]
        for i in range(12):
            await create_task(
                user_id=alice,
                title=f"Task {i:02d}",
                category_id=owner["work"],
                completed=i % 3 == 0,
                priority="high" if i < 4 else "low",
            )
        await create_task(user_id=owner["bob"], title="Task bob")

        page = await task_service.list_tasks(user_id=alice, query=TaskListQuery())
        assert page.total_items == 12
        assert page.total_pages == 2
        assert len(page.tasks) == 10

        completed = await task_service.list_tasks(user_id=alice, query=TaskListQuery(status="completed"))
        assert completed.total_items == 4
        assert all(t.completed for t in completed.tasks)

        high = await task_service.list_tasks(user_id=alice, query=TaskListQuery(priority="high"))
        assert high.total_items == 4

    async def test_search_is_case_insensitive_substring(self, owner):
        await create_task(user_id=owner["alice"], title="Buy Groceries")
        await create_task(user_id=owner["alice"], title="Call mom")

        page = await task_service.list_tasks(user_id=owner["alice"], query=TaskListQuery(search="grocer"))

        assert [t.title for t in page.tasks] == ["Buy Groceries"]

    async def test_search_folds_accented_letters(self, owner):
        await create_task(user_id=owner["alice"], title="Résumé café")
        await create_task(user_id=owner["alice"], title="Resume gym")

        page = await task_service.list_tasks(user_id=owner["alice"], query=TaskListQuery(search="RÉSUMÉ"))

        assert page.total_items == 1
        assert [t.title for t in page.tasks] == ["Résumé café"]

    async def test_sort_by_title_ascending(self, owner):
        for title in ("Charlie", "Alpha", "Bravo"):
            await create_task(user_id=owner["alice"], title=title)

        page = await task_service.list_tasks(
            user_id=owner["alice"], query=TaskListQuery(sort="title", order="asc")
        )

        assert [t.title for t in page.tasks] == ["Alpha", "Bravo", "Charlie"]

    async def test_due_date_range_needs_both_ends(self, owner):
        now = datetime.now(UTC)
        await create_task(user_id=owner["alice"], title="Soon", due_date=now + timedelta(days=1))
        await create_task(user_id=owner["alice"], title="Later", due_date=now + timedelta(days=10))

        ranged = await task_service.list_tasks(
            user_id=owner["alice"],
            query=TaskListQuery(start_date=now, end_date=now + timedelta(days=2)),
        )
        half_open = await task_service.list_tasks(user_id=owner["alice"], query=TaskListQuery(start_date=now))

        assert [t.title for t in ranged.tasks] == ["Soon"]
        assert half_open.total_items == 2

    async def test_category_is_resolved_or_null(self, owner):
        await create_task(user_id=owner["alice"], title="With category", category_id=owner["work"])
        await create_task(user_id=owner["alice"], title="Dangling", category_id="999")

        page = await task_service.list_tasks(user_id=owner["alice"], query=TaskListQuery(sort="title", order="asc"))

        by_title = {t.title: t for t in page.tasks}
        assert by_title["With category"].category.name == "Work"
        assert by_title["Dangling"].category is None

    async def test_empty_listing(self, owner):
        page = await task_service.list_tasks(user_id=owner["bob"], query=TaskListQuery())

        assert page.tasks == []
        assert page.total_pages == 0


@pytest.mark.unit
class TestCompleteAndDelete:
    async def test_complete_once(self, owner):
        task = await create_task(user_id=owner["alice"])

        completed = await task_service.complete_task(task_id=task["id"], user_id=owner["alice"])

        assert completed.completed is True
        with pytest.raises(ConflictError, match="Task already completed"):
            await task_service.complete_task(task_id=task["id"], user_id=owner["alice"])

    async def test_concurrent_completion_succeeds_once(self, owner):
        task = await create_task(user_id=owner["alice"])

        results = await asyncio.gather(
            task_service.complete_task(task_id=task["id"], user_id=owner["alice"]),
            task_service.complete_task(task_id=task["id"], user_id=owner["alice"]),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, ConflictError)) == 1

    async def test_complete_foreign_task(self, owner):
        task = await create_task(user_id=owner["alice"])

        with pytest.raises(NotFoundError):
            await task_service.complete_task(task_id=task["id"], user_id=owner["bob"])

    async def test_delete_removes_task_and_keeps_notifications(self, owner):
        task = await create_task(user_id=owner["alice"])
        await create_notification(user_id=owner["alice"], task_id=task["id"])

        await task_service.delete_task(task_id=task["id"], user_id=owner["alice"])

        with pytest.raises(NotFoundError):
            await task_service.get_task(task_id=task["id"], user_id=owner["alice"])
        assert await db_client.count_records(collection="notifications") == 1

    async def test_delete_foreign_task(self, owner):
        task = await create_task(user_id=owner["alice"])

        with pytest.raises(NotFoundError):
            await task_service.delete_task(task_id=task["id"], user_id=owner["bob"])
