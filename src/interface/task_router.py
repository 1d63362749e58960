"""Task endpoints.

Create and update accept JSON or multipart bodies; a multipart ``document``
file becomes the task attachment. ``tags`` is a JSON-encoded string.
"""

from typing import Any

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse

from src.domain.create_models import TaskCreate
from src.domain.task import TaskListQuery
from src.domain.update_models import TaskUpdate
from src.interface.dependencies import CurrentUserId, read_body, validate_payload
from src.interface.responses import dump, success_response
from src.services import task_service


router = APIRouter(prefix="/task", tags=["task"])


@router.post("/create-task")
async def create_task(request: Request, user_id: CurrentUserId) -> JSONResponse:
    data, document = await read_body(request, file_field="document")
    payload = validate_payload(TaskCreate, data)
    task = await task_service.create_task(payload=payload, user_id=user_id, document=document)
    return success_response(
        {"task": dump(task)},
        message="Task created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/update-task/{task_id}")
async def update_task(task_id: str, request: Request, user_id: CurrentUserId) -> JSONResponse:
    data, document = await read_body(request, file_field="document")
    payload = validate_payload(TaskUpdate, data)
    task = await task_service.update_task(task_id=task_id, payload=payload, user_id=user_id, document=document)
    return success_response({"task": dump(task)}, message="Task updated successfully")


@router.get("/get-tasks")
async def get_tasks(
    user_id: CurrentUserId,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    sort: str = "createdAt",
    order: str = "desc",
    category_id: str | None = Query(default=None, alias="categoryId"),
    priority: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> JSONResponse:
    """List the caller's tasks with filters, paging and sorting."""
    raw: dict[str, Any] = {
        "page": page,
        "limit": limit,
        "search": search,
        "sort": sort,
        "order": order,
        "category_id": category_id,
        "priority": priority,
        "status": status_filter,
        "start_date": start_date,
        "end_date": end_date,
    }
    # Blank query values mean "no filter"
    query = validate_payload(TaskListQuery, {k: v for k, v in raw.items() if v not in (None, "")})
    result = await task_service.list_tasks(user_id=user_id, query=query)
    return success_response(dump(result))


@router.get("/get-task/{task_id}")
async def get_task(task_id: str, user_id: CurrentUserId) -> JSONResponse:
    task = await task_service.get_task(task_id=task_id, user_id=user_id)
    return success_response({"task": dump(task)})


@router.put("/complete-task/{task_id}")
async def complete_task(task_id: str, user_id: CurrentUserId) -> JSONResponse:
    task = await task_service.complete_task(task_id=task_id, user_id=user_id)
    return success_response({"task": dump(task)}, message="Task completed successfully")


@router.delete("/delete-task/{task_id}")
async def delete_task(task_id: str, user_id: CurrentUserId) -> JSONResponse:
    await task_service.delete_task(task_id=task_id, user_id=user_id)
    return success_response(message="Task deleted successfully")
