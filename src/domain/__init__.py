"""Domain models and DTOs."""

from src.domain.category import Category, CategoryRef
from src.domain.create_models import (
    BulkDeleteRequest,
    CategoryCreate,
    LoginRequest,
    NotificationCreate,
    RegisterRequest,
    TaskCreate,
)
from src.domain.notification import Notification, NotificationWithTask, TaskSummary
from src.domain.task import (
    Recurrence,
    SortOrder,
    Task,
    TaskListQuery,
    TaskPriority,
    TaskSortField,
    TaskStatus,
    TaskWithCategory,
)
from src.domain.update_models import NotificationUpdate, PasswordUpdate, TaskUpdate, UserUpdate
from src.domain.user import User


__all__ = [
    "BulkDeleteRequest",
    "Category",
    "CategoryCreate",
    "CategoryRef",
    "LoginRequest",
    "Notification",
    "NotificationCreate",
    "NotificationUpdate",
    "NotificationWithTask",
    "PasswordUpdate",
    "RegisterRequest",
    "Recurrence",
    "SortOrder",
    "Task",
    "TaskCreate",
    "TaskListQuery",
    "TaskPriority",
    "TaskSortField",
    "TaskStatus",
    "TaskSummary",
    "TaskUpdate",
    "TaskWithCategory",
    "User",
    "UserUpdate",
]
