from src.services import (
    analytics_service,
    category_service,
    notification_service,
    task_service,
    user_service,
)


__all__ = [
    "analytics_service",
    "category_service",
    "notification_service",
    "task_service",
    "user_service",
]
