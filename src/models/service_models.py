"""Pydantic models for service layer return types.

These models provide type safety at service boundaries and define the JSON
shape of every non-entity response (camelCase on the wire).
"""

from datetime import date, datetime

from src.domain.base import ApiModel
from src.domain.notification import Notification, NotificationWithTask
from src.domain.task import TaskWithCategory
from src.domain.user import User


class AuthResult(ApiModel):
    """Authenticated user and bearer token."""

    token: str
    user: User


class TaskPage(ApiModel):
    """One page of an owner's tasks."""

    tasks: list[TaskWithCategory]
    total_pages: int
    current_page: int
    total_items: int


class Pagination(ApiModel):
    """Pagination block for notification listings."""

    current_page: int
    total_pages: int
    total_items: int
    has_next_page: bool
    has_prev_page: bool


class NotificationPage(ApiModel):
    """One page of an owner's notifications."""

    notifications: list[NotificationWithTask]
    pagination: Pagination


class NotificationStats(ApiModel):
    """Independent notification counts; "today" uses the configured timezone."""

    total: int
    sent: int
    pending: int
    created_today: int
    sent_today: int
    upcoming: int


class GeneratedNotifications(ApiModel):
    """Result of generating reminders from incomplete tasks."""

    notifications: list[Notification]
    count: int


class BulkDeleteResult(ApiModel):
    deleted_count: int


# Analytics: dashboard


class DashboardOverview(ApiModel):
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    overdue_tasks: int
    completion_rate: float
    average_tasks_per_day: float


class CategoryDistributionEntry(ApiModel):
    category_id: str
    name: str
    count: int
    completed: int
    pending: int


class PriorityDistributionEntry(ApiModel):
    priority: str
    count: int
    completed: int


class WeeklyTrendEntry(ApiModel):
    """ISO (year, week) bucket."""

    year: int
    week: int
    completed: int
    total: int


class MonthlyProductivityEntry(ApiModel):
    year: int
    month: int
    tasks_created: int
    tasks_completed: int


class RecentActivityEntry(ApiModel):
    id: str
    title: str
    completed: bool
    updated_at: datetime
    category_name: str | None = None
    action: str


class DashboardAnalytics(ApiModel):
    overview: DashboardOverview
    category_distribution: list[CategoryDistributionEntry]
    priority_distribution: list[PriorityDistributionEntry]
    weekly_trend: list[WeeklyTrendEntry]
    monthly_productivity: list[MonthlyProductivityEntry]
    recent_activity: list[RecentActivityEntry]


# Analytics: tasks


class DailyCount(ApiModel):
    date: date
    count: int


class DailyStatusCount(ApiModel):
    date: date
    status: str
    count: int


class CompletionTimeStats(ApiModel):
    """Completion time in days (updatedAt - createdAt of completed tasks)."""

    average_completion_time: float = 0.0
    min_completion_time: float = 0.0
    max_completion_time: float = 0.0


class TaskAnalytics(ApiModel):
    period_days: int
    task_creation_trend: list[DailyCount]
    task_completion_trend: list[DailyCount]
    tasks_by_status: list[DailyStatusCount]
    completion_time_stats: CompletionTimeStats


# Analytics: categories


class CategoryPerformance(ApiModel):
    category_id: str
    name: str
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    overdue_tasks: int
    average_priority: float
    completion_rate: float


class CategoryGrowthEntry(ApiModel):
    category_id: str
    name: str
    year: int
    month: int
    count: int


class CategoryAnalytics(ApiModel):
    category_performance: list[CategoryPerformance]
    category_growth: list[CategoryGrowthEntry]
    most_productive_categories: list[CategoryPerformance]


# Analytics: productivity


class DailyProductivity(ApiModel):
    date: date
    tasks_created: int
    tasks_completed: int
    productivity_score: float


class WeeklyProductivity(ApiModel):
    year: int
    week: int
    tasks_created: int
    tasks_completed: int
    productivity_score: float


class BestDay(ApiModel):
    """Day of week numbered Sunday=1 through Saturday=7."""

    day_of_week: int
    day_name: str
    tasks_created: int
    tasks_completed: int
    productivity_score: float


class Streaks(ApiModel):
    current_streak: int
    max_streak: int


class ProductivityInsights(ApiModel):
    period_days: int
    daily_productivity: list[DailyProductivity]
    weekly_productivity: list[WeeklyProductivity]
    best_days: list[BestDay]
    streaks: Streaks


# Analytics: custom range


class RangePeriod(ApiModel):
    start_date: datetime
    end_date: datetime


class RangeOverview(ApiModel):
    total_tasks: int
    completed_tasks: int
    overdue_tasks: int
    completion_rate: float


class DailyBreakdownEntry(ApiModel):
    date: date
    created: int
    completed: int


class CustomRangeAnalytics(ApiModel):
    period: RangePeriod
    overview: RangeOverview
    daily_breakdown: list[DailyBreakdownEntry]
    priority_distribution: list[PriorityDistributionEntry]
