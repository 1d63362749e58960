"""Analytics service: dashboards and trends over an owner's tasks.

This module provides functions for:
- The dashboard overview (counts, distributions, weekly/monthly trends, recent activity)
- Daily creation/completion trends and completion time statistics
- Per-category performance and growth
- Productivity scores, best days of the week and completion streaks
- Summaries over a custom date range

Key Concepts:
- Every call rescans the owner's task set and groups it in memory by composite
  keys: ISO (year, week), (year, month) and calendar day.
- Buckets are computed in the configured timezone (``TIMEZONE``, default UTC).
- Productivity score: completed / max(created, 1) * 100.
- Overdue: incomplete and due before now.
- Results are cached per (owner, operation, parameters) for a short TTL and
  invalidated whenever the owner's tasks change.
"""

import logging
import math
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime, timedelta
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from src.core import cache_client as cache_module, db_client
from src.core.clock import local_date, local_today, parse_timestamp, utc_now
from src.core.config import Constants
from src.core.errors import ValidationFailedError
from src.core.logging import log_event, span
from src.domain.task import DEFAULT_PRIORITY_SCORE, PRIORITY_SCORES, Task, TaskPriority
from src.models.service_models import (
    BestDay,
    CategoryAnalytics,
    CategoryDistributionEntry,
    CategoryGrowthEntry,
    CategoryPerformance,
    CompletionTimeStats,
    CustomRangeAnalytics,
    DailyBreakdownEntry,
    DailyCount,
    DailyProductivity,
    DailyStatusCount,
    DashboardAnalytics,
    DashboardOverview,
    MonthlyProductivityEntry,
    PriorityDistributionEntry,
    ProductivityInsights,
    RangeOverview,
    RangePeriod,
    RecentActivityEntry,
    Streaks,
    TaskAnalytics,
    WeeklyProductivity,
    WeeklyTrendEntry,
)
from src.services import category_service


logger = logging.getLogger(__name__)

_CACHE_KEY_PREFIX = "taskdeck:analytics"

DAY_NAMES = {
    1: "Sunday",
    2: "Monday",
    3: "Tuesday",
    4: "Wednesday",
    5: "Thursday",
    6: "Friday",
    7: "Saturday",
}

_PRIORITY_ORDER = [TaskPriority.HIGH, TaskPriority.MEDIUM, TaskPriority.LOW]

ModelT = TypeVar("ModelT", bound=BaseModel)


def _rate(part: int, whole: int) -> float:
    """Percentage rounded to 2 decimals, 0 when whole is 0."""
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def _score(completed: int, created: int) -> float:
    return round(completed / max(created, 1) * 100, 2)


def _iso_week(day: date) -> tuple[int, int]:
    iso = day.isocalendar()
    return iso.year, iso.week


def _day_of_week(day: date) -> int:
    """Sunday=1 ... Saturday=7."""
    return day.isoweekday() % 7 + 1


def _is_overdue(task: Task, now: datetime) -> bool:
    return not task.completed and task.due_date is not None and task.due_date < now


def _priority_distribution(tasks: Iterable[Task]) -> list[PriorityDistributionEntry]:
    counts: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for task in tasks:
        bucket = counts[task.priority]
        bucket[0] += 1
        bucket[1] += int(task.completed)
    return [
        PriorityDistributionEntry(priority=p, count=counts[p][0], completed=counts[p][1])
        for p in _PRIORITY_ORDER
        if p in counts
    ]


def _cache_key(user_id: str, operation: str, *params: object) -> str:
    suffix = ":".join(str(p) for p in params)
    return f"{_CACHE_KEY_PREFIX}:{user_id}:{operation}" + (f":{suffix}" if suffix else "")


async def invalidate_analytics_cache(*, user_id: str) -> None:
    """Invalidate all cached analytics for one owner.

    Failures are logged but don't raise; stale entries expire after the TTL.
    """
    cache = cache_module.cache_client
    try:
        keys = await cache.keys(f"{_CACHE_KEY_PREFIX}:{user_id}:*")
        if keys:
            await cache.delete(*keys)
            log_event(logger, "Invalidated analytics cache", user_id=user_id, entries=len(keys))
    except (RuntimeError, ConnectionError, OSError) as e:
        log_event(logger, "Failed to invalidate analytics cache", user_id=user_id, level=logging.WARNING, error=str(e))


async def _cached(key: str, model: type[ModelT], compute: Callable[[], Awaitable[ModelT]]) -> ModelT:
    """Serve a model from cache, or compute it and cache the result."""
    cache = cache_module.cache_client
    try:
        cached_value = await cache.get(key)
        if cached_value:
            try:
                return model.model_validate_json(cached_value)
            except ValidationError as e:
                logger.warning("Failed to deserialize cached analytics: %s", e)
    except (RuntimeError, ConnectionError, OSError) as e:
        logger.warning("Failed to retrieve cached analytics: %s", e)

    result = await compute()

    try:
        await cache.set(key, result.model_dump_json(), Constants.CACHE_TTL_ANALYTICS_SECONDS)
    except (RuntimeError, ConnectionError, OSError) as e:
        logger.warning("Failed to cache analytics: %s", e)
    return result


async def _load_tasks(*, user_id: str, extra_filter: str = "") -> list[Task]:
    filter_query = f'user_id = "{db_client.sanitize_param(user_id)}"'
    if extra_filter:
        filter_query = f"{filter_query} && {extra_filter}"
    records = await db_client.list_all_records(collection="tasks", filter_query=filter_query, sort="+created_at")
    return [Task.model_validate(r) for r in records]


# Dashboard


async def get_dashboard(*, user_id: str) -> DashboardAnalytics:
    """Compute the owner's dashboard.

    Args:
        user_id: Owner ID

    Returns:
        DashboardAnalytics (zeros and empty lists when the owner has no tasks)
    """
    return await _cached(
        _cache_key(user_id, "dashboard"),
        DashboardAnalytics,
        lambda: _compute_dashboard(user_id=user_id),
    )


async def _compute_dashboard(*, user_id: str) -> DashboardAnalytics:
    with span("analytics_service.get_dashboard"):
        now = utc_now()
        tasks = await _load_tasks(user_id=user_id)
        category_names = await category_service.get_category_names(user_id=user_id)

        total = len(tasks)
        completed = sum(1 for t in tasks if t.completed)
        overdue = sum(1 for t in tasks if _is_overdue(t, now))

        if tasks:
            first_created = min(t.created_at for t in tasks)
            days_since_first = math.ceil((now - first_created).total_seconds() / 86400)
            average_per_day = round(total / max(1, days_since_first), 2)
        else:
            average_per_day = 0.0

        overview = DashboardOverview(
            total_tasks=total,
            completed_tasks=completed,
            pending_tasks=total - completed,
            overdue_tasks=overdue,
            completion_rate=_rate(completed, total),
            average_tasks_per_day=average_per_day,
        )

        # Category distribution skips tasks whose category is gone
        per_category: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        for task in tasks:
            if task.category_id in category_names:
                bucket = per_category[task.category_id]
                bucket[0] += 1
                bucket[1] += int(task.completed)
        category_distribution = sorted(
            (
                CategoryDistributionEntry(
                    category_id=cid,
                    name=category_names[cid],
                    count=count,
                    completed=done,
                    pending=count - done,
                )
                for cid, (count, done) in per_category.items()
            ),
            key=lambda e: (-e.count, e.name),
        )

        weekly: dict[tuple[int, int], list[int]] = defaultdict(lambda: [0, 0])
        for task in tasks:
            bucket = weekly[_iso_week(local_date(task.updated_at))]
            bucket[0] += int(task.completed)
            bucket[1] += 1
        weekly_keys = sorted(weekly)[-Constants.WEEKLY_TREND_BUCKETS :]
        weekly_trend = [
            WeeklyTrendEntry(year=y, week=w, completed=weekly[(y, w)][0], total=weekly[(y, w)][1])
            for y, w in weekly_keys
        ]

        monthly: dict[tuple[int, int], list[int]] = defaultdict(lambda: [0, 0])
        for task in tasks:
            created_day = local_date(task.created_at)
            bucket = monthly[(created_day.year, created_day.month)]
            bucket[0] += 1
            bucket[1] += int(task.completed)
        monthly_keys = sorted(monthly)[-Constants.MONTHLY_PRODUCTIVITY_BUCKETS :]
        monthly_productivity = [
            MonthlyProductivityEntry(
                year=y, month=m, tasks_created=monthly[(y, m)][0], tasks_completed=monthly[(y, m)][1]
            )
            for y, m in monthly_keys
        ]

        activity_cutoff = now - timedelta(days=Constants.RECENT_ACTIVITY_DAYS)
        recent = sorted(
            (t for t in tasks if t.updated_at >= activity_cutoff),
            key=lambda t: t.updated_at,
            reverse=True,
        )[: Constants.RECENT_ACTIVITY_LIMIT]
        recent_activity = [
            RecentActivityEntry(
                id=t.id,
                title=t.title,
                completed=t.completed,
                updated_at=t.updated_at,
                category_name=category_names.get(t.category_id or ""),
                action="completed" if t.completed else "updated",
            )
            for t in recent
        ]

        log_event(logger, "Computed dashboard", user_id=user_id, total_tasks=total)
        return DashboardAnalytics(
            overview=overview,
            category_distribution=category_distribution,
            priority_distribution=_priority_distribution(tasks),
            weekly_trend=weekly_trend,
            monthly_productivity=monthly_productivity,
            recent_activity=recent_activity,
        )


# Task analytics


async def get_task_analytics(*, user_id: str, period_days: int = 30) -> TaskAnalytics:
    """Creation/completion trends and completion time over a trailing window.

    Args:
        user_id: Owner ID
        period_days: Window length in days (default: 30)

    Returns:
        TaskAnalytics with series sorted ascending by date
    """
    return await _cached(
        _cache_key(user_id, "tasks", period_days),
        TaskAnalytics,
        lambda: _compute_task_analytics(user_id=user_id, period_days=period_days),
    )


async def _compute_task_analytics(*, user_id: str, period_days: int) -> TaskAnalytics:
    with span("analytics_service.get_task_analytics"):
        start = utc_now() - timedelta(days=period_days)
        tasks = await _load_tasks(user_id=user_id)

        created_in_window = [t for t in tasks if t.created_at >= start]

        creation: dict[date, int] = defaultdict(int)
        by_status: dict[tuple[date, str], int] = defaultdict(int)
        for task in created_in_window:
            day = local_date(task.created_at)
            creation[day] += 1
            by_status[(day, "completed" if task.completed else "pending")] += 1

        completion: dict[date, int] = defaultdict(int)
        for task in tasks:
            if task.completed and task.updated_at >= start:
                completion[local_date(task.updated_at)] += 1

        durations = [
            (t.updated_at - t.created_at).total_seconds() / 86400 for t in created_in_window if t.completed
        ]
        if durations:
            completion_time = CompletionTimeStats(
                average_completion_time=round(sum(durations) / len(durations), 2),
                min_completion_time=round(min(durations), 2),
                max_completion_time=round(max(durations), 2),
            )
        else:
            completion_time = CompletionTimeStats()

        return TaskAnalytics(
            period_days=period_days,
            task_creation_trend=[DailyCount(date=d, count=c) for d, c in sorted(creation.items())],
            task_completion_trend=[DailyCount(date=d, count=c) for d, c in sorted(completion.items())],
            tasks_by_status=[
                DailyStatusCount(date=d, status=s, count=c) for (d, s), c in sorted(by_status.items())
            ],
            completion_time_stats=completion_time,
        )


# Category analytics


async def get_category_analytics(*, user_id: str) -> CategoryAnalytics:
    """Per-category performance, growth and the most productive categories."""
    return await _cached(
        _cache_key(user_id, "categories"),
        CategoryAnalytics,
        lambda: _compute_category_analytics(user_id=user_id),
    )


async def _compute_category_analytics(*, user_id: str) -> CategoryAnalytics:
    with span("analytics_service.get_category_analytics"):
        now = utc_now()
        tasks = await _load_tasks(user_id=user_id)
        category_names = await category_service.get_category_names(user_id=user_id)

        grouped: dict[str, list[Task]] = defaultdict(list)
        for task in tasks:
            if task.category_id in category_names:
                grouped[task.category_id].append(task)

        performance = []
        for cid, members in grouped.items():
            total = len(members)
            completed = sum(1 for t in members if t.completed)
            scores = [PRIORITY_SCORES.get(t.priority, DEFAULT_PRIORITY_SCORE) for t in members]
            performance.append(
                CategoryPerformance(
                    category_id=cid,
                    name=category_names[cid],
                    total_tasks=total,
                    completed_tasks=completed,
                    pending_tasks=total - completed,
                    overdue_tasks=sum(1 for t in members if _is_overdue(t, now)),
                    average_priority=round(sum(scores) / total, 2),
                    completion_rate=_rate(completed, total),
                )
            )
        performance.sort(key=lambda p: (-p.total_tasks, p.name))

        growth: dict[tuple[int, int, str], int] = defaultdict(int)
        for cid, members in grouped.items():
            for task in members:
                created_day = local_date(task.created_at)
                growth[(created_day.year, created_day.month, cid)] += 1
        growth_keys = sorted(growth, key=lambda k: (-k[0], -k[1], category_names[k[2]]))
        category_growth = [
            CategoryGrowthEntry(category_id=cid, name=category_names[cid], year=y, month=m, count=growth[(y, m, cid)])
            for y, m, cid in growth_keys[: Constants.CATEGORY_GROWTH_BUCKETS]
        ]

        most_productive = sorted(
            (p for p in performance if p.total_tasks >= Constants.PRODUCTIVE_CATEGORY_MIN_TASKS),
            key=lambda p: p.completion_rate,
            reverse=True,
        )[: Constants.PRODUCTIVE_CATEGORY_LIMIT]

        return CategoryAnalytics(
            category_performance=performance,
            category_growth=category_growth,
            most_productive_categories=most_productive,
        )


# Productivity insights


def compute_streaks(completed_days: set[date], *, today: date, period_days: int) -> Streaks:
    """Walk back day by day from today over the window.

    The current streak is the unbroken run of days with a completion ending
    today; the max streak is the longest such run in the window.
    """
    current = 0
    still_current = True
    longest = 0
    running = 0
    for offset in range(period_days):
        day = today - timedelta(days=offset)
        if day in completed_days:
            running += 1
            if still_current:
                current = running
        else:
            still_current = False
            longest = max(longest, running)
            running = 0
    longest = max(longest, running)
    return Streaks(current_streak=current, max_streak=longest)


async def get_productivity_insights(*, user_id: str, period_days: int = 30) -> ProductivityInsights:
    """Daily/weekly productivity scores, best weekdays and streaks."""
    return await _cached(
        _cache_key(user_id, "productivity", period_days),
        ProductivityInsights,
        lambda: _compute_productivity_insights(user_id=user_id, period_days=period_days),
    )


async def _compute_productivity_insights(*, user_id: str, period_days: int) -> ProductivityInsights:
    with span("analytics_service.get_productivity_insights"):
        now = utc_now()
        start = now - timedelta(days=period_days)
        tasks = await _load_tasks(user_id=user_id)

        daily: dict[date, list[int]] = defaultdict(lambda: [0, 0])
        weekly: dict[tuple[int, int], list[int]] = defaultdict(lambda: [0, 0])
        weekdays: dict[int, list[int]] = defaultdict(lambda: [0, 0])
        for task in tasks:
            if task.created_at < start:
                continue
            day = local_date(task.created_at)
            for bucket in (daily[day], weekly[_iso_week(day)], weekdays[_day_of_week(day)]):
                bucket[0] += 1
                bucket[1] += int(task.completed)

        best_days = sorted(
            (
                BestDay(
                    day_of_week=dow,
                    day_name=DAY_NAMES[dow],
                    tasks_created=created,
                    tasks_completed=done,
                    productivity_score=_score(done, created),
                )
                for dow, (created, done) in weekdays.items()
            ),
            key=lambda b: (-b.productivity_score, b.day_of_week),
        )

        completed_days = {local_date(t.updated_at) for t in tasks if t.completed and t.updated_at >= start}

        return ProductivityInsights(
            period_days=period_days,
            daily_productivity=[
                DailyProductivity(date=d, tasks_created=c, tasks_completed=done, productivity_score=_score(done, c))
                for d, (c, done) in sorted(daily.items())
            ],
            weekly_productivity=[
                WeeklyProductivity(
                    year=y, week=w, tasks_created=c, tasks_completed=done, productivity_score=_score(done, c)
                )
                for (y, w), (c, done) in sorted(weekly.items())
            ],
            best_days=best_days,
            streaks=compute_streaks(completed_days, today=local_today(now), period_days=period_days),
        )


# Custom range


def validate_custom_range(start: datetime, end: datetime) -> None:
    """Reject ranges where start is not before end or the span exceeds the maximum.

    Raises:
        ValidationFailedError: If the range is invalid
    """
    if start >= end:
        raise ValidationFailedError("Start date must be before end date")
    span_days = math.ceil((end - start).total_seconds() / 86400)
    if span_days > Constants.MAX_CUSTOM_RANGE_DAYS:
        raise ValidationFailedError("Date range cannot exceed 1 year")


async def get_custom_range_analytics(*, user_id: str, start: datetime, end: datetime) -> CustomRangeAnalytics:
    """Summary of tasks created, completed and overdue within [start, end].

    The range is validated before any data is read.

    Raises:
        ValidationFailedError: If start >= end or the span exceeds 365 days
    """
    start, end = parse_timestamp(start), parse_timestamp(end)
    validate_custom_range(start, end)
    return await _cached(
        _cache_key(user_id, "custom-range", db_client.format_timestamp(start), db_client.format_timestamp(end)),
        CustomRangeAnalytics,
        lambda: _compute_custom_range(user_id=user_id, start=start, end=end),
    )


async def _compute_custom_range(*, user_id: str, start: datetime, end: datetime) -> CustomRangeAnalytics:
    with span("analytics_service.get_custom_range_analytics"):
        now = utc_now()
        tasks = await _load_tasks(user_id=user_id)

        created_in_range = [t for t in tasks if start <= t.created_at <= end]
        completed = sum(1 for t in tasks if t.completed and start <= t.updated_at <= end)
        overdue = sum(
            1
            for t in tasks
            if not t.completed and t.due_date is not None and start <= t.due_date <= end and t.due_date < now
        )

        breakdown: dict[date, list[int]] = defaultdict(lambda: [0, 0])
        for task in created_in_range:
            bucket = breakdown[local_date(task.created_at)]
            bucket[0] += 1
            bucket[1] += int(task.completed)

        total = len(created_in_range)
        return CustomRangeAnalytics(
            period=RangePeriod(start_date=start, end_date=end),
            overview=RangeOverview(
                total_tasks=total,
                completed_tasks=completed,
                overdue_tasks=overdue,
                completion_rate=_rate(completed, total),
            ),
            daily_breakdown=[
                DailyBreakdownEntry(date=d, created=c, completed=done) for d, (c, done) in sorted(breakdown.items())
            ],
            priority_distribution=_priority_distribution(created_in_range),
        )
