"""Tests for analytics_service aggregations."""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.core.errors import ValidationFailedError
from src.services import analytics_service
from src.services.analytics_service import compute_streaks
from tests.factories import create_category, create_task, create_user, days_ago, days_ahead


@pytest.fixture
async def alice(test_db):
    user = await create_user()
    return user["id"]


@pytest.mark.unit
class TestDashboard:
    async def test_owner_without_tasks_gets_zeros(self, alice):
        dashboard = await analytics_service.get_dashboard(user_id=alice)

        overview = dashboard.overview
        assert overview.total_tasks == 0
        assert overview.completion_rate == 0.0
        assert overview.average_tasks_per_day == 0.0
        assert dashboard.category_distribution == []
        assert dashboard.priority_distribution == []
        assert dashboard.weekly_trend == []
        assert dashboard.recent_activity == []

    async def test_overview_counts(self, alice):
        for i in range(4):
            await create_task(user_id=alice, title=f"done {i}", completed=True, due_date=days_ago(1))
        for i in range(2):
            await create_task(user_id=alice, title=f"late {i}", due_date=days_ago(1))
        for i in range(4):
            await create_task(user_id=alice, title=f"open {i}", due_date=days_ahead(1))

        overview = (await analytics_service.get_dashboard(user_id=alice)).overview

        assert overview.total_tasks == 10
        assert overview.completed_tasks == 4
        assert overview.pending_tasks == 6
        # Completed tasks past their due date are not overdue
        assert overview.overdue_tasks == 2
        assert overview.completion_rate == 40.0

    async def test_average_tasks_per_day(self, alice):
        for i in range(6):
            await create_task(user_id=alice, title=f"t{i}", created_at=days_ago(2.5) if i == 0 else None)

        overview = (await analytics_service.get_dashboard(user_id=alice)).overview

        # 6 tasks over ceil(2.5) = 3 days
        assert overview.average_tasks_per_day == 2.0

    async def test_distributions(self, alice):
        work = await create_category(user_id=alice, name="Work")
        home = await create_category(user_id=alice, name="Home")
        await create_task(user_id=alice, title="a", category_id=work["id"], priority="high", completed=True)
        await create_task(user_id=alice, title="b", category_id=work["id"], priority="low")
        await create_task(user_id=alice, title="c", category_id=home["id"], priority="high")
        await create_task(user_id=alice, title="d", category_id="999")

        dashboard = await analytics_service.get_dashboard(user_id=alice)

        assert [(c.name, c.count, c.completed, c.pending) for c in dashboard.category_distribution] == [
            ("Work", 2, 1, 1),
            ("Home", 1, 0, 1),
        ]
        assert [(p.priority, p.count, p.completed) for p in dashboard.priority_distribution] == [
            ("high", 2, 1),
            ("medium", 1, 0),
            ("low", 1, 0),
        ]

    async def test_recent_activity(self, alice):
        await create_task(user_id=alice, title="old", created_at=days_ago(20))
        await create_task(user_id=alice, title="fresh", completed=True, created_at=days_ago(1))

        activity = (await analytics_service.get_dashboard(user_id=alice)).recent_activity

        assert [(a.title, a.action) for a in activity] == [("fresh", "completed")]

    async def test_result_is_cached(self, alice, memory_cache):
        first = await analytics_service.get_dashboard(user_id=alice)
        await create_task(user_id=alice, title="not yet visible")

        second = await analytics_service.get_dashboard(user_id=alice)
        assert second == first

        await analytics_service.invalidate_analytics_cache(user_id=alice)
        third = await analytics_service.get_dashboard(user_id=alice)
        assert third.overview.total_tasks == 1


@pytest.mark.unit
class TestTaskAnalytics:
    async def test_trends_and_completion_time(self, alice):
        await create_task(
            user_id=alice, title="quick", completed=True, created_at=days_ago(3), updated_at=days_ago(2)
        )
        await create_task(
            user_id=alice, title="slow", completed=True, created_at=days_ago(5), updated_at=days_ago(1)
        )
        await create_task(user_id=alice, title="open", created_at=days_ago(3))
        await create_task(user_id=alice, title="ancient", created_at=days_ago(90))

        result = await analytics_service.get_task_analytics(user_id=alice, period_days=30)

        assert sum(d.count for d in result.task_creation_trend) == 3
        assert [d.date for d in result.task_creation_trend] == sorted(d.date for d in result.task_creation_trend)
        assert sum(d.count for d in result.task_completion_trend) == 2
        assert result.completion_time_stats.min_completion_time == 1.0
        assert result.completion_time_stats.max_completion_time == 4.0
        assert result.completion_time_stats.average_completion_time == 2.5

    async def test_empty_window(self, alice):
        result = await analytics_service.get_task_analytics(user_id=alice, period_days=7)

        assert result.task_creation_trend == []
        assert result.completion_time_stats.average_completion_time == 0.0


@pytest.mark.unit
class TestCategoryAnalytics:
    async def test_performance_and_most_productive(self, alice):
        work = await create_category(user_id=alice, name="Work")
        home = await create_category(user_id=alice, name="Home")
        for i in range(3):
            await create_task(user_id=alice, title=f"w{i}", category_id=work["id"], priority="high", completed=i < 2)
        await create_task(user_id=alice, title="h0", category_id=home["id"], priority="low", due_date=days_ago(1))

        result = await analytics_service.get_category_analytics(user_id=alice)

        work_perf, home_perf = result.category_performance
        assert work_perf.name == "Work"
        assert work_perf.average_priority == 3.0
        assert work_perf.completion_rate == 66.67
        assert home_perf.overdue_tasks == 1
        assert [c.name for c in result.most_productive_categories] == ["Work"]
        assert {g.name for g in result.category_growth} == {"Work", "Home"}


@pytest.mark.unit
class TestStreaks:
    def test_three_day_run_ending_today_then_gap(self):
        today = date(2024, 6, 15)
        days = {today - timedelta(days=n) for n in (0, 1, 2, 5, 6)}

        streaks = compute_streaks(days, today=today, period_days=30)

        assert streaks.current_streak == 3
        assert streaks.max_streak == 3

    def test_no_completion_today_means_no_current_streak(self):
        today = date(2024, 6, 15)
        days = {today - timedelta(days=n) for n in (1, 2, 3, 4)}

        streaks = compute_streaks(days, today=today, period_days=30)

        assert streaks.current_streak == 0
        assert streaks.max_streak == 4

    def test_runs_outside_window_are_ignored(self):
        today = date(2024, 6, 15)
        days = {today - timedelta(days=n) for n in range(10, 20)}

        assert compute_streaks(days, today=today, period_days=5).max_streak == 0

    async def test_productivity_insights_streaks(self, alice):
        for n in (0, 1, 2, 5, 6):
            completed_at = datetime.now(UTC) - timedelta(days=n)
            await create_task(
                user_id=alice,
                title=f"done {n}",
                completed=True,
                created_at=completed_at - timedelta(minutes=5),
                updated_at=completed_at,
            )

        insights = await analytics_service.get_productivity_insights(user_id=alice, period_days=30)

        assert insights.streaks.current_streak == 3
        assert insights.streaks.max_streak == 3
        assert all(d.productivity_score == 100.0 for d in insights.daily_productivity)
        assert insights.best_days[0].day_name in analytics_service.DAY_NAMES.values()


@pytest.mark.unit
class TestCustomRange:
    async def test_start_after_end_is_rejected_before_reading(self, alice):
        with (
            patch("src.services.analytics_service._load_tasks", new=AsyncMock()) as load,
            pytest.raises(ValidationFailedError, match="Start date must be before end date"),
        ):
            await analytics_service.get_custom_range_analytics(user_id=alice, start=days_ago(1), end=days_ago(2))

        load.assert_not_called()

    async def test_span_over_a_year_is_rejected(self, alice):
        with pytest.raises(ValidationFailedError, match="cannot exceed 1 year"):
            await analytics_service.get_custom_range_analytics(user_id=alice, start=days_ago(400), end=days_ago(0))

    async def test_summary(self, alice):
        await create_task(user_id=alice, title="in range", created_at=days_ago(3), priority="high")
        await create_task(
            user_id=alice, title="done in range", completed=True, created_at=days_ago(4), updated_at=days_ago(2)
        )
        await create_task(user_id=alice, title="before range", created_at=days_ago(20))

        result = await analytics_service.get_custom_range_analytics(
            user_id=alice, start=days_ago(10), end=datetime.now(UTC)
        )

        assert result.overview.total_tasks == 2
        assert result.overview.completed_tasks == 1
        assert result.overview.completion_rate == 50.0
        assert sum(d.created for d in result.daily_breakdown) == 2
        assert {p.priority for p in result.priority_distribution} == {"high", "medium"}
