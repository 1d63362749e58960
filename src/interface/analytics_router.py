"""Analytics endpoints. Every response carries ``X-Analytics-Version``."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.core.clock import parse_timestamp
from src.core.config import Constants
from src.core.errors import ValidationFailedError
from src.interface.dependencies import enforce_analytics_rate_limit
from src.interface.responses import dump, success_response
from src.services import analytics_service


router = APIRouter(prefix="/analytics", tags=["analytics"])

ANALYTICS_VERSION = "1.0"

RateLimitedUserId = Annotated[str, Depends(enforce_analytics_rate_limit)]
PeriodDays = Annotated[
    int,
    Query(ge=1, le=Constants.MAX_ANALYTICS_PERIOD_DAYS),
]


def _analytics_response(result: BaseModel) -> JSONResponse:
    return success_response({"data": dump(result)}, headers={"X-Analytics-Version": ANALYTICS_VERSION})


@router.get("/dashboard")
async def get_dashboard(user_id: RateLimitedUserId) -> JSONResponse:
    return _analytics_response(await analytics_service.get_dashboard(user_id=user_id))


@router.get("/tasks")
async def get_task_analytics(
    user_id: RateLimitedUserId,
    period: PeriodDays = Constants.DEFAULT_ANALYTICS_PERIOD_DAYS,
) -> JSONResponse:
    return _analytics_response(await analytics_service.get_task_analytics(user_id=user_id, period_days=period))


@router.get("/categories")
async def get_category_analytics(user_id: RateLimitedUserId) -> JSONResponse:
    return _analytics_response(await analytics_service.get_category_analytics(user_id=user_id))


@router.get("/productivity")
async def get_productivity_insights(
    user_id: RateLimitedUserId,
    period: PeriodDays = Constants.DEFAULT_ANALYTICS_PERIOD_DAYS,
) -> JSONResponse:
    return _analytics_response(
        await analytics_service.get_productivity_insights(user_id=user_id, period_days=period)
    )


@router.get("/custom-range")
async def get_custom_range_analytics(
    user_id: RateLimitedUserId,
    start_date: Annotated[str | None, Query(alias="startDate")] = None,
    end_date: Annotated[str | None, Query(alias="endDate")] = None,
) -> JSONResponse:
    """Summaries over ``[startDate, endDate]``; the span may not exceed a year."""
    if not start_date or not end_date:
        raise ValidationFailedError("Start date and end date are required")
    try:
        start = parse_timestamp(start_date)
        end = parse_timestamp(end_date)
    except ValueError as e:
        raise ValidationFailedError("Invalid date format") from e

    return _analytics_response(
        await analytics_service.get_custom_range_analytics(user_id=user_id, start=start, end=end)
    )
