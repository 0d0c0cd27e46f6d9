"""
Statistics API endpoints.

Derived numbers for the dashboard: overall totals and averages, weekly
and monthly distance, the calendar heatmap and goal progress. Nothing
here writes to the store.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.sessions.aggregates import (
    GoalPeriod,
    calendar_heatmap,
    goal_progress,
    monthly_totals,
    period_distance,
    weekly_totals,
)
from ..dependencies import SessionStoreDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class StatisticsResponse(BaseModel):
    """Totals and averages over every stored session."""
    total_sessions: int
    total_distance: float = Field(description="Meters")
    total_duration: float = Field(description="Seconds")
    average_pace: float = Field(description="Seconds per 100m")
    average_distance: float = Field(description="Meters")
    average_duration: float = Field(description="Seconds")


class WeekItem(BaseModel):
    label: str = Field(description="ISO week label, e.g. 'Week 14'")
    week_start: date = Field(description="Monday of the week")
    distance: float
    duration: float
    session_count: int


class WeeklyResponse(BaseModel):
    weeks: list[WeekItem] = Field(description="Oldest week first, current week last")
    goal_distance: int = Field(description="Weekly goal in meters, for the chart's reference line")


class MonthlyResponse(BaseModel):
    year: int
    month: int
    distance: float
    duration: float
    session_count: int


class CalendarCell(BaseModel):
    day: date
    distance: float
    intensity: str = Field(description="none, light, medium or high")


class CalendarResponse(BaseModel):
    weeks: list[list[CalendarCell]] = Field(description="Rows of seven days, ending today")


class GoalResponse(BaseModel):
    period: str
    current_distance: float
    goal_distance: float
    percentage: float = Field(description="0-100, capped at 100")
    remaining: float = Field(description="Meters left, never negative")
    achieved: bool


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=StatisticsResponse,
    summary="Overall statistics",
)
async def get_statistics(store: SessionStoreDep) -> StatisticsResponse:
    stats = store.get_statistics()
    return StatisticsResponse(
        total_sessions=stats.total_sessions,
        total_distance=stats.total_distance,
        total_duration=stats.total_duration,
        average_pace=stats.average_pace,
        average_distance=stats.average_distance,
        average_duration=stats.average_duration,
    )


@router.get(
    "/weekly",
    response_model=WeeklyResponse,
    summary="Distance per week",
)
async def get_weekly(
    store: SessionStoreDep,
    settings: SettingsDep,
    weeks: int = Query(default=4, ge=1, le=52),
) -> WeeklyResponse:
    totals = weekly_totals(store.sessions, weeks=weeks)
    return WeeklyResponse(
        weeks=[
            WeekItem(
                label=week.label,
                week_start=week.week_start,
                distance=week.distance,
                duration=week.duration,
                session_count=week.session_count,
            )
            for week in totals
        ],
        goal_distance=settings.weekly_goal_meters,
    )


@router.get(
    "/monthly",
    response_model=MonthlyResponse,
    summary="Totals for one month",
    description="Defaults to the current month.",
)
async def get_monthly(
    store: SessionStoreDep,
    year: Optional[int] = Query(default=None, ge=1970, le=9999),
    month: Optional[int] = Query(default=None, ge=1, le=12),
) -> MonthlyResponse:
    today = datetime.now(timezone.utc).date()
    totals = monthly_totals(store.sessions, year or today.year, month or today.month)
    return MonthlyResponse(
        year=totals.year,
        month=totals.month,
        distance=totals.distance,
        duration=totals.duration,
        session_count=totals.session_count,
    )


@router.get(
    "/calendar",
    response_model=CalendarResponse,
    summary="Calendar heatmap",
)
async def get_calendar(
    store: SessionStoreDep,
    weeks: int = Query(default=4, ge=1, le=52),
) -> CalendarResponse:
    rows = calendar_heatmap(store.sessions, weeks=weeks)
    return CalendarResponse(
        weeks=[
            [
                CalendarCell(day=cell.day, distance=cell.distance, intensity=cell.intensity.value)
                for cell in row
            ]
            for row in rows
        ]
    )


@router.get(
    "/goal",
    response_model=GoalResponse,
    summary="Progress toward the distance goal",
)
async def get_goal(
    store: SessionStoreDep,
    settings: SettingsDep,
    period: GoalPeriod = Query(default=GoalPeriod.WEEKLY),
    goal_distance: Optional[int] = Query(default=None, gt=0, description="Overrides the configured goal"),
) -> GoalResponse:
    if goal_distance is None:
        goal_distance = (
            settings.weekly_goal_meters if period is GoalPeriod.WEEKLY
            else settings.monthly_goal_meters
        )

    current = period_distance(store.sessions, period)
    try:
        progress = goal_progress(current, goal_distance, period)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return GoalResponse(
        period=progress.period.value,
        current_distance=progress.current_distance,
        goal_distance=progress.goal_distance,
        percentage=progress.percentage,
        remaining=progress.remaining,
        achieved=progress.achieved,
    )
