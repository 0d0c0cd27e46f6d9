"""
Time-bucketed totals for the dashboard views.

The weekly chart, the calendar heatmap and the goal progress bar all
show sums of distance over some window. These functions compute those
sums; drawing them is the presentation layer's business.

Weeks start on Monday. Sessions are bucketed by the calendar day of
their timestamp in UTC.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

from .models import SessionValidationError, SwimSession

logger = logging.getLogger(__name__)


class HeatLevel(Enum):
    """Calendar cell intensity by distance swum that day."""
    NONE = "none"
    LIGHT = "light"    # under 1000m
    MEDIUM = "medium"  # under 2000m
    HIGH = "high"


class GoalPeriod(Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class WeeklyTotal:
    week_start: date
    distance: float = 0
    duration: float = 0
    session_count: int = 0

    @property
    def label(self) -> str:
        return f"Week {self.week_start.isocalendar()[1]}"


@dataclass(frozen=True)
class MonthlyTotal:
    year: int
    month: int
    distance: float = 0
    duration: float = 0
    session_count: int = 0


@dataclass(frozen=True)
class CalendarDay:
    day: date
    distance: float = 0

    @property
    def intensity(self) -> HeatLevel:
        return heat_level(self.distance)


@dataclass(frozen=True)
class GoalProgress:
    period: GoalPeriod
    current_distance: float
    goal_distance: float

    @property
    def percentage(self) -> float:
        return min(self.current_distance / self.goal_distance * 100, 100.0)

    @property
    def remaining(self) -> float:
        return max(self.goal_distance - self.current_distance, 0)

    @property
    def achieved(self) -> bool:
        return self.current_distance >= self.goal_distance


def heat_level(distance: float) -> HeatLevel:
    if distance <= 0:
        return HeatLevel.NONE
    if distance < 1000:
        return HeatLevel.LIGHT
    if distance < 2000:
        return HeatLevel.MEDIUM
    return HeatLevel.HIGH


def week_start(day: date) -> date:
    """The Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def weekly_totals(
    sessions: Iterable[SwimSession],
    weeks: int = 4,
    today: Optional[date] = None,
) -> list[WeeklyTotal]:
    """
    Distance per week for the last `weeks` weeks, oldest first.

    The current week is the last entry. Weeks without swims are
    included with zero totals so a chart has a fixed number of points.
    """
    if weeks <= 0:
        return []

    current = week_start(today or _utc_today())
    starts = [current - timedelta(weeks=offset) for offset in range(weeks - 1, -1, -1)]
    buckets = {start: [0, 0, 0] for start in starts}

    for session, day in _dated(sessions):
        bucket = buckets.get(week_start(day))
        if bucket is None:
            continue
        bucket[0] += session.distance
        bucket[1] += session.duration
        bucket[2] += 1

    return [
        WeeklyTotal(
            week_start=start,
            distance=buckets[start][0],
            duration=buckets[start][1],
            session_count=buckets[start][2],
        )
        for start in starts
    ]


def monthly_totals(
    sessions: Iterable[SwimSession],
    year: int,
    month: int,
) -> MonthlyTotal:
    """Distance, duration and session count for one calendar month."""
    if not 1 <= month <= 12:
        raise SessionValidationError(f"Month must be between 1 and 12, got {month}")

    distance = duration = count = 0
    for session, day in _dated(sessions):
        if day.year == year and day.month == month:
            distance += session.distance
            duration += session.duration
            count += 1

    return MonthlyTotal(
        year=year,
        month=month,
        distance=distance,
        duration=duration,
        session_count=count,
    )


def calendar_heatmap(
    sessions: Iterable[SwimSession],
    weeks: int = 4,
    today: Optional[date] = None,
) -> list[list[CalendarDay]]:
    """
    Rows of seven days covering the last `weeks` weeks, ending today.

    Each cell carries the total distance swum that day, summed over
    every session on that day.
    """
    if weeks <= 0:
        return []

    end = today or _utc_today()
    per_day: dict[date, float] = {}
    for session, day in _dated(sessions):
        per_day[day] = per_day.get(day, 0) + session.distance

    rows = []
    for week in range(weeks - 1, -1, -1):
        row = []
        for position in range(7):
            day = end - timedelta(days=week * 7 + (6 - position))
            row.append(CalendarDay(day=day, distance=per_day.get(day, 0)))
        rows.append(row)
    return rows


def goal_progress(
    current_distance: float,
    goal_distance: float,
    period: GoalPeriod = GoalPeriod.WEEKLY,
) -> GoalProgress:
    if goal_distance <= 0:
        raise SessionValidationError("Goal distance must be greater than zero")
    return GoalProgress(
        period=GoalPeriod(period),
        current_distance=current_distance,
        goal_distance=goal_distance,
    )


def period_distance(
    sessions: Iterable[SwimSession],
    period: GoalPeriod,
    today: Optional[date] = None,
) -> float:
    """Distance swum so far in the current week or month."""
    today = today or _utc_today()
    if GoalPeriod(period) is GoalPeriod.WEEKLY:
        return weekly_totals(sessions, weeks=1, today=today)[0].distance
    return monthly_totals(sessions, today.year, today.month).distance


def _dated(sessions: Iterable[SwimSession]):
    """Pairs of (session, UTC calendar day), skipping unparseable dates."""
    for session in sessions:
        try:
            day = session.logged_at.astimezone(timezone.utc).date()
        except ValueError:
            logger.debug("Skipping session with unparseable date", extra={"session_id": session.id})
            continue
        yield session, day


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()
