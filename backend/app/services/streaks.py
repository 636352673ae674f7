"""
Travel streaks.

A day counts as active when the user started at least one trip on it
(calendar day in ``settings.calendar_timezone``).
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional, Set
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import as_utc, utcnow
from backend.app.core.config import settings
from backend.app.core.reliability import run_unit_of_work
from backend.app.models.trip import Trip


@dataclass
class StreakResult:
    current_streak_days: int
    active_days_last60: int


def count_streak(active_days: Set[date], today: date) -> int:
    """Consecutive active days walking back from ``today``; 0 if today is inactive."""
    streak = 0
    cursor = today
    while cursor in active_days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def active_days_in_window(
    started: Iterable[datetime], today: date, window_days: int, tz: ZoneInfo
) -> Set[date]:
    first_day = today - timedelta(days=window_days - 1)
    days = {as_utc(ts).astimezone(tz).date() for ts in started}
    return {d for d in days if first_day <= d <= today}


class StreakCalculator:

    @staticmethod
    async def get_streak(
        db: AsyncSession, owner_id: str, today: Optional[date] = None
    ) -> StreakResult:
        """
        Current streak and number of active days in the trailing window.

        Args:
            db: Database session
            owner_id: User to compute for
            today: Calendar day to count back from (defaults to now in the
                configured calendar timezone)
        """
        tz = ZoneInfo(settings.calendar_timezone)
        window_days = settings.streak_window_days
        if today is None:
            today = utcnow().astimezone(tz).date()

        first_day = today - timedelta(days=window_days - 1)
        window_start = datetime.combine(first_day, time.min, tzinfo=tz).astimezone(timezone.utc)

        async def work():
            result = await db.execute(
                select(Trip.started_at).where(
                    Trip.user_id == owner_id,
                    Trip.started_at >= window_start
                )
            )
            return list(result.scalars().all())

        started = await run_unit_of_work(db, "get_streak", work)
        days = active_days_in_window(started, today, window_days, tz)

        return StreakResult(
            current_streak_days=count_streak(days, today),
            active_days_last60=len(days),
        )
