"""
Analytics schemas for streaks and the weekly leaderboard.
"""

from typing import List

from backend.app.schemas.trip import CamelModel, UtcDateTime


class StreakResponse(CamelModel):
    """Consecutive travel days ending today, and active days in the window."""
    current_streak_days: int
    active_days_last60: int


class LeaderboardEntry(CamelModel):
    rank: int
    owner_id: str
    distance_meters: float
    companions: int


class LeaderboardResponse(CamelModel):
    window_start: UtcDateTime
    window_end: UtcDateTime
    items: List[LeaderboardEntry]
