"""
Weekly leaderboard.

Read-only and recomputed per call: distance per owner over trips started in
the trailing window, companion count as tiebreaker. Distances come from the
points themselves (the cached column on trips is only refreshed at stop, so
open trips would otherwise count as zero). The ranking reflects whatever
points were committed when the query ran.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, union
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.reliability import run_unit_of_work
from backend.app.models.companion_contact import CompanionContact
from backend.app.models.trip import Trip
from backend.app.models.trip_point import TripPoint
from backend.app.services.cache import TripSummaryCache
from backend.app.services.distance import total_distance

logger = logging.getLogger(__name__)

POINT_LOAD_CHUNK = 200


@dataclass
class LeaderboardRow:
    rank: int
    owner_id: str
    distance_meters: float
    companions: int


@dataclass
class Leaderboard:
    window_start: datetime
    window_end: datetime
    items: List[LeaderboardRow]


def rank_owners(
    distances: Dict[str, float], companions: Dict[str, int], limit: int
) -> List[LeaderboardRow]:
    """Sort by distance desc, then companions desc, then owner id; keep ``limit``."""
    ordered = sorted(
        distances.items(),
        key=lambda item: (-item[1], -companions.get(item[0], 0), item[0])
    )
    return [
        LeaderboardRow(
            rank=position,
            owner_id=owner_id,
            distance_meters=distance,
            companions=companions.get(owner_id, 0),
        )
        for position, (owner_id, distance) in enumerate(ordered[:limit], start=1)
    ]


async def _load_point_sets(db: AsyncSession, trip_ids: List[int]) -> Dict[int, list]:
    grouped: Dict[int, list] = defaultdict(list)
    for start in range(0, len(trip_ids), POINT_LOAD_CHUNK):
        chunk = trip_ids[start:start + POINT_LOAD_CHUNK]
        result = await db.execute(
            select(TripPoint.trip_id, TripPoint.timestamp, TripPoint.lat, TripPoint.lng, TripPoint.mode)
            .where(TripPoint.trip_id.in_(chunk))
        )
        for row in result.all():
            grouped[row.trip_id].append(row)
    return grouped


class LeaderboardAggregator:

    @staticmethod
    async def get_weekly_leaderboard(
        db: AsyncSession,
        cache: TripSummaryCache,
        include_all: bool = False,
        now: Optional[datetime] = None,
    ) -> Leaderboard:
        """
        Rank owners by distance travelled on trips started in the window.

        Args:
            db: Database session
            cache: Per-trip distance cache
            include_all: Also list owners without in-window trips (distance 0);
                the roster is every owner with a trip or a saved companion
            now: Window end (defaults to the current time)
        """
        window_end = now or utcnow()
        window_start = window_end - timedelta(days=settings.leaderboard_window_days)

        async def work():
            trips = (await db.execute(
                select(
                    Trip.id,
                    Trip.user_id,
                    func.count(TripPoint.id).label("point_count"),
                    func.max(TripPoint.timestamp).label("latest"),
                )
                .outerjoin(TripPoint, TripPoint.trip_id == Trip.id)
                .where(Trip.started_at >= window_start, Trip.started_at <= window_end)
                .group_by(Trip.id, Trip.user_id)
            )).all()

            distances: Dict[str, float] = defaultdict(float)
            missing: List[Tuple[int, str, str]] = []
            for trip in trips:
                distances[trip.user_id] += 0.0
                if trip.point_count < 2:
                    continue
                key = TripSummaryCache.distance_key(trip.id, trip.point_count, trip.latest)
                cached = await cache.get_distance(key)
                if cached is None:
                    missing.append((trip.id, trip.user_id, key))
                else:
                    distances[trip.user_id] += cached

            if missing:
                point_sets = await _load_point_sets(db, [trip_id for trip_id, _, _ in missing])
                for trip_id, owner_id, key in missing:
                    meters = total_distance(point_sets.get(trip_id, []))
                    distances[owner_id] += meters
                    await cache.set_distance(key, meters)

            companion_rows = (await db.execute(
                select(CompanionContact.user_id, func.count(CompanionContact.id))
                .group_by(CompanionContact.user_id)
            )).all()
            companions = {owner_id: count for owner_id, count in companion_rows}

            if include_all:
                roster = (await db.execute(
                    union(select(Trip.user_id), select(CompanionContact.user_id))
                )).scalars().all()
                for owner_id in roster:
                    distances[owner_id] += 0.0

            return dict(distances), companions, len(missing)

        distances, companions, recomputed = await run_unit_of_work(db, "weekly_leaderboard", work)
        logger.debug("Leaderboard: %s owners, %s trip distances recomputed", len(distances), recomputed)

        return Leaderboard(
            window_start=window_start,
            window_end=window_end,
            items=rank_owners(distances, companions, settings.leaderboard_limit),
        )
