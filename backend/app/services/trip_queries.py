"""
Trip read models: paginated listing and the detail view.

Reads are not isolated from concurrent ingestion: a point committed while
a detail is being built may or may not be part of it.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.crypto import decrypt_address
from backend.app.core.exceptions import EncryptionConfigError
from backend.app.core.reliability import run_unit_of_work
from backend.app.models.trip import Trip
from backend.app.models.trip_point import TripPoint
from backend.app.services.distance import TripSummary, order_points, summarize_points
from backend.app.services.trip_access import get_owned_trip, load_points

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class TripDetail:
    trip: Trip
    summary: TripSummary
    points: List[TripPoint]
    dest_address: Optional[str]


def _reveal_address(trip: Trip) -> Optional[str]:
    if not trip.dest_address_encrypted:
        return None
    try:
        return decrypt_address(trip.dest_address_encrypted)
    except (ValueError, EncryptionConfigError) as exc:
        logger.warning("Trip %s: destination address unreadable: %s", trip.id, exc)
        return None


class TripQueryService:

    @staticmethod
    async def list_trips(
        db: AsyncSession, owner_id: str, page: int = 1, page_size: int = 20
    ) -> Tuple[int, int, int, List[Trip]]:
        """
        Newest-first page of the owner's trips.

        Returns:
            (total, page, page_size, trips) with page >= 1 and page_size
            clamped to [1, MAX_PAGE_SIZE]
        """
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        async def work():
            total = (await db.execute(
                select(func.count(Trip.id)).where(Trip.user_id == owner_id)
            )).scalar() or 0
            result = await db.execute(
                select(Trip)
                .where(Trip.user_id == owner_id)
                .order_by(Trip.started_at.desc(), Trip.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            return total, list(result.scalars().all())

        total, trips = await run_unit_of_work(db, "list_trips", work)
        return total, page, page_size, trips

    @staticmethod
    async def get_trip_detail(db: AsyncSession, trip_id: int, owner_id: str) -> TripDetail:
        """
        Trip with totals derived from its points at read time.

        Raises:
            TripNotFoundError: missing or not owned
        """

        async def work():
            trip = await get_owned_trip(db, trip_id, owner_id)
            points = await load_points(db, trip.id)
            return trip, points

        trip, points = await run_unit_of_work(db, "get_trip_detail", work)
        summary = summarize_points(points, trip.started_at, trip.ended_at)

        return TripDetail(
            trip=trip,
            summary=summary,
            points=order_points(points),
            dest_address=_reveal_address(trip),
        )
