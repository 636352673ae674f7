"""
Location ingestion service.

Appends GPS samples to an open trip, one at a time or in offline-sync
batches. Samples carrying a ``client_id`` are idempotent: resubmitting them
never creates a second row, so a client can retry a failed upload verbatim.
Samples without a key are always appended.
"""

import logging
from typing import List, Sequence, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidTripStateError, PayloadValidationError
from backend.app.core.reliability import run_unit_of_work
from backend.app.models.trip_point import TripPoint
from backend.app.schemas.trip import PointInput
from backend.app.services.trip_access import get_owned_trip

logger = logging.getLogger(__name__)

# Keep IN (...) lists well under driver parameter limits
KEY_LOOKUP_CHUNK = 500


def _first_occurrences(points: Sequence[PointInput]) -> List[PointInput]:
    """Drop repeats of a client_id within one payload, keeping the first."""
    seen: Set[str] = set()
    kept = []
    for point in points:
        if point.client_id:
            if point.client_id in seen:
                continue
            seen.add(point.client_id)
        kept.append(point)
    return kept


async def _existing_keys(db: AsyncSession, trip_id: int, keys: List[str]) -> Set[str]:
    found: Set[str] = set()
    for start in range(0, len(keys), KEY_LOOKUP_CHUNK):
        chunk = keys[start:start + KEY_LOOKUP_CHUNK]
        result = await db.execute(
            select(TripPoint.client_id).where(
                TripPoint.trip_id == trip_id,
                TripPoint.client_id.in_(chunk)
            )
        )
        found.update(result.scalars().all())
    return found


class LocationIngestionService:

    @staticmethod
    async def ingest_one(db: AsyncSession, trip_id: int, owner_id: str, point: PointInput) -> bool:
        """
        Record a single sample.

        Returns:
            True if a row was written, False if the sample's client_id was
            already stored for this trip

        Raises:
            TripNotFoundError: missing or not owned
            InvalidTripStateError: trip already ended
        """
        inserted = await LocationIngestionService._ingest(db, trip_id, owner_id, [point], "ingest_location")
        return inserted == 1

    @staticmethod
    async def ingest_batch(db: AsyncSession, trip_id: int, owner_id: str, points: Sequence[PointInput]) -> int:
        """
        Record a batch of 1..max_batch_points samples.

        Points may be in any timestamp order. Samples whose
        (trip, client_id) already exists are dropped silently.

        Returns:
            Number of rows actually written

        Raises:
            PayloadValidationError: empty batch or over the size limit
            TripNotFoundError: missing or not owned
            InvalidTripStateError: trip already ended
        """
        if not points:
            raise PayloadValidationError("Batch must contain at least one point")
        if len(points) > settings.max_batch_points:
            raise PayloadValidationError(
                f"Batch exceeds {settings.max_batch_points} points",
                details={"received": len(points), "limit": settings.max_batch_points}
            )

        return await LocationIngestionService._ingest(db, trip_id, owner_id, points, "batch_ingest")

    @staticmethod
    async def _ingest(
        db: AsyncSession,
        trip_id: int,
        owner_id: str,
        points: Sequence[PointInput],
        operation: str,
    ) -> int:
        candidates = _first_occurrences(points)
        keys = [p.client_id for p in candidates if p.client_id]
        received_at = utcnow()

        async def work():
            # Row lock: concurrent batches and stop_trip on this trip queue here
            trip = await get_owned_trip(db, trip_id, owner_id, for_update=True)
            if not trip.is_open:
                raise InvalidTripStateError(trip_id)

            existing = await _existing_keys(db, trip.id, keys) if keys else set()

            rows = [
                TripPoint(
                    trip_id=trip.id,
                    timestamp=p.timestamp or received_at,
                    lat=p.lat,
                    lng=p.lng,
                    speed=p.speed,
                    accuracy=p.accuracy,
                    heading=p.heading,
                    mode=p.mode.value if p.mode else None,
                    client_id=p.client_id,
                )
                for p in candidates
                if not p.client_id or p.client_id not in existing
            ]

            if rows:
                db.add_all(rows)
                await db.flush()  # Unique (trip_id, client_id) catches a racing double-submit
            await db.commit()
            return len(rows)

        inserted = await run_unit_of_work(db, operation, work, retry_on=(IntegrityError,))

        dropped = len(points) - inserted
        if dropped:
            logger.info("Trip %s: %s of %s points already stored, skipped", trip_id, dropped, len(points))
        logger.debug("Trip %s: inserted %s points", trip_id, inserted)
        return inserted
