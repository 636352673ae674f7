"""
Trip lifecycle service.

Owns the OPEN -> CLOSED state machine: starting a trip (closing any trip the
owner left open), updating an open trip, and stopping it.
"""

import logging
from typing import List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.crypto import encrypt_address
from backend.app.core.exceptions import InvalidTripStateError
from backend.app.core.reliability import run_unit_of_work
from backend.app.models.trip import Trip
from backend.app.schemas.trip import (
    CompanionEntry, TripStartRequest, TripUpdateRequest, TripStopRequest
)
from backend.app.services.distance import summarize_points
from backend.app.services.trip_access import acquire_owner_lock, get_owned_trip, load_points

logger = logging.getLogger(__name__)


def _companion_snapshot(companions: List[CompanionEntry]) -> List[dict]:
    return [c.model_dump(exclude_none=True) for c in companions]


async def refresh_cached_totals(db: AsyncSession, trip: Trip) -> None:
    """Recompute the trip's cached distance/duration from its stored points."""
    points = await load_points(db, trip.id)
    summary = summarize_points(points, trip.started_at, trip.ended_at)
    trip.distance_meters = summary.distance_meters
    trip.duration_seconds = summary.duration_seconds


class TripLifecycleManager:

    @staticmethod
    async def start_trip(db: AsyncSession, owner_id: str, request: TripStartRequest) -> Trip:
        """
        Open a new trip for ``owner_id``.

        Any trip the owner still has open is closed first (ended now), in the
        same transaction, so a client that crashed before stopping cannot
        leave two open trips behind.

        Flow:
        1. Take the per-owner lock
        2. Close every open trip of the owner and refresh its totals
        3. Insert the new open trip

        A concurrent start that slips past the lock hits the partial unique
        index on open trips; the unit of work is rolled back and retried.
        """
        dest_encrypted = encrypt_address(request.dest_address) if request.dest_address else None
        started_at = request.timestamp or utcnow()

        async def work():
            await acquire_owner_lock(db, owner_id)
            now = utcnow()

            closed = await db.execute(
                update(Trip)
                .where(Trip.user_id == owner_id, Trip.ended_at.is_(None))
                .values(ended_at=now)
                .returning(Trip.id)
                .execution_options(synchronize_session=False)
            )
            closed_ids = list(closed.scalars().all())

            for closed_id in closed_ids:
                abandoned = await get_owned_trip(db, closed_id, owner_id)
                await refresh_cached_totals(db, abandoned)

            trip = Trip(
                user_id=owner_id,
                device_id=request.device_id,
                started_at=started_at,
                start_lat=request.lat,
                start_lng=request.lng,
                modes=[m.value for m in request.modes or []],
                companions=_companion_snapshot(request.companions) if request.companions is not None else None,
                meta_data=request.metadata,
                dest_lat=request.dest_lat,
                dest_lng=request.dest_lng,
                dest_address_encrypted=dest_encrypted,
            )
            db.add(trip)
            await db.flush()  # Will raise IntegrityError if another open trip exists

            await db.commit()
            await db.refresh(trip)
            return trip, closed_ids

        trip, closed_ids = await run_unit_of_work(db, "start_trip", work, retry_on=(IntegrityError,))

        if closed_ids:
            logger.info("Auto-closed open trips %s for user %s", closed_ids, owner_id)
        logger.info("Trip %s started for user %s", trip.id, owner_id)
        return trip

    @staticmethod
    async def update_trip(
        db: AsyncSession, trip_id: int, owner_id: str, request: TripUpdateRequest
    ) -> Trip:
        """
        Apply a partial update to an open trip.

        Raises:
            TripNotFoundError: missing or not owned
            InvalidTripStateError: trip already ended
        """
        fields = request.model_fields_set
        dest_encrypted = None
        if "dest_address" in fields and request.dest_address:
            dest_encrypted = encrypt_address(request.dest_address)

        async def work():
            trip = await get_owned_trip(db, trip_id, owner_id, for_update=True)
            if not trip.is_open:
                raise InvalidTripStateError(trip_id)

            if "modes" in fields:
                trip.modes = [m.value for m in request.modes or []]
            if "companions" in fields:
                trip.companions = _companion_snapshot(request.companions) if request.companions is not None else None
            if "metadata" in fields:
                trip.meta_data = request.metadata
            if "dest_lat" in fields:
                trip.dest_lat = request.dest_lat
            if "dest_lng" in fields:
                trip.dest_lng = request.dest_lng
            if "dest_address" in fields:
                trip.dest_address_encrypted = dest_encrypted
            trip.updated_at = utcnow()

            await db.commit()
            await db.refresh(trip)
            return trip

        trip = await run_unit_of_work(db, "update_trip", work)
        logger.info("Trip %s updated (%s)", trip.id, ", ".join(sorted(fields)) or "no fields")
        return trip

    @staticmethod
    async def stop_trip(db: AsyncSession, owner_id: str, request: TripStopRequest) -> Trip:
        """
        Close an open trip and cache its totals.

        Raises:
            TripNotFoundError: missing or not owned
            InvalidTripStateError: trip already ended
        """

        async def work():
            trip = await get_owned_trip(db, request.trip_id, owner_id, for_update=True)
            if not trip.is_open:
                raise InvalidTripStateError(request.trip_id)

            trip.ended_at = request.timestamp or utcnow()
            trip.end_lat = request.lat
            trip.end_lng = request.lng
            await refresh_cached_totals(db, trip)

            await db.commit()
            await db.refresh(trip)
            return trip

        trip = await run_unit_of_work(db, "stop_trip", work)
        logger.info(
            "Trip %s stopped for user %s (%.1f m, %s s)",
            trip.id, owner_id, trip.distance_meters or 0.0, trip.duration_seconds,
        )
        return trip

    @staticmethod
    async def get_open_trip(db: AsyncSession, owner_id: str):
        """The owner's open trip, or None."""

        async def work():
            result = await db.execute(
                select(Trip).where(Trip.user_id == owner_id, Trip.ended_at.is_(None))
            )
            return result.scalar_one_or_none()

        return await run_unit_of_work(db, "get_open_trip", work)
