"""
Trip event log.

Append-only annotations on a trip. Events may be added after the trip has
ended (post-trip notes).
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.reliability import run_unit_of_work
from backend.app.models.trip_event import TripEvent
from backend.app.services.trip_access import get_owned_trip


class TripEventLog:

    @staticmethod
    async def append_event(
        db: AsyncSession,
        trip_id: int,
        owner_id: str,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> TripEvent:
        """Append an event; raises TripNotFoundError if the trip is missing or not owned."""

        async def work():
            trip = await get_owned_trip(db, trip_id, owner_id)
            event = TripEvent(
                trip_id=trip.id,
                type=event_type,
                data=data,
                created_at=utcnow(),
            )
            db.add(event)
            await db.commit()
            await db.refresh(event)
            return event

        return await run_unit_of_work(db, "append_event", work)

    @staticmethod
    async def list_events(db: AsyncSession, trip_id: int, owner_id: str) -> List[TripEvent]:
        """Events of a trip, oldest first."""

        async def work():
            trip = await get_owned_trip(db, trip_id, owner_id)
            result = await db.execute(
                select(TripEvent)
                .where(TripEvent.trip_id == trip.id)
                .order_by(TripEvent.created_at, TripEvent.id)
            )
            return list(result.scalars().all())

        return await run_unit_of_work(db, "list_events", work)
