"""
Trip lookup and per-owner locking shared by the trip services.
"""

from typing import List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import TripNotFoundError
from backend.app.models.trip import Trip
from backend.app.models.trip_point import TripPoint


async def get_owned_trip(
    db: AsyncSession,
    trip_id: int,
    owner_id: str,
    for_update: bool = False,
) -> Trip:
    """
    Load a trip that belongs to ``owner_id``.

    Args:
        db: Database session
        trip_id: Trip to load
        owner_id: Caller; a trip owned by anyone else is reported as missing
        for_update: Lock the row until the transaction ends (PostgreSQL)

    Returns:
        The trip, refreshed from the database

    Raises:
        TripNotFoundError: Trip missing or not owned by the caller
    """
    stmt = (
        select(Trip)
        .where(Trip.id == trip_id, Trip.user_id == owner_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()

    result = await db.execute(stmt)
    trip = result.scalar_one_or_none()

    if not trip:
        raise TripNotFoundError(trip_id)

    return trip


async def load_points(db: AsyncSession, trip_id: int) -> List[TripPoint]:
    """All points of a trip, ordered by sample time."""
    result = await db.execute(
        select(TripPoint)
        .where(TripPoint.trip_id == trip_id)
        .order_by(TripPoint.timestamp, TripPoint.id)
    )
    return list(result.scalars().all())


async def acquire_owner_lock(db: AsyncSession, owner_id: str) -> None:
    """
    Serialise trip starts for one owner within the current transaction.

    PostgreSQL: transaction-scoped advisory lock keyed by the owner.
    SQLite: writers are already serialised by the database lock; the
    partial unique index on open trips backs both up.
    """
    if db.get_bind().dialect.name == "postgresql":
        await db.execute(
            select(func.pg_advisory_xact_lock(func.hashtext(f"trip-start:{owner_id}")))
        )
