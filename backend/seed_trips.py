"""
Database seeding script for demo trips.

Creates a week of closed trips (with GPS points, events and companions) for a few
demo users so the streak and leaderboard endpoints have data.
Run this script after the database is reachable.
"""

import asyncio
import math
from datetime import timedelta

from sqlalchemy import select

from backend.app.core.clock import utcnow
from backend.app.db.session import Database
from backend.app.models.companion_contact import CompanionContact
from backend.app.models.trip import Trip
from backend.app.models.trip_event import TripEvent
from backend.app.models.trip_point import TripPoint
from backend.app.services.distance import summarize_points

DEMO_USERS = {
    # user id: (km per trip, companions)
    "demo-alice": (5.0, ["Sam", "Priya"]),
    "demo-bob": (8.0, []),
    "demo-carol": (3.0, ["Lee"]),
}

# Bangalore city centre
ORIGIN = (12.9716, 77.5946)
POINTS_PER_TRIP = 20
METERS_PER_DEGREE_LAT = 111194.93


def route(km: float):
    """Straight northbound route of ``km`` kilometres."""
    step = (km * 1000 / METERS_PER_DEGREE_LAT) / (POINTS_PER_TRIP - 1)
    return [(ORIGIN[0] + i * step, ORIGIN[1]) for i in range(POINTS_PER_TRIP)]


async def seed_trips():
    """
    Seed demo trips.

    Creates, per demo user:
    - one closed trip on each of the last 5 days, with a "note" event
    - the user's companion contacts
    """
    database = Database.from_settings()
    await database.create_schema()

    async with database.session() as db:
        print("🌱 Starting trip seeding...")

        existing = await db.execute(select(Trip.id).where(Trip.user_id.in_(DEMO_USERS)).limit(1))
        if existing.scalar_one_or_none():
            print("ℹ️  Demo trips already exist, skipping seeding")
            await database.dispose()
            return

        now = utcnow()
        for user_id, (km, companions) in DEMO_USERS.items():
            for days_ago in range(5):
                started_at = now - timedelta(days=days_ago, hours=2)
                ended_at = started_at + timedelta(minutes=math.ceil(km * 12))
                trip = Trip(
                    user_id=user_id,
                    started_at=started_at,
                    ended_at=ended_at,
                    start_lat=ORIGIN[0],
                    start_lng=ORIGIN[1],
                    modes=["bike"],
                    companions=[{"name": name} for name in companions] or None,
                )
                db.add(trip)
                await db.flush()

                span = (ended_at - started_at) / (POINTS_PER_TRIP - 1)
                points = [
                    TripPoint(
                        trip_id=trip.id,
                        timestamp=started_at + span * i,
                        lat=lat,
                        lng=lng,
                        mode="bike",
                        client_id=f"seed-{trip.id}-{i}",
                    )
                    for i, (lat, lng) in enumerate(route(km))
                ]
                db.add_all(points)

                summary = summarize_points(points, started_at, ended_at)
                trip.end_lat, trip.end_lng = points[-1].lat, points[-1].lng
                trip.distance_meters = summary.distance_meters
                trip.duration_seconds = summary.duration_seconds
                db.add(TripEvent(
                    trip_id=trip.id,
                    type="note",
                    data={"text": "seeded"},
                    created_at=ended_at,
                ))

            db.add_all([CompanionContact(user_id=user_id, name=name) for name in companions])
            print(f"✅ Seeded 5 trips for {user_id} ({km} km each)")

        await db.commit()

    await database.dispose()
    print("🎉 Seeding complete")


if __name__ == "__main__":
    asyncio.run(seed_trips())
