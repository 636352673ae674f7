"""
Trip Point database model.

Stores the GPS samples of a trip. Rows are immutable once written.
"""

from sqlalchemy import Column, Integer, Float, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base


class TripPoint(Base):
    """
    Trip Point model.

    ``client_id`` is the optional idempotency key supplied by the device.
    (trip_id, client_id) is unique; NULL keys never collide, so keyless
    points are always stored.
    """
    __tablename__ = "trip_points"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(Integer, ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, index=True)

    # GPS sample
    timestamp = Column(DateTime(timezone=True), nullable=False)  # When GPS was recorded
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    speed = Column(Float, nullable=True)
    accuracy = Column(Float, nullable=True)  # GPS accuracy in meters
    heading = Column(Float, nullable=True)
    mode = Column(String(32), nullable=True)

    client_id = Column(String(128), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)  # When inserted to DB

    __table_args__ = (
        UniqueConstraint('trip_id', 'client_id', name='uq_trip_points_trip_client'),
    )

    def __repr__(self):
        return f"<TripPoint(trip_id={self.trip_id}, lat={self.lat}, lng={self.lng})>"
