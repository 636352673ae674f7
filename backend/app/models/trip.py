"""
Trip database model.

A trip is opened by its owner, collects GPS points and events while open,
and is closed exactly once.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Index, Text, text
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Trip(Base):
    """
    Trip model.

    ``ended_at`` is NULL while the trip is open. At most one open trip per
    owner: the partial unique index below rejects a second one even if two
    starts race past the application-level lock.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - resolved by the identity service
    user_id = Column(String(64), nullable=False, index=True)
    device_id = Column(String(128), nullable=True)

    # Lifecycle
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Endpoints
    start_lat = Column(Float, nullable=True)
    start_lng = Column(Float, nullable=True)
    end_lat = Column(Float, nullable=True)
    end_lng = Column(Float, nullable=True)

    # Requested modes and flexible documents (validated at the API boundary)
    modes = Column(JSON, nullable=False, default=list)
    companions = Column(JSON, nullable=True)
    meta_data = Column(JSON, nullable=True)

    # Destination
    dest_lat = Column(Float, nullable=True)
    dest_lng = Column(Float, nullable=True)
    dest_address_encrypted = Column(Text, nullable=True)

    # Cached totals, refreshed when the trip is stopped
    distance_meters = Column(Float, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_trips_one_open_per_user', 'user_id', unique=True,
              postgresql_where=text('ended_at IS NULL'),
              sqlite_where=text('ended_at IS NULL')),
    )

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def __repr__(self):
        return f"<Trip(id={self.id}, user_id='{self.user_id}', open={self.ended_at is None})>"
