"""
Trip Event database model.

Freeform, append-only annotations on a trip (e.g. "stop", "note").
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class TripEvent(Base):
    __tablename__ = "trip_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, index=True)

    type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<TripEvent(id={self.id}, trip_id={self.trip_id}, type='{self.type}')>"
