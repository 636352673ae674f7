"""
Companion Contact database model.

People a user regularly travels with. The per-user count is the
weekly leaderboard's tiebreaker.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class CompanionContact(Base):
    __tablename__ = "companion_contacts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<CompanionContact(id={self.id}, user_id='{self.user_id}', name='{self.name}')>"
