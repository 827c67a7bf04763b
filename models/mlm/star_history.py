# models/mlm/star_history.py
"""
StarHistory model - tracks star level upgrades.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from datetime import datetime, timezone
from models.base import Base


class StarHistory(Base):
    __tablename__ = 'star_history'

    historyID = Column(Integer, primary_key=True, autoincrement=True)
    createdAt = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relations
    userID = Column(Integer, ForeignKey('users.userID'), nullable=False, index=True)

    # Star details
    previousStar = Column(Integer, nullable=True)
    newStar = Column(Integer, nullable=False)
    qualificationMethod = Column(String, nullable=True)  # natural, assigned

    # Passed criteria blocks at time of upgrade (JSON)
    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<StarHistory(user={self.userID}, star={self.previousStar}->{self.newStar}, date={self.createdAt})>"
