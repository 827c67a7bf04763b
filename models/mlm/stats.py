# models/mlm/stats.py
"""
Stats model - global totals mirror, a single row keyed 'global'.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime
from models.base import Base, TimestampMixin

GLOBAL_STATS_KEY = "global"


class Stats(Base, TimestampMixin):
    __tablename__ = 'stats'

    statsID = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, nullable=False, unique=True, default=GLOBAL_STATS_KEY)

    totalChecksCreated = Column(Integer, nullable=False, default=0)
    totalChecksBurned = Column(Integer, nullable=False, default=0)
    totalPayoutAmount = Column(DECIMAL(16, 2), nullable=False, default=0)

    totalRspConvertedUnits = Column(DECIMAL(16, 2), nullable=False, default=0)
    totalRspConvertedAmount = Column(DECIMAL(16, 2), nullable=False, default=0)

    lastRunAt = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Stats(key={self.key}, checks={self.totalChecksCreated}, payout={self.totalPayoutAmount})>"
