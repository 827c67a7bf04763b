# models/mlm/monthly_stats.py
"""
UserMonthlyCheckStats model - per user, per UTC month accumulators.
"""
from sqlalchemy import Column, Integer, Date, DECIMAL, ForeignKey, UniqueConstraint, Index
from models.base import Base, TimestampMixin

MONTHLY_STAT_FIELDS = (
    "checksCreated",
    "payoutAmount",
    "rspCreated",
    "rspConvertedUnits",
    "rspConvertedAmount",
)


class UserMonthlyCheckStats(Base, TimestampMixin):
    __tablename__ = 'user_monthly_check_stats'

    statsID = Column(Integer, primary_key=True, autoincrement=True)

    # Relations
    userID = Column(Integer, ForeignKey('users.userID'), nullable=False, index=True)

    # Period - first day of month (UTC)
    month = Column(Date, nullable=False, index=True)

    # Checks credited to the user (burned checks are not counted)
    checksCreated = Column(Integer, nullable=False, default=0)
    payoutAmount = Column(DECIMAL(14, 2), nullable=False, default=0)

    # RSP
    rspCreated = Column(DECIMAL(14, 2), nullable=False, default=0)
    rspConvertedUnits = Column(DECIMAL(14, 2), nullable=False, default=0)
    rspConvertedAmount = Column(DECIMAL(14, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('userID', 'month', name='uq_monthly_stats_user_month'),
        Index('ix_monthly_stats_month_checks', 'month', 'checksCreated'),
    )

    def __repr__(self):
        return f"<UserMonthlyCheckStats(user={self.userID}, month={self.month}, checks={self.checksCreated})>"
