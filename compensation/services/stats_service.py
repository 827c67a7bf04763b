# compensation/services/stats_service.py
"""
Read-only reporting over global and monthly stats.
"""
import re
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from models import User, Stats, GLOBAL_STATS_KEY, UserMonthlyCheckStats, MONTHLY_STAT_FIELDS
from compensation.errors import NotFoundError, ValidationError
from compensation.utils.time_machine import timeMachine, addMonths

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

MAX_MONTHS = 60
MAX_PAGE_SIZE = 500


def parseMonth(value: str) -> date:
    """Parse 'YYYY-MM' into a month-start date."""
    match = MONTH_PATTERN.match(value or "")
    if not match:
        raise ValidationError(f"Invalid month '{value}', expected YYYY-MM")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month '{value}', expected YYYY-MM")
    return date(year, month, 1)


def _row(stats: UserMonthlyCheckStats) -> Dict:
    data = {"userId": stats.userID, "month": stats.month}
    for name in MONTHLY_STAT_FIELDS:
        data[name] = getattr(stats, name) or 0
    return data


class StatsService:
    """Service for payout statistics queries."""

    def __init__(self, session: Session):
        self.session = session

    async def getGlobalStats(self) -> Dict:
        stats = self.session.query(Stats).filter_by(key=GLOBAL_STATS_KEY).first()
        if stats is None:
            return {
                "totalChecksCreated": 0,
                "totalChecksBurned": 0,
                "totalPayoutAmount": Decimal("0"),
                "totalRspConvertedUnits": Decimal("0"),
                "totalRspConvertedAmount": Decimal("0"),
                "lastRunAt": None,
            }

        return {
            "totalChecksCreated": stats.totalChecksCreated,
            "totalChecksBurned": stats.totalChecksBurned,
            "totalPayoutAmount": stats.totalPayoutAmount,
            "totalRspConvertedUnits": stats.totalRspConvertedUnits,
            "totalRspConvertedAmount": stats.totalRspConvertedAmount,
            "lastRunAt": stats.lastRunAt,
        }

    async def getUserMonthlyStats(
            self,
            userId: int,
            months: int = 6,
            fromMonth: Optional[date] = None
    ) -> Dict:
        """Monthly rows of one user, starting fromMonth or months back from now."""
        if self.session.get(User, userId) is None:
            raise NotFoundError(f"User {userId} not found")

        months = min(max(int(months or 6), 1), MAX_MONTHS)
        start = fromMonth or addMonths(timeMachine.currentMonthStart, -(months - 1))

        rows = self.session.query(UserMonthlyCheckStats).filter(
            UserMonthlyCheckStats.userID == userId,
            UserMonthlyCheckStats.month >= start,
        ).order_by(UserMonthlyCheckStats.month).all()

        return {
            "userId": userId,
            "from": start,
            "months": months,
            "stats": [_row(r) for r in rows],
        }

    async def getMonthStats(self, month: date, limit: int = 50, skip: int = 0) -> Dict:
        """All users' rows for one month, ordered by checksCreated desc."""
        limit = min(max(int(limit or 50), 1), MAX_PAGE_SIZE)
        skip = max(int(skip or 0), 0)

        query = self.session.query(UserMonthlyCheckStats).filter(UserMonthlyCheckStats.month == month)
        total = query.count()
        rows = query.order_by(
            UserMonthlyCheckStats.checksCreated.desc(),
            UserMonthlyCheckStats.userID,
        ).offset(skip).limit(limit).all()

        return {
            "month": month,
            "total": total,
            "limit": limit,
            "skip": skip,
            "rows": [_row(r) for r in rows],
        }

    async def getRangeStats(self, fromMonth: date, toMonth: date) -> List[Dict]:
        if toMonth < fromMonth:
            raise ValidationError("toMonth must be >= fromMonth")

        rows = self.session.query(UserMonthlyCheckStats).filter(
            UserMonthlyCheckStats.month >= fromMonth,
            UserMonthlyCheckStats.month < addMonths(toMonth, 1),
        ).order_by(
            UserMonthlyCheckStats.month,
            UserMonthlyCheckStats.checksCreated.desc(),
        ).all()

        return [_row(r) for r in rows]
