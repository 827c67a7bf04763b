# compensation/jobs/payout_scheduler.py
"""
Periodic runner for the weekly payout and the daily monthly stats cleanup.
All times are UTC.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from compensation.services.payout_service import PayoutService, PayoutRunResult
from compensation.utils.time_machine import timeMachine
from init import Session
import config

logger = logging.getLogger(__name__)


def nextDailyRun(moment: datetime, hour: int, minute: int) -> datetime:
    """First hour:minute strictly after moment."""
    candidate = moment.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= moment:
        candidate += timedelta(days=1)
    return candidate


def nextWeeklyRun(moment: datetime, weekday: int, hour: int, minute: int) -> datetime:
    """First weekday hour:minute strictly after moment (weekday 0 = Monday)."""
    candidate = moment.replace(hour=hour, minute=minute, second=0, microsecond=0)
    candidate += timedelta(days=(weekday - candidate.weekday()) % 7)
    if candidate <= moment:
        candidate += timedelta(days=7)
    return candidate


class PayoutScheduler:
    def __init__(self, sessionFactory=None, maxSleep: int = None):
        self.sessionFactory = sessionFactory or Session
        self.maxSleep = maxSleep or config.SCHEDULER_MAX_SLEEP
        self._running = False

        now = timeMachine.now
        self.nextPayoutAt = nextWeeklyRun(now, config.PAYOUT_WEEKDAY, config.PAYOUT_HOUR, config.PAYOUT_MINUTE)
        self.nextCleanupAt = nextDailyRun(now, config.CLEANUP_HOUR, config.CLEANUP_MINUTE)

    async def runPayoutOnce(self) -> PayoutRunResult:
        """Run the weekly payout immediately (admin trigger)."""
        with self.sessionFactory() as session:
            return await PayoutService(session).runWeeklyPayouts()

    async def runCleanupOnce(self, retainMonths: int = None) -> int:
        with self.sessionFactory() as session:
            return await PayoutService(session).cleanupOldMonthlyStats(retainMonths)

    async def tick(self):
        """Run every job whose time has come and schedule its next run."""
        now = timeMachine.now

        if now >= self.nextPayoutAt:
            try:
                await self.runPayoutOnce()
            except Exception as e:
                logger.error(f"Weekly payout job error: {e}")
            self.nextPayoutAt = nextWeeklyRun(
                now, config.PAYOUT_WEEKDAY, config.PAYOUT_HOUR, config.PAYOUT_MINUTE
            )
            logger.info(f"Next weekly payout at {self.nextPayoutAt}")

        if now >= self.nextCleanupAt:
            try:
                await self.runCleanupOnce()
            except Exception as e:
                logger.error(f"Monthly stats cleanup error: {e}")
            self.nextCleanupAt = nextDailyRun(now, config.CLEANUP_HOUR, config.CLEANUP_MINUTE)

    def secondsUntilNextRun(self, now: Optional[datetime] = None) -> float:
        now = now or timeMachine.now
        nextRun = min(self.nextPayoutAt, self.nextCleanupAt)
        seconds = (nextRun - now).total_seconds()
        return min(max(seconds, 1), self.maxSleep)

    async def run(self):
        """
        Запускает планировщик выплат
        """
        logger.info(
            f"Payout scheduler started: payout at {self.nextPayoutAt}, cleanup at {self.nextCleanupAt}"
        )
        self._running = True

        while self._running:
            try:
                await self.tick()
                await asyncio.sleep(self.secondsUntilNextRun())
            except Exception as e:
                logger.error(f"Error in payout scheduler main loop: {e}")
                await asyncio.sleep(self.maxSleep)

    async def stop(self):
        """
        Останавливает планировщик выплат
        """
        self._running = False
        logger.info("Payout scheduler stopped")
