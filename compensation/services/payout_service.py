# compensation/services/payout_service.py
"""
Weekly check payouts and monthly stats retention.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional
from sqlalchemy import or_, update
from sqlalchemy.orm import Session
import logging

from models import User, Stats, GLOBAL_STATS_KEY
from compensation.events.event_bus import eventBus, CompensationEvents
from compensation.services.check_service import computeChecks
from compensation.services.monthly_stats import addDelta, upsertMonthlyDeltas, deleteMonthlyStatsBefore
from compensation.services.settings_service import SettingsService
from compensation.config.defaults import SELF_UV_PER_CHECK
from compensation.utils.increments import clampedAdd
from compensation.utils.time_machine import timeMachine, addMonths
import config

logger = logging.getLogger(__name__)


@dataclass
class PayoutRunResult:
    startedAt: Optional[datetime] = None
    processed: int = 0
    failed: int = 0
    checksCredited: int = 0
    checksBurned: int = 0
    payoutAmount: Decimal = Decimal("0")
    rspConvertedUnits: Decimal = Decimal("0")
    rspConvertedAmount: Decimal = Decimal("0")
    monthlyRows: int = 0
    failedUserIds: list = field(default_factory=list)


@dataclass
class UserPayout:
    userId: int
    checksPossible: int = 0
    checksCredited: int = 0
    checksBurned: int = 0
    payoutAmount: Decimal = Decimal("0")
    rspUnits: Decimal = Decimal("0")
    rspAmount: Decimal = Decimal("0")


class PayoutService:
    """Converts accumulated UV and RSP into wallet money."""

    def __init__(self, session: Session, settings: SettingsService = None):
        self.session = session
        self.settings = settings or SettingsService(session)

    async def runWeeklyPayouts(self) -> PayoutRunResult:
        """
        Pay out every user with positive volume or RSP.

        Each user is committed separately; a failure rolls back that user only
        and the run continues. Volumes are consumed in the same write that
        credits the wallet, so an immediate second run pays nothing.
        """
        result = PayoutRunResult(startedAt=timeMachine.now)
        month = timeMachine.currentMonthStart

        maxUv = self.settings.maxUvPerRun()
        maxPayableChecks = int(maxUv // SELF_UV_PER_CHECK) if maxUv > 0 else None
        moneyToRsp = self.settings.moneyToRsp()
        prices = self.settings.checkPrices()

        logger.info(
            f"Weekly payout started: month={month}, maxUv={maxUv}, "
            f"maxChecks={maxPayableChecks}, moneyToRsp={moneyToRsp}"
        )

        userIds = [
            row.userID for row in self.session.query(User.userID).filter(
                or_(
                    User.selfVolume > 0,
                    User.leftVolume > 0,
                    User.rightVolume > 0,
                    User.rsp > 0,
                )
            ).order_by(User.userID).all()
        ]

        deltas: Dict = {}
        for userId in userIds:
            try:
                payout = self._payUser(userId, maxPayableChecks, prices, moneyToRsp)
                self.session.commit()
            except Exception as e:
                self.session.rollback()
                logger.error(f"Payout failed for user {userId}: {e}")
                result.failed += 1
                result.failedUserIds.append(userId)
                continue

            if payout is None:
                continue

            result.processed += 1
            result.checksCredited += payout.checksCredited
            result.checksBurned += payout.checksBurned
            result.payoutAmount += payout.payoutAmount
            result.rspConvertedUnits += payout.rspUnits
            result.rspConvertedAmount += payout.rspAmount

            addDelta(
                deltas, userId, month,
                checksCreated=payout.checksCredited,
                payoutAmount=payout.payoutAmount,
                rspConvertedUnits=payout.rspUnits,
                rspConvertedAmount=payout.rspAmount,
            )

        try:
            result.monthlyRows = upsertMonthlyDeltas(self.session, deltas)
            self._updateGlobalStats(result)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"Failed to write payout stats for month {month}: {e}")

        logger.info(
            f"Weekly payout finished: processed={result.processed}, failed={result.failed}, "
            f"credited={result.checksCredited}, burned={result.checksBurned}, "
            f"payout={result.payoutAmount}, rsp={result.rspConvertedUnits} => {result.rspConvertedAmount}"
        )

        await eventBus.emit(CompensationEvents.PAYOUT_COMPLETED, {
            "processed": result.processed,
            "failed": result.failed,
            "checksCredited": result.checksCredited,
            "payoutAmount": result.payoutAmount,
        })

        return result

    def _payUser(
            self,
            userId: int,
            maxPayableChecks: Optional[int],
            prices: Dict[int, Decimal],
            moneyToRsp: Decimal
    ) -> Optional[UserPayout]:
        user = self.session.get(User, userId)
        if user is None:
            return None

        payout = UserPayout(userId=userId)

        # RSP -> деньги
        currentRsp = user.rsp or Decimal("0")
        if currentRsp > 0:
            payout.rspUnits = currentRsp
            payout.rspAmount = currentRsp * moneyToRsp

        breakdown = computeChecks(user.selfVolume, user.leftVolume, user.rightVolume)
        payout.checksPossible = breakdown.total

        payable = breakdown.total
        if maxPayableChecks is not None:
            payable = min(payable, maxPayableChecks)

        star = user.star or 0
        price = prices.get(star)
        if breakdown.total > 0 and price is None:
            logger.warning(
                f"User {userId} has {breakdown.total} checks possible but star level {star} "
                f"has no checkPrice configured, checks are burned"
            )
            payable = 0

        payout.checksCredited = payable
        payout.checksBurned = breakdown.total - payable
        if payable > 0:
            payout.payoutAmount = payable * price

        if payout.checksBurned > 0 and payable > 0:
            logger.info(
                f"User {userId}: {breakdown.total} checks possible, "
                f"credited {payable}, burned {payout.checksBurned}"
            )

        credit = payout.payoutAmount + payout.rspAmount

        self.session.execute(
            update(User)
            .where(User.userID == userId)
            .values(
                selfVolume=clampedAdd(User.selfVolume, -breakdown.usedSelf),
                leftVolume=clampedAdd(User.leftVolume, -breakdown.usedLeft),
                rightVolume=clampedAdd(User.rightVolume, -breakdown.usedRight),
                rsp=clampedAdd(User.rsp, -payout.rspUnits),
                walletBalance=User.walletBalance + credit,
                totalEarnings=User.totalEarnings + credit,
                checksClaimed=User.checksClaimed + payout.checksCredited,
            )
            .execution_options(synchronize_session="fetch")
        )

        return payout

    def _updateGlobalStats(self, result: PayoutRunResult):
        stats = self.session.query(Stats).filter_by(key=GLOBAL_STATS_KEY).first()
        if stats is None:
            stats = Stats(key=GLOBAL_STATS_KEY)
            self.session.add(stats)
            self.session.flush()

        self.session.execute(
            update(Stats)
            .where(Stats.key == GLOBAL_STATS_KEY)
            .values(
                totalChecksCreated=Stats.totalChecksCreated + result.checksCredited,
                totalChecksBurned=Stats.totalChecksBurned + result.checksBurned,
                totalPayoutAmount=Stats.totalPayoutAmount + result.payoutAmount,
                totalRspConvertedUnits=Stats.totalRspConvertedUnits + result.rspConvertedUnits,
                totalRspConvertedAmount=Stats.totalRspConvertedAmount + result.rspConvertedAmount,
                lastRunAt=result.startedAt,
            )
            .execution_options(synchronize_session="fetch")
        )

    async def cleanupOldMonthlyStats(self, retainMonths: int = None) -> int:
        """Delete monthly stats rows older than retainMonths full months."""
        retainMonths = retainMonths if retainMonths is not None else config.MONTHLY_STATS_RETAIN_MONTHS
        cutoff = addMonths(timeMachine.currentMonthStart, -retainMonths)

        try:
            deleted = deleteMonthlyStatsBefore(self.session, cutoff)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"Monthly stats cleanup failed: {e}")
            raise

        logger.info(f"Monthly stats cleanup: deleted {deleted} rows older than {cutoff}")

        await eventBus.emit(CompensationEvents.MONTHLY_STATS_CLEANED, {
            "deleted": deleted,
            "cutoff": cutoff,
        })

        return deleted
