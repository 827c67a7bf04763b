# compensation/services/purchase_service.py
"""
Crediting purchases and refunds into the compensation tree.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging

from models import User
from compensation.errors import NotFoundError, ValidationError
from compensation.events.event_bus import eventBus, CompensationEvents
from compensation.services.monthly_stats import incrementMonthlyStat
from compensation.services.placement_service import PlacementService, PlacementResult
from compensation.services.rsp_service import RspService
from compensation.services.settings_service import SettingsService, toDecimal
from compensation.services.tree_store import TreeStore
from compensation.services.volume_service import VolumeService, PropagationResult
from compensation.utils.increments import clampedAdd
from compensation.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


@dataclass
class PurchaseResult:
    userId: int
    uv: Decimal
    rspCreated: Decimal = Decimal("0")
    activated: bool = False
    placement: Optional[PlacementResult] = None
    propagation: Optional[PropagationResult] = None


class PurchaseService:
    """Applies purchased UV to the buyer and their uplines."""

    def __init__(self, session: Session, settings: SettingsService = None):
        self.session = session
        self.settings = settings or SettingsService(session)
        self.treeStore = TreeStore(session)
        self.volumeService = VolumeService(session)
        self.placementService = PlacementService(session)
        self.rspService = RspService(session, self.settings)

    async def creditPurchase(
            self,
            userId: int,
            uv: Union[int, Decimal],
            isRenew: bool = False
    ) -> PurchaseResult:
        """
        Add uv to the buyer's selfVolume and push it up the tree.

        The first purchase of an unplaced user with a sponsor places them
        under the sponsor, which credits the uplines. Renewals also create
        RSP (uv * rsp_to_uv) for the buyer and their sponsor uplines.
        """
        amount = self._validateUv(uv)

        user = self.session.get(User, userId)
        if not user:
            raise NotFoundError(f"User {userId} not found")

        result = PurchaseResult(userId=userId, uv=amount)

        user.selfVolume = (user.selfVolume or Decimal("0")) + amount

        if isRenew:
            rspPerUv = self.settings.rspPerUv()
            if rspPerUv > 0:
                result.rspCreated = amount * rspPerUv
                await self.rspService.propagateRSP(userId, result.rspCreated)
                incrementMonthlyStat(
                    self.session, userId, timeMachine.currentMonthStart,
                    rspCreated=result.rspCreated,
                )

        # Активация
        if not user.referralActive and user.selfVolume >= self.settings.referralActiveLimit():
            user.referralActive = True
            user.atHotposition = False
            if user.referralUsed is not None:
                self.treeStore.setHotposition(user.referralUsed, userId, False)
            result.activated = True

        user.hasMadeFirstPurchase = True
        self.session.flush()

        if not user.isPlaced and user.referralUsed is not None:
            result.placement = await self.placementService.place(userId, user.referralUsed)
        elif user.isPlaced:
            result.propagation = await self.volumeService.propagate(userId, amount)

        logger.info(
            f"Purchase credited to user {userId}: uv={amount}, renew={isRenew}, "
            f"rsp={result.rspCreated}, activated={result.activated}"
        )

        if result.activated:
            await eventBus.emit(CompensationEvents.USER_ACTIVATED, {"userId": userId})

        await eventBus.emit(CompensationEvents.PURCHASE_CREDITED, {
            "userId": userId,
            "uv": amount,
            "isRenew": isRenew,
            "rspCreated": result.rspCreated,
        })

        return result

    async def creditRefund(self, userId: int, uv: Union[int, Decimal]) -> Optional[PropagationResult]:
        """Remove refunded uv from the buyer and their uplines, clamped at zero."""
        amount = self._validateUv(uv)

        user = self.session.get(User, userId)
        if not user:
            raise NotFoundError(f"User {userId} not found")

        self.session.execute(
            update(User)
            .where(User.userID == userId)
            .values(selfVolume=clampedAdd(User.selfVolume, -amount))
            .execution_options(synchronize_session="fetch")
        )

        propagation = None
        if user.isPlaced:
            propagation = await self.volumeService.propagate(userId, -amount)

        logger.info(f"Refund credited for user {userId}: uv={amount}")

        await eventBus.emit(CompensationEvents.REFUND_CREDITED, {
            "userId": userId,
            "uv": amount,
        })

        return propagation

    def _validateUv(self, uv) -> Decimal:
        amount = toDecimal(uv)
        if amount is None or amount <= 0:
            raise ValidationError(f"UV must be a positive number, got {uv!r}")
        return amount
