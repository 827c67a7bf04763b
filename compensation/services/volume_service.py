# compensation/services/volume_service.py
"""
Volume propagation up the raw referral tree.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Union
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging

from models import User, SIDE_LEFT, SIDE_RIGHT
from compensation.errors import NotFoundError, reportInconsistency
from compensation.events.event_bus import eventBus, CompensationEvents
from compensation.utils.increments import clampedAdd

logger = logging.getLogger(__name__)


@dataclass
class VolumeCredit:
    userId: int
    side: str
    amount: Decimal


@dataclass
class PropagationResult:
    credits: List[VolumeCredit] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    cycleDetected: bool = False

    @property
    def totalCredited(self) -> Decimal:
        return sum((c.amount for c in self.credits), Decimal("0"))


class VolumeService:
    """Service for crediting left/right volumes to every ancestor."""

    def __init__(self, session: Session):
        self.session = session

    async def propagate(self, startUserId: int, uvDelta: Union[int, Decimal]) -> PropagationResult:
        """
        Walk from startUserId up via referredBy and credit uvDelta to the side
        of each ancestor the walk came from.

        An ancestor at hotposition receives half of the original delta. The
        halving is applied per hop, never compounded. Negative deltas are
        allowed; volumes are clamped at zero.
        """
        result = PropagationResult()
        uv = Decimal(str(uvDelta))
        if uv == 0:
            return result

        child = self.session.get(User, startUserId)
        if not child:
            raise NotFoundError(f"User {startUserId} not found")

        visited = {child.userID}

        while child.referredBy is not None:
            ancestorId = child.referredBy
            if ancestorId in visited:
                reportInconsistency(
                    logger, f"Cycle detected at user {ancestorId} while propagating from {startUserId}"
                )
                result.cycleDetected = True
                break
            visited.add(ancestorId)

            ancestor = self.session.get(User, ancestorId)
            if ancestor is None:
                reportInconsistency(logger, f"User {child.userID} points to missing parent {ancestorId}")
                break

            if ancestor.leftChild == child.userID:
                side, column = SIDE_LEFT, User.leftVolume
            elif ancestor.rightChild == child.userID:
                side, column = SIDE_RIGHT, User.rightVolume
            else:
                # Не зарегистрирован у родителя - пропускаем, но идем выше
                reportInconsistency(
                    logger, f"User {child.userID} is not registered under its parent {ancestorId}"
                )
                result.skipped.append(ancestorId)
                child = ancestor
                continue

            amount = uv / 2 if ancestor.atHotposition else uv
            self.session.execute(
                update(User)
                .where(User.userID == ancestorId)
                .values({column.key: clampedAdd(column, amount)})
                .execution_options(synchronize_session="fetch")
            )
            result.credits.append(VolumeCredit(userId=ancestorId, side=side, amount=amount))
            child = ancestor

        logger.debug(
            f"Propagated {uv} UV from user {startUserId}: "
            f"{len(result.credits)} credited, {len(result.skipped)} skipped"
        )

        await eventBus.emit(CompensationEvents.VOLUME_PROPAGATED, {
            "userId": startUserId,
            "uvDelta": uv,
            "credited": len(result.credits),
            "skipped": len(result.skipped),
            "cycleDetected": result.cycleDetected,
        })

        return result
