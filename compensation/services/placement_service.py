# compensation/services/placement_service.py
"""
Placement of new users into the raw binary referral tree.
"""
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple
from sqlalchemy.orm import Session
import logging

from models import User, SIDE_LEFT, SIDE_RIGHT
from compensation.errors import NotFoundError, ValidationError, TraversalLimitError, reportInconsistency
from compensation.events.event_bus import eventBus, CompensationEvents
from compensation.services.tree_store import TreeStore
from compensation.services.volume_service import VolumeService
import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlacementResult:
    parentId: int
    side: str
    level: int  # глубина относительно реферера, 1 = прямой потомок
    creditedUv: Decimal
    visits: int


class PlacementService:
    """Breadth-first, left-biased placement under a referrer."""

    def __init__(self, session: Session, maxVisits: int = None):
        self.session = session
        self.maxVisits = maxVisits or config.MAX_PLACEMENT_VISITS
        self.treeStore = TreeStore(session)
        self.volumeService = VolumeService(session)

    async def place(self, newUserId: int, referrerId: int) -> PlacementResult:
        """
        Place newUserId into the first free slot of referrerId's subtree.

        Left placements credit the new user's selfVolume upward, right
        placements credit selfVolume + leftVolume + rightVolume.
        """
        if newUserId == referrerId:
            raise ValidationError("User cannot be placed under themselves")

        newUser = self.session.get(User, newUserId)
        if not newUser:
            raise NotFoundError(f"User {newUserId} not found")

        referrer = self.session.get(User, referrerId)
        if not referrer:
            raise NotFoundError(f"Referrer {referrerId} not found")

        if newUser.isPlaced:
            raise ValidationError(f"User {newUserId} is already placed under {newUser.referredBy}")

        if newUser.referralUsed is not None and newUser.referralUsed != referrerId:
            raise ValidationError(
                f"User {newUserId} is sponsored by {newUser.referralUsed}, cannot place under {referrerId}"
            )

        parent, side, level, visits = self._findSlot(referrer)

        newUser.referredBy = parent.userID
        if side == SIDE_LEFT:
            parent.leftChild = newUser.userID
        else:
            parent.rightChild = newUser.userID
        if newUser.referralUsed is None:
            newUser.referralUsed = referrerId
        self.session.flush()

        self.treeStore.ensurePath(newUser.referralUsed, newUser.userID)

        if side == SIDE_LEFT:
            creditedUv = newUser.selfVolume or Decimal("0")
        else:
            creditedUv = newUser.subtreeVolume

        if creditedUv:
            await self.volumeService.propagate(newUser.userID, creditedUv)

        logger.info(
            f"User {newUserId} placed under {parent.userID} ({side}) "
            f"at level {level} of referrer {referrerId}, credited {creditedUv} UV"
        )

        await eventBus.emit(CompensationEvents.USER_PLACED, {
            "userId": newUserId,
            "referrerId": referrerId,
            "parentId": parent.userID,
            "side": side,
            "level": level,
        })

        return PlacementResult(
            parentId=parent.userID,
            side=side,
            level=level,
            creditedUv=creditedUv,
            visits=visits,
        )

    def _findSlot(self, referrer: User) -> Tuple[User, str, int, int]:
        queue = deque([(referrer.userID, 0)])
        visited = set()
        visits = 0

        while queue:
            userId, depth = queue.popleft()
            if userId in visited:
                reportInconsistency(logger, f"User {userId} reached twice during placement under {referrer.userID}")
                continue
            visited.add(userId)

            visits += 1
            if visits > self.maxVisits:
                raise TraversalLimitError(
                    f"Placement under {referrer.userID} exceeded {self.maxVisits} visited nodes"
                )

            node = self.session.get(User, userId)
            if node is None:
                reportInconsistency(logger, f"Child link to missing user {userId}")
                continue

            if node.leftChild is None:
                return node, SIDE_LEFT, depth + 1, visits
            if node.rightChild is None:
                return node, SIDE_RIGHT, depth + 1, visits

            queue.append((node.leftChild, depth + 1))
            queue.append((node.rightChild, depth + 1))

        raise TraversalLimitError(f"No free slot found under referrer {referrer.userID}")
