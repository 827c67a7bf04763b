# compensation/services/rsp_service.py
"""
RSP propagation up the sponsor-scoped placement tree.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Union
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging

from models import User
from compensation.errors import NotFoundError, reportInconsistency
from compensation.events.event_bus import eventBus, CompensationEvents
from compensation.services.settings_service import SettingsService, toDecimal
from compensation.services.tree_store import TreeStore
import config

logger = logging.getLogger(__name__)

STOP_NOOP = "noop"
STOP_LEVEL_CAP = "level_cap"
STOP_ROOT = "root"
STOP_MISSING_LINK = "missing_link"
STOP_CYCLE = "cycle"


@dataclass
class RspPropagationResult:
    credited: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    levelsVisited: int = 0
    stopReason: str = STOP_NOOP


class RspService:
    """Service for crediting RSP to the starting user and their uplines."""

    def __init__(self, session: Session, settings: SettingsService = None, maxLevels: int = None):
        self.session = session
        self.settings = settings or SettingsService(session)
        self.maxLevels = maxLevels or config.RSP_MAX_LEVELS
        self.treeStore = TreeStore(session)

    async def propagateRSP(self, startingUserId: int, rspAmount: Union[int, Decimal]) -> RspPropagationResult:
        """
        Credit rspAmount to up to maxLevels users, the starting user included.

        The walk follows TreeNode.parentUser inside the starting user's sponsor
        tree. A user is credited only when their totalRsp is strictly above
        group_min_rsp; users below the floor are skipped and the walk goes on.
        """
        result = RspPropagationResult()

        amount = toDecimal(rspAmount)
        if amount is None or amount <= 0:
            return result

        user = self.session.get(User, startingUserId)
        if not user:
            raise NotFoundError(f"User {startingUserId} not found")

        floor = self.settings.groupMinRsp()
        treeOwner = user.referralUsed or user.userID

        visited = set()
        currentId = startingUserId

        while True:
            if result.levelsVisited >= self.maxLevels:
                result.stopReason = STOP_LEVEL_CAP
                break

            if currentId in visited:
                reportInconsistency(logger, f"Cycle in tree {treeOwner} at user {currentId}, stopping RSP propagation")
                result.stopReason = STOP_CYCLE
                break
            visited.add(currentId)

            if self._credit(currentId, amount, floor):
                result.credited.append(currentId)
            else:
                result.skipped.append(currentId)
            result.levelsVisited += 1

            node = self.treeStore.getNode(treeOwner, currentId)
            if node is None:
                result.stopReason = STOP_ROOT if currentId == treeOwner else STOP_MISSING_LINK
                break
            if node.parentUser is None:
                result.stopReason = STOP_ROOT
                break

            currentId = node.parentUser

        logger.debug(
            f"RSP {amount} from user {startingUserId}: credited {result.credited}, "
            f"skipped {result.skipped}, stop={result.stopReason}"
        )

        await eventBus.emit(CompensationEvents.RSP_PROPAGATED, {
            "userId": startingUserId,
            "amount": amount,
            "credited": list(result.credited),
            "stopReason": result.stopReason,
        })

        return result

    def _credit(self, userId: int, amount: Decimal, floor: Decimal) -> bool:
        updateResult = self.session.execute(
            update(User)
            .where(User.userID == userId, User.totalRsp > floor)
            .values(rsp=User.rsp + amount, totalRsp=User.totalRsp + amount)
            .execution_options(synchronize_session="fetch")
        )
        return updateResult.rowcount == 1
