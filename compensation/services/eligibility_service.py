# compensation/services/eligibility_service.py
"""
Star eligibility evaluation and level-up.
"""
import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy import func, update
from sqlalchemy.orm import Session
import logging

from models import User, UserMonthlyCheckStats, StarHistory
from compensation.config.defaults import DEFAULT_STAR
from compensation.errors import NotFoundError, ConflictError, reportInconsistency
from compensation.events.event_bus import eventBus, CompensationEvents
from compensation.rules.conditions import (
    ConditionType,
    Condition,
    Criteria,
    Depth,
    HotpositionCondition,
    ActiveReferralsCondition,
    PersonalRspCondition,
    GroupRspCondition,
    GroupStarCondition,
    PersonalCheckCondition,
    GroupCheckCondition,
    conditionDepth,
)
from compensation.services.settings_service import SettingsService
from compensation.utils.time_machine import timeMachine, addMonths
import config

logger = logging.getLogger(__name__)

IN_CHUNK_SIZE = 500


@dataclass(frozen=True)
class DownlineNode:
    userId: int
    depth: int
    atHotposition: bool
    referralActive: bool
    star: int


@dataclass
class Downline:
    nodes: List[DownlineNode] = field(default_factory=list)
    maxDepthUsed: int = 0
    truncated: bool = False

    def within(self, depth: int) -> List[DownlineNode]:
        return [node for node in self.nodes if node.depth <= depth]


@dataclass
class TraversalInfo:
    maxDepthUsed: int
    nodesVisited: int
    truncated: bool
    safetyCap: int


@dataclass
class ConditionResult:
    type: str
    passed: bool
    actual: Any
    required: Any
    levelsToCheck: Any = None
    monthsToCheck: Optional[int] = None


@dataclass
class CriteriaResult:
    index: int
    isOr: bool
    passed: bool
    conditions: List[ConditionResult] = field(default_factory=list)


@dataclass
class EligibilityResult:
    userId: int
    currentStar: int
    targetStar: int
    eligible: bool
    reason: Optional[str] = None
    traversal: Optional[TraversalInfo] = None
    criteriaResults: List[CriteriaResult] = field(default_factory=list)

    @property
    def passedCriteria(self) -> List[int]:
        return [c.index for c in self.criteriaResults if c.passed]


@dataclass
class LevelUpResult:
    upgraded: bool
    previousStar: int
    newStar: int
    eligibility: EligibilityResult


def _chunks(items: List[int], size: int = IN_CHUNK_SIZE):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class EligibilityService:
    """Evaluates the rules of the next star level against a user's downline."""

    def __init__(self, session: Session, settings: SettingsService = None, maxNodes: int = None):
        self.session = session
        self.settings = settings or SettingsService(session)
        self.maxNodes = maxNodes or config.MAX_TREE_NODES_CHECK

        self._handlers: Dict[ConditionType, Callable[[User, Condition, Downline], ConditionResult]] = {
            ConditionType.HOTPOSITION: self._evalHotposition,
            ConditionType.ACTIVE_REFERRALS: self._evalActiveReferrals,
            ConditionType.PERSONAL_RSP: self._evalPersonalRsp,
            ConditionType.GROUP_RSP: self._evalGroupRsp,
            ConditionType.GROUP_STAR: self._evalGroupStar,
            ConditionType.PERSONAL_CHECK: self._evalPersonalCheck,
            ConditionType.GROUP_CHECK: self._evalGroupCheck,
        }
        missing = set(ConditionType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No eligibility handler for {sorted(t.value for t in missing)}")

    async def checkNextStarEligibility(self, userId: int) -> EligibilityResult:
        """
        Check whether the user qualifies for currentStar + 1.

        Criteria blocks are OR'd: the user is eligible when any block passes.
        A missing rule entry means not eligible, it is not an error.
        """
        user = self.session.get(User, userId)
        if not user:
            raise NotFoundError(f"User {userId} not found")

        currentStar = user.star or DEFAULT_STAR
        targetStar = currentStar + 1
        result = EligibilityResult(
            userId=userId,
            currentStar=currentStar,
            targetStar=targetStar,
            eligible=False,
        )

        rule = next(
            (r for r in self.settings.eligibilityRules() if r.starLevel == targetStar),
            None
        )
        if rule is None:
            result.reason = f"No eligibility rules configured for star {targetStar}"
            return result
        if not rule.criterias:
            result.reason = f"Star {targetStar} has no criteria blocks"
            return result

        maxDepth = self._requiredDepth(rule.allConditions)
        downline = self._collectDownline(user, maxDepth)
        result.traversal = TraversalInfo(
            maxDepthUsed=downline.maxDepthUsed,
            nodesVisited=len(downline.nodes),
            truncated=downline.truncated,
            safetyCap=self.maxNodes,
        )

        for index, criteria in enumerate(rule.criterias):
            result.criteriaResults.append(self._evalCriteria(index, criteria, user, downline))

        result.eligible = any(c.passed for c in result.criteriaResults)
        if not result.eligible:
            result.reason = "No criteria block is satisfied"

        logger.debug(
            f"Eligibility of user {userId} for star {targetStar}: {result.eligible} "
            f"(passed blocks {result.passedCriteria}, nodes {len(downline.nodes)})"
        )
        return result

    async def levelUp(self, userId: int) -> LevelUpResult:
        """
        Upgrade the user by one star when eligible.

        The star is updated only if it still equals the value read during
        evaluation; otherwise ConflictError is raised and the client retries.
        """
        eligibility = await self.checkNextStarEligibility(userId)
        previousStar = eligibility.currentStar

        if not eligibility.eligible:
            return LevelUpResult(
                upgraded=False,
                previousStar=previousStar,
                newStar=previousStar,
                eligibility=eligibility,
            )

        newStar = eligibility.targetStar
        updateResult = self.session.execute(
            update(User)
            .where(User.userID == userId, User.star == previousStar)
            .values(star=newStar)
            .execution_options(synchronize_session="fetch")
        )

        if updateResult.rowcount == 0:
            actualStar = self.session.query(User.star).filter(User.userID == userId).scalar()
            raise ConflictError(
                f"Star of user {userId} changed from {previousStar} to {actualStar} during level-up",
                currentStar=actualStar,
            )

        history = StarHistory(
            userID=userId,
            previousStar=previousStar,
            newStar=newStar,
            qualificationMethod="natural",
            notes=json.dumps({"passedCriteria": eligibility.passedCriteria}),
        )
        self.session.add(history)
        self.session.flush()

        logger.info(f"User {userId} star upgraded: {previousStar} -> {newStar}")

        await eventBus.emit(CompensationEvents.STAR_UPGRADED, {
            "userId": userId,
            "previousStar": previousStar,
            "newStar": newStar,
        })

        return LevelUpResult(
            upgraded=True,
            previousStar=previousStar,
            newStar=newStar,
            eligibility=eligibility,
        )

    # region Downline

    def _requiredDepth(self, conditions: List[Condition]) -> int:
        depths = [
            depth.limit(config.UNBOUNDED_DEPTH_LIMIT)
            for depth in (conditionDepth(c) for c in conditions)
            if depth is not None
        ]
        return max(depths, default=0)

    def _collectDownline(self, user: User, maxDepth: int) -> Downline:
        """
        Level-by-level BFS via leftChild/rightChild. Direct children have depth 1.
        Stops collecting once maxNodes nodes are gathered.
        """
        downline = Downline()
        if maxDepth <= 0:
            return downline

        visited = {user.userID}
        frontier = [c for c in (user.leftChild, user.rightChild) if c is not None]
        depth = 1

        while frontier and depth <= maxDepth and not downline.truncated:
            nextFrontier = []
            for chunk in _chunks(frontier):
                rows = self.session.query(
                    User.userID,
                    User.leftChild,
                    User.rightChild,
                    User.atHotposition,
                    User.referralActive,
                    User.star,
                ).filter(User.userID.in_(chunk)).all()

                for row in rows:
                    if row.userID in visited:
                        reportInconsistency(logger, f"User {row.userID} reached twice in downline of {user.userID}")
                        continue
                    if len(downline.nodes) >= self.maxNodes:
                        downline.truncated = True
                        break

                    visited.add(row.userID)
                    downline.nodes.append(DownlineNode(
                        userId=row.userID,
                        depth=depth,
                        atHotposition=bool(row.atHotposition),
                        referralActive=bool(row.referralActive),
                        star=row.star or DEFAULT_STAR,
                    ))
                    nextFrontier.extend(c for c in (row.leftChild, row.rightChild) if c is not None)

                if downline.truncated:
                    break

            downline.maxDepthUsed = depth
            frontier = nextFrontier
            depth += 1

        if downline.truncated:
            logger.warning(
                f"Downline traversal of user {user.userID} truncated at {self.maxNodes} nodes"
            )
        return downline

    # endregion

    # region Monthly sums

    def _sumMonthly(self, userIds: List[int], column, months: int) -> Decimal:
        if not userIds:
            return Decimal("0")

        currentMonth = timeMachine.currentMonthStart
        startMonth = addMonths(currentMonth, -(months - 1))

        total = Decimal("0")
        for chunk in _chunks(list(userIds)):
            value = self.session.query(func.coalesce(func.sum(column), 0)).filter(
                UserMonthlyCheckStats.userID.in_(chunk),
                UserMonthlyCheckStats.month >= startMonth,
                UserMonthlyCheckStats.month <= currentMonth,
            ).scalar()
            total += Decimal(str(value or 0))
        return total

    # endregion

    # region Conditions

    def _evalCriteria(self, index: int, criteria: Criteria, user: User, downline: Downline) -> CriteriaResult:
        conditions = [
            self._handlers[condition.conditionType](user, condition, downline)
            for condition in criteria.conditions
        ]
        if criteria.isOr:
            passed = any(c.passed for c in conditions)
        else:
            passed = all(c.passed for c in conditions)
        return CriteriaResult(index=index, isOr=criteria.isOr, passed=passed, conditions=conditions)

    def _scope(self, downline: Downline, depth: Depth) -> List[DownlineNode]:
        return downline.within(depth.limit(config.UNBOUNDED_DEPTH_LIMIT))

    def _evalHotposition(self, user: User, condition: HotpositionCondition, downline: Downline) -> ConditionResult:
        count = sum(1 for node in self._scope(downline, condition.levelsToCheck) if node.atHotposition)
        return ConditionResult(
            type=condition.conditionType.value,
            passed=count >= condition.minCount,
            actual=count,
            required=condition.minCount,
            levelsToCheck=condition.levelsToCheck.toJson(),
        )

    def _evalActiveReferrals(self, user: User, condition: ActiveReferralsCondition,
                             downline: Downline) -> ConditionResult:
        count = sum(1 for node in self._scope(downline, condition.levelsToCheck) if node.referralActive)
        return ConditionResult(
            type=condition.conditionType.value,
            passed=count >= condition.minCount,
            actual=count,
            required=condition.minCount,
            levelsToCheck=condition.levelsToCheck.toJson(),
        )

    def _evalGroupStar(self, user: User, condition: GroupStarCondition, downline: Downline) -> ConditionResult:
        count = sum(
            1 for node in self._scope(downline, condition.levelsToCheck)
            if node.star >= condition.starLevel
        )
        return ConditionResult(
            type=condition.conditionType.value,
            passed=count >= condition.minUsers,
            actual=count,
            required={"starLevel": condition.starLevel, "minUsers": condition.minUsers},
            levelsToCheck=condition.levelsToCheck.toJson(),
        )

    def _evalPersonalRsp(self, user: User, condition: PersonalRspCondition, downline: Downline) -> ConditionResult:
        total = self._sumMonthly([user.userID], UserMonthlyCheckStats.rspCreated, condition.monthsToCheck)
        return ConditionResult(
            type=condition.conditionType.value,
            passed=total >= condition.minRsp,
            actual=total,
            required=condition.minRsp,
            monthsToCheck=condition.monthsToCheck,
        )

    def _evalGroupRsp(self, user: User, condition: GroupRspCondition, downline: Downline) -> ConditionResult:
        userIds = [node.userId for node in self._scope(downline, condition.levelsToCheck)]
        total = self._sumMonthly(userIds, UserMonthlyCheckStats.rspCreated, condition.monthsToCheck)
        return ConditionResult(
            type=condition.conditionType.value,
            passed=total >= condition.minRsp,
            actual=total,
            required=condition.minRsp,
            levelsToCheck=condition.levelsToCheck.toJson(),
            monthsToCheck=condition.monthsToCheck,
        )

    def _evalPersonalCheck(self, user: User, condition: PersonalCheckCondition,
                           downline: Downline) -> ConditionResult:
        total = self._sumMonthly([user.userID], UserMonthlyCheckStats.checksCreated, condition.monthsToCheck)
        return ConditionResult(
            type=condition.conditionType.value,
            passed=total >= condition.minChecksCreated,
            actual=int(total),
            required=condition.minChecksCreated,
            monthsToCheck=condition.monthsToCheck,
        )

    def _evalGroupCheck(self, user: User, condition: GroupCheckCondition, downline: Downline) -> ConditionResult:
        userIds = [node.userId for node in self._scope(downline, condition.levelsToCheck)]
        total = self._sumMonthly(userIds, UserMonthlyCheckStats.checksCreated, condition.monthsToCheck)
        return ConditionResult(
            type=condition.conditionType.value,
            passed=total >= condition.minChecksCreated,
            actual=int(total),
            required=condition.minChecksCreated,
            levelsToCheck=condition.levelsToCheck.toJson(),
            monthsToCheck=condition.monthsToCheck,
        )

    # endregion
