# compensation/services/tree_store.py
"""
Sponsor-scoped placement records (TreeNode).

Every sponsor owns one binary tree. The owner sits at the root, users placed
through the owner's referral code are recorded below it with the same
parent/side they got in the raw referral tree.
"""
from typing import Iterable, List, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging

from models import User, TreeNode, SIDE_ROOT, SIDE_LEFT, SIDE_RIGHT
from compensation.errors import ValidationError, reportInconsistency
import config

logger = logging.getLogger(__name__)


class TreeStore:
    """Read and write access to TreeNode forests."""

    def __init__(self, session: Session):
        self.session = session

    def getNode(self, treeOwner: int, userId: int) -> Optional[TreeNode]:
        return self.session.query(TreeNode).filter_by(
            treeOwner=treeOwner, userID=userId
        ).first()

    def getChildren(self, treeOwner: int, parentUserIds: Iterable[int]) -> List[TreeNode]:
        parentUserIds = list(parentUserIds)
        if not parentUserIds:
            return []
        return self.session.query(TreeNode).filter(
            TreeNode.treeOwner == treeOwner,
            TreeNode.parentUser.in_(parentUserIds),
        ).order_by(TreeNode.level, TreeNode.nodeID).all()

    def ensureRoot(self, treeOwner: int) -> TreeNode:
        root = self.session.query(TreeNode).filter_by(
            treeOwner=treeOwner, side=SIDE_ROOT
        ).first()
        if root:
            return root

        owner = self.session.get(User, treeOwner)
        root = TreeNode(
            treeOwner=treeOwner,
            userID=treeOwner,
            parentUser=None,
            side=SIDE_ROOT,
            level=0,
            atHotposition=bool(owner and owner.atHotposition),
        )
        self.session.add(root)
        self.session.flush()
        logger.debug(f"Created root node for tree {treeOwner}")
        return root

    def addChild(
            self,
            treeOwner: int,
            userId: int,
            parentUserId: int,
            side: str,
            atHotposition: bool = False
    ) -> TreeNode:
        if side not in (SIDE_LEFT, SIDE_RIGHT):
            raise ValidationError(f"Invalid side '{side}', expected '{SIDE_LEFT}' or '{SIDE_RIGHT}'")

        parentNode = self.getNode(treeOwner, parentUserId)
        if parentNode is None:
            raise ValidationError(f"Parent {parentUserId} is not in tree {treeOwner}")

        if self.getNode(treeOwner, userId) is not None:
            raise ValidationError(f"User {userId} is already in tree {treeOwner}")

        occupied = self.session.query(TreeNode).filter_by(
            treeOwner=treeOwner, parentUser=parentUserId, side=side
        ).first()
        if occupied is not None:
            raise ValidationError(
                f"Slot {side} under {parentUserId} in tree {treeOwner} is taken by {occupied.userID}"
            )

        node = TreeNode(
            treeOwner=treeOwner,
            userID=userId,
            parentUser=parentUserId,
            side=side,
            level=parentNode.level + 1,
            atHotposition=atHotposition,
        )
        self.session.add(node)
        self.session.flush()
        return node

    def ensurePath(self, treeOwner: int, userId: int) -> Optional[TreeNode]:
        """
        Mirror the raw placement chain owner -> ... -> userId into the owner's tree.

        Returns the user's node, or None when the raw chain never reaches the owner.
        """
        existing = self.getNode(treeOwner, userId)
        if existing is not None:
            return existing

        # Поднимаемся по сырому дереву до владельца
        chain = []
        visited = set()
        currentId = userId
        while currentId is not None and currentId != treeOwner:
            if currentId in visited or len(visited) >= config.MAX_PLACEMENT_VISITS:
                reportInconsistency(
                    logger, f"Cycle in raw tree while linking user {userId} into tree {treeOwner}"
                )
                return None
            visited.add(currentId)

            user = self.session.get(User, currentId)
            if user is None:
                break
            chain.append(user)
            currentId = user.referredBy

        if currentId != treeOwner:
            reportInconsistency(
                logger, f"User {userId} is not in the raw subtree of tree owner {treeOwner}"
            )
            return None

        parentNode = self.ensureRoot(treeOwner)
        for user in reversed(chain):
            node = self.getNode(treeOwner, user.userID)
            if node is None:
                parent = self.session.get(User, user.referredBy)
                if parent.leftChild == user.userID:
                    side = SIDE_LEFT
                elif parent.rightChild == user.userID:
                    side = SIDE_RIGHT
                else:
                    reportInconsistency(
                        logger, f"User {user.userID} is not registered under its parent {parent.userID}"
                    )
                    return None
                node = self.addChild(
                    treeOwner, user.userID, parentNode.userID, side, bool(user.atHotposition)
                )
            parentNode = node

        return parentNode

    def setHotposition(self, treeOwner: int, userId: int, flag: bool) -> int:
        result = self.session.execute(
            update(TreeNode)
            .where(TreeNode.treeOwner == treeOwner, TreeNode.userID == userId)
            .values(atHotposition=flag)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
