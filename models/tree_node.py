# models/tree_node.py
"""
TreeNode model - sponsor-scoped placement records, one binary tree per treeOwner.
"""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, Index, CheckConstraint, text
from models.base import Base, TimestampMixin

SIDE_ROOT = "root"
SIDE_LEFT = "L"
SIDE_RIGHT = "R"


class TreeNode(Base, TimestampMixin):
    __tablename__ = 'tree_nodes'

    nodeID = Column(Integer, primary_key=True, autoincrement=True)

    # Владелец дерева (спонсор) и размещенный пользователь
    treeOwner = Column(Integer, ForeignKey('users.userID'), nullable=False, index=True)
    userID = Column(Integer, ForeignKey('users.userID'), nullable=False)

    # Родитель внутри ЭТОГО дерева (null только у root)
    parentUser = Column(Integer, ForeignKey('users.userID'), nullable=True, index=True)
    side = Column(String(4), nullable=False)  # root, L, R
    level = Column(Integer, nullable=False, default=0, index=True)

    atHotposition = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint('treeOwner', 'userID', name='uq_tree_nodes_owner_user'),
        CheckConstraint("side IN ('root', 'L', 'R')", name='ck_tree_nodes_side'),
        Index(
            'uq_tree_nodes_slot', 'treeOwner', 'parentUser', 'side',
            unique=True,
            sqlite_where=text("side IN ('L', 'R')"),
            postgresql_where=text("side IN ('L', 'R')"),
        ),
        Index(
            'uq_tree_nodes_root', 'treeOwner',
            unique=True,
            sqlite_where=text("side = 'root'"),
            postgresql_where=text("side = 'root'"),
        ),
    )

    def __repr__(self):
        return f"<TreeNode(owner={self.treeOwner}, user={self.userID}, parent={self.parentUser}, side={self.side})>"
