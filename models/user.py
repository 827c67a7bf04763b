# models/user.py
"""
User model - central entity for the system.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, Boolean, ForeignKey
from models.base import Base, TimestampMixin
from decimal import Decimal


class User(Base, TimestampMixin):
    __tablename__ = 'users'

    # Primary identification
    userID = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=True, index=True)
    name = Column(String, nullable=True)

    # Спонсор (чей реферальный код использован) - владелец дерева TreeNode
    referralUsed = Column(Integer, ForeignKey('users.userID'), nullable=True, index=True)

    # Сырое бинарное дерево: родитель по размещению и два слота
    referredBy = Column(Integer, ForeignKey('users.userID'), nullable=True, index=True)
    leftChild = Column(Integer, ForeignKey('users.userID'), nullable=True, unique=True)
    rightChild = Column(Integer, ForeignKey('users.userID'), nullable=True, unique=True)

    # Volumes (UV)
    selfVolume = Column(DECIMAL(14, 4), nullable=False, default=0)
    leftVolume = Column(DECIMAL(14, 4), nullable=False, default=0)
    rightVolume = Column(DECIMAL(14, 4), nullable=False, default=0)

    # Balances
    walletBalance = Column(DECIMAL(14, 2), nullable=False, default=0)
    totalEarnings = Column(DECIMAL(14, 2), nullable=False, default=0)
    checksClaimed = Column(Integer, nullable=False, default=0)

    # RSP: rsp - к конвертации, totalRsp - накопительный за всё время
    rsp = Column(DECIMAL(14, 2), nullable=False, default=0)
    totalRsp = Column(DECIMAL(14, 2), nullable=False, default=0)

    # Star level and flags
    star = Column(Integer, nullable=False, default=1, index=True)
    referralActive = Column(Boolean, nullable=False, default=False)
    atHotposition = Column(Boolean, nullable=False, default=False)
    hasMadeFirstPurchase = Column(Boolean, nullable=False, default=False)

    @property
    def isPlaced(self):
        """User already occupies a slot in the raw tree."""
        return self.referredBy is not None

    @property
    def subtreeVolume(self):
        return (
            (self.selfVolume or Decimal("0"))
            + (self.leftVolume or Decimal("0"))
            + (self.rightVolume or Decimal("0"))
        )

    def __repr__(self):
        return f"<User(userID={self.userID}, star={self.star}, parent={self.referredBy})>"
