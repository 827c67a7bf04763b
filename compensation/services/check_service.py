# compensation/services/check_service.py
"""
Check arithmetic.

4 self UV = 1 check, 2 left UV + 2 right UV = 1 check.
Negative volumes are treated as zero.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple, Union

from compensation.config.defaults import SELF_UV_PER_CHECK, TREE_UV_PER_SIDE

Number = Union[int, float, Decimal]


def _positive(value: Number) -> Decimal:
    value = Decimal(str(value or 0))
    return value if value > 0 else Decimal("0")


def selfChecks(selfVolume: Number) -> int:
    return int(_positive(selfVolume) // SELF_UV_PER_CHECK)


def treeChecks(leftVolume: Number, rightVolume: Number) -> int:
    return min(
        int(_positive(leftVolume) // TREE_UV_PER_SIDE),
        int(_positive(rightVolume) // TREE_UV_PER_SIDE),
    )


def totalChecks(selfVolume: Number, leftVolume: Number, rightVolume: Number) -> int:
    return selfChecks(selfVolume) + treeChecks(leftVolume, rightVolume)


@dataclass(frozen=True)
class CheckBreakdown:
    selfChecks: int
    treeChecks: int
    total: int
    usedSelf: Decimal
    usedLeft: Decimal
    usedRight: Decimal


def computeChecks(selfVolume: Number, leftVolume: Number, rightVolume: Number) -> CheckBreakdown:
    fromSelf = selfChecks(selfVolume)
    fromTree = treeChecks(leftVolume, rightVolume)
    return CheckBreakdown(
        selfChecks=fromSelf,
        treeChecks=fromTree,
        total=fromSelf + fromTree,
        usedSelf=Decimal(fromSelf * SELF_UV_PER_CHECK),
        usedLeft=Decimal(fromTree * TREE_UV_PER_SIDE),
        usedRight=Decimal(fromTree * TREE_UV_PER_SIDE),
    )


def consumeVolumes(
        selfVolume: Number,
        leftVolume: Number,
        rightVolume: Number,
        breakdown: CheckBreakdown
) -> Tuple[Decimal, Decimal, Decimal]:
    """Volumes left after redeeming the breakdown, never below zero."""
    return (
        max(_positive(selfVolume) - breakdown.usedSelf, Decimal("0")),
        max(_positive(leftVolume) - breakdown.usedLeft, Decimal("0")),
        max(_positive(rightVolume) - breakdown.usedRight, Decimal("0")),
    )
