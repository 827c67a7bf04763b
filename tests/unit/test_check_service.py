"""
Check arithmetic: 4 self UV = 1 check, 2 + 2 tree UV = 1 check.
"""
import pytest
from decimal import Decimal

from compensation.services.check_service import (
    selfChecks,
    treeChecks,
    totalChecks,
    computeChecks,
    consumeVolumes,
)


class TestCheckCounts:
    """Tests for check counting."""

    @pytest.mark.parametrize("selfVolume,expected", [
        (0, 0),
        (3, 0),
        (4, 1),
        (10, 2),
        (Decimal("7.9"), 1),
    ])
    def test_self_checks(self, selfVolume, expected):
        assert selfChecks(selfVolume) == expected

    def test_tree_checks_limited_by_weaker_side(self):
        assert treeChecks(5, 7) == 2
        assert treeChecks(100, 1) == 0

    def test_total_checks_example(self):
        """selfVolume=10, left=5, right=7 => 2 + 2 = 4."""
        assert totalChecks(10, 5, 7) == 4

    def test_negative_volumes_count_as_zero(self):
        assert selfChecks(-8) == 0
        assert treeChecks(-4, 10) == 0

    def test_none_volumes_count_as_zero(self):
        assert totalChecks(None, None, None) == 0


class TestConsumption:
    """Tests for volume consumption."""

    def test_breakdown_uses_four_self_and_two_per_side(self):
        breakdown = computeChecks(10, 5, 7)

        assert breakdown.selfChecks == 2
        assert breakdown.treeChecks == 2
        assert breakdown.total == 4
        assert breakdown.usedSelf == Decimal("8")
        assert breakdown.usedLeft == Decimal("4")
        assert breakdown.usedRight == Decimal("4")

    def test_consume_leaves_remainders(self):
        breakdown = computeChecks(10, 5, 7)

        assert consumeVolumes(10, 5, 7, breakdown) == (Decimal("2"), Decimal("1"), Decimal("3"))

    def test_consume_never_goes_negative(self):
        breakdown = computeChecks(10, 5, 7)

        remaining = consumeVolumes(1, 0, 0, breakdown)
        assert remaining == (Decimal("0"), Decimal("0"), Decimal("0"))
