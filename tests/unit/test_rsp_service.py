"""
RSP propagation through the sponsor tree.
"""
import pytest
from decimal import Decimal

from models import TreeNode, SIDE_LEFT
from compensation.errors import DataInconsistencyWarning
from compensation.events.event_bus import CompensationEvents
from compensation.services.rsp_service import (
    RspService,
    STOP_ROOT,
    STOP_LEVEL_CAP,
    STOP_MISSING_LINK,
    STOP_NOOP,
    STOP_CYCLE,
)
from compensation.services.tree_store import TreeStore


@pytest.fixture
def sponsorChain(session, makeUser):
    """Factory: owner at the root and `depth` users stacked on the left."""
    def _build(depth, totalRsp=0):
        owner = makeUser(totalRsp=totalRsp)
        store = TreeStore(session)
        store.ensureRoot(owner.userID)

        users = [owner]
        for _ in range(depth):
            user = makeUser(referralUsed=owner.userID, totalRsp=totalRsp)
            store.addChild(owner.userID, user.userID, users[-1].userID, SIDE_LEFT)
            users.append(user)
        return users

    return _build


class TestRspThreshold:
    """Tests for the strict group_min_rsp floor."""

    @pytest.mark.asyncio
    async def test_credits_only_above_floor(self, session, sponsorChain):
        owner, middle, start = sponsorChain(2)
        start.totalRsp = 601
        middle.totalRsp = 600
        owner.totalRsp = 700
        session.flush()

        result = await RspService(session).propagateRSP(start.userID, 10)
        for user in (owner, middle, start):
            session.refresh(user)

        assert result.credited == [start.userID, owner.userID]
        assert result.skipped == [middle.userID]
        assert result.stopReason == STOP_ROOT
        assert start.rsp == Decimal("10")
        assert start.totalRsp == Decimal("611")
        assert middle.totalRsp == Decimal("600")
        assert owner.totalRsp == Decimal("710")

    @pytest.mark.asyncio
    async def test_floor_from_settings(self, session, settings, sponsorChain):
        owner, start = sponsorChain(1)
        start.totalRsp = 1
        session.flush()
        settings.setValue("group_min_rsp", 0)

        result = await RspService(session, settings).propagateRSP(start.userID, 5)

        assert result.credited == [start.userID]
        assert result.skipped == [owner.userID]


class TestRspWalk:
    """Tests for where the walk stops."""

    @pytest.mark.asyncio
    async def test_stops_after_five_levels(self, session, sponsorChain):
        users = sponsorChain(7, totalRsp=1000)
        start = users[-1]

        result = await RspService(session).propagateRSP(start.userID, 10)

        assert result.levelsVisited == 5
        assert result.stopReason == STOP_LEVEL_CAP
        assert result.credited == [u.userID for u in reversed(users[-5:])]

    @pytest.mark.asyncio
    async def test_missing_node_stops_after_start(self, session, makeUser):
        owner = makeUser()
        user = makeUser(referralUsed=owner.userID, totalRsp=1000)

        result = await RspService(session).propagateRSP(user.userID, 10)

        assert result.credited == [user.userID]
        assert result.stopReason == STOP_MISSING_LINK

    @pytest.mark.asyncio
    async def test_cycle_stops_walk(self, session, makeUser):
        owner = makeUser()
        a = makeUser(referralUsed=owner.userID, totalRsp=1000)
        b = makeUser(referralUsed=owner.userID, totalRsp=1000)
        session.add_all([
            TreeNode(treeOwner=owner.userID, userID=a.userID, parentUser=b.userID, side=SIDE_LEFT, level=1),
            TreeNode(treeOwner=owner.userID, userID=b.userID, parentUser=a.userID, side=SIDE_LEFT, level=2),
        ])
        session.flush()

        with pytest.warns(DataInconsistencyWarning):
            result = await RspService(session).propagateRSP(a.userID, 10)
        session.refresh(a)

        assert result.stopReason == STOP_CYCLE
        assert result.credited == [a.userID, b.userID]
        assert result.levelsVisited == 2
        assert a.totalRsp == Decimal("1010")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, "abc", float("nan")])
    async def test_non_positive_amount_is_noop(self, session, sponsorChain, amount):
        owner, start = sponsorChain(1, totalRsp=1000)

        result = await RspService(session).propagateRSP(start.userID, amount)

        assert result.stopReason == STOP_NOOP
        assert result.credited == []

    @pytest.mark.asyncio
    async def test_emits_event(self, session, sponsorChain, events):
        received = events(CompensationEvents.RSP_PROPAGATED)
        owner, start = sponsorChain(1, totalRsp=1000)

        await RspService(session).propagateRSP(start.userID, 10)

        assert received[0][1]["credited"] == [start.userID, owner.userID]
