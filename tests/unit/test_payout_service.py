"""
Weekly payout run and monthly stats retention.
"""
import pytest
from datetime import date
from decimal import Decimal

from models import Stats, UserMonthlyCheckStats
from compensation.events.event_bus import CompensationEvents
from compensation.services.payout_service import PayoutService

MARCH = date(2025, 3, 1)


@pytest.fixture
def prices(settings):
    settings.setValue("star_levels", [
        {"lvl": 1, "name": "Star 1", "checkPrice": 10},
        {"level": 2, "name": "Star 2", "checkPrice": 20},
        {"lvl": 3, "name": "Star 3"},
    ])
    return settings


def monthly(session, user):
    return session.query(UserMonthlyCheckStats).filter_by(userID=user.userID, month=MARCH).first()


class TestWeeklyPayout:
    """Tests for crediting checks."""

    @pytest.mark.asyncio
    async def test_pays_checks_and_consumes_volume(self, session, prices, makeUser):
        user = makeUser(selfVolume=10, leftVolume=5, rightVolume=7)

        result = await PayoutService(session, prices).runWeeklyPayouts()
        session.refresh(user)

        assert result.processed == 1
        assert result.checksCredited == 4
        assert result.payoutAmount == Decimal("40")
        assert user.walletBalance == Decimal("40")
        assert user.totalEarnings == Decimal("40")
        assert user.checksClaimed == 4
        assert (user.selfVolume, user.leftVolume, user.rightVolume) == (2, 1, 3)

    @pytest.mark.asyncio
    async def test_price_depends_on_star(self, session, prices, makeUser):
        user = makeUser(star=2, selfVolume=8)

        await PayoutService(session, prices).runWeeklyPayouts()
        session.refresh(user)

        assert user.walletBalance == Decimal("40")

    @pytest.mark.asyncio
    async def test_second_run_pays_nothing(self, session, prices, makeUser):
        user = makeUser(selfVolume=10, leftVolume=5, rightVolume=7)
        service = PayoutService(session, prices)

        await service.runWeeklyPayouts()
        second = await service.runWeeklyPayouts()
        session.refresh(user)

        assert second.checksCredited == 0
        assert second.payoutAmount == Decimal("0")
        assert user.walletBalance == Decimal("40")

    @pytest.mark.asyncio
    async def test_weekly_cap_burns_excess(self, session, prices, makeUser):
        prices.setValue("max_checks_per_week", 8)
        user = makeUser(selfVolume=20)

        result = await PayoutService(session, prices).runWeeklyPayouts()
        session.refresh(user)

        assert result.checksCredited == 2
        assert result.checksBurned == 3
        assert user.walletBalance == Decimal("20")
        assert user.selfVolume == Decimal("0")

    @pytest.mark.asyncio
    async def test_zero_cap_means_uncapped(self, session, prices, makeUser):
        prices.setValue("max_checks_per_week", 0)
        makeUser(selfVolume=4000)

        result = await PayoutService(session, prices).runWeeklyPayouts()

        assert result.checksCredited == 1000

    @pytest.mark.asyncio
    async def test_missing_price_burns_checks(self, session, prices, makeUser):
        user = makeUser(star=3, selfVolume=8)

        result = await PayoutService(session, prices).runWeeklyPayouts()
        session.refresh(user)

        assert result.checksCredited == 0
        assert result.checksBurned == 2
        assert user.selfVolume == Decimal("0")
        assert user.walletBalance == Decimal("0")
        assert user.checksClaimed == 0
        assert monthly(session, user) is None

    @pytest.mark.asyncio
    async def test_rsp_converted_to_money(self, session, prices, makeUser):
        user = makeUser(rsp=100, totalRsp=100)

        result = await PayoutService(session, prices).runWeeklyPayouts()
        session.refresh(user)

        assert result.rspConvertedUnits == Decimal("100")
        assert user.rsp == Decimal("0")
        assert user.totalRsp == Decimal("100")
        assert user.walletBalance == Decimal("110")
        assert monthly(session, user).rspConvertedAmount == Decimal("110")

    @pytest.mark.asyncio
    async def test_failed_user_does_not_abort_run(self, session, prices, makeUser, monkeypatch):
        bad = makeUser(selfVolume=8)
        good = makeUser(selfVolume=8)
        session.commit()
        service = PayoutService(session, prices)
        original = service._payUser

        def flaky(userId, *args):
            if userId == bad.userID:
                raise RuntimeError("boom")
            return original(userId, *args)

        monkeypatch.setattr(service, "_payUser", flaky)
        result = await service.runWeeklyPayouts()
        session.refresh(good)

        assert result.failed == 1
        assert result.failedUserIds == [bad.userID]
        assert result.processed == 1
        assert good.walletBalance == Decimal("20")


class TestPayoutStats:
    """Tests for monthly and global stats."""

    @pytest.mark.asyncio
    async def test_monthly_stats_accumulate_across_runs(self, session, prices, makeUser):
        user = makeUser(selfVolume=8)
        service = PayoutService(session, prices)

        await service.runWeeklyPayouts()
        user.selfVolume = Decimal("4")
        session.commit()
        await service.runWeeklyPayouts()

        row = monthly(session, user)
        assert row.checksCreated == 3
        assert row.payoutAmount == Decimal("30")
        assert session.query(UserMonthlyCheckStats).count() == 1

    @pytest.mark.asyncio
    async def test_global_stats_updated(self, session, prices, makeUser):
        makeUser(selfVolume=8)
        makeUser(star=3, selfVolume=4)

        await PayoutService(session, prices).runWeeklyPayouts()

        stats = session.query(Stats).filter_by(key="global").one()
        assert stats.totalChecksCreated == 2
        assert stats.totalChecksBurned == 1
        assert stats.totalPayoutAmount == Decimal("20")
        assert stats.lastRunAt is not None

    @pytest.mark.asyncio
    async def test_emits_payout_completed(self, session, prices, makeUser, events):
        received = events(CompensationEvents.PAYOUT_COMPLETED)
        makeUser(selfVolume=4)

        await PayoutService(session, prices).runWeeklyPayouts()

        assert received[0][1]["checksCredited"] == 1


class TestRetention:
    """Tests for monthly stats cleanup."""

    @pytest.mark.asyncio
    async def test_deletes_rows_older_than_retention(self, session, makeUser):
        user = makeUser()
        for month in (date(2024, 2, 1), date(2024, 3, 1), MARCH):
            session.add(UserMonthlyCheckStats(userID=user.userID, month=month, checksCreated=1))
        session.flush()

        deleted = await PayoutService(session).cleanupOldMonthlyStats(12)

        months = [r.month for r in session.query(UserMonthlyCheckStats).order_by(UserMonthlyCheckStats.month)]
        assert deleted == 1
        assert months == [date(2024, 3, 1), MARCH]
