"""Pytest configuration and shared fixtures for all tests."""

import os

# Тесты работают на in-memory SQLite
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base, User, SIDE_LEFT
from compensation.events.event_bus import eventBus
from compensation.services.settings_service import SettingsService
from compensation.utils.time_machine import timeMachine

# Среда, 12 марта 2025
NOW = datetime(2025, 3, 12, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sessionFactory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def session(sessionFactory):
    session = sessionFactory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def virtualTime():
    """Pin virtual time and drop event handlers between tests."""
    eventBus.clear()
    timeMachine.setTime(NOW)
    yield NOW
    timeMachine.resetToRealTime()
    eventBus.clear()


@pytest.fixture
def settings(session):
    return SettingsService(session)


@pytest.fixture
def makeUser(session):
    """Factory creating flushed users with zeroed balances."""
    def _make(**fields):
        values = {
            "selfVolume": 0,
            "leftVolume": 0,
            "rightVolume": 0,
            "walletBalance": 0,
            "totalEarnings": 0,
            "checksClaimed": 0,
            "rsp": 0,
            "totalRsp": 0,
            "star": 1,
            "referralActive": False,
            "atHotposition": False,
            "hasMadeFirstPurchase": False,
        }
        values.update(fields)
        user = User(**values)
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture
def attach(session):
    """Link child under parent in the raw referral tree."""
    def _attach(parent, child, side=SIDE_LEFT):
        child.referredBy = parent.userID
        if side == SIDE_LEFT:
            parent.leftChild = child.userID
        else:
            parent.rightChild = child.userID
        session.flush()

    return _attach


@pytest.fixture
def events():
    """Collect emitted events: subscribe(name) then inspect the returned list."""
    received = []

    def _subscribe(eventName):
        def handler(data):
            received.append((eventName, data))
        eventBus.subscribe(eventName, handler)
        return received

    return _subscribe
