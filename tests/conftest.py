"""Pytest configuration and shared fixtures."""

import os
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest

from signal_app.config.settings import SignalSettings
from signal_app.notifications.log_notifier import LogNotifier
from signal_app.persistence import (
    Database,
    RoundStore,
    SettingStore,
    SignalStore,
    UserLedger,
)

# 12:00 in Moscow
NOON_MSK = datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Controllable clock for services that take a ``clock`` callable."""

    def __init__(self, now: datetime = NOON_MSK):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class StaticRoundSource:
    """Round source returning a fixed newest-first list."""

    def __init__(self, rounds=None):
        self.rounds = list(rounds or [])
        self.calls = 0

    def recent(self, n: int) -> list[float]:
        self.calls += 1
        return self.rounds[:n]


class FailingRoundSource:
    def recent(self, n: int) -> list[float]:
        raise ConnectionError("round feed unavailable")


@pytest.fixture
def temp_dir() -> Iterator[str]:
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def database(temp_dir) -> Database:
    return Database(os.path.join(temp_dir, "test_signals.db"))


@pytest.fixture
def user_ledger(database) -> UserLedger:
    return UserLedger(database)


@pytest.fixture
def signal_store(database) -> SignalStore:
    return SignalStore(database)


@pytest.fixture
def setting_store(database) -> SettingStore:
    return SettingStore(database)


@pytest.fixture
def round_store(database) -> RoundStore:
    return RoundStore(database)


@pytest.fixture
def settings(setting_store) -> SignalSettings:
    return SignalSettings(setting_store)


@pytest.fixture
def notifier() -> LogNotifier:
    return LogNotifier(max_retries=0)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def make_user(user_ledger):
    """Factory for users that are eligible unless told otherwise."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "energy": 5,
            "is_access_allowed": True,
            "has_credential": True,
            "chat_id": f"chat-{counter['n']}",
            "username": f"user{counter['n']}",
        }
        values.update(overrides)
        return user_ledger.create_user(**values)

    return _make


@pytest.fixture
def static_rounds():
    """Factory for round sources with a fixed newest-first history."""
    return StaticRoundSource


@pytest.fixture
def failing_rounds() -> FailingRoundSource:
    return FailingRoundSource()
