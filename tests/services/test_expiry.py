"""Tests for the expiry sweep."""

import pytest

from signal_app.config.settings import SettingKeys
from signal_app.services.expiry import ExpiryReaper


@pytest.fixture
def reaper(signal_store, settings, clock):
    return ExpiryReaper(signal_store, settings, clock=clock)


class TestExpiryReaper:

    def test_active_signal_expires_after_confirm_timeout(
        self, reaper, make_user, signal_store, clock
    ):
        """Test an unclaimed ACTIVE signal survives 29s and is gone at 31s."""
        user = make_user()
        signal = signal_store.grant_pending(user.id, clock(), 60).signal
        signal_store.activate(signal.id, 2.2, clock())

        assert reaper.run_once(clock.advance(29)).expired_active == 0
        assert signal_store.get(signal.id) is not None

        report = reaper.run_once(clock.advance(2))
        assert report.expired_active == 1
        assert signal_store.get(signal.id) is None

    def test_pending_signal_expires_after_max_age(self, reaper, make_user, signal_store, clock):
        """Test a stuck PENDING signal is removed once it is older than its max age."""
        user = make_user()
        signal = signal_store.grant_pending(user.id, clock(), 60).signal

        assert reaper.run_once(clock.advance(599)).expired_pending == 0

        report = reaper.run_once(clock.advance(2))
        assert report.expired_pending == 1
        assert signal_store.get(signal.id) is None
        assert signal_store.get_open_for_user(user.id) is None

    def test_completed_signals_are_kept(self, reaper, make_user, signal_store, clock):
        user = make_user()
        signal = signal_store.grant_pending(user.id, clock(), 60).signal
        signal_store.activate(signal.id, 2.2, clock())
        signal_store.complete_claim(user.id, signal.id, clock(), 30)

        report = reaper.run_once(clock.advance(3600))

        assert (report.expired_active, report.expired_pending) == (0, 0)
        assert signal_store.get(signal.id) is not None

    def test_settings_drive_timeouts(self, reaper, make_user, signal_store, setting_store, clock):
        setting_store.set(SettingKeys.PENDING_MAX_AGE, 60)
        user = make_user()
        signal_store.grant_pending(user.id, clock(), 60)

        assert reaper.run_once(clock.advance(61)).expired_pending == 1

    def test_expired_user_becomes_eligible_again(
        self, reaper, make_user, signal_store, user_ledger, clock
    ):
        user = make_user()
        signal = signal_store.grant_pending(user.id, clock(), 60).signal
        signal_store.activate(signal.id, 2.2, clock())

        now = clock.advance(31)
        reaper.run_once(now)

        assert [u.id for u in user_ledger.find_eligible(now, 0)] == [user.id]

    def test_failure_in_one_sweep_does_not_block_the_other(
        self, reaper, make_user, signal_store, clock, monkeypatch
    ):
        user = make_user()
        signal_store.grant_pending(user.id, clock(), 60)
        original = signal_store.delete_expired

        def flaky_delete(status, cutoff):
            if status.value == "active":
                raise RuntimeError("database is locked")
            return original(status, cutoff)

        monkeypatch.setattr(signal_store, "delete_expired", flaky_delete)

        report = reaper.run_once(clock.advance(601))

        assert report.failed == 1
        assert report.expired_pending == 1
