"""Concurrency tests: no user ever holds two open signals."""

import random
import threading

from signal_app.config.settings import SettingKeys
from signal_app.persistence.cluster_lock import ClusterLock
from signal_app.persistence.signal_store import GrantOutcome
from signal_app.services.admission import ADMISSION_LOCK_NAME, AdmissionScheduler


def max_open_per_user(database) -> int:
    with database.connection() as conn:
        row = conn.execute("""
            SELECT COALESCE(MAX(open_count), 0) FROM (
                SELECT COUNT(*) AS open_count FROM signals
                WHERE status IN ('pending', 'active')
                GROUP BY user_id
            )
        """).fetchone()
    return row[0]


def run_concurrently(*targets):
    barrier = threading.Barrier(len(targets))
    results = [None] * len(targets)

    def runner(index, target):
        barrier.wait()
        results[index] = target()

    threads = [
        threading.Thread(target=runner, args=(i, target))
        for i, target in enumerate(targets)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


def reset_trial(database, rng, user_ids) -> int:
    """Drop all signals and re-roll every user's energy; returns how many can be granted."""
    energies = [(rng.choice((0, 1, 3)), user_id) for user_id in user_ids]
    with database.transaction() as conn:
        conn.execute("DELETE FROM signals")
        conn.executemany(
            "UPDATE users SET energy = ?, last_request_at = NULL WHERE id = ?", energies
        )
    return sum(1 for energy, _ in energies if energy > 0)


class TestConcurrentGrants:

    def test_racing_grants_never_duplicate(self, make_user, signal_store, database, clock):
        """Test two simultaneous grants for one user across 1000 randomized trials."""
        rng = random.Random(20240101)
        users = [make_user() for _ in range(50)]

        for trial in range(1000):
            user = rng.choice(users)
            signal_store.clear_pending(user.id)
            now = clock.advance(rng.uniform(1, 5))

            results = run_concurrently(
                lambda: signal_store.grant_pending(user.id, now, 0),
                lambda: signal_store.grant_pending(user.id, now, 0),
            )

            outcomes = sorted(r.outcome.value for r in results)
            assert outcomes.count(GrantOutcome.GRANTED.value) == 1, (trial, outcomes)
            assert signal_store.count_open_for_user(user.id) == 1

        assert max_open_per_user(database) == 1


class TestConcurrentAdmissionCycles:

    def _scheduler(self, user_ledger, signal_store, settings, database, clock, lock_name, seed):
        return AdmissionScheduler(
            user_ledger,
            signal_store,
            settings,
            ClusterLock(database, lock_name, clock=clock),
            clock=clock,
            rng=random.Random(seed),
        )

    def test_cycles_without_shared_lock_stay_unique(
        self, user_ledger, signal_store, settings, setting_store, database, clock, make_user
    ):
        """Test the per-grant transaction alone keeps whole cycles unique over 1000 trials."""
        rng = random.Random(20240102)
        user_ids = [make_user().id for _ in range(12)]
        first = self._scheduler(user_ledger, signal_store, settings, database, clock, "node-a", 1)
        second = self._scheduler(user_ledger, signal_store, settings, database, clock, "node-b", 2)

        for trial in range(1000):
            eligible = reset_trial(database, rng, user_ids)
            setting_store.set(SettingKeys.MAX_USERS, rng.randint(1, 8))
            now = clock.advance(rng.uniform(60, 120))

            reports = run_concurrently(lambda: first.run_cycle(now), lambda: second.run_cycle(now))

            granted = reports[0].granted + reports[1].granted
            assert len(granted) == len(set(granted)), trial
            assert len(granted) <= eligible, trial
            assert max_open_per_user(database) <= 1, trial

    def test_cycles_sharing_lock(
        self, user_ledger, signal_store, settings, database, clock, make_user
    ):
        """Test two nodes contending for the admission lock grant each user at most once."""
        for _ in range(10):
            make_user()
        first = self._scheduler(
            user_ledger, signal_store, settings, database, clock, ADMISSION_LOCK_NAME, 1
        )
        second = self._scheduler(
            user_ledger, signal_store, settings, database, clock, ADMISSION_LOCK_NAME, 2
        )

        reports = run_concurrently(first.run_cycle, second.run_cycle)

        assert len(reports[0].granted) + len(reports[1].granted) == 10
        assert max_open_per_user(database) == 1
        assert first.lock.holder() is None
