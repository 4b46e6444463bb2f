"""Tests for the HTTP API."""

import os
from dataclasses import replace
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from signal_app.api import create_app
from signal_app.config.defaults import DatabaseParams, get_default_config
from signal_app.engine import SignalEngine
from signal_app.utils.time import to_epoch_ms


@pytest.fixture
def engine(temp_dir, notifier, clock):
    config = replace(
        get_default_config(),
        database=DatabaseParams(path=os.path.join(temp_dir, "api.db")),
    )
    engine = SignalEngine(config, notifier=notifier, clock=clock)
    yield engine
    engine.activation_executor.shutdown(wait=False)


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


@pytest.fixture
def user(engine):
    return engine.user_ledger.create_user(energy=3, has_credential=True, chat_id="77")


def headers(user_id):
    return {"X-User-Id": str(user_id)}


def activate_signal(engine, user, clock):
    signal = engine.signal_store.grant_pending(user.id, clock() - timedelta(seconds=55), 60).signal
    engine.signal_store.activate(signal.id, 2.64, clock())
    return signal


class TestAuthentication:

    def test_missing_identity(self, client):
        response = client.get("/signals/status")
        assert response.status_code == 401

    def test_malformed_identity(self, client):
        response = client.get("/signals/status", headers={"X-User-Id": "abc"})
        assert response.status_code == 401


class TestStatusRoute:

    def test_idle(self, client, user):
        response = client.get("/signals/status", headers=headers(user.id))

        assert response.status_code == 200
        assert response.json() == {"canRequest": True}
        assert response.headers["cache-control"] == "public, max-age=3"

    def test_waiting(self, client, engine, user, clock):
        signal = engine.signal_store.grant_pending(user.id, clock(), 60).signal

        body = client.get("/signals/status", headers=headers(user.id)).json()

        assert body == {
            "canRequest": False,
            "isPending": True,
            "requestTime": to_epoch_ms(clock()),
            "signalId": signal.id,
        }

    def test_ready(self, client, engine, user, clock):
        signal = activate_signal(engine, user, clock)

        body = client.get("/signals/status", headers=headers(user.id)).json()

        assert body["activatedAt"] == to_epoch_ms(clock())
        assert body["confirmTimeout"] == 30000
        assert body["signalId"] == signal.id

    def test_unknown_user(self, client):
        response = client.get("/signals/status", headers=headers(4242))

        assert response.status_code == 404
        assert response.json()["code"] == "user_not_found"


class TestClaimRoute:

    def test_claim(self, client, engine, user, clock):
        """Test a claim returns the completed signal and spends one energy."""
        signal = activate_signal(engine, user, clock)

        response = client.post(f"/signals/claim/{signal.id}", headers=headers(user.id))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == signal.id
        assert body["status"] == "completed"
        assert body["multiplier"] == 2.64
        assert engine.user_ledger.get(user.id).energy == 2

    def test_repeat_claim_is_not_found(self, client, engine, user, clock):
        signal = activate_signal(engine, user, clock)
        client.post(f"/signals/claim/{signal.id}", headers=headers(user.id))

        response = client.post(f"/signals/claim/{signal.id}", headers=headers(user.id))

        assert response.status_code == 404
        assert response.json()["code"] == "signal_not_found"
        assert engine.user_ledger.get(user.id).energy == 2

    def test_insufficient_energy(self, client, engine, user, clock):
        signal = activate_signal(engine, user, clock)
        engine.user_ledger.set_energy(user.id, 0)

        response = client.post(f"/signals/claim/{signal.id}", headers=headers(user.id))

        assert response.status_code == 403
        assert response.json()["code"] == "insufficient_energy"

    def test_expired_claim(self, client, engine, user, clock):
        signal = activate_signal(engine, user, clock)
        clock.advance(31)

        response = client.post(f"/signals/claim/{signal.id}", headers=headers(user.id))
        assert response.status_code == 404


class TestClearRoute:

    def test_clear_request(self, client, engine, user, clock):
        engine.signal_store.grant_pending(user.id, clock(), 60)

        response = client.post("/signals/clear-request", headers=headers(user.id))

        assert response.status_code == 200
        assert response.json() == {"message": "Signal request cleared"}
        assert engine.signal_store.get_open_for_user(user.id) is None

    def test_clear_without_pending(self, client, user):
        response = client.post("/signals/clear-request", headers=headers(user.id))
        assert response.status_code == 200


class TestHistoryRoute:

    def test_lists_own_signals(self, client, engine, user, clock):
        signal = activate_signal(engine, user, clock)
        client.post(f"/signals/claim/{signal.id}", headers=headers(user.id))
        other = engine.user_ledger.create_user(energy=1, has_credential=True)
        activate_signal(engine, other, clock)

        body = client.get("/signals", headers=headers(user.id)).json()

        assert body["total"] == 1
        assert [s["id"] for s in body["data"]] == [signal.id]

    def test_status_filter_and_limit_bounds(self, client, user):
        response = client.get(
            "/signals", params={"status": "completed"}, headers=headers(user.id)
        )
        assert response.status_code == 200
        assert response.json() == {"data": [], "total": 0}

        response = client.get("/signals", params={"limit": 500}, headers=headers(user.id))
        assert response.status_code == 422


class TestHealthRoute:

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["stats"]["signals"]["total_signals"] == 0
        assert body["stats"]["activations_in_flight"] == 0
