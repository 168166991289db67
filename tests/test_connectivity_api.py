# Tether
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""E2E tests for the connectivity API endpoints.

Tests the full request -> ConnectivityManager -> response cycle via
FastAPI TestClient, with the manager created in the app lifespan.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tether.api.server import create_app
from tether.connectivity import ConnectivityConfig, LedgerEntry, NetworkRequest, NetworkResponse


@pytest.fixture()
def config(tmp_path):
    return ConnectivityConfig(
        state_path=str(tmp_path / "state.yaml"),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture()
def client(config, gateway):
    app = create_app(config=config, gateway=gateway, configure_logs=False)
    with TestClient(app) as test_client:
        yield test_client


class TestStatusAndMode:
    def test_health(self, client):
        assert client.get("/api/health").json()["status"] == "ok"

    def test_initial_status(self, client):
        data = client.get("/api/connectivity/status").json()
        assert data["mode"] == "offline_only"
        assert data["status"] == "offline"
        assert data["is_online"] is False

    def test_set_mode(self, client):
        resp = client.put("/api/connectivity/mode", json={"mode": "connected"})
        assert resp.status_code == 200
        assert resp.json() == {"mode": "connected", "status": "idle", "changed": True}

        again = client.put("/api/connectivity/mode", json={"mode": "connected"})
        assert again.json()["changed"] is False

    def test_set_unknown_mode(self, client):
        resp = client.put("/api/connectivity/mode", json={"mode": "yolo"})
        assert resp.status_code == 400

    def test_kill_switch(self, client):
        client.put("/api/connectivity/mode", json={"mode": "connected"})
        resp = client.post("/api/connectivity/offline")
        assert resp.json() == {"mode": "offline_only", "status": "offline"}

    def test_mode_persists_across_app_restarts(self, config, gateway):
        with TestClient(create_app(config=config, gateway=gateway, configure_logs=False)) as c:
            c.put("/api/connectivity/mode", json={"mode": "assisted"})
        with TestClient(create_app(config=config, gateway=gateway, configure_logs=False)) as c:
            assert c.get("/api/connectivity/status").json()["mode"] == "assisted"

    def test_shutdown_closes_gateway(self, config, gateway):
        with TestClient(create_app(config=config, gateway=gateway, configure_logs=False)):
            assert gateway.closed is False
        assert gateway.closed is True


class TestAllowlistRoutes:
    def test_add_list_remove(self, client):
        resp = client.post("/api/connectivity/allowlist", json={"endpoint": "https://api.example.com"})
        assert resp.json() == {"status": "added", "endpoint": "https://api.example.com"}

        dup = client.post("/api/connectivity/allowlist", json={"endpoint": "https://api.example.com"})
        assert dup.json()["status"] == "unchanged"

        assert client.get("/api/connectivity/allowlist").json() == {
            "endpoints": ["https://api.example.com"]
        }

        removed = client.delete(
            "/api/connectivity/allowlist", params={"endpoint": "https://api.example.com"}
        )
        assert removed.json()["status"] == "removed"
        assert client.get("/api/connectivity/allowlist").json() == {"endpoints": []}

    def test_blank_endpoint_rejected(self, client):
        resp = client.post("/api/connectivity/allowlist", json={"endpoint": "   "})
        assert resp.status_code == 400


class TestCheckRoute:
    def test_check_reports_reason_tag(self, client):
        resp = client.post(
            "/api/connectivity/check",
            json={"endpoint": "https://api.example.com/data", "intent": "test"},
        )
        assert resp.json()["allowed"] is False
        assert resp.json()["reason"] == "offline_mode"

        client.put("/api/connectivity/mode", json={"mode": "assisted"})
        resp = client.post(
            "/api/connectivity/check",
            json={"endpoint": "https://api.example.com/data", "intent": "test"},
        )
        assert resp.json()["reason"] == "not_allowlisted"

        client.post("/api/connectivity/allowlist", json={"endpoint": "https://api.example.com"})
        resp = client.post(
            "/api/connectivity/check",
            json={"endpoint": "https://api.example.com/data", "intent": "test"},
        )
        assert resp.json() == {"allowed": True, "reason": None, "message": ""}

    def test_check_missing_intent(self, client):
        client.put("/api/connectivity/mode", json={"mode": "connected"})
        resp = client.post("/api/connectivity/check", json={"endpoint": "https://a.example.com"})
        assert resp.json()["reason"] == "missing_intent"


class TestHistoryRoutes:
    def test_history_clear_and_stats(self, client):
        manager = client.app.state.connectivity
        for i in range(3):
            manager._ledger.append(
                LedgerEntry(
                    NetworkRequest(f"https://api.example.com/{i}", intent="seed"),
                    NetworkResponse(success=i != 1, status_code=200 if i != 1 else 500),
                )
            )

        history = client.get("/api/connectivity/history", params={"limit": 2}).json()["entries"]
        assert [e["request"]["endpoint"] for e in history] == [
            "https://api.example.com/1",
            "https://api.example.com/2",
        ]
        assert history[0]["outcome"] == "failed"

        stats = client.get("/api/connectivity/history/stats").json()
        assert stats["total"] == 3
        assert stats["failed"] == 1

        cleared = client.delete("/api/connectivity/history").json()
        assert cleared == {"status": "cleared", "removed": 3}
        assert client.get("/api/connectivity/history").json() == {"entries": []}

    def test_limit_follows_configured_history_size(self, tmp_path, gateway):
        config = ConnectivityConfig(
            state_path=str(tmp_path / "state.yaml"),
            log_dir=str(tmp_path / "logs"),
            history_limit=2000,
        )
        with TestClient(create_app(config=config, gateway=gateway, configure_logs=False)) as c:
            manager = c.app.state.connectivity
            for i in range(1500):
                manager._ledger.append(
                    LedgerEntry(
                        NetworkRequest(f"https://api.example.com/{i}", intent="seed"),
                        NetworkResponse(success=True, status_code=200),
                    )
                )

            resp = c.get("/api/connectivity/history", params={"limit": 1500})

        assert resp.status_code == 200
        assert len(resp.json()["entries"]) == 1500
