"""Tests for app factory, role-based routing and correlation IDs."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from bunkhouse.api.factory import create_app


class TestPublicRole:
    """Tests for APP_ROLE=public."""

    def test_health_available(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_tasks_not_mounted(self):
        client = TestClient(create_app(role="public"))
        assert client.get("/tasks/health").status_code == 404
        assert client.post("/tasks/bookings/prune").status_code == 404

    def test_role_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_ROLE", "worker")
        client = TestClient(create_app())
        assert client.get("/tasks/health").status_code == 200


class TestWorkerRole:
    """Tests for APP_ROLE=worker."""

    def test_health_available(self):
        client = TestClient(create_app(role="worker"))
        assert client.get("/health").status_code == 200

    def test_tasks_mounted(self):
        client = TestClient(create_app(role="worker"))
        response = client.get("/tasks/health")
        assert response.status_code == 200
        assert response.json()["subsystem"] == "tasks"

    def test_prune_task(self):
        result = {
            "cutoff": datetime(2019, 1, 1, tzinfo=timezone.utc),
            "count": 4,
            "booking_ids": [1, 2, 3, 4],
            "dry_run": True,
        }
        client = TestClient(create_app(role="worker"))
        with patch("bunkhouse.domain.bookings.prune_soft_deleted_bookings", return_value=result) as prune:
            response = client.post("/tasks/bookings/prune?older_than_days=30&dry_run=true")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "cutoff": "2019-01-01T00:00:00+00:00",
            "count": 4,
            "dry_run": True,
        }
        prune.assert_called_once_with(older_than_days=30, dry_run=True)


class TestCorrelationId:
    def test_generated_when_absent(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health")
        assert response.headers.get("X-Correlation-ID")

    def test_echoed_when_present(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health", headers={"X-Correlation-ID": "req-123"})
        assert response.headers["X-Correlation-ID"] == "req-123"

    def test_unsafe_header_replaced(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health", headers={"X-Correlation-ID": "bad id with spaces"})
        cid = response.headers["X-Correlation-ID"]
        assert cid != "bad id with spaces"
        assert len(cid) == 36


class TestHealth:
    def test_module_level_app(self):
        from bunkhouse.api.app import app

        response = TestClient(app).get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_db_health_ok(self):
        class _Ctx:
            def __enter__(self):
                return MagicMock()

            def __exit__(self, *args):
                return False

        client = TestClient(create_app(role="public"))
        with patch("bunkhouse.infra.db.txn", return_value=_Ctx()):
            response = client.get("/health/db")

        assert response.status_code == 200
        assert response.json()["database"] == "ok"

    def test_db_health_unavailable(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        client = TestClient(create_app(role="public"))
        response = client.get("/health/db")
        assert response.status_code == 503
