"""Tests for GET /health: public, and reports store reachability."""

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from tether.db.session import get_db


class _UnreachableStore:
    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("store down"))


class TestHealthEndpoint:
    def test_store_reachable(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"data": {"status": "ok", "store": "ok"}}

    def test_public_behind_auth_middleware(self, auth_client: TestClient):
        response = auth_client.get("/health")

        assert response.status_code == 200
        assert response.json()["data"]["store"] == "ok"
        assert "X-Request-ID" in response.headers

    def test_store_unreachable_is_503(self, authenticated_app):
        authenticated_app.dependency_overrides[get_db] = lambda: _UnreachableStore()

        with TestClient(authenticated_app) as client:
            response = client.get("/health")

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "E_STORE_UNAVAILABLE"
        assert error["kind"] == "internal"
        assert error["request_id"] == response.headers["X-Request-ID"]
        assert "store down" not in response.text
