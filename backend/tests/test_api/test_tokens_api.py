"""
API tests for the token registry endpoints.
"""
import pytest
from unittest.mock import MagicMock

from apns_gateway.core.errors import StorageError

from tests.test_api.conftest import AUTH, app

PREFIX = "/api/v1"


class TestAuthentication:
    """Every registry route requires HTTP Basic credentials."""

    def test_missing_credentials(self, api_client):
        response = api_client.get(f"{PREFIX}/tokens/send")

        assert response.status_code == 401
        assert response.headers["www-authenticate"].startswith("Basic")

    def test_wrong_password(self, api_client):
        response = api_client.get(f"{PREFIX}/tokens/send", auth=(AUTH[0], "wrong"))

        assert response.status_code == 401

    def test_wrong_user(self, api_client):
        response = api_client.get(f"{PREFIX}/tokens/send", auth=("intruder", AUTH[1]))

        assert response.status_code == 401

    def test_health_is_public(self, api_client):
        response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["apns_configured"] is False

    def test_metrics_is_public(self, api_client):
        response = api_client.get("/metrics")

        assert response.status_code == 200
        assert "apns_deliveries_total" in response.text


class TestRegisterToken:
    """Tests for POST /token."""

    def test_register(self, api_client, registry):
        response = api_client.post(
            f"{PREFIX}/token",
            json={"ip": "10.0.0.5", "token": "aa01", "server_type": "production"},
            auth=AUTH,
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert registry.get_send("production", "10.0.0.5") == "aa01"

    def test_defaults_to_sandbox_without_apns(self, api_client, registry):
        api_client.post(f"{PREFIX}/token", json={"ip": "10.0.0.5", "token": "aa01"}, auth=AUTH)

        assert registry.get_send("sandbox", "10.0.0.5") == "aa01"

    def test_no_change(self, api_client):
        body = {"ip": "10.0.0.5", "token": "aa01"}
        api_client.post(f"{PREFIX}/token", json=body, auth=AUTH)

        response = api_client.post(f"{PREFIX}/token", json=body, auth=AUTH)

        assert response.json() == {"status": "ignored", "reason": "no_change"}

    def test_blocked(self, api_client, registry):
        registry.add_block("10.0.0.5", "01d0")

        response = api_client.post(
            f"{PREFIX}/token", json={"ip": "10.0.0.5", "token": "aa01"}, auth=AUTH
        )

        assert response.json() == {"status": "ignored", "reason": "blocked"}

    @pytest.mark.parametrize("body", [
        {"token": "aa01"},
        {"ip": "10.0.0.5"},
        {"ip": "1" * 16, "token": "aa01"},
        {"ip": "10.0.0.5", "token": "t" * 100},
        {"ip": "10.0.0.5", "token": "abc?x=1"},
        {"ip": "10.0.0.5", "token": "abc#frag"},
        {"ip": "10.0.0.5", "token": "aa01", "server_type": "staging"},
    ])
    def test_validation(self, api_client, body):
        response = api_client.post(f"{PREFIX}/token", json=body, auth=AUTH)

        assert response.status_code == 422

    def test_storage_failure_is_500(self, api_client):
        failing = MagicMock()
        failing.register.side_effect = StorageError("disk gone")
        app.state.registry = failing

        response = api_client.post(
            f"{PREFIX}/token", json={"ip": "10.0.0.5", "token": "aa01"}, auth=AUTH
        )

        assert response.status_code == 500


class TestListAndDelete:
    """Tests for listing and deleting entries."""

    def test_list_send(self, api_client, registry):
        registry.register("sandbox", "10.0.0.1", "aa01")
        registry.register("production", "10.0.0.2", "bb02")

        response = api_client.get(f"{PREFIX}/tokens/send", auth=AUTH)

        data = response.json()
        assert data["count"] == 2
        assert sorted(e["server_type"] for e in data["entries"]) == ["production", "sandbox"]

    def test_list_send_filtered(self, api_client, registry):
        registry.register("sandbox", "10.0.0.1", "aa01")
        registry.register("production", "10.0.0.2", "bb02")

        response = api_client.get(f"{PREFIX}/tokens/send?server_type=sandbox", auth=AUTH)

        assert response.json() == {
            "count": 1,
            "entries": [{"ip": "10.0.0.1", "token": "aa01", "server_type": "sandbox"}],
        }

    def test_delete_send(self, api_client, registry):
        registry.register("sandbox", "10.0.0.1", "aa01")

        response = api_client.request("DELETE", f"{PREFIX}/tokens/send", json={"ip": "10.0.0.1"}, auth=AUTH)

        assert response.status_code == 200
        assert registry.list_send() == []

    def test_delete_send_not_found(self, api_client):
        response = api_client.request("DELETE", f"{PREFIX}/tokens/send", json={"ip": "10.0.0.1"}, auth=AUTH)

        assert response.status_code == 404

    def test_block_lifecycle(self, api_client, registry):
        response = api_client.post(
            f"{PREFIX}/tokens/block", json={"ip": "10.0.0.9", "token": "ee09"}, auth=AUTH
        )
        assert response.json() == {"status": "ok"}

        listing = api_client.get(f"{PREFIX}/tokens/block", auth=AUTH).json()
        assert listing["count"] == 2  # one entry per environment

        filtered = api_client.get(f"{PREFIX}/tokens/block?server_type=production", auth=AUTH).json()
        assert filtered["count"] == 1

        response = api_client.request("DELETE", f"{PREFIX}/tokens/block", json={"ip": "10.0.0.9"}, auth=AUTH)
        assert response.status_code == 200
        assert registry.list_block() == []

    def test_delete_block_not_found(self, api_client):
        response = api_client.request("DELETE", f"{PREFIX}/tokens/block", json={"ip": "10.0.0.9"}, auth=AUTH)

        assert response.status_code == 404


class TestMoves:
    """Tests for move-to-block / move-to-send."""

    def test_move_round_trip(self, api_client, registry):
        registry.register("sandbox", "10.0.0.5", "aa01")

        response = api_client.post(f"{PREFIX}/tokens/move-to-block", json={"ip": "10.0.0.5"}, auth=AUTH)
        assert response.json() == {"status": "ok"}
        assert registry.get_block("sandbox", "10.0.0.5") == "aa01"
        assert registry.get_send("sandbox", "10.0.0.5") is None

        response = api_client.post(f"{PREFIX}/tokens/move-to-send", json={"ip": "10.0.0.5"}, auth=AUTH)
        assert response.json() == {"status": "ok"}
        assert registry.get_send("sandbox", "10.0.0.5") == "aa01"

    @pytest.mark.parametrize("path", ["move-to-block", "move-to-send"])
    def test_unknown_ip(self, api_client, path):
        response = api_client.post(f"{PREFIX}/tokens/{path}", json={"ip": "10.0.0.5"}, auth=AUTH)

        assert response.status_code == 404
