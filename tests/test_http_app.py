# tests/test_http_app.py
"""Tests for the HTTP endpoints in notifier/transport/http_app.py."""
from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from notifier.core.errors import DirectoryError
from notifier.core.use_cases import NotificationService
from notifier.transport.http_app import app, get_notification_service


@pytest.fixture
def wire(make_directory, make_transport):
    """Install a NotificationService over in-memory fakes; returns (client, directory, transport)."""

    def _wire(recipients=None, groups=None, error=None, fail_tokens=None):
        directory = make_directory(recipients=recipients, groups=groups, error=error)
        transport = make_transport(fail_tokens=fail_tokens)
        service = NotificationService(directory=directory, transport=transport)
        app.dependency_overrides[get_notification_service] = lambda: service
        return TestClient(app), directory, transport

    yield _wire
    app.dependency_overrides.clear()


# ============================================================================
# POST /notifyAvailablePlayerIndividual
# ============================================================================

class TestNotifyAvailablePlayer:
    def test_success(self, wire, players):
        client, _, transport = wire(recipients=players)
        resp = client.post("/notifyAvailablePlayerIndividual", json={"name": "  Ana "})

        assert resp.status_code == 200
        assert resp.json() == {"success": 1, "failure": 0}
        assert len(transport.sent) == 1

    def test_no_users(self, wire):
        client, _, transport = wire()
        resp = client.post("/notifyAvailablePlayerIndividual", json={"name": "Ana"})

        assert resp.status_code == 200
        assert resp.json() == {"success": 0, "failure": 0, "message": "No users found"}
        assert transport.attempts == []

    def test_partial_failure(self, wire, players):
        client, _, _ = wire(recipients=players, fail_tokens={"token-marta-33333"})
        resp = client.post("/notifyAvailablePlayerIndividual", json={"name": "Luis"})

        # Luis has no token anyway; Ana succeeds, Marta fails
        assert resp.json() == {"success": 1, "failure": 1}

    @pytest.mark.parametrize("body", [
        {},
        {"name": ""},
        {"name": "   "},
        {"name": 42},
        {"name": None},
        ["Ana"],
    ])
    def test_invalid_body_rejected(self, wire, body):
        client, directory, _ = wire()
        resp = client.post("/notifyAvailablePlayerIndividual", json=body)

        assert resp.status_code == 400
        assert '"name"' in resp.json()["error"]
        assert directory.calls == []

    def test_non_json_body_rejected(self, wire):
        client, _, _ = wire()
        resp = client.post(
            "/notifyAvailablePlayerIndividual",
            content=b"name=Ana",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert resp.status_code == 400

    def test_get_not_allowed(self, wire):
        client, _, _ = wire()
        resp = client.get("/notifyAvailablePlayerIndividual")
        assert resp.status_code == 405
        assert resp.json() == {"error": "Method Not Allowed"}

    def test_directory_error_is_500_with_cause(self, wire):
        client, _, transport = wire(error=DirectoryError("Realtime Database get_all_recipients failed: status=503"))
        resp = client.post("/notifyAvailablePlayerIndividual", json={"name": "Ana"})

        assert resp.status_code == 500
        assert resp.json() == {
            "error": "Internal Server Error",
            "message": "Realtime Database get_all_recipients failed: status=503",
        }
        assert transport.attempts == []

    def test_unexpected_directory_failure_is_500_with_message(self, wire):
        client, _, transport = wire(error=OSError("disk on fire"))
        resp = client.post("/notifyAvailablePlayerIndividual", json={"name": "Ana"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal Server Error", "message": "disk on fire"}
        assert transport.attempts == []

    def test_long_name_accepted(self, wire, players):
        client, directory, _ = wire(recipients=players)
        resp = client.post("/notifyAvailablePlayerIndividual", json={"name": "  " + "A" * 201 + "  "})

        assert resp.status_code == 200
        assert resp.json() == {"success": 2, "failure": 0}
        assert directory.calls


# ============================================================================
# POST /notifyNewChallenge
# ============================================================================

class TestNotifyNewChallenge:
    def test_success_skips_creator(self, wire, players, community):
        client, _, transport = wire(recipients=players, groups={"c1": community})
        resp = client.post(
            "/notifyNewChallenge",
            json={"communityName": "Padel Club", "challengeId": "ch-1", "creatorId": "u1"},
        )

        assert resp.status_code == 200
        assert resp.json() == {"success": 1, "failure": 0}
        assert transport.sent[0].data["type"] == "new_challenge"

    def test_numeric_challenge_id_stringified(self, wire, players, community):
        client, _, transport = wire(recipients=players, groups={"c1": community})
        client.post(
            "/notifyNewChallenge",
            json={"communityName": "Padel Club", "challengeId": 77, "creatorId": "u1"},
        )
        assert transport.sent[0].data["challengeId"] == "77"

    def test_community_not_found(self, wire, community):
        client, _, transport = wire(groups={"c1": community})
        resp = client.post(
            "/notifyNewChallenge",
            json={"communityName": "Tennis", "challengeId": "ch-1", "creatorId": "u1"},
        )

        assert resp.status_code == 200
        assert resp.json() == {"success": 0, "failure": 0, "message": "Community not found"}
        assert transport.attempts == []

    @pytest.mark.parametrize("missing", ["communityName", "challengeId", "creatorId"])
    def test_missing_field_rejected(self, wire, missing):
        client, directory, _ = wire()
        body = {"communityName": "Padel Club", "challengeId": "ch-1", "creatorId": "u1"}
        del body[missing]

        resp = client.post("/notifyNewChallenge", json=body)

        assert resp.status_code == 400
        assert "error" in resp.json()
        assert directory.calls == []

    def test_long_fields_accepted(self, wire, community):
        client, _, _ = wire(groups={"c1": community})
        resp = client.post(
            "/notifyNewChallenge",
            json={"communityName": "C" * 300, "challengeId": "ch-1", "creatorId": "u" * 300},
        )

        assert resp.status_code == 200
        assert resp.json()["message"] == "Community not found"

    def test_empty_field_rejected(self, wire):
        client, _, _ = wire()
        resp = client.post(
            "/notifyNewChallenge",
            json={"communityName": "Padel Club", "challengeId": "", "creatorId": "u1"},
        )
        assert resp.status_code == 400


# ============================================================================
# Monitoring / routing
# ============================================================================

class TestMonitoring:
    def test_health(self):
        resp = TestClient(app).get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy"}

    def test_request_id_header(self):
        resp = TestClient(app).get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    def test_security_headers(self):
        resp = TestClient(app).get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"

    def test_unknown_route_404(self):
        resp = TestClient(app).get("/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Not Found"}

    @patch("notifier.transport.security.settings")
    def test_metrics_requires_token_when_configured(self, mock_settings):
        mock_settings.metrics_token = "m" * 32
        client = TestClient(app)

        assert client.get("/metrics").status_code == 401
        assert client.get("/metrics", headers={"Authorization": "Bearer wrong"}).status_code == 401

        resp = client.get("/metrics", headers={"Authorization": f"Bearer {'m' * 32}"})
        assert resp.status_code == 200
        assert "counters" in resp.json()

    def test_metrics_count_sends(self, wire, players):
        from notifier.infra.metrics import get_metrics_collector

        get_metrics_collector().reset()
        client, _, _ = wire(recipients=players)
        client.post("/notifyAvailablePlayerIndividual", json={"name": "Ana"})

        counters = get_metrics_collector().get_metrics()["counters"]
        assert counters["notifications_sent_total"] == 1
        assert counters["notifications_skipped_total{reason=self_match}"] == 1
        assert counters["notifications_skipped_total{reason=no_destination}"] == 1
