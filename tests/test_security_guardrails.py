from __future__ import annotations

from entitlements.core.logging import redact_secrets
from entitlements.core.settings import settings


def test_api_key_required_when_gateway_auth_enabled(client, monkeypatch):
    monkeypatch.setattr(settings, "gateway_auth_enabled", True)
    monkeypatch.setattr(settings, "gateway_api_key", "test-key")

    assert client.get("/health").status_code == 200

    denied = client.get("/api/modules/progress", headers={"x-student-id": "anyone"})
    assert denied.status_code == 401
    assert denied.json()["error"]["code"] == "unauthorized"

    allowed = client.get("/metrics/app", headers={"x-api-key": "test-key"})
    assert allowed.status_code == 200


def test_secret_redaction():
    text = "connecting with api_key=sk-abc123 and password: hunter2"
    redacted = redact_secrets(text)
    assert "sk-abc123" not in redacted
    assert "hunter2" not in redacted


def test_metrics_endpoints_shape(client):
    app_metrics = client.get("/metrics/app").json()
    assert "request_count" in app_metrics
    assert "quota_events" in app_metrics
    resilience = client.get("/metrics/resilience").json()
    assert isinstance(resilience["breakers"], dict)
