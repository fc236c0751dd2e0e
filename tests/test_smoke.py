"""Smoke tests for the health endpoints."""

from importlib import reload
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:  # pragma: no cover - import-time guard
    sys.path.insert(0, str(ROOT))

import app as app_module  # noqa: E402  (import after path adjustment)
from slack_task_intake import config  # noqa: E402


@pytest.mark.parametrize("path", ["/healthz", "/health"])
def test_health_endpoint_returns_ok(app_env, path):
    reload(app_module)
    flask_app = app_module.create_app()

    with flask_app.test_client() as client:
        response = client.get(path)
        assert response.status_code == 200
        data = response.get_json()
        assert data["ok"] is True
        assert data["config"] == "valid"
        assert data["clients"] == 2
        assert "version" in data


def test_health_endpoint_reports_invalid_config(app_env, monkeypatch):
    reload(app_module)
    flask_app = app_module.create_app()

    monkeypatch.delenv("CLOCKIFY_API_KEY")
    config.get_settings.cache_clear()

    with flask_app.test_client() as client:
        response = client.get("/healthz")
        data = response.get_json()
        assert response.status_code == 503
        assert data["ok"] is False
        assert data["config"] == "invalid"
        assert "CLOCKIFY_API_KEY" in data["config_error"]


def test_create_app_fails_fast_without_configuration(app_env, monkeypatch):
    monkeypatch.delenv("SLACK_SIGNING_SECRET")
    config.get_settings.cache_clear()

    with pytest.raises(RuntimeError, match="SLACK_SIGNING_SECRET"):
        app_module.create_app()
