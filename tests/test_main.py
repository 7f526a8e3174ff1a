"""Tests for the FastAPI service host."""

import pytest
from fastapi.testclient import TestClient

from pulsewatch.config import Config, DatabaseConfig, LoggingConfig
from pulsewatch.main import create_app, thresholds_from_config


@pytest.fixture
def config(tmp_path):
    return Config(
        database=DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'data' / 'app.db'}"),
        logging=LoggingConfig(level="WARNING", format="text", file="", console=False),
    )


@pytest.mark.integration
class TestServiceHost:

    def test_health_and_metrics(self, config, tmp_path):
        app = create_app(config)

        with TestClient(app) as client:
            health = client.get("/health")
            metrics = client.get("/metrics")

        assert health.status_code == 200
        body = health.json()
        assert body["status"] == "healthy"
        assert body["scheduler"] == "running"
        assert body["cache"] == "connected"
        assert set(body["circuit_breakers"]) == {"webhook", "telegram"}

        assert metrics.status_code == 200
        assert metrics.headers["content-type"].startswith("text/plain")
        assert "pulsewatch_probes_total" in metrics.text

        assert (tmp_path / "data" / "app.db").exists()

    def test_metrics_route_can_be_disabled(self, config):
        config.prometheus.enabled = False
        app = create_app(config)

        with TestClient(app) as client:
            assert client.get("/metrics").status_code == 404

    def test_health_without_running_scheduler(self, config):
        # without entering the client the lifespan never runs
        client = TestClient(create_app(config))
        body = client.get("/health").json()
        assert body["scheduler"] == "stopped"
        assert body["status"] == "degraded"


@pytest.mark.unit
def test_thresholds_from_config():
    config = Config()
    config.detection.latency_multiplier = 3.0

    thresholds = thresholds_from_config(config)

    assert thresholds.latency_multiplier == 3.0
    assert thresholds.error_rate_threshold == 0.10
    assert thresholds.consecutive_failures == 3
