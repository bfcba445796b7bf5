"""Unit tests for the Prometheus exporter setup."""

from __future__ import annotations

import pytest

from coordinator.config import ObservabilitySettings
from coordinator.infrastructure.observability import metrics


@pytest.fixture
def started_ports(monkeypatch: pytest.MonkeyPatch) -> list[int]:
    ports: list[int] = []
    monkeypatch.setattr(metrics, "start_http_server", ports.append)
    return ports


class TestSetupMetrics:
    def test_exporter_started_on_configured_port(self, started_ports: list[int]) -> None:
        settings = ObservabilitySettings(metrics_enabled=True, metrics_port=9464)

        assert metrics.setup_metrics(settings) is True
        assert started_ports == [9464]

    def test_disabled(self, started_ports: list[int]) -> None:
        settings = ObservabilitySettings(metrics_enabled=False, metrics_port=9464)

        assert metrics.setup_metrics(settings) is False
        assert started_ports == []

    def test_no_port_means_no_exporter(self, started_ports: list[int]) -> None:
        assert metrics.setup_metrics(ObservabilitySettings()) is False
        assert started_ports == []
