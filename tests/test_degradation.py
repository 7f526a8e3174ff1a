"""Tests for degradation detection."""

from datetime import timedelta

import pytest

from pulsewatch.core.degradation import (
    DegradationDetector,
    DegradationThresholds,
    WindowMetrics,
    determine_incident_type,
    determine_severity,
    is_degraded,
    render_description,
    render_title,
)
from pulsewatch.models.enums import IncidentSeverity, IncidentType


def metrics(
    error_rate: float = 0.0,
    latency_ratio: float = 1.0,
    consecutive_failures: int = 0,
    has_timeouts: bool = False,
    avg_latency_ms: float = 100.0,
) -> WindowMetrics:
    return WindowMetrics(
        total=10,
        error_rate=error_rate,
        avg_latency_ms=avg_latency_ms,
        latency_ratio=latency_ratio,
        consecutive_failures=consecutive_failures,
        has_timeouts=has_timeouts,
    )


@pytest.mark.unit
class TestClassification:

    def test_degraded_conditions(self):
        thresholds = DegradationThresholds()
        assert not is_degraded(metrics(), thresholds)
        assert is_degraded(metrics(latency_ratio=2.0), thresholds)
        assert is_degraded(metrics(error_rate=0.10), thresholds)
        assert is_degraded(metrics(consecutive_failures=3), thresholds)

    def test_custom_thresholds(self):
        strict = DegradationThresholds(latency_multiplier=1.5, error_rate_threshold=0.05)
        assert is_degraded(metrics(latency_ratio=1.6), strict)
        assert is_degraded(metrics(error_rate=0.06), strict)

    def test_thresholds_are_immutable(self):
        thresholds = DegradationThresholds()
        with pytest.raises(AttributeError):
            thresholds.latency_multiplier = 5.0

    def test_incident_type_table(self):
        assert determine_incident_type(metrics(error_rate=0.9)) == IncidentType.COMPLETE_OUTAGE
        assert determine_incident_type(metrics(error_rate=0.4, has_timeouts=True)) == IncidentType.TIMEOUT
        assert determine_incident_type(metrics(error_rate=0.3, has_timeouts=True)) == IncidentType.HIGH_ERROR_RATE
        assert determine_incident_type(metrics(error_rate=0.4)) == IncidentType.HIGH_ERROR_RATE
        assert determine_incident_type(metrics(error_rate=0.1, latency_ratio=2.5)) == IncidentType.LATENCY_SPIKE

    def test_severity_table(self):
        assert determine_severity(metrics(error_rate=0.9)) == IncidentSeverity.CRITICAL
        assert determine_severity(metrics(consecutive_failures=5)) == IncidentSeverity.CRITICAL
        assert determine_severity(metrics(error_rate=0.5)) == IncidentSeverity.MAJOR
        assert determine_severity(metrics(latency_ratio=3.0)) == IncidentSeverity.MAJOR
        assert determine_severity(metrics(error_rate=0.4, latency_ratio=2.9)) == IncidentSeverity.MINOR

    def test_templates(self):
        assert render_title(IncidentType.COMPLETE_OUTAGE, "Payments API") == "Payments API is down"
        assert render_title(IncidentType.TIMEOUT, "Payments API") == "Payments API experiencing timeouts"

        spike = metrics(latency_ratio=2.5, avg_latency_ms=250.0)
        assert render_description(IncidentType.LATENCY_SPIKE, spike, 100.0) == (
            "Latency increased from 100ms to 250ms (2.5x baseline)"
        )
        assert render_description(IncidentType.HIGH_ERROR_RATE, metrics(error_rate=0.25), 100.0) == (
            "Error rate has increased to 25.0%"
        )

    def test_description_ties_round_up(self):
        assert render_description(IncidentType.TIMEOUT, metrics(error_rate=5 / 16), 100.0) == (
            "Requests are timing out. Error rate: 31.3%"
        )
        spike = metrics(latency_ratio=2.505, avg_latency_ms=250.5)
        assert render_description(IncidentType.LATENCY_SPIKE, spike, 99.5) == (
            "Latency increased from 100ms to 251ms (2.5x baseline)"
        )
        assert render_description(IncidentType.LATENCY_SPIKE, metrics(latency_ratio=2.25), 100.0) == (
            "Latency increased from 100ms to 100ms (2.3x baseline)"
        )


@pytest.mark.unit
class TestDegradationDetector:

    async def test_no_baseline_no_incident(self, db_session, endpoint, add_probes):
        await add_probes(endpoint.id, ["timeout"] * 10)

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident is None

    async def test_no_recent_probes_no_incident(self, db_session, endpoint, add_probes, add_baseline):
        await add_baseline(endpoint.id)
        await add_probes(endpoint.id, ["timeout"] * 10, newest_age=timedelta(minutes=20))

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident is None

    async def test_healthy_window_no_incident(self, db_session, endpoint, add_probes, add_baseline):
        await add_baseline(endpoint.id)
        await add_probes(endpoint.id, ["success"] * 10, latency_ms=110.0)

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident is None

    async def test_timeouts_after_successes(self, db_session, endpoint, add_probes, add_baseline):
        await add_baseline(endpoint.id, avg_latency_ms=100.0, p95_latency_ms=150.0)
        await add_probes(endpoint.id, ["success"] * 6 + ["timeout"] * 4, latency_ms=100.0)

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident is not None
        assert incident.type == "timeout"
        assert incident.severity == "minor"
        assert incident.status == "active"
        assert incident.title == "Payments API experiencing timeouts"
        assert incident.description == "Requests are timing out. Error rate: 40.0%"
        assert incident.resolved_at is None
        assert incident.affected_regions == ["global"]

    async def test_latency_spike(self, db_session, endpoint, add_probes, add_baseline):
        await add_baseline(endpoint.id, avg_latency_ms=100.0)
        await add_probes(endpoint.id, ["success"] * 10, latency_ms=350.0)

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident.type == "latency_spike"
        assert incident.severity == "major"
        assert incident.description == "Latency increased from 100ms to 350ms (3.5x baseline)"

    async def test_complete_outage(self, db_session, endpoint, add_probes, add_baseline):
        await add_baseline(endpoint.id)
        await add_probes(endpoint.id, ["error"] * 10)

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident.type == "complete_outage"
        assert incident.severity == "critical"
        assert incident.description == "All requests are failing. Error rate: 100.0%"

    async def test_description_rounds_ties_up(self, db_session, endpoint, add_probes, add_baseline):
        await add_baseline(endpoint.id, avg_latency_ms=100.0)
        await add_probes(endpoint.id, ["timeout"] * 5 + ["success"] * 11)

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident.type == "timeout"
        assert incident.description == "Requests are timing out. Error rate: 31.3%"

    async def test_latency_description_rounds_ties_up(self, db_session, endpoint, add_probes, add_baseline):
        await add_baseline(endpoint.id, avg_latency_ms=100.0)
        await add_probes(endpoint.id, ["success", "success"], latencies=[250.0, 251.0])

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident.type == "latency_spike"
        assert incident.description == "Latency increased from 100ms to 251ms (2.5x baseline)"

    async def test_open_incident_suppresses_detection(
        self, db_session, endpoint, add_probes, add_baseline, add_incident
    ):
        await add_baseline(endpoint.id)
        await add_probes(endpoint.id, ["error"] * 10)
        await add_incident(endpoint.id, status="investigating")

        incident = await DegradationDetector(db_session).check_for_degradation(
            endpoint.id, endpoint.name
        )

        assert incident is None

    async def test_thresholds_passed_per_call(self, db_session, endpoint, add_probes, add_baseline):
        await add_baseline(endpoint.id, avg_latency_ms=100.0)
        await add_probes(endpoint.id, ["success"] * 10, latency_ms=160.0)
        detector = DegradationDetector(db_session)

        assert await detector.check_for_degradation(endpoint.id, endpoint.name) is None

        incident = await detector.check_for_degradation(
            endpoint.id, endpoint.name, DegradationThresholds(latency_multiplier=1.5)
        )
        assert incident is not None
        assert incident.type == "latency_spike"
        assert incident.severity == "minor"
