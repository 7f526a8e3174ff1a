"""Prometheus metrics for the monitoring pipeline."""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from pulsewatch.utils.logger import get_logger

logger = get_logger(__name__)

__all__ = ["CONTENT_TYPE_LATEST", "MetricsCollector"]


class MetricsCollector:
    """Prometheus metrics collector for PulseWatch."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            registry: Optional custom registry; a private one is created by default
        """
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        """Setup all Prometheus metrics."""

        # Probe metrics
        self.probes_total = Counter(
            'pulsewatch_probes_total',
            'Total number of probes performed',
            ['outcome'],
            registry=self.registry
        )

        self.probe_latency = Histogram(
            'pulsewatch_probe_latency_seconds',
            'Latency of successful probes in seconds',
            registry=self.registry
        )

        self.probe_round_duration = Histogram(
            'pulsewatch_probe_round_duration_seconds',
            'Duration of a full probe round',
            registry=self.registry
        )

        self.probe_round_errors_total = Counter(
            'pulsewatch_probe_round_errors_total',
            'Endpoints whose processing failed during a probe round',
            registry=self.registry
        )

        self.active_endpoints = Gauge(
            'pulsewatch_active_endpoints',
            'Number of endpoints probed in the last round',
            registry=self.registry
        )

        # Incident metrics
        self.incidents_opened_total = Counter(
            'pulsewatch_incidents_opened_total',
            'Incidents opened by degradation detection',
            ['type', 'severity'],
            registry=self.registry
        )

        self.incidents_resolved_total = Counter(
            'pulsewatch_incidents_resolved_total',
            'Incidents resolved by auto-recovery',
            registry=self.registry
        )

        # Scoring metrics
        self.reliability_score = Gauge(
            'pulsewatch_reliability_score',
            'Latest reliability score per endpoint',
            ['endpoint_id'],
            registry=self.registry
        )

        # Notification metrics
        self.notifications_total = Counter(
            'pulsewatch_notifications_total',
            'Notification deliveries per channel',
            ['channel', 'status'],
            registry=self.registry
        )

        # Scheduler metrics
        self.scheduler_jobs_total = Counter(
            'pulsewatch_scheduler_jobs_total',
            'Total scheduled job executions',
            ['job_type', 'status'],
            registry=self.registry
        )

        self.scheduler_job_duration = Histogram(
            'pulsewatch_scheduler_job_duration_seconds',
            'Scheduled job execution duration',
            ['job_type'],
            registry=self.registry
        )

    def record_probe(self, outcome: str, latency_ms: Optional[float]) -> None:
        self.probes_total.labels(outcome=outcome).inc()
        if latency_ms is not None:
            self.probe_latency.observe(latency_ms / 1000)

    def record_round(self, endpoints: int, errors: int, duration: float) -> None:
        """
        Record the result of one probe round.

        Args:
            endpoints: Number of active endpoints in the round
            errors: Endpoints whose processing failed
            duration: Round duration in seconds
        """
        self.active_endpoints.set(endpoints)
        self.probe_round_duration.observe(duration)
        if errors:
            self.probe_round_errors_total.inc(errors)

    def record_incident_opened(self, incident_type: str, severity: str) -> None:
        self.incidents_opened_total.labels(type=incident_type, severity=severity).inc()

    def record_incident_resolved(self) -> None:
        self.incidents_resolved_total.inc()

    def record_reliability_score(self, endpoint_id: str, score: int) -> None:
        self.reliability_score.labels(endpoint_id=endpoint_id).set(score)

    def record_notification(self, channel: str, success: bool) -> None:
        self.notifications_total.labels(
            channel=channel,
            status="sent" if success else "failed"
        ).inc()

    def record_scheduler_job(self, job_type: str, duration: float, success: bool = True) -> None:
        """
        Record scheduler job metrics.

        Args:
            job_type: Type of scheduled job
            duration: Job execution duration
            success: Whether the job finished without raising
        """
        self.scheduler_jobs_total.labels(
            job_type=job_type,
            status="success" if success else "error"
        ).inc()
        self.scheduler_job_duration.labels(job_type=job_type).observe(duration)

    def generate_metrics(self) -> bytes:
        """
        Generate Prometheus metrics output.

        Returns:
            bytes: Prometheus metrics in text format
        """
        return generate_latest(self.registry)
