"""Degradation detection over a short trailing probe window."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.core.statistics import round_half_up, round_half_up_to
from pulsewatch.models.endpoint import new_id
from pulsewatch.models.enums import IncidentSeverity, IncidentStatus, IncidentType, ProbeOutcome
from pulsewatch.models.incident import Incident
from pulsewatch.models.probe_result import ProbeResult
from pulsewatch.repositories.baselines import BaselineRepository
from pulsewatch.repositories.incidents import IncidentRepository
from pulsewatch.repositories.probe_results import ProbeResultRepository
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.timeutils import utcnow

logger = get_logger(__name__)

DETECTION_WINDOW = timedelta(minutes=15)


@dataclass(frozen=True)
class DegradationThresholds:
    """Trip thresholds, passed to the detector on every call."""
    latency_multiplier: float = 2.0
    error_rate_threshold: float = 0.10
    consecutive_failures: int = 3


DEFAULT_THRESHOLDS = DegradationThresholds()


@dataclass(frozen=True)
class WindowMetrics:
    """Signals derived from the probes in the detection window."""
    total: int
    error_rate: float
    avg_latency_ms: float
    latency_ratio: float
    consecutive_failures: int
    has_timeouts: bool


TITLE_TEMPLATES = {
    IncidentType.COMPLETE_OUTAGE: "{name} is down",
    IncidentType.TIMEOUT: "{name} experiencing timeouts",
    IncidentType.HIGH_ERROR_RATE: "{name} has high error rate",
    IncidentType.LATENCY_SPIKE: "{name} latency spike detected",
}

DESCRIPTION_TEMPLATES = {
    IncidentType.COMPLETE_OUTAGE: "All requests are failing. Error rate: {error_pct:.1f}%",
    IncidentType.TIMEOUT: "Requests are timing out. Error rate: {error_pct:.1f}%",
    IncidentType.HIGH_ERROR_RATE: "Error rate has increased to {error_pct:.1f}%",
    IncidentType.LATENCY_SPIKE: (
        "Latency increased from {baseline_ms:.0f}ms to {current_ms:.0f}ms "
        "({ratio:.1f}x baseline)"
    ),
}


def compute_window_metrics(
    probes_newest_first: Sequence[ProbeResult],
    baseline_avg_ms: float
) -> WindowMetrics:
    """
    Derive detection signals from a non-empty, newest-first probe window.

    Any outcome other than success is a failure. ``latency_ratio`` is 1 when
    the baseline average is 0.
    """
    total = len(probes_newest_first)
    successes = [p for p in probes_newest_first if p.status == ProbeOutcome.SUCCESS.value]
    failures = total - len(successes)

    latencies = [p.latency_ms for p in successes if p.latency_ms is not None]
    avg_latency = sum(latencies) / len(latencies) if latencies else 0.0
    latency_ratio = avg_latency / baseline_avg_ms if baseline_avg_ms > 0 else 1.0

    consecutive = 0
    for probe in probes_newest_first:
        if probe.status == ProbeOutcome.SUCCESS.value:
            break
        consecutive += 1

    return WindowMetrics(
        total=total,
        error_rate=failures / total if total else 0.0,
        avg_latency_ms=avg_latency,
        latency_ratio=latency_ratio,
        consecutive_failures=consecutive,
        has_timeouts=any(p.status == ProbeOutcome.TIMEOUT.value for p in probes_newest_first),
    )


def is_degraded(metrics: WindowMetrics, thresholds: DegradationThresholds) -> bool:
    return (
        metrics.latency_ratio >= thresholds.latency_multiplier
        or metrics.error_rate >= thresholds.error_rate_threshold
        or metrics.consecutive_failures >= thresholds.consecutive_failures
    )


def determine_incident_type(metrics: WindowMetrics) -> IncidentType:
    if metrics.error_rate >= 0.9:
        return IncidentType.COMPLETE_OUTAGE
    if metrics.has_timeouts and metrics.error_rate > 0.3:
        return IncidentType.TIMEOUT
    if metrics.error_rate > 0.1:
        return IncidentType.HIGH_ERROR_RATE
    return IncidentType.LATENCY_SPIKE


def determine_severity(metrics: WindowMetrics) -> IncidentSeverity:
    if metrics.error_rate >= 0.9 or metrics.consecutive_failures >= 5:
        return IncidentSeverity.CRITICAL
    if metrics.error_rate >= 0.5 or metrics.latency_ratio >= 3:
        return IncidentSeverity.MAJOR
    return IncidentSeverity.MINOR


def render_title(incident_type: IncidentType, endpoint_name: str) -> str:
    return TITLE_TEMPLATES[incident_type].format(name=endpoint_name)


def render_description(
    incident_type: IncidentType,
    metrics: WindowMetrics,
    baseline_avg_ms: float
) -> str:
    return DESCRIPTION_TEMPLATES[incident_type].format(
        error_pct=round_half_up_to(metrics.error_rate * 100, 1),
        baseline_ms=round_half_up(baseline_avg_ms),
        current_ms=round_half_up(metrics.avg_latency_ms),
        ratio=round_half_up_to(metrics.latency_ratio, 1),
    )


class DegradationDetector:
    """
    Evaluates the last 15 minutes of probes against the endpoint's baseline.

    The detector only builds the incident. Persisting it (atomically, with
    its first timeline entry) is done by
    :meth:`IncidentLifecycleManager.open_incident`.

    Example:
        ```python
        detector = DegradationDetector(db)
        incident = await detector.check_for_degradation(endpoint.id, endpoint.name)
        if incident:
            await IncidentLifecycleManager(db).open_incident(incident)
        ```
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.baselines = BaselineRepository(db)
        self.probe_results = ProbeResultRepository(db)
        self.incidents = IncidentRepository(db)

    async def check_for_degradation(
        self,
        endpoint_id: str,
        endpoint_name: str,
        thresholds: DegradationThresholds = DEFAULT_THRESHOLDS
    ) -> Optional[Incident]:
        """
        Build a new incident if the endpoint is degraded and none is open.

        Args:
            endpoint_id: Endpoint to evaluate
            endpoint_name: Name used in the generated title
            thresholds: Trip thresholds for this evaluation

        Returns:
            Optional[Incident]: Unsaved incident in active status, or None
        """
        baseline = await self.baselines.get(endpoint_id)
        if baseline is None:
            return None

        now = utcnow()
        probes = await self.probe_results.query_window(
            endpoint_id, now - DETECTION_WINDOW, newest_first=True
        )
        if not probes:
            return None

        metrics = compute_window_metrics(probes, baseline.avg_latency_ms)
        if not is_degraded(metrics, thresholds):
            return None

        if await self.incidents.get_open(endpoint_id) is not None:
            logger.debug(
                "Degradation detected but an incident is already open",
                extra={"endpoint_id": endpoint_id}
            )
            return None

        incident_type = determine_incident_type(metrics)
        severity = determine_severity(metrics)
        regions = sorted({p.region for p in probes if p.region})

        logger.warning(
            "Degradation detected",
            extra={
                "endpoint_id": endpoint_id,
                "type": incident_type.value,
                "severity": severity.value,
                "error_rate": metrics.error_rate,
                "latency_ratio": metrics.latency_ratio,
                "consecutive_failures": metrics.consecutive_failures
            }
        )

        return Incident(
            id=new_id(),
            endpoint_id=endpoint_id,
            type=incident_type.value,
            severity=severity.value,
            status=IncidentStatus.ACTIVE.value,
            started_at=now,
            resolved_at=None,
            title=render_title(incident_type, endpoint_name),
            description=render_description(incident_type, metrics, baseline.avg_latency_ms),
            affected_regions=regions or None,
            created_at=now,
            updated_at=now,
        )
