"""Database models for PulseWatch."""

from pulsewatch.models.baseline import Baseline
from pulsewatch.models.endpoint import Endpoint, new_id
from pulsewatch.models.enums import (
    EndpointStatus,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    NotificationKind,
    ProbeOutcome,
    Trend,
)
from pulsewatch.models.incident import Incident, IncidentTimelineEntry
from pulsewatch.models.notification_log import NotificationLog
from pulsewatch.models.probe_result import ProbeResult
from pulsewatch.models.reliability_score import ReliabilityScoreSnapshot

__all__ = [
    "Baseline",
    "Endpoint",
    "EndpointStatus",
    "Incident",
    "IncidentSeverity",
    "IncidentStatus",
    "IncidentTimelineEntry",
    "IncidentType",
    "NotificationKind",
    "NotificationLog",
    "ProbeOutcome",
    "ProbeResult",
    "ReliabilityScoreSnapshot",
    "Trend",
    "new_id",
]
