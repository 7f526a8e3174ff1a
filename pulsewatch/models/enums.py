"""Closed enumerations shared by models and core services."""

from enum import Enum


class ProbeOutcome(str, Enum):
    """Classified result of a single probe."""
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class IncidentType(str, Enum):
    LATENCY_SPIKE = "latency_spike"
    HIGH_ERROR_RATE = "high_error_rate"
    TIMEOUT = "timeout"
    COMPLETE_OUTAGE = "complete_outage"


class IncidentSeverity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class IncidentStatus(str, Enum):
    ACTIVE = "active"
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"


class EndpointStatus(str, Enum):
    """Derived health status of an endpoint over the last 24 hours."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"
    UNKNOWN = "unknown"


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class NotificationKind(str, Enum):
    """Event kinds handed to the notifier."""
    ALERT = "alert"
    RECOVERY = "recovery"
