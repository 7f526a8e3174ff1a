"""Pydantic schemas for endpoint health and service liveness."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from pulsewatch.models.enums import EndpointStatus


class HealthSummary(BaseModel):
    """Health of one endpoint over the last 24 hours."""
    endpoint_id: str
    status: EndpointStatus
    reliability_score: int
    current_latency_ms: Optional[float] = None
    baseline_latency_ms: Optional[float] = None
    error_rate: float
    last_probe_at: Optional[datetime] = None
    last_incident_at: Optional[datetime] = None
    uptime_percentage: float


class ServiceHealthResponse(BaseModel):
    """Schema for the service liveness response."""
    status: str
    version: str
    timestamp: str
    scheduler: str
    cache: str
    last_round: Optional[Dict[str, int]] = None
    circuit_breakers: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
