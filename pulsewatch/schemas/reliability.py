"""Pydantic schemas for reliability scores."""

from datetime import datetime

from pydantic import BaseModel, Field

from pulsewatch.models.enums import Trend


class ScoreComponents(BaseModel):
    """Component scores, each within 0-100."""
    uptime: float = Field(ge=0, le=100)
    latency: float = Field(ge=0, le=100)
    error_rate: float = Field(ge=0, le=100)
    incident_history: float = Field(ge=0, le=100)


class ReliabilityScore(BaseModel):
    """Result of one reliability score calculation."""
    endpoint_id: str
    score: int = Field(ge=0, le=100)
    components: ScoreComponents
    trend: Trend
    calculated_at: datetime
