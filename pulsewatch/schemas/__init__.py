"""Pydantic schemas for derived, cacheable values."""

from pulsewatch.schemas.health import HealthSummary, ServiceHealthResponse
from pulsewatch.schemas.reliability import ReliabilityScore, ScoreComponents

__all__ = ["HealthSummary", "ReliabilityScore", "ScoreComponents", "ServiceHealthResponse"]
