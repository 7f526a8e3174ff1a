"""Narrow async persistence interfaces used by the monitoring pipeline."""

from pulsewatch.repositories.baselines import BaselineRepository
from pulsewatch.repositories.endpoints import EndpointRepository
from pulsewatch.repositories.incidents import IncidentRepository
from pulsewatch.repositories.probe_results import ProbeResultRepository, ProbeStats
from pulsewatch.repositories.reliability_scores import ReliabilityScoreRepository

__all__ = [
    "BaselineRepository",
    "EndpointRepository",
    "IncidentRepository",
    "ProbeResultRepository",
    "ProbeStats",
    "ReliabilityScoreRepository",
]
