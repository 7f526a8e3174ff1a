"""Health summary computation for the endpoint status cache."""

from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.core.cache import DEFAULT_TTL_SECONDS, HealthCache
from pulsewatch.core.statistics import round_half_up
from pulsewatch.models.baseline import Baseline
from pulsewatch.models.enums import EndpointStatus
from pulsewatch.repositories.baselines import BaselineRepository
from pulsewatch.repositories.incidents import IncidentRepository
from pulsewatch.repositories.probe_results import ProbeResultRepository, ProbeStats
from pulsewatch.schemas.health import HealthSummary
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.timeutils import utcnow

logger = get_logger(__name__)

SUMMARY_WINDOW = timedelta(hours=24)
DOWN_BELOW = 0.5
DEGRADED_BELOW = 0.95


def determine_status(stats: ProbeStats, baseline: Optional[Baseline]) -> EndpointStatus:
    """
    Classify endpoint health from 24h probe stats.

    Down below 50% success, degraded below 95% or when average latency
    exceeds the baseline p95, unknown without data.
    """
    if stats.total == 0:
        return EndpointStatus.UNKNOWN
    if stats.success_rate < DOWN_BELOW:
        return EndpointStatus.DOWN
    if stats.success_rate < DEGRADED_BELOW:
        return EndpointStatus.DEGRADED
    if (
        baseline is not None
        and stats.avg_latency_ms is not None
        and stats.avg_latency_ms > baseline.p95_latency_ms
    ):
        return EndpointStatus.DEGRADED
    return EndpointStatus.HEALTHY


class HealthSummaryService:
    """Recomputes an endpoint's HealthSummary and stores it in the cache."""

    def __init__(
        self,
        db: AsyncSession,
        cache: HealthCache,
        ttl_seconds: int = DEFAULT_TTL_SECONDS
    ):
        self.db = db
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.probe_results = ProbeResultRepository(db)
        self.baselines = BaselineRepository(db)
        self.incidents = IncidentRepository(db)

    async def compute(self, endpoint_id: str) -> HealthSummary:
        stats = await self.probe_results.window_stats(endpoint_id, utcnow() - SUMMARY_WINDOW)
        baseline = await self.baselines.get(endpoint_id)
        latest = await self.probe_results.latest(endpoint_id)
        last_incident_at = await self.incidents.latest_started_at(endpoint_id)

        score = round_half_up(stats.success_rate * 100)
        return HealthSummary(
            endpoint_id=endpoint_id,
            status=determine_status(stats, baseline),
            reliability_score=score,
            current_latency_ms=latest.latency_ms if latest else None,
            baseline_latency_ms=baseline.avg_latency_ms if baseline else None,
            error_rate=1 - stats.success_rate if stats.total else 0.0,
            last_probe_at=latest.timestamp if latest else None,
            last_incident_at=last_incident_at,
            uptime_percentage=float(score),
        )

    async def refresh(self, endpoint_id: str) -> HealthSummary:
        """Recompute the summary and cache it."""
        summary = await self.compute(endpoint_id)
        await self.cache.put(endpoint_id, summary, self.ttl_seconds)
        logger.debug(
            "Health summary refreshed",
            extra={"endpoint_id": endpoint_id, "status": summary.status.value}
        )
        return summary

    async def get(self, endpoint_id: str) -> HealthSummary:
        """Cached summary, recomputed on a cache miss."""
        cached = await self.cache.get(endpoint_id)
        if cached is not None:
            return cached
        return await self.refresh(endpoint_id)
