"""Baseline calculator for per-endpoint latency statistics."""

from datetime import timedelta
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.core.statistics import mean, percentile, population_std_deviation
from pulsewatch.models.baseline import Baseline
from pulsewatch.models.endpoint import new_id
from pulsewatch.repositories.baselines import BaselineRepository
from pulsewatch.repositories.endpoints import EndpointRepository
from pulsewatch.repositories.probe_results import ProbeResultRepository
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.timeutils import utcnow

logger = get_logger(__name__)

DEFAULT_WINDOW_HOURS = 168
MIN_SAMPLES = 10


class BaselineCalculator:
    """
    Computes latency baselines from successful probes in a trailing window.

    A baseline needs at least ``MIN_SAMPLES`` successful probes. Below that
    the endpoint is still warming up: nothing is written and any previous
    baseline stays in place.
    """

    def __init__(self, db: AsyncSession, min_samples: int = MIN_SAMPLES):
        """
        Initialize baseline calculator.

        Args:
            db: Database session
            min_samples: Minimum successful samples required
        """
        self.db = db
        self.min_samples = min_samples
        self.probe_results = ProbeResultRepository(db)
        self.baselines = BaselineRepository(db)

    async def calculate_baseline(
        self,
        endpoint_id: str,
        window_hours: int = DEFAULT_WINDOW_HOURS
    ) -> Optional[Baseline]:
        """
        Recompute and store the baseline for an endpoint.

        Args:
            endpoint_id: Endpoint to compute
            window_hours: Size of the trailing window

        Returns:
            Optional[Baseline]: The stored baseline, or None when there are
            too few samples

        Example:
            ```python
            calculator = BaselineCalculator(db)
            baseline = await calculator.calculate_baseline(endpoint.id)
            if baseline:
                print(baseline.p95_latency_ms)
            ```
        """
        since = utcnow() - timedelta(hours=window_hours)
        latencies = await self.probe_results.successful_latencies(endpoint_id, since)

        if len(latencies) < self.min_samples:
            logger.info(
                "Not enough samples for baseline",
                extra={
                    "endpoint_id": endpoint_id,
                    "samples": len(latencies),
                    "required": self.min_samples
                }
            )
            return None

        baseline = Baseline(
            id=new_id(),
            endpoint_id=endpoint_id,
            avg_latency_ms=mean(latencies),
            p50_latency_ms=percentile(latencies, 50),
            p95_latency_ms=percentile(latencies, 95),
            p99_latency_ms=percentile(latencies, 99),
            std_deviation=population_std_deviation(latencies),
            sample_count=len(latencies),
            calculated_at=utcnow(),
        )
        stored = await self.baselines.upsert(baseline)
        await self.db.commit()

        logger.info(
            "Baseline updated",
            extra={
                "endpoint_id": endpoint_id,
                "avg_latency_ms": stored.avg_latency_ms,
                "p95_latency_ms": stored.p95_latency_ms,
                "sample_count": stored.sample_count
            }
        )
        return stored

    async def recalculate_all(self, window_hours: int = DEFAULT_WINDOW_HOURS) -> Dict[str, int]:
        """
        Recalculate baselines for every active endpoint.

        Returns:
            Dict[str, int]: ``updated`` and ``skipped`` counts; endpoints that
            fail are logged and counted as skipped
        """
        endpoints = await EndpointRepository(self.db).list_active()
        endpoint_ids = [endpoint.id for endpoint in endpoints]
        updated = 0
        skipped = 0

        for endpoint_id in endpoint_ids:
            try:
                baseline = await self.calculate_baseline(endpoint_id, window_hours)
            except Exception as e:
                await self.db.rollback()
                logger.exception(
                    "Baseline calculation failed",
                    extra={"endpoint_id": endpoint_id, "error": str(e)}
                )
                baseline = None

            if baseline is None:
                skipped += 1
            else:
                updated += 1

        logger.info(
            "Baseline recalculation finished",
            extra={"updated": updated, "skipped": skipped}
        )
        return {"updated": updated, "skipped": skipped}
