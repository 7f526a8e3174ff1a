"""Baseline storage with one row per endpoint."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.baseline import Baseline


class BaselineRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, endpoint_id: str) -> Optional[Baseline]:
        result = await self.db.execute(
            select(Baseline).where(Baseline.endpoint_id == endpoint_id)
        )
        return result.scalar_one_or_none()

    async def upsert(self, baseline: Baseline) -> Baseline:
        """
        Replace the endpoint's baseline with ``baseline``.

        The existing row is updated in place so its primary key survives;
        no history is kept.
        """
        existing = await self.get(baseline.endpoint_id)
        if existing is None:
            self.db.add(baseline)
            await self.db.flush()
            return baseline

        existing.avg_latency_ms = baseline.avg_latency_ms
        existing.p50_latency_ms = baseline.p50_latency_ms
        existing.p95_latency_ms = baseline.p95_latency_ms
        existing.p99_latency_ms = baseline.p99_latency_ms
        existing.std_deviation = baseline.std_deviation
        existing.sample_count = baseline.sample_count
        existing.calculated_at = baseline.calculated_at
        await self.db.flush()
        return existing
