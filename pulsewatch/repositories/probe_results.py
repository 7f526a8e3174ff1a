"""Probe result storage and windowed queries."""

from datetime import datetime
from typing import List, NamedTuple, Optional

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.enums import ProbeOutcome
from pulsewatch.models.probe_result import ProbeResult


class ProbeStats(NamedTuple):
    """Aggregate counts over a probe window."""
    total: int
    successes: int
    errors: int
    avg_latency_ms: Optional[float]

    @property
    def success_rate(self) -> float:
        return self.successes / self.total if self.total else 0.0


class ProbeResultRepository:
    """
    Repository for immutable probe results.

    Example:
        ```python
        repo = ProbeResultRepository(db)
        await repo.insert(result)
        recent = await repo.query_recent(endpoint.id, 5)
        ```
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, result: ProbeResult) -> ProbeResult:
        self.db.add(result)
        await self.db.flush()
        return result

    async def query_window(
        self,
        endpoint_id: str,
        since: datetime,
        newest_first: bool = False
    ) -> List[ProbeResult]:
        """Probe results at or after ``since``, ordered by timestamp."""
        order = ProbeResult.timestamp.desc() if newest_first else ProbeResult.timestamp.asc()
        result = await self.db.execute(
            select(ProbeResult)
            .where(ProbeResult.endpoint_id == endpoint_id, ProbeResult.timestamp >= since)
            .order_by(order)
        )
        return list(result.scalars().all())

    async def query_recent(self, endpoint_id: str, n: int) -> List[ProbeResult]:
        """The ``n`` most recent probe results regardless of age, newest first."""
        result = await self.db.execute(
            select(ProbeResult)
            .where(ProbeResult.endpoint_id == endpoint_id)
            .order_by(ProbeResult.timestamp.desc())
            .limit(n)
        )
        return list(result.scalars().all())

    async def latest(self, endpoint_id: str) -> Optional[ProbeResult]:
        recent = await self.query_recent(endpoint_id, 1)
        return recent[0] if recent else None

    async def successful_latencies(self, endpoint_id: str, since: datetime) -> List[float]:
        """Latencies of successful probes in the window, ascending."""
        result = await self.db.execute(
            select(ProbeResult.latency_ms)
            .where(
                ProbeResult.endpoint_id == endpoint_id,
                ProbeResult.timestamp >= since,
                ProbeResult.status == ProbeOutcome.SUCCESS.value,
                ProbeResult.latency_ms.is_not(None),
            )
            .order_by(ProbeResult.latency_ms.asc())
        )
        return [float(value) for value in result.scalars().all()]

    async def window_stats(self, endpoint_id: str, since: datetime) -> ProbeStats:
        """
        Count probes in the window by outcome.

        ``errors`` counts only the ``error`` outcome; timeouts are failures
        but not errors. ``avg_latency_ms`` averages successful probes only.
        """
        is_success = ProbeResult.status == ProbeOutcome.SUCCESS.value
        result = await self.db.execute(
            select(
                func.count(ProbeResult.id),
                func.sum(case((is_success, 1), else_=0)),
                func.sum(case((ProbeResult.status == ProbeOutcome.ERROR.value, 1), else_=0)),
                func.avg(case((is_success, ProbeResult.latency_ms))),
            ).where(ProbeResult.endpoint_id == endpoint_id, ProbeResult.timestamp >= since)
        )
        total, successes, errors, avg_latency = result.one()
        return ProbeStats(
            total=total or 0,
            successes=int(successes or 0),
            errors=int(errors or 0),
            avg_latency_ms=float(avg_latency) if avg_latency is not None else None,
        )

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Delete probe results older than ``cutoff``; returns the row count."""
        result = await self.db.execute(
            delete(ProbeResult).where(ProbeResult.timestamp < cutoff)
        )
        return result.rowcount or 0
