"""Append-only reliability score history."""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.reliability_score import ReliabilityScoreSnapshot


class ReliabilityScoreRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, snapshot: ReliabilityScoreSnapshot) -> ReliabilityScoreSnapshot:
        self.db.add(snapshot)
        await self.db.flush()
        return snapshot

    async def latest_at_or_before(
        self,
        endpoint_id: str,
        cutoff: datetime
    ) -> Optional[ReliabilityScoreSnapshot]:
        """Most recent snapshot calculated no later than ``cutoff``."""
        result = await self.db.execute(
            select(ReliabilityScoreSnapshot)
            .where(
                ReliabilityScoreSnapshot.endpoint_id == endpoint_id,
                ReliabilityScoreSnapshot.calculated_at <= cutoff,
            )
            .order_by(ReliabilityScoreSnapshot.calculated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
