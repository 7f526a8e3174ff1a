"""Read access to monitored endpoints."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.endpoint import Endpoint


class EndpointRepository:
    """Endpoints are owned elsewhere; the pipeline only reads them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active(self) -> List[Endpoint]:
        result = await self.db.execute(
            select(Endpoint).where(Endpoint.is_active.is_(True)).order_by(Endpoint.created_at)
        )
        return list(result.scalars().all())

    async def get(self, endpoint_id: str) -> Optional[Endpoint]:
        return await self.db.get(Endpoint, endpoint_id)
