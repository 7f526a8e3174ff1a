"""Incident and timeline storage.

Writes that could race with another round or a manual update are single
guarded statements: creation relies on the partial unique index over open
incidents, and status changes are conditional UPDATEs.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.enums import IncidentStatus
from pulsewatch.models.incident import Incident, IncidentTimelineEntry
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.timeutils import utcnow

logger = get_logger(__name__)

RESOLVED = IncidentStatus.RESOLVED.value


class IncidentRepository:
    """
    Repository for incidents and their timeline entries.

    Methods flush but do not commit, except :meth:`insert_if_none_open`
    which must observe the uniqueness check at commit time.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, incident_id: str) -> Optional[Incident]:
        return await self.db.get(Incident, incident_id, populate_existing=True)

    async def get_open(self, endpoint_id: str) -> Optional[Incident]:
        """The endpoint's non-resolved incident, if any."""
        result = await self.db.execute(
            select(Incident)
            .where(Incident.endpoint_id == endpoint_id, Incident.status != RESOLVED)
            .order_by(Incident.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def insert_if_none_open(
        self,
        incident: Incident,
        initial_entry: IncidentTimelineEntry
    ) -> bool:
        """
        Insert an open incident together with its first timeline entry.

        Both rows are committed in one transaction. If another open incident
        exists for the endpoint the unique index rejects the insert, the
        session is rolled back and False is returned.

        Args:
            incident: New incident with status other than resolved
            initial_entry: Timeline entry for the new incident

        Returns:
            bool: True if the incident was created
        """
        self.db.add(incident)
        self.db.add(initial_entry)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "Open incident already exists, insert skipped",
                extra={"endpoint_id": incident.endpoint_id}
            )
            return False
        return True

    async def update_status(
        self,
        incident_id: str,
        expected_status: str,
        new_status: str,
        now: datetime,
    ) -> bool:
        """
        Move an incident from ``expected_status`` to ``new_status``.

        ``resolved_at`` is set only when entering resolved. Returns False if
        the incident's status changed since it was read. Reopening while
        another incident is open raises IntegrityError.
        """
        values = {"status": new_status, "updated_at": now}
        if new_status == RESOLVED:
            values["resolved_at"] = now

        result = await self.db.execute(
            update(Incident)
            .where(Incident.id == incident_id, Incident.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_severity(self, incident_id: str, severity: str, now: datetime) -> bool:
        """Change severity of a non-resolved incident."""
        result = await self.db.execute(
            update(Incident)
            .where(Incident.id == incident_id, Incident.status != RESOLVED)
            .values(severity=severity, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def resolve_open(self, incident_id: str, now: datetime) -> bool:
        """Resolve an incident from any open status."""
        result = await self.db.execute(
            update(Incident)
            .where(Incident.id == incident_id, Incident.status != RESOLVED)
            .values(status=RESOLVED, resolved_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def append_timeline(
        self,
        incident_id: str,
        status: str,
        message: str,
        timestamp: Optional[datetime] = None,
    ) -> IncidentTimelineEntry:
        entry = IncidentTimelineEntry(
            incident_id=incident_id,
            status=status,
            message=message,
            timestamp=timestamp or utcnow(),
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_timeline(self, incident_id: str) -> List[IncidentTimelineEntry]:
        result = await self.db.execute(
            select(IncidentTimelineEntry)
            .where(IncidentTimelineEntry.incident_id == incident_id)
            .order_by(IncidentTimelineEntry.timestamp.asc())
        )
        return list(result.scalars().all())

    async def reparent_and_delete(self, secondary_id: str, primary_id: str) -> bool:
        """Move the secondary's timeline onto the primary and delete the secondary."""
        await self.db.execute(
            update(IncidentTimelineEntry)
            .where(IncidentTimelineEntry.incident_id == secondary_id)
            .values(incident_id=primary_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            delete(Incident)
            .where(Incident.id == secondary_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_by_endpoint(
        self,
        endpoint_id: str,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Incident]:
        """Incidents for an endpoint, newest first, optionally filtered by status."""
        query = select(Incident).where(Incident.endpoint_id == endpoint_id)
        if status is not None:
            query = query.where(Incident.status == status)
        result = await self.db.execute(
            query.order_by(Incident.started_at.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def list_open_for_endpoint(self, endpoint_id: str) -> List[Incident]:
        result = await self.db.execute(
            select(Incident)
            .where(Incident.endpoint_id == endpoint_id, Incident.status != RESOLVED)
            .order_by(Incident.started_at.desc())
        )
        return list(result.scalars().all())

    async def list_started_since(self, endpoint_id: str, since: datetime) -> List[Incident]:
        result = await self.db.execute(
            select(Incident)
            .where(Incident.endpoint_id == endpoint_id, Incident.started_at >= since)
            .order_by(Incident.started_at.desc())
        )
        return list(result.scalars().all())

    async def count_started_since(self, endpoint_id: str, since: datetime) -> int:
        result = await self.db.execute(
            select(func.count(Incident.id)).where(
                Incident.endpoint_id == endpoint_id,
                Incident.started_at >= since,
            )
        )
        return result.scalar() or 0

    async def latest_started_at(self, endpoint_id: str) -> Optional[datetime]:
        result = await self.db.execute(
            select(func.max(Incident.started_at)).where(Incident.endpoint_id == endpoint_id)
        )
        return result.scalar()
