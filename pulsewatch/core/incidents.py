"""Incident lifecycle state machine, auto-recovery and merging."""

from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.enums import IncidentSeverity, IncidentStatus, ProbeOutcome
from pulsewatch.models.incident import Incident, IncidentTimelineEntry
from pulsewatch.repositories.incidents import IncidentRepository
from pulsewatch.repositories.probe_results import ProbeResultRepository
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.timeutils import utcnow

logger = get_logger(__name__)

RECOVERY_PROBE_COUNT = 5
DETECTION_MESSAGE = "Incident detected automatically"
RECOVERY_MESSAGE = "Endpoint has recovered. All recent probes successful."

VALID_TRANSITIONS = {
    IncidentStatus.ACTIVE: frozenset({
        IncidentStatus.INVESTIGATING,
        IncidentStatus.IDENTIFIED,
        IncidentStatus.RESOLVED,
    }),
    IncidentStatus.INVESTIGATING: frozenset({
        IncidentStatus.IDENTIFIED,
        IncidentStatus.MONITORING,
        IncidentStatus.RESOLVED,
    }),
    IncidentStatus.IDENTIFIED: frozenset({
        IncidentStatus.MONITORING,
        IncidentStatus.RESOLVED,
    }),
    IncidentStatus.MONITORING: frozenset({
        IncidentStatus.RESOLVED,
        IncidentStatus.ACTIVE,
    }),
    IncidentStatus.RESOLVED: frozenset({
        IncidentStatus.ACTIVE,
    }),
}

StatusLike = Union[IncidentStatus, str]


def is_valid_transition(from_status: StatusLike, to_status: StatusLike) -> bool:
    """Whether the transition table allows moving from one status to another."""
    try:
        source = IncidentStatus(from_status)
        target = IncidentStatus(to_status)
    except ValueError:
        return False
    return target in VALID_TRANSITIONS[source]


class LifecycleResult:
    """Outcome of a lifecycle operation; failures are values, not exceptions."""

    def __init__(
        self,
        success: bool,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
    ):
        """
        Initialize lifecycle result.

        Args:
            success: Whether the operation was applied
            error: Human readable failure message
            error_code: not_found, invalid_status, invalid_severity,
                invalid_transition, not_found_or_resolved, conflict or
                persistence_error
            from_status: Status before the attempted transition
            to_status: Requested status
        """
        self.success = success
        self.error = error
        self.error_code = error_code
        self.from_status = from_status
        self.to_status = to_status

    @classmethod
    def ok(cls, from_status: Optional[str] = None, to_status: Optional[str] = None) -> "LifecycleResult":
        return cls(True, from_status=from_status, to_status=to_status)

    @classmethod
    def failure(cls, error: str, error_code: str, **kwargs) -> "LifecycleResult":
        return cls(False, error=error, error_code=error_code, **kwargs)

    def __repr__(self) -> str:
        return (
            f"<LifecycleResult(success={self.success}, error_code={self.error_code}, "
            f"from_status={self.from_status}, to_status={self.to_status})>"
        )


class IncidentLifecycleManager:
    """
    Governs incident status, severity, auto-recovery and merging.

    Status changes go through :data:`VALID_TRANSITIONS`; only automatic
    recovery may resolve an incident from any open status. Every change
    appends a timeline entry in the same transaction.

    Example:
        ```python
        manager = IncidentLifecycleManager(db)
        result = await manager.update_status(incident.id, "investigating", "Looking into it")
        if not result.success:
            print(result.error_code, result.error)
        ```
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.incidents = IncidentRepository(db)
        self.probe_results = ProbeResultRepository(db)

    async def open_incident(self, incident: Incident) -> bool:
        """
        Persist a detected incident with its initial timeline entry.

        Returns:
            bool: False if another incident is already open for the endpoint
        """
        entry = IncidentTimelineEntry(
            incident_id=incident.id,
            status=IncidentStatus.ACTIVE.value,
            message=DETECTION_MESSAGE,
            timestamp=incident.started_at or utcnow(),
        )
        created = await self.incidents.insert_if_none_open(incident, entry)
        if created:
            logger.warning(
                "Incident opened",
                extra={
                    "incident_id": incident.id,
                    "endpoint_id": incident.endpoint_id,
                    "type": incident.type,
                    "severity": incident.severity
                }
            )
        return created

    async def update_status(
        self,
        incident_id: str,
        new_status: StatusLike,
        message: str
    ) -> LifecycleResult:
        """
        Move an incident to a new status along an allowed edge.

        ``resolved_at`` is set only when entering resolved; reopening keeps
        the previous value.

        Args:
            incident_id: Incident to update
            new_status: Target status
            message: Timeline message

        Returns:
            LifecycleResult: Success, or a failure with ``error_code``
        """
        try:
            target = IncidentStatus(new_status)
        except ValueError:
            return LifecycleResult.failure(f"Unknown status: {new_status}", "invalid_status")

        incident = await self.incidents.get(incident_id)
        if incident is None:
            return LifecycleResult.failure("Incident not found", "not_found")

        current = incident.status
        if not is_valid_transition(current, target):
            return LifecycleResult.failure(
                f"Invalid transition from {current} to {target.value}",
                "invalid_transition",
                from_status=current,
                to_status=target.value,
            )

        now = utcnow()
        try:
            changed = await self.incidents.update_status(incident_id, current, target.value, now)
            if not changed:
                await self.db.rollback()
                return LifecycleResult.failure(
                    "Incident status changed concurrently",
                    "conflict",
                    from_status=current,
                    to_status=target.value,
                )
            await self.incidents.append_timeline(incident_id, target.value, message, now)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return LifecycleResult.failure(
                "Another incident is already open for this endpoint",
                "conflict",
                from_status=current,
                to_status=target.value,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(
                "Failed to update incident status",
                extra={"incident_id": incident_id, "to_status": target.value, "error": str(e)}
            )
            return LifecycleResult.failure(
                "Incident update could not be saved",
                "persistence_error",
                from_status=current,
                to_status=target.value,
            )

        logger.info(
            "Incident status updated",
            extra={"incident_id": incident_id, "from_status": current, "to_status": target.value}
        )
        return LifecycleResult.ok(from_status=current, to_status=target.value)

    async def update_severity(
        self,
        incident_id: str,
        new_severity: Union[IncidentSeverity, str],
        reason: str
    ) -> LifecycleResult:
        """Change the severity of an open incident."""
        try:
            severity = IncidentSeverity(new_severity)
        except ValueError:
            return LifecycleResult.failure(f"Unknown severity: {new_severity}", "invalid_severity")

        now = utcnow()
        try:
            if not await self.incidents.update_severity(incident_id, severity.value, now):
                await self.db.rollback()
                return LifecycleResult.failure(
                    "Incident not found or already resolved",
                    "not_found_or_resolved",
                )

            await self.incidents.append_timeline(
                incident_id,
                IncidentStatus.IDENTIFIED.value,
                f"Severity updated to {severity.value}: {reason}",
                now,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(
                "Failed to update incident severity",
                extra={"incident_id": incident_id, "severity": severity.value, "error": str(e)}
            )
            return LifecycleResult.failure("Incident update could not be saved", "persistence_error")

        logger.info(
            "Incident severity updated",
            extra={"incident_id": incident_id, "severity": severity.value}
        )
        return LifecycleResult.ok()

    async def resolve_if_recovered(self, endpoint_id: str) -> Optional[Incident]:
        """
        Resolve the endpoint's open incident if its last probes all succeeded.

        Looks at the ``RECOVERY_PROBE_COUNT`` most recent probes regardless of
        age. Resolution bypasses the transition table.

        Returns:
            Optional[Incident]: The resolved incident, or None
        """
        incident = await self.incidents.get_open(endpoint_id)
        if incident is None:
            return None

        recent = await self.probe_results.query_recent(endpoint_id, RECOVERY_PROBE_COUNT)
        if len(recent) < RECOVERY_PROBE_COUNT:
            return None
        if not all(probe.status == ProbeOutcome.SUCCESS.value for probe in recent):
            return None

        now = utcnow()
        if not await self.incidents.resolve_open(incident.id, now):
            await self.db.rollback()
            return None

        await self.incidents.append_timeline(
            incident.id, IncidentStatus.RESOLVED.value, RECOVERY_MESSAGE, now
        )
        await self.db.commit()
        await self.db.refresh(incident)

        logger.info(
            "Incident auto-resolved",
            extra={"incident_id": incident.id, "endpoint_id": endpoint_id}
        )
        return incident

    async def check_for_recovery(self, endpoint_id: str) -> bool:
        """True if an open incident was resolved by this call."""
        return await self.resolve_if_recovered(endpoint_id) is not None

    async def merge_incidents(self, primary_id: str, secondary_ids: Iterable[str]) -> LifecycleResult:
        """
        Fold secondary incidents into a primary one.

        Each secondary's timeline is moved to the primary and the secondary
        is deleted in its own transaction. A failing secondary is logged and
        skipped. One note with the merged count is appended to the primary.
        """
        primary = await self.incidents.get(primary_id)
        if primary is None:
            return LifecycleResult.failure("Incident not found", "not_found")

        merged = 0
        for secondary_id in secondary_ids:
            if secondary_id == primary_id:
                continue
            try:
                if await self.incidents.reparent_and_delete(secondary_id, primary_id):
                    await self.db.commit()
                    merged += 1
                else:
                    await self.db.rollback()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.exception(
                    "Failed to merge incident",
                    extra={"primary_id": primary_id, "secondary_id": secondary_id, "error": str(e)}
                )

        try:
            await self.incidents.append_timeline(
                primary_id,
                IncidentStatus.IDENTIFIED.value,
                f"Merged {merged} related incident(s)",
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(
                "Failed to record merge on primary incident",
                extra={"primary_id": primary_id, "merged": merged, "error": str(e)}
            )
            return LifecycleResult.failure("Merge note could not be saved", "persistence_error")

        logger.info(
            "Incidents merged",
            extra={"primary_id": primary_id, "merged": merged}
        )
        return LifecycleResult.ok()

    async def get_incident_with_timeline(self, incident_id: str) -> Optional[Dict[str, Any]]:
        """Incident plus its ordered timeline, or None if it doesn't exist."""
        incident = await self.incidents.get(incident_id)
        if incident is None:
            return None
        timeline = await self.incidents.list_timeline(incident_id)
        return {"incident": incident, "timeline": timeline}

    async def list_open_for_endpoint(self, endpoint_id: str) -> List[Incident]:
        return await self.incidents.list_open_for_endpoint(endpoint_id)

    async def list_incidents(
        self,
        endpoint_id: str,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Incident]:
        return await self.incidents.list_by_endpoint(endpoint_id, status, limit, offset)

    async def get_incident_stats(self, endpoint_id: str, days_back: int = 30) -> Dict[str, Any]:
        """
        Summarize incidents started in the last ``days_back`` days.

        Returns:
            Dict[str, Any]: total, active, resolved, by_severity and
            avg_resolution_time_ms over every incident with a resolved_at,
            reopened ones included (None when there is none)
        """
        since = utcnow() - timedelta(days=days_back)
        incidents = await self.incidents.list_started_since(endpoint_id, since)

        resolved = [i for i in incidents if i.status == IncidentStatus.RESOLVED.value]
        by_severity = {severity.value: 0 for severity in IncidentSeverity}
        for incident in incidents:
            by_severity[incident.severity] = by_severity.get(incident.severity, 0) + 1

        durations = [
            (i.resolved_at - i.started_at).total_seconds() * 1000
            for i in incidents
            if i.resolved_at is not None and i.started_at is not None
        ]

        return {
            "total": len(incidents),
            "active": len(incidents) - len(resolved),
            "resolved": len(resolved),
            "by_severity": by_severity,
            "avg_resolution_time_ms": round(sum(durations) / len(durations)) if durations else None,
        }
