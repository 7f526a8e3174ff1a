"""Incident and IncidentTimelineEntry models."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, JSON, String, Text, text

from pulsewatch.database.base import Base
from pulsewatch.models.endpoint import new_id
from pulsewatch.utils.timeutils import utcnow

# Partial index predicate: at most one non-resolved incident per endpoint
OPEN_INCIDENT_PREDICATE = text("status != 'resolved'")


class Incident(Base):
    """
    Incident model tracking a detected degradation through resolution.

    Attributes:
        id: UUID primary key
        endpoint_id: Affected endpoint
        type: latency_spike, high_error_rate, timeout or complete_outage
        severity: minor, major or critical
        status: active, investigating, identified, monitoring or resolved
        started_at: Detection time
        resolved_at: Time of the most recent resolution, if any
        title: Short generated summary
        description: Generated details with the measured numbers
        affected_regions: Regions the degradation was observed from
        created_at: Row creation time
        updated_at: Last modification time
    """

    __tablename__ = "incidents"
    __table_args__ = (
        Index(
            "uq_incidents_one_open_per_endpoint",
            "endpoint_id",
            unique=True,
            sqlite_where=OPEN_INCIDENT_PREDICATE,
            postgresql_where=OPEN_INCIDENT_PREDICATE,
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    endpoint_id = Column(
        String(36),
        ForeignKey("endpoints.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(String(30), nullable=False)
    severity = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="active", index=True)
    started_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    resolved_at = Column(DateTime, nullable=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    affected_regions = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def is_open(self) -> bool:
        return self.status != "resolved"

    def __repr__(self) -> str:
        return (
            f"<Incident(id={self.id}, endpoint_id={self.endpoint_id}, type={self.type}, "
            f"severity={self.severity}, status={self.status})>"
        )

    def to_dict(self) -> dict:
        """Convert incident to dictionary."""
        return {
            "id": self.id,
            "endpoint_id": self.endpoint_id,
            "type": self.type,
            "severity": self.severity,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "title": self.title,
            "description": self.description,
            "affected_regions": self.affected_regions,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class IncidentTimelineEntry(Base):
    """Append-only status note attached to an incident."""

    __tablename__ = "incident_timeline"

    id = Column(String(36), primary_key=True, default=new_id)
    incident_id = Column(
        String(36),
        ForeignKey("incidents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<IncidentTimelineEntry(incident_id={self.incident_id}, "
            f"status={self.status}, message={self.message!r})>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "status": self.status,
            "message": self.message,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
