"""ProbeResult model - the outcome of one HTTP probe."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Text

from pulsewatch.database.base import Base
from pulsewatch.models.endpoint import new_id
from pulsewatch.utils.timeutils import utcnow


class ProbeResult(Base):
    """
    ProbeResult model representing a single classified probe.

    Rows are immutable once written.

    Attributes:
        id: UUID primary key
        endpoint_id: Probed endpoint
        timestamp: When the probe started
        status: Outcome (success, error, timeout)
        latency_ms: Time to response headers, present only on success
        status_code: HTTP status, absent on timeout
        error_message: Failure details, absent on success
        region: Region the probe ran from
    """

    __tablename__ = "probe_results"
    __table_args__ = (
        Index("ix_probe_results_endpoint_timestamp", "endpoint_id", "timestamp"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    endpoint_id = Column(
        String(36),
        ForeignKey("endpoints.id", ondelete="CASCADE"),
        nullable=False,
    )
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
    status = Column(String(20), nullable=False)
    latency_ms = Column(Float, nullable=True)
    status_code = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    region = Column(String(50), nullable=False, default="global")

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    def __repr__(self) -> str:
        return (
            f"<ProbeResult(endpoint_id={self.endpoint_id}, status={self.status}, "
            f"status_code={self.status_code}, latency_ms={self.latency_ms})>"
        )

    def to_dict(self) -> dict:
        """Convert probe result to dictionary."""
        return {
            "id": self.id,
            "endpoint_id": self.endpoint_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "status": self.status,
            "latency_ms": self.latency_ms,
            "status_code": self.status_code,
            "error_message": self.error_message,
            "region": self.region,
        }
