"""Baseline model - latency statistics for one endpoint."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String

from pulsewatch.database.base import Base
from pulsewatch.models.endpoint import new_id
from pulsewatch.utils.timeutils import utcnow


class Baseline(Base):
    """
    Latency baseline computed from recent successful probes.

    There is exactly one row per endpoint; recalculation replaces it.
    """

    __tablename__ = "baselines"

    id = Column(String(36), primary_key=True, default=new_id)
    endpoint_id = Column(
        String(36),
        ForeignKey("endpoints.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    avg_latency_ms = Column(Float, nullable=False)
    p50_latency_ms = Column(Float, nullable=False)
    p95_latency_ms = Column(Float, nullable=False)
    p99_latency_ms = Column(Float, nullable=False)
    std_deviation = Column(Float, nullable=False)
    sample_count = Column(Integer, nullable=False)
    calculated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Baseline(endpoint_id={self.endpoint_id}, avg={self.avg_latency_ms}, "
            f"p95={self.p95_latency_ms}, samples={self.sample_count})>"
        )

    def to_dict(self) -> dict:
        return {
            "endpoint_id": self.endpoint_id,
            "avg_latency_ms": self.avg_latency_ms,
            "p50_latency_ms": self.p50_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "p99_latency_ms": self.p99_latency_ms,
            "std_deviation": self.std_deviation,
            "sample_count": self.sample_count,
            "calculated_at": self.calculated_at.isoformat() if self.calculated_at else None,
        }
