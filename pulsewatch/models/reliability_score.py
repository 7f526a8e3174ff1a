"""ReliabilityScoreSnapshot model - persisted score history."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String

from pulsewatch.database.base import Base
from pulsewatch.models.endpoint import new_id
from pulsewatch.utils.timeutils import utcnow


class ReliabilityScoreSnapshot(Base):
    """
    One immutable reliability score computation.

    Every calculation appends a row; trend detection compares against the
    snapshot from roughly a day earlier.
    """

    __tablename__ = "reliability_scores"
    __table_args__ = (
        Index("ix_reliability_scores_endpoint_calculated", "endpoint_id", "calculated_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    endpoint_id = Column(
        String(36),
        ForeignKey("endpoints.id", ondelete="CASCADE"),
        nullable=False,
    )
    score = Column(Integer, nullable=False)
    uptime_score = Column(Float, nullable=False)
    latency_score = Column(Float, nullable=False)
    error_rate_score = Column(Float, nullable=False)
    incident_score = Column(Float, nullable=False)
    trend = Column(String(20), nullable=False, default="stable")
    calculated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ReliabilityScoreSnapshot(endpoint_id={self.endpoint_id}, "
            f"score={self.score}, trend={self.trend})>"
        )
