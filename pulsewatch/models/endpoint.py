"""Endpoint model - an HTTP endpoint to probe."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text

from pulsewatch.database.base import Base
from pulsewatch.utils.timeutils import utcnow

DEFAULT_EXPECTED_STATUS_CODES = [200, 201, 204]


def new_id() -> str:
    """Generate a string UUID primary key."""
    return str(uuid.uuid4())


class Endpoint(Base):
    """
    Endpoint model representing an HTTP endpoint to be probed.

    Endpoints are created and edited outside the monitoring pipeline; the
    pipeline only reads them.

    Attributes:
        id: UUID primary key
        name: Human-readable endpoint name
        url: Full URL to probe
        method: HTTP method (GET, POST, PUT, PATCH, DELETE, HEAD)
        headers: Optional custom request headers (JSON object)
        body: Optional request body, sent for methods other than GET/HEAD
        probe_interval_minutes: Desired probe interval
        timeout_seconds: Per-probe deadline in seconds
        expected_status_codes: Status codes counted as success
        is_active: Whether probing is enabled
        created_at: Timestamp when endpoint was created
        updated_at: Timestamp of last update
    """

    __tablename__ = "endpoints"

    id = Column(String(36), primary_key=True, default=new_id)

    name = Column(String(255), nullable=False)
    url = Column(String(2048), nullable=False)
    method = Column(String(10), nullable=False, default="GET")
    headers = Column(JSON, nullable=True)
    body = Column(Text, nullable=True)
    probe_interval_minutes = Column(Integer, nullable=False, default=5)
    timeout_seconds = Column(Integer, nullable=False, default=10)
    expected_status_codes = Column(
        JSON,
        nullable=False,
        default=lambda: list(DEFAULT_EXPECTED_STATUS_CODES)
    )

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Endpoint(id={self.id}, name={self.name}, url={self.url})>"

    def to_dict(self) -> dict:
        """Convert endpoint to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "method": self.method,
            "headers": self.headers,
            "body": self.body,
            "probe_interval_minutes": self.probe_interval_minutes,
            "timeout_seconds": self.timeout_seconds,
            "expected_status_codes": self.expected_status_codes,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
