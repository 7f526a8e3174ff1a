"""NotificationLog model - tracks notifier dispatches for audit and debugging."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from pulsewatch.database.base import Base
from pulsewatch.models.endpoint import new_id
from pulsewatch.utils.timeutils import utcnow


class NotificationLog(Base):
    """
    NotificationLog model representing one channel delivery attempt.

    Attributes:
        id: UUID primary key
        endpoint_id: Endpoint the incident belongs to
        incident_id: Incident the notification is about
        notification_type: incident_alert or recovery
        channel: Delivery channel (webhook, telegram)
        status: sent or failed
        message: Notification text
        error_message: Error details if delivery failed
        sent_at: Timestamp of the attempt
    """

    __tablename__ = "notification_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    endpoint_id = Column(
        String(36),
        ForeignKey("endpoints.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    incident_id = Column(
        String(36),
        ForeignKey("incidents.id", ondelete="SET NULL"),
        nullable=True,
    )
    notification_type = Column(String(30), nullable=False)
    channel = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    message = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"<NotificationLog(id={self.id}, endpoint_id={self.endpoint_id}, "
            f"type={self.notification_type}, channel={self.channel}, status={self.status})>"
        )

    def to_dict(self) -> dict:
        """Convert notification log to dictionary."""
        return {
            "id": self.id,
            "endpoint_id": self.endpoint_id,
            "incident_id": self.incident_id,
            "notification_type": self.notification_type,
            "channel": self.channel,
            "status": self.status,
            "message": self.message,
            "error_message": self.error_message,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }
