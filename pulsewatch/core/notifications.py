"""Notifier dispatching incident alerts and recoveries to external channels."""

from typing import Any, Dict, List, Optional, Union

import aiohttp
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulsewatch.config import NotificationsConfig
from pulsewatch.core.circuit_breaker import CircuitBreaker, CircuitBreakerError
from pulsewatch.core.metrics import MetricsCollector
from pulsewatch.models.enums import IncidentSeverity, NotificationKind
from pulsewatch.models.incident import Incident
from pulsewatch.models.notification_log import NotificationLog
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.retry import RetryError, retry_with_backoff

logger = get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"

ALERT_TITLES = {
    IncidentSeverity.CRITICAL: "🚨 Critical Alert",
    IncidentSeverity.MAJOR: "⚠️ Major Issue",
    IncidentSeverity.MINOR: "📢 Minor Issue",
}
RECOVERY_TITLE = "✅ Recovered"

LOG_TYPES = {
    NotificationKind.ALERT: "incident_alert",
    NotificationKind.RECOVERY: "recovery",
}


class NotificationMessage:
    """Channel-independent content of one notification."""

    def __init__(
        self,
        kind: NotificationKind,
        title: str,
        subtitle: str,
        body: str,
        incident: Incident,
    ):
        self.kind = kind
        self.title = title
        self.subtitle = subtitle
        self.body = body
        self.incident = incident

    @classmethod
    def build(cls, incident: Incident, endpoint_name: str, kind: NotificationKind) -> "NotificationMessage":
        if kind == NotificationKind.RECOVERY:
            return cls(kind, RECOVERY_TITLE, endpoint_name,
                       f"{incident.title} has been resolved", incident)
        title = ALERT_TITLES[IncidentSeverity(incident.severity)]
        return cls(kind, title, endpoint_name, incident.title, incident)

    @property
    def text(self) -> str:
        return f"{self.title}\n{self.subtitle}\n{self.body}"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event": LOG_TYPES[self.kind],
            "title": self.title,
            "subtitle": self.subtitle,
            "body": self.body,
            "incident": self.incident.to_dict(),
        }


class NotificationResult:
    """Outcome of :meth:`NotificationManager.send`."""

    def __init__(
        self,
        success: bool,
        error: Optional[str] = None,
        channels: Optional[Dict[str, bool]] = None
    ):
        self.success = success
        self.error = error
        self.channels = channels or {}

    def __repr__(self) -> str:
        return f"<NotificationResult(success={self.success}, error={self.error!r})>"


class NotificationManager:
    """
    Sends incident notifications through webhook and Telegram channels.

    Each channel is wrapped in its own circuit breaker and retried with
    exponential backoff. :meth:`send` never raises; every channel attempt is
    recorded in ``notification_logs`` when a session factory is supplied.

    Example:
        ```python
        notifier = NotificationManager(config.notifications, session_factory)
        result = await notifier.send(incident, endpoint.name, NotificationKind.ALERT)
        if not result.success:
            logger.warning("Alert not delivered", extra={"error": result.error})
        ```
    """

    def __init__(
        self,
        config: NotificationsConfig,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        metrics: Optional[MetricsCollector] = None,
        telegram_api_url: str = TELEGRAM_API_URL,
    ):
        """
        Initialize notification manager.

        Args:
            config: Notifications configuration
            session_factory: Factory for sessions used to write notification logs
            metrics: Metrics collector for delivery counters
            telegram_api_url: Base URL of the Telegram Bot API
        """
        self.config = config
        self.session_factory = session_factory
        self.metrics = metrics
        self.telegram_api_url = telegram_api_url.rstrip("/")
        self.session: Optional[aiohttp.ClientSession] = None
        self.breakers = {
            "webhook": CircuitBreaker("notification_webhook"),
            "telegram": CircuitBreaker("notification_telegram"),
        }

        logger.info(
            "Notification manager initialized",
            extra={
                "webhook_enabled": config.webhook.enabled,
                "telegram_enabled": config.telegram.enabled,
                "send_recovery": config.send_recovery
            }
        )

    def enabled_channels(self) -> List[str]:
        channels = []
        if self.config.webhook.enabled:
            channels.append("webhook")
        if self.config.telegram.enabled:
            channels.append("telegram")
        return channels

    async def send(
        self,
        incident: Incident,
        endpoint_name: str,
        kind: Union[NotificationKind, str]
    ) -> NotificationResult:
        """
        Dispatch an alert or recovery notification for an incident.

        Args:
            incident: Incident the notification is about
            endpoint_name: Display name of the affected endpoint
            kind: ``alert`` or ``recovery``

        Returns:
            NotificationResult: Success if at least one channel delivered
        """
        kind = NotificationKind(kind)

        if not self.config.enabled:
            return NotificationResult(False, "Notifications disabled")
        if kind == NotificationKind.RECOVERY and not self.config.send_recovery:
            return NotificationResult(False, "Recovery notifications disabled")

        channels = self.enabled_channels()
        if not channels:
            return NotificationResult(False, "No notification channels enabled")

        message = NotificationMessage.build(incident, endpoint_name, kind)
        outcomes: Dict[str, bool] = {}
        errors: List[str] = []

        for channel in channels:
            error = await self._deliver(channel, message)
            outcomes[channel] = error is None
            if error is not None:
                errors.append(f"{channel}: {error}")
            await self._log(message, channel, error)
            if self.metrics:
                self.metrics.record_notification(channel, error is None)

        success = any(outcomes.values())
        return NotificationResult(success, None if success else "; ".join(errors), outcomes)

    async def _deliver(self, channel: str, message: NotificationMessage) -> Optional[str]:
        """Deliver through one channel; returns an error message or None."""
        if channel == "webhook":
            func = self.send_webhook
            settings = self.config.webhook
        else:
            func = self.send_telegram
            settings = self.config.telegram

        try:
            await self.breakers[channel].call(
                retry_with_backoff,
                func,
                message,
                max_attempts=settings.retry_count,
                base_delay=settings.retry_delay,
                exceptions=(aiohttp.ClientError, TimeoutError),
            )
        except CircuitBreakerError as e:
            logger.warning(
                "Notification skipped, circuit open",
                extra={"channel": channel, "incident_id": message.incident.id}
            )
            return str(e)
        except RetryError as e:
            return str(e.__cause__ or e)
        except Exception as e:
            logger.exception(
                "Unexpected notification failure",
                extra={"channel": channel, "incident_id": message.incident.id}
            )
            return str(e)

        logger.info(
            "Notification sent",
            extra={
                "channel": channel,
                "incident_id": message.incident.id,
                "kind": message.kind.value
            }
        )
        return None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        return self.session

    async def send_webhook(self, message: NotificationMessage) -> None:
        """POST the notification payload to the configured webhook."""
        session = await self._get_session()
        async with session.request(
            method=self.config.webhook.method,
            url=self.config.webhook.url,
            json=message.to_payload(),
            headers=self.config.webhook.headers,
            timeout=aiohttp.ClientTimeout(total=self.config.webhook.timeout),
        ) as response:
            response.raise_for_status()

    async def send_telegram(self, message: NotificationMessage) -> None:
        """Send the notification text through the Telegram Bot API."""
        telegram = self.config.telegram
        session = await self._get_session()
        url = f"{self.telegram_api_url}/bot{telegram.bot_token}/sendMessage"
        async with session.post(
            url,
            json={
                "chat_id": telegram.chat_id,
                "text": message.text,
                "parse_mode": telegram.parse_mode,
            },
            timeout=aiohttp.ClientTimeout(total=telegram.timeout),
        ) as response:
            response.raise_for_status()

    async def _log(self, message: NotificationMessage, channel: str, error: Optional[str]) -> None:
        if self.session_factory is None:
            return
        try:
            async with self.session_factory() as db:
                db.add(NotificationLog(
                    endpoint_id=message.incident.endpoint_id,
                    incident_id=message.incident.id,
                    notification_type=LOG_TYPES[message.kind],
                    channel=channel,
                    status="sent" if error is None else "failed",
                    message=message.text,
                    error_message=error,
                ))
                await db.commit()
        except Exception as e:
            logger.error(
                "Failed to write notification log",
                extra={"channel": channel, "incident_id": message.incident.id, "error": str(e)}
            )

    def get_circuit_states(self) -> Dict[str, Dict[str, Any]]:
        return {name: breaker.get_state() for name, breaker in self.breakers.items()}

    async def close(self) -> None:
        if self.session is not None:
            await self.session.close()
            self.session = None
