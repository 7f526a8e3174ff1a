"""Probe round execution: bounded fan-out over active endpoints."""

import asyncio
import time
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulsewatch.core.cache import DEFAULT_TTL_SECONDS, HealthCache
from pulsewatch.core.degradation import DEFAULT_THRESHOLDS, DegradationDetector, DegradationThresholds
from pulsewatch.core.health_summary import HealthSummaryService
from pulsewatch.core.incidents import IncidentLifecycleManager
from pulsewatch.core.metrics import MetricsCollector
from pulsewatch.core.notifications import NotificationManager
from pulsewatch.core.prober import ProbeConfig, Prober
from pulsewatch.models.endpoint import Endpoint
from pulsewatch.models.enums import NotificationKind
from pulsewatch.models.incident import Incident
from pulsewatch.models.probe_result import ProbeResult
from pulsewatch.repositories.endpoints import EndpointRepository
from pulsewatch.repositories.probe_results import ProbeResultRepository
from pulsewatch.utils.logger import get_logger

logger = get_logger(__name__)


class ProbeScheduler:
    """
    Runs one probe round over all active endpoints.

    Probes run concurrently, at most ``max_concurrent`` at a time. Each
    endpoint's result is then processed in its own database session:
    persist the result, refresh the cached health summary, run degradation
    detection and, if no incident was opened, the auto-recovery check. A
    failure while processing one endpoint is logged and counted and never
    affects the others.

    Example:
        ```python
        probe_scheduler = ProbeScheduler(session_factory, Prober(), HealthCache())
        stats = await probe_scheduler.run_round()
        print(stats["probed"], stats["errors"])
        ```
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        prober: Prober,
        cache: HealthCache,
        notifier: Optional[NotificationManager] = None,
        thresholds: DegradationThresholds = DEFAULT_THRESHOLDS,
        max_concurrent: int = 20,
        default_timeout: float = 10.0,
        region: str = "global",
        health_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize probe scheduler.

        Args:
            session_factory: Factory for per-endpoint database sessions
            prober: Prober used for HTTP checks
            cache: Health summary cache
            notifier: Notifier for alerts and recoveries, None to disable
            thresholds: Degradation thresholds passed to every detection
            max_concurrent: Maximum probes in flight at once
            default_timeout: Timeout for endpoints without their own
            region: Region label recorded on probe results
            health_ttl_seconds: TTL of cached health summaries
            metrics: Metrics collector
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.session_factory = session_factory
        self.prober = prober
        self.cache = cache
        self.notifier = notifier
        self.thresholds = thresholds
        self.max_concurrent = max_concurrent
        self.default_timeout = default_timeout
        self.region = region
        self.health_ttl_seconds = health_ttl_seconds
        self.metrics = metrics
        self.last_round: Optional[Dict[str, int]] = None

    def probe_config(self, endpoint: Endpoint) -> ProbeConfig:
        timeout = endpoint.timeout_seconds
        if not timeout or timeout <= 0:
            timeout = self.default_timeout
        return ProbeConfig(timeout=float(timeout), region=self.region)

    async def run_round(self) -> Dict[str, int]:
        """
        Probe and process every active endpoint once.

        Returns:
            Dict[str, int]: ``probed`` endpoints processed successfully and
            ``errors`` endpoints whose processing failed
        """
        start = time.perf_counter()

        async with self.session_factory() as db:
            endpoints = await EndpointRepository(db).list_active()

        semaphore = asyncio.Semaphore(self.max_concurrent)
        outcomes = await asyncio.gather(
            *(self._probe_and_process(endpoint, semaphore) for endpoint in endpoints)
        )

        probed = sum(1 for ok in outcomes if ok)
        errors = len(outcomes) - probed
        duration = time.perf_counter() - start

        if self.metrics:
            self.metrics.record_round(len(endpoints), errors, duration)

        self.last_round = {"probed": probed, "errors": errors}
        logger.info(
            "Probe round finished",
            extra={"endpoints": len(endpoints), "probed": probed, "errors": errors, "duration": duration}
        )
        return self.last_round

    async def _probe_and_process(self, endpoint: Endpoint, semaphore: asyncio.Semaphore) -> bool:
        try:
            async with semaphore:
                result = await self.prober.probe(endpoint, self.probe_config(endpoint))
            await self.process_result(endpoint, result)
        except Exception as e:
            logger.exception(
                "Failed to process endpoint",
                extra={"endpoint_id": endpoint.id, "error": str(e)}
            )
            return False
        return True

    async def process_result(self, endpoint: Endpoint, result: ProbeResult) -> None:
        """Persist a probe result and run all per-probe follow-up work."""
        async with self.session_factory() as db:
            await ProbeResultRepository(db).insert(result)
            await db.commit()

            if self.metrics:
                self.metrics.record_probe(result.status, result.latency_ms)

            await HealthSummaryService(db, self.cache, self.health_ttl_seconds).refresh(endpoint.id)

            lifecycle = IncidentLifecycleManager(db)
            incident = await DegradationDetector(db).check_for_degradation(
                endpoint.id, endpoint.name, self.thresholds
            )
            if incident is not None and await lifecycle.open_incident(incident):
                if self.metrics:
                    self.metrics.record_incident_opened(incident.type, incident.severity)
                await self._notify(incident, endpoint.name, NotificationKind.ALERT)
                return

            resolved = await lifecycle.resolve_if_recovered(endpoint.id)
            if resolved is not None:
                if self.metrics:
                    self.metrics.record_incident_resolved()
                await self._notify(resolved, endpoint.name, NotificationKind.RECOVERY)

    async def _notify(self, incident: Incident, endpoint_name: str, kind: NotificationKind) -> None:
        if self.notifier is None:
            return
        result = await self.notifier.send(incident, endpoint_name, kind)
        if not result.success:
            logger.warning(
                "Notification not delivered",
                extra={"incident_id": incident.id, "kind": kind.value, "error": result.error}
            )
