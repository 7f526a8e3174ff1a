"""Periodic job scheduling using APScheduler."""

import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulsewatch.config import Config
from pulsewatch.core.baseline import BaselineCalculator
from pulsewatch.core.metrics import MetricsCollector
from pulsewatch.core.probe_scheduler import ProbeScheduler
from pulsewatch.core.reliability import ReliabilityScorer
from pulsewatch.repositories.probe_results import ProbeResultRepository
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.timeutils import utcnow

logger = get_logger(__name__)

PROBE_ROUND_JOB = "probe_round"
BASELINE_JOB = "baseline_recalculation"
SCORING_JOB = "reliability_scoring"
CLEANUP_JOB = "probe_cleanup"


class MonitoringScheduler:
    """
    Scheduler driving probe rounds and the periodic maintenance jobs.

    Uses APScheduler interval jobs on independent cadences: probe rounds,
    baseline recalculation, reliability scoring and cleanup of old probe
    results. A job never overlaps with a still-running instance of itself.
    """

    def __init__(
        self,
        config: Config,
        session_factory: async_sessionmaker[AsyncSession],
        probe_scheduler: ProbeScheduler,
        metrics: Optional[MetricsCollector] = None
    ):
        """
        Initialize monitoring scheduler.

        Args:
            config: Service configuration
            session_factory: Factory for job database sessions
            probe_scheduler: Probe round executor
            metrics: Metrics collector
        """
        self.config = config
        self.session_factory = session_factory
        self.probe_scheduler = probe_scheduler
        self.metrics = metrics
        self.scheduler = AsyncIOScheduler()

    async def start(self) -> None:
        """Start the prober session and schedule all jobs."""
        logger.info("Starting monitoring scheduler")

        await self.probe_scheduler.prober.start()

        monitoring = self.config.monitoring
        self._add_job(self.run_probe_round, PROBE_ROUND_JOB, monitoring.probe_tick_seconds)
        self._add_job(self.run_baseline_recalculation, BASELINE_JOB, monitoring.baseline_interval_seconds)
        self._add_job(self.run_reliability_scoring, SCORING_JOB, monitoring.scoring_interval_seconds)
        self._add_job(self.run_probe_cleanup, CLEANUP_JOB, monitoring.cleanup_interval)

        self.scheduler.start()

        logger.info(
            "Monitoring scheduler started",
            extra={"jobs": len(self.scheduler.get_jobs())}
        )

    async def stop(self) -> None:
        """Stop the scheduler and close the prober session."""
        logger.info("Stopping monitoring scheduler")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        await self.probe_scheduler.prober.close()
        logger.info("Monitoring scheduler stopped")

    def _add_job(self, func: Callable[[], Awaitable[Any]], job_id: str, seconds: int) -> None:
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            name=job_id.replace("_", " ").capitalize(),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Added scheduled job", extra={"job_id": job_id, "interval": seconds})

    async def _run_job(self, job_type: str, job: Callable[[], Awaitable[Any]]) -> Any:
        """Run a job, recording duration and logging instead of raising."""
        start = time.perf_counter()
        try:
            result = await job()
        except Exception as e:
            logger.exception(
                "Scheduled job failed",
                extra={"job_type": job_type, "error": str(e)}
            )
            if self.metrics:
                self.metrics.record_scheduler_job(job_type, time.perf_counter() - start, success=False)
            return None

        if self.metrics:
            self.metrics.record_scheduler_job(job_type, time.perf_counter() - start)
        return result

    async def run_probe_round(self) -> Optional[Dict[str, int]]:
        return await self._run_job(PROBE_ROUND_JOB, self.probe_scheduler.run_round)

    async def run_baseline_recalculation(self) -> Optional[Dict[str, int]]:
        async def job():
            async with self.session_factory() as db:
                return await BaselineCalculator(db).recalculate_all(
                    self.config.monitoring.baseline_window_hours
                )

        return await self._run_job(BASELINE_JOB, job)

    async def run_reliability_scoring(self) -> Optional[int]:
        async def job():
            async with self.session_factory() as db:
                scores = await ReliabilityScorer(db).calculate_all()
            if self.metrics:
                for score in scores:
                    self.metrics.record_reliability_score(score.endpoint_id, score.score)
            return len(scores)

        return await self._run_job(SCORING_JOB, job)

    async def run_probe_cleanup(self) -> Optional[int]:
        async def job():
            cutoff = utcnow() - timedelta(days=self.config.monitoring.check_history_days)
            async with self.session_factory() as db:
                deleted = await ProbeResultRepository(db).purge_older_than(cutoff)
                await db.commit()
            logger.info("Old probe results purged", extra={"deleted": deleted})
            return deleted

        return await self._run_job(CLEANUP_JOB, job)

    @property
    def last_round(self) -> Optional[Dict[str, int]]:
        return self.probe_scheduler.last_round

    def get_jobs_status(self) -> Dict[str, Dict[str, Any]]:
        """
        Get status of all scheduled jobs.

        Returns:
            dict: Mapping of job id to name, next run time and trigger
        """
        return {
            job.id: {
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        }


# Global scheduler instance
_scheduler: Optional[MonitoringScheduler] = None


def get_scheduler() -> Optional[MonitoringScheduler]:
    """
    Get global scheduler instance.

    Returns:
        MonitoringScheduler: Scheduler instance or None if not initialized
    """
    return _scheduler


def set_scheduler(scheduler: Optional[MonitoringScheduler]) -> None:
    """
    Set global scheduler instance.

    Args:
        scheduler: Scheduler instance to set
    """
    global _scheduler
    _scheduler = scheduler
