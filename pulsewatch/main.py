"""FastAPI application entry point for PulseWatch."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from pulsewatch import __version__
from pulsewatch.api import health
from pulsewatch.config import Config, load_config
from pulsewatch.core.cache import HealthCache
from pulsewatch.core.degradation import DegradationThresholds
from pulsewatch.core.metrics import MetricsCollector
from pulsewatch.core.notifications import NotificationManager
from pulsewatch.core.probe_scheduler import ProbeScheduler
from pulsewatch.core.prober import Prober
from pulsewatch.core.scheduler import MonitoringScheduler, set_scheduler
from pulsewatch.database.session import create_engine, create_session_factory, create_tables
from pulsewatch.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def thresholds_from_config(config: Config) -> DegradationThresholds:
    detection = config.detection
    return DegradationThresholds(
        latency_multiplier=detection.latency_multiplier,
        error_rate_threshold=detection.error_rate_threshold,
        consecutive_failures=detection.consecutive_failures,
    )


def _ensure_sqlite_directory(url: str) -> None:
    # sqlite+aiosqlite:///./data/pulsewatch.db -> ./data
    if not url.startswith("sqlite") or ":memory:" in url:
        return
    path = url.split(":///", 1)[-1]
    Path(path).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Lifespan context manager for FastAPI application.

    Builds the database, cache, notifier and schedulers on startup and tears
    them down in reverse order on shutdown.
    """
    config: Config = app.state.config

    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        log_file=config.logging.file,
        console=config.logging.console
    )
    logger.info("Starting PulseWatch", extra={"version": __version__})

    _ensure_sqlite_directory(config.database.url)
    engine = create_engine(config.database)
    await create_tables(engine)
    session_factory = create_session_factory(engine)

    metrics = MetricsCollector()
    app.state.metrics = metrics

    cache = HealthCache.from_config(config.redis)
    app.state.cache = cache
    if config.redis.enabled and not await cache.ping():
        logger.warning(
            "Redis is enabled but not reachable, health summaries use in-memory cache"
        )

    notifier = NotificationManager(config.notifications, session_factory, metrics)
    app.state.notifier = notifier

    monitoring = config.monitoring
    probe_scheduler = ProbeScheduler(
        session_factory,
        Prober(),
        cache,
        notifier=notifier,
        thresholds=thresholds_from_config(config),
        max_concurrent=monitoring.max_concurrent_probes,
        default_timeout=monitoring.default_timeout_seconds,
        region=monitoring.region,
        health_ttl_seconds=monitoring.health_cache_ttl_seconds,
        metrics=metrics,
    )
    scheduler = MonitoringScheduler(config, session_factory, probe_scheduler, metrics)
    set_scheduler(scheduler)
    await scheduler.start()

    logger.info(
        "PulseWatch started",
        extra={
            "database": config.database.type,
            "region": monitoring.region,
            "redis_enabled": config.redis.enabled
        }
    )

    try:
        yield
    finally:
        logger.info("Shutting down PulseWatch")
        await scheduler.stop()
        set_scheduler(None)
        await notifier.close()
        await cache.close()
        await engine.dispose()
        logger.info("PulseWatch shut down")


def create_app(config: Optional[Config] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Service configuration, loaded from file and environment if None

    Returns:
        FastAPI: Application with the operational routes registered
    """
    config = config or load_config()

    app = FastAPI(
        title="PulseWatch",
        description="Active API monitoring with baselines, incident lifecycle and reliability scoring",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    app.include_router(health.router, tags=["Health"])
    if config.prometheus.enabled:
        app.add_api_route(
            config.prometheus.path,
            health.metrics_endpoint,
            methods=["GET"],
            tags=["Metrics"],
            include_in_schema=False,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    app_config: Config = app.state.config
    uvicorn.run(
        "pulsewatch.main:app",
        host=app_config.api.host,
        port=app_config.api.port,
        log_level=app_config.logging.level.lower()
    )
