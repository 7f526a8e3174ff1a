"""Liveness and Prometheus exposition endpoints."""

from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse

from pulsewatch import __version__
from pulsewatch.core.metrics import CONTENT_TYPE_LATEST
from pulsewatch.core.scheduler import get_scheduler
from pulsewatch.schemas.health import ServiceHealthResponse
from pulsewatch.utils.timeutils import utcnow

router = APIRouter()


@router.get("/health", response_model=ServiceHealthResponse)
async def health_check(request: Request) -> ServiceHealthResponse:
    """
    Health check endpoint.

    Returns scheduler state, counters of the last probe round, cache
    connectivity and the notification circuit breaker states.
    """
    scheduler = get_scheduler()
    state = request.app.state

    cache = getattr(state, "cache", None)
    cache_ok = await cache.ping() if cache is not None else False

    notifier = getattr(state, "notifier", None)
    circuit_breakers = notifier.get_circuit_states() if notifier is not None else {}

    return ServiceHealthResponse(
        status="healthy" if scheduler and cache_ok else "degraded",
        version=__version__,
        timestamp=utcnow().isoformat(),
        scheduler="running" if scheduler else "stopped",
        cache="connected" if cache_ok else "unavailable",
        last_round=scheduler.last_round if scheduler else None,
        circuit_breakers=circuit_breakers,
    )


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus exposition of the service metrics."""
    metrics = getattr(request.app.state, "metrics", None)
    if metrics is None:
        return PlainTextResponse("Metrics not initialized", status_code=503)
    return Response(content=metrics.generate_metrics(), media_type=CONTENT_TYPE_LATEST)
