"""HTTP prober that turns one request into a classified ProbeResult."""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from pulsewatch.models.endpoint import DEFAULT_EXPECTED_STATUS_CODES, Endpoint, new_id
from pulsewatch.models.enums import ProbeOutcome
from pulsewatch.models.probe_result import ProbeResult
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.timeutils import utcnow

logger = get_logger(__name__)

USER_AGENT = "PulseWatch-Probe/1.0"
TIMEOUT_MESSAGE = "Request timed out"
METHODS_WITHOUT_BODY = ("GET", "HEAD")


@dataclass(frozen=True)
class ProbeConfig:
    """Per-probe settings supplied by the scheduler."""
    timeout: float
    region: str = "global"


def build_headers(endpoint: Endpoint) -> Dict[str, str]:
    """
    Default identifying header merged with the endpoint's custom headers.

    Custom headers win over the default. Headers stored as a JSON string are
    decoded; undecodable values are ignored.
    """
    headers = {"User-Agent": USER_AGENT}
    custom: Any = endpoint.headers
    if isinstance(custom, str):
        try:
            custom = json.loads(custom)
        except ValueError:
            logger.warning(
                "Ignoring malformed endpoint headers",
                extra={"endpoint_id": endpoint.id}
            )
            custom = None
    if isinstance(custom, dict):
        headers.update({str(key): str(value) for key, value in custom.items()})
    return headers


def build_body(endpoint: Endpoint) -> Optional[str]:
    """Request body, attached only for methods other than GET and HEAD."""
    if endpoint.method.upper() in METHODS_WITHOUT_BODY or endpoint.body is None:
        return None
    if isinstance(endpoint.body, str):
        return endpoint.body
    return json.dumps(endpoint.body)


class Prober:
    """
    Executes single bounded HTTP checks.

    :meth:`probe` never raises: timeouts and network failures are returned as
    ``timeout`` and ``error`` results. The deadline is enforced with
    ``asyncio.timeout`` so the request is cancelled and its connection
    released on every exit path.

    Example:
        ```python
        async with Prober() as prober:
            result = await prober.probe(endpoint, ProbeConfig(timeout=10, region="global"))
            print(result.status, result.latency_ms)
        ```
    """

    def __init__(self, max_connections: int = 100):
        """
        Initialize prober.

        Args:
            max_connections: Connection limit of the shared HTTP session
        """
        self.max_connections = max_connections
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Start the shared HTTP session."""
        if self.session is None:
            connector = aiohttp.TCPConnector(limit=self.max_connections)
            # Deadlines are per probe; the session itself never times out
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=None),
            )
            logger.info("Prober HTTP session started")

    async def close(self) -> None:
        """Close the shared HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("Prober HTTP session closed")

    async def probe(self, endpoint: Endpoint, config: ProbeConfig) -> ProbeResult:
        """
        Probe an endpoint once.

        Args:
            endpoint: Endpoint to probe
            config: Deadline in seconds and region label

        Returns:
            ProbeResult: Unsaved result; persisting it is the caller's job
        """
        if self.session is None:
            await self.start()

        expected = endpoint.expected_status_codes or DEFAULT_EXPECTED_STATUS_CODES
        method = endpoint.method.upper()
        started_at = utcnow()
        start = time.perf_counter()

        logger.debug(
            "Starting probe",
            extra={
                "endpoint_id": endpoint.id,
                "url": endpoint.url,
                "method": method,
                "timeout": config.timeout
            }
        )

        try:
            async with asyncio.timeout(config.timeout):
                async with self.session.request(
                    method,
                    endpoint.url,
                    headers=build_headers(endpoint),
                    data=build_body(endpoint),
                    allow_redirects=True,
                ) as response:
                    latency_ms = round((time.perf_counter() - start) * 1000, 2)
                    status_code = response.status

        except TimeoutError:
            logger.warning(
                "Probe timed out",
                extra={"endpoint_id": endpoint.id, "timeout": config.timeout}
            )
            return self._result(endpoint, config, started_at, ProbeOutcome.TIMEOUT,
                                error_message=TIMEOUT_MESSAGE)

        except aiohttp.ClientError as e:
            logger.error(
                "Probe connection error",
                extra={"endpoint_id": endpoint.id, "url": endpoint.url, "error": str(e)}
            )
            return self._result(endpoint, config, started_at, ProbeOutcome.ERROR,
                                error_message=str(e) or e.__class__.__name__)

        except Exception as e:
            logger.exception(
                "Probe unexpected error",
                extra={"endpoint_id": endpoint.id, "url": endpoint.url, "error": str(e)}
            )
            return self._result(endpoint, config, started_at, ProbeOutcome.ERROR,
                                error_message=str(e) or e.__class__.__name__)

        if status_code in expected:
            outcome = ProbeOutcome.SUCCESS
            result = self._result(endpoint, config, started_at, outcome,
                                  latency_ms=latency_ms, status_code=status_code)
        else:
            outcome = ProbeOutcome.ERROR
            result = self._result(endpoint, config, started_at, outcome,
                                  status_code=status_code,
                                  error_message=f"Unexpected status: {status_code}")

        logger.info(
            "Probe completed",
            extra={
                "endpoint_id": endpoint.id,
                "status": outcome.value,
                "status_code": status_code,
                "latency_ms": latency_ms
            }
        )
        return result

    @staticmethod
    def _result(
        endpoint: Endpoint,
        config: ProbeConfig,
        started_at,
        outcome: ProbeOutcome,
        latency_ms: Optional[float] = None,
        status_code: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> ProbeResult:
        return ProbeResult(
            id=new_id(),
            endpoint_id=endpoint.id,
            timestamp=started_at,
            status=outcome.value,
            latency_ms=latency_ms,
            status_code=status_code,
            error_message=error_message,
            region=config.region,
        )
