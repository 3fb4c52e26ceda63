"""Readiness gate for the Jenkins server.

Polls the CLI endpoint until Jenkins answers in a way that means the
installation finished booting. A 403 that names the missing permission counts
as ready: the server is up and enforcing authorization, which is exactly the
state the security bootstrap expects to find.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from ..errors import RetryExhaustedError
from ..shared.logging import get_logger

logger = get_logger(__name__)

READY_PATH = "/cli/"
PERMISSION_HEADER = "X-Required-Permission"


@dataclass
class ProbeResult:
    """Outcome of a single probe."""

    status: int | None = None
    permission_required: bool = False
    error: str | None = None

    @property
    def ready(self) -> bool:
        return is_ready(self)

    def describe(self) -> str:
        if self.error:
            return self.error
        return f"HTTP {self.status}"


def is_ready(probe: ProbeResult) -> bool:
    """Acceptance predicate: 200, or 403 with the required-permission header."""
    if probe.status == 200:
        return True
    return probe.status == 403 and probe.permission_required


@dataclass
class ReadinessResult:
    """Summary of a readiness wait."""

    ready: bool
    status: int | None = None
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None


class ReadinessGate:
    """Poll the CLI endpoint with a bounded retry budget."""

    def __init__(
        self,
        retries: int = 60,
        delay: float = 5.0,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize readiness gate.

        Args:
            retries: Probes after the first one; 0 means a single probe.
            delay: Seconds between probes.
            timeout_seconds: Timeout for each HTTP request.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.retries = retries
        self.delay = delay
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @staticmethod
    def url_for(host: str, port: int) -> str:
        return f"http://{host}:{port}{READY_PATH}"

    async def probe(self, client: httpx.AsyncClient, url: str) -> ProbeResult:
        try:
            response = await client.get(url)
        except httpx.ConnectError:
            return ProbeResult(error="Connection refused")
        except httpx.TimeoutException:
            return ProbeResult(error="Request timeout")
        except httpx.HTTPError as e:
            return ProbeResult(error=str(e) or type(e).__name__)

        return ProbeResult(
            status=response.status_code,
            permission_required=PERMISSION_HEADER in response.headers,
        )

    async def wait_until_ready(
        self,
        url: str,
        on_attempt: Callable[[int, int, ProbeResult], None] | None = None,
    ) -> ReadinessResult:
        """Poll url until ready or the retry budget is spent.

        Args:
            url: Full probe URL (see url_for).
            on_attempt: Optional callback called with (attempt, max_attempts, probe)
                       for progress reporting.

        Returns:
            ReadinessResult; ready is False when the budget ran out.
        """
        start = time.monotonic()
        max_attempts = self.retries + 1
        last: ProbeResult | None = None

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self.transport
        ) as client:
            for attempt in range(1, max_attempts + 1):
                last = await self.probe(client, url)
                logger.debug("readiness probe", url=url, attempt=attempt, result=last.describe())

                if on_attempt:
                    on_attempt(attempt, max_attempts, last)

                if last.ready:
                    return ReadinessResult(
                        ready=True,
                        status=last.status,
                        attempts=attempt,
                        elapsed_seconds=time.monotonic() - start,
                    )

                if attempt < max_attempts:
                    await asyncio.sleep(self.delay)

        return ReadinessResult(
            ready=False,
            status=last.status if last else None,
            attempts=max_attempts,
            elapsed_seconds=time.monotonic() - start,
            error=f"Jenkins not ready after {max_attempts} probes. Last result: "
            f"{last.describe() if last else 'none'}",
        )

    def wait_until_ready_sync(
        self,
        url: str,
        on_attempt: Callable[[int, int, ProbeResult], None] | None = None,
    ) -> ReadinessResult:
        """Synchronous wrapper for wait_until_ready."""
        return asyncio.run(self.wait_until_ready(url, on_attempt))

    def ensure_ready(self, url: str) -> ReadinessResult:
        """Block until ready.

        Raises:
            RetryExhaustedError: if the server never became ready.
        """
        result = self.wait_until_ready_sync(url)
        if not result.ready:
            raise RetryExhaustedError(result.error or "Jenkins not ready", attempts=result.attempts)
        logger.info("jenkins ready", url=url, attempts=result.attempts, status=result.status)
        return result

    async def wait_for_port(self, host: str, port: int) -> bool:
        """Wait until host:port accepts TCP connections."""
        for attempt in range(1, self.retries + 2):
            try:
                _, writer = await asyncio.wait_for(
                    asyncio.open_connection(host, port), self.timeout_seconds
                )
            except (OSError, asyncio.TimeoutError):
                if attempt <= self.retries:
                    await asyncio.sleep(self.delay)
                continue
            writer.close()
            await writer.wait_closed()
            return True
        return False

    def ensure_port_open(self, host: str, port: int) -> None:
        """Block until the port listens.

        Raises:
            RetryExhaustedError: if nothing listens after the retry budget.
        """
        if not asyncio.run(self.wait_for_port(host, port)):
            raise RetryExhaustedError(
                f"Nothing listening on {host}:{port}", attempts=self.retries + 1
            )
