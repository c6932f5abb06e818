"""
P24 Client - Rate Limited Retry Transport.

============================================================
PURPOSE
============================================================
Sends signed request documents over HTTP and returns raw response
bodies.

- One limiter token is taken before the first attempt
- Connection errors, timeouts, 429 and 5xx (except 501) are retried
- Backoff between attempts is booked through the same limiter, so
  retries consume the shared request budget
- Every error carries URL, method, request body, status and response
  body where known

The transport knows nothing about XML, signatures or bank errors.

============================================================
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Mapping, Optional

import aiohttp

from p24_client.config import ClientConfig
from p24_client.context import RequestContext
from p24_client.exceptions import P24Error, TransportError, TransportTimeoutError
from p24_client.logging_utils import body_hash
from p24_client.rate_limiter import TokenBucket


logger = logging.getLogger(__name__)


XML_CONTENT_TYPE = "application/xml; charset=utf-8"

RETRY_AFTER_STATUSES = frozenset({429, 503})


def is_retryable_status(status: int) -> bool:
    """429 and every 5xx except 501 Not Implemented."""
    return status == 429 or (status >= 500 and status != 501)


def _retry_after(headers: Mapping[str, str]) -> Optional[float]:
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return float(seconds) if seconds >= 0 else None


@dataclass(frozen=True)
class HttpRequest:
    """One HTTP exchange to perform."""

    url: str
    body: bytes
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=lambda: {"Content-Type": XML_CONTENT_TYPE})


@dataclass
class _Outcome:
    """Result of a single attempt that may be retried."""

    error: TransportError
    status: Optional[int] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timed_out: bool = False


class RateLimitedRetryTransport:
    """
    HTTP transport with a shared token bucket and bounded retries.

    Usage:
        async with RateLimitedRetryTransport(ClientConfig()) as transport:
            body = await transport.execute(HttpRequest(url, document))
    """

    name = "transport"

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        limiter: Optional[TokenBucket] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._session = session
        self._owns_session = session is None
        self.limiter = limiter or TokenBucket(
            rate=self.config.rate_limit.requests_per_second,
            burst=self.config.rate_limit.burst,
        )

    # ============================================================
    # PUBLIC API
    # ============================================================

    async def execute(self, request: HttpRequest, context: Optional[RequestContext] = None) -> bytes:
        """
        Perform request and return the response body.

        Args:
            request: Request to send
            context: Cancellation signal; background context when None

        Returns:
            Raw body of the first response with status < 300

        Raises:
            TransportError: Non-retryable status or retries exhausted
            TransportTimeoutError: Retries exhausted by timeouts
            RequestCancelledError: Context cancelled or expired
        """
        context = context or RequestContext.background()
        try:
            return await self._execute(request, context)
        except P24Error as e:
            raise e.annotate(
                request_url=request.url,
                method=request.method,
                request_body=request.body,
            )

    async def close(self) -> None:
        """Close the HTTP session if this transport created it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "RateLimitedRetryTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ============================================================
    # RETRY LOOP
    # ============================================================

    async def _execute(self, request: HttpRequest, context: RequestContext) -> bytes:
        retry = self.config.retry
        await context.run(self.limiter.acquire())

        outcome: Optional[_Outcome] = None
        attempts = 0
        for attempt in range(retry.max_retries + 1):
            attempts = attempt + 1
            outcome = None
            try:
                status, body, headers = await context.run(self._send(request))
            except asyncio.TimeoutError as e:
                outcome = _Outcome(
                    error=TransportTimeoutError("request timed out", original_error=e),
                    timed_out=True,
                )
            except aiohttp.ClientError as e:
                outcome = _Outcome(error=TransportError(f"connection error: {e}", original_error=e))
            else:
                if is_retryable_status(status):
                    outcome = _Outcome(
                        error=TransportError(
                            f"unexpected http status code {status}",
                            status_code=status,
                            response_body=body,
                        ),
                        status=status,
                        headers=headers,
                    )
                elif status >= 300:
                    raise TransportError(
                        f"unexpected http status code {status}",
                        status_code=status,
                        response_body=body,
                    )
                else:
                    return body

            if attempt == retry.max_retries:
                break

            wait = self._backoff(attempt, outcome)
            logger.warning(
                f"[{self.name}] {outcome.error.message}, retrying in {wait:.1f}s "
                f"(attempt {attempts}/{retry.max_retries + 1}) {request.method} {request.url}"
            )
            await context.run(self.limiter.acquire(delay=wait))

        error_class = TransportTimeoutError if outcome.timed_out else TransportError
        raise error_class(
            f"giving up after {attempts} attempt(s)",
            status_code=outcome.error.status_code,
            response_body=outcome.error.response_body,
            attempts=attempts,
            original_error=outcome.error,
        )

    def _backoff(self, attempt: int, outcome: _Outcome) -> float:
        if outcome.status in RETRY_AFTER_STATUSES:
            retry_after = _retry_after(outcome.headers)
            if retry_after is not None:
                return retry_after
        return self.config.retry.backoff(attempt)

    # ============================================================
    # HTTP
    # ============================================================

    async def _send(self, request: HttpRequest) -> tuple[int, bytes, Mapping[str, str]]:
        """Single HTTP attempt."""
        session = await self._get_session()

        start_time = time.monotonic()
        async with session.request(
            request.method,
            request.url,
            data=request.body,
            headers=request.headers,
        ) as response:
            body = await response.read()
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.debug(
                f"[{self.name}] {request.method} {request.url} -> {response.status} "
                f"in {latency_ms:.1f}ms (request {body_hash(request.body)}, "
                f"response {body_hash(body)}, {len(body)} bytes)"
            )
            return response.status, body, response.headers

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            timeout = self.config.timeout
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=timeout.total_timeout_seconds,
                    connect=timeout.connect_timeout_seconds,
                ),
            )
            self._owns_session = True
        return self._session

    def __repr__(self) -> str:
        return f"<RateLimitedRetryTransport(limiter={self.limiter!r}, max_retries={self.config.retry.max_retries})>"
