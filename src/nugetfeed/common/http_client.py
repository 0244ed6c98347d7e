"""HTTP transport and middleware pipeline used by every feed request.

``AiohttpTransport`` issues the GET, owns an internal timeout combined with
the caller's cancellation token, and maps responses onto the error taxonomy.
``HttpPipeline`` wraps a transport in middleware; the first middleware in the
list is the outermost wrapper (it runs first and finishes last).
"""
from __future__ import annotations

import asyncio
import codecs
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

import aiohttp

from ..constants import Constants
from .cancellation import CancelReason, CancellationToken, LinkedCancellation, OperationAborted, run_cancellable
from .logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from .result import AppError, Result

logger = logging.getLogger(__name__)

RESPONSE_JSON = "json"
RESPONSE_TEXT = "text"

NextCall = Callable[[], Awaitable[Result[Any]]]


class HttpClient(Protocol):
    """Anything that can perform a feed GET and return a ``Result``."""

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        cancellation: Optional[CancellationToken] = None,
        response_type: str = RESPONSE_JSON,
    ) -> Result[Any]:
        ...


class HttpMiddleware(Protocol):
    """A pipeline stage wrapping the rest of the chain."""

    async def execute(self, call_next: NextCall) -> Result[Any]:
        ...


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class AiohttpTransport:
    """Base transport issuing GET requests through an ``aiohttp.ClientSession``.

    The session is created lazily on first use inside the running loop and
    closed by ``stop()`` (or by leaving ``async with``).
    """

    def __init__(
        self,
        timeout: float = Constants.REQUEST_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the transport.

        Args:
            timeout: Internal per-request timeout in seconds.
            session: Optional externally owned session; it is not closed by ``stop()``.
            logger: Injected logger (defaults to the module logger).
        """
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._logger = logger or logging.getLogger(__name__)

    @property
    def timeout(self) -> float:
        return self._timeout

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=100)
            self._session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AiohttpTransport":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        cancellation: Optional[CancellationToken] = None,
        response_type: str = RESPONSE_JSON,
    ) -> Result[Any]:
        """Perform a GET and classify the outcome.

        Args:
            url: Target URL.
            headers: Request headers.
            cancellation: Caller token; combined with the internal timeout.
            response_type: ``"json"`` to parse the body, ``"text"`` to return it verbatim.

        Returns:
            Result carrying the parsed body (an empty body yields ``""``).
        """
        target = safe_url(url)
        if is_debug_enabled(self._logger):
            self._logger.debug(
                "HTTP request",
                extra=extra_context(event="http_request", component="http_client", action="GET", target=target),
            )

        if cancellation is not None and cancellation.cancelled:
            if cancellation.reason is CancelReason.TIMEOUT:
                return Result.fail(AppError.timeout("Request timed out before it started"))
            return Result.fail(AppError.cancelled("Request was cancelled before it started"))

        await self.start()
        with Timer() as t:
            with LinkedCancellation(cancellation, self._timeout) as linked:
                try:
                    result = await run_cancellable(self._fetch(url, headers or {}, response_type), linked)
                except OperationAborted as exc:
                    caller = exc.reason is CancelReason.CALLER
                    self._logger.warning(
                        "Request aborted",
                        extra=extra_context(
                            event="http_exception", component="http_client", action="GET",
                            outcome="cancelled" if caller else "timeout", target=target,
                        ),
                    )
                    if caller:
                        return Result.fail(AppError.cancelled("Request was cancelled"))
                    return Result.fail(
                        AppError.timeout("Request timed out", timeout_ms=int(self._timeout * 1000))
                    )
                except asyncio.TimeoutError:
                    self._logger.warning("%s timed out after %s seconds", target, self._timeout)
                    return Result.fail(
                        AppError.timeout("Request timed out", timeout_ms=int(self._timeout * 1000))
                    )
                except aiohttp.ClientError as exc:
                    self._logger.error("Network error for %s: %s", target, exc)
                    return Result.fail(AppError.network("Failed to connect to server", cause=exc))

        if is_debug_enabled(self._logger):
            self._logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response", component="http_client", action="GET",
                    outcome="success" if result.success else result.error.code.value,  # type: ignore[union-attr]
                    duration_ms=t.duration_ms(), target=target,
                ),
            )
        return result

    async def _fetch(self, url: str, headers: Dict[str, str], response_type: str) -> Result[Any]:
        assert self._session is not None
        async with self._session.get(url, headers=headers) as response:
            status = response.status
            if status in (401, 403):
                self._logger.error("Authentication required (%s) for %s", status, safe_url(url))
                return Result.fail(AppError.auth_required(
                    "Authentication required",
                    status_code=status,
                    hint="Configure credentials for this source",
                ))
            if status == 429:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                self._logger.warning("Rate limited by %s (retry after %s)", safe_url(url), retry_after)
                return Result.fail(AppError.rate_limit(
                    "Too many requests. Please try again later.", retry_after=retry_after,
                ))
            if not 200 <= status < 300:
                if status == 404:
                    self._logger.debug("Resource not found (404): %s", safe_url(url))
                else:
                    self._logger.error("HTTP error %s %s for URL: %s", status, response.reason, safe_url(url))
                return Result.fail(AppError.api(f"HTTP {status}: {response.reason}", status_code=status))

            body = await response.read()
            charset = response.charset or "utf-8"

        try:
            codecs.lookup(charset)
        except LookupError:
            charset = "utf-8"

        if response_type == RESPONSE_TEXT:
            return Result.ok(body.decode(charset, errors="replace"))
        try:
            text = body.decode(charset)
        except UnicodeDecodeError as exc:
            self._logger.error("Undecodable %s body from %s", charset, safe_url(url))
            return Result.fail(AppError.parse("Invalid response encoding", cause=exc))
        if not text or not text.strip():
            return Result.ok("")
        try:
            return Result.ok(json.loads(text))
        except json.JSONDecodeError as exc:
            self._logger.error("Failed to parse JSON from %s", safe_url(url))
            return Result.fail(AppError.parse("Invalid JSON response", cause=exc))


class RetryMiddleware:
    """Retry Network and 5xx failures with exponential backoff."""

    def __init__(
        self,
        max_attempts: int = Constants.HTTP_RETRY_MAX,
        base_delay: float = Constants.HTTP_RETRY_BASE_DELAY_SEC,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

    async def execute(self, call_next: NextCall) -> Result[Any]:
        result: Optional[Result[Any]] = None
        for attempt in range(self.max_attempts):
            result = await call_next()
            if result.success or not result.error.is_retryable:  # type: ignore[union-attr]
                return result

            if attempt == self.max_attempts - 1:
                self._logger.warning(
                    "Max retry attempts reached",
                    extra=extra_context(
                        event="retry_exhausted", component="http_client",
                        attempts=self.max_attempts, outcome=result.error.code.value,  # type: ignore[union-attr]
                    ),
                )
                break

            delay = self.base_delay * (2 ** attempt)
            if is_debug_enabled(self._logger):
                self._logger.debug(
                    "Retrying after %.3fs", delay,
                    extra=extra_context(event="retry", component="http_client", attempt=attempt + 1),
                )
            await self._sleep(delay)

        assert result is not None
        return result


class RateLimitMiddleware:
    """Enforce a minimum interval between dispatches through this instance.

    The last-dispatch timestamp is shared by every request passing through the
    pipeline, including concurrent ones, so dispatches are serialized.
    """

    def __init__(
        self,
        min_interval: float = Constants.RATE_LIMIT_INTERVAL_SEC,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._sleep = sleep
        self._last_dispatch: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None

    @property
    def last_dispatch(self) -> Optional[float]:
        return self._last_dispatch

    async def execute(self, call_next: NextCall) -> Result[Any]:
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._last_dispatch is not None:
                elapsed = self._clock() - self._last_dispatch
                if elapsed < self.min_interval:
                    delay = self.min_interval - elapsed
                    if is_debug_enabled(self._logger):
                        self._logger.debug("Delaying request by %.3fs", delay)
                    await self._sleep(delay)
            self._last_dispatch = self._clock()
        return await call_next()


class HttpPipeline:
    """Compose middleware around a base client.

    Example::

        pipeline = HttpPipeline(AiohttpTransport(), [RetryMiddleware(), RateLimitMiddleware()])
        result = await pipeline.get("https://api.nuget.org/v3/index.json")
    """

    def __init__(self, client: HttpClient, middleware: Optional[Sequence[HttpMiddleware]] = None):
        self._client = client
        self._middleware: List[HttpMiddleware] = list(middleware or [])

    @property
    def client(self) -> HttpClient:
        return self._client

    @property
    def middleware(self) -> List[HttpMiddleware]:
        return list(self._middleware)

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        cancellation: Optional[CancellationToken] = None,
        response_type: str = RESPONSE_JSON,
    ) -> Result[Any]:
        async def call_client() -> Result[Any]:
            return await self._client.get(
                url, headers=headers, cancellation=cancellation, response_type=response_type,
            )

        call: NextCall = call_client
        for mw in reversed(self._middleware):
            call = _bind(mw, call)
        return await call()

    async def start(self) -> None:
        start = getattr(self._client, "start", None)
        if callable(start):
            await start()

    async def stop(self) -> None:
        stop = getattr(self._client, "stop", None)
        if callable(stop):
            await stop()


def _bind(mw: HttpMiddleware, call_next: NextCall) -> NextCall:
    async def call() -> Result[Any]:
        return await mw.execute(call_next)
    return call


__all__ = [
    "RESPONSE_JSON",
    "RESPONSE_TEXT",
    "HttpClient",
    "HttpMiddleware",
    "AiohttpTransport",
    "RetryMiddleware",
    "RateLimitMiddleware",
    "HttpPipeline",
]
