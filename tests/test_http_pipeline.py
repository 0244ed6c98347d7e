"""Tests for the middleware pipeline: retry, rate limiting and composition order."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from nugetfeed.common.http_client import HttpPipeline, RateLimitMiddleware, RetryMiddleware
from nugetfeed.common.result import AppError, ErrorCode, Result

from fakes import FakeHttpClient, api_error

URL = "https://feed.example.com/v3/index.json"


class RecordingSleep:
    """Async sleep double recording requested delays."""

    def __init__(self, clock=None):
        self.delays = []
        self._clock = clock

    async def __call__(self, delay):
        self.delays.append(delay)
        if self._clock is not None:
            self._clock.now += delay


class ManualClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestRetryMiddleware:
    """Tests for RetryMiddleware."""

    def test_retries_network_errors_with_backoff(self):
        """Test that network errors are retried with doubling delays."""
        client = FakeHttpClient({URL: [Result.fail(AppError.network("down")), Result.fail(AppError.network("down")), {"ok": True}]})
        sleep = RecordingSleep()
        pipeline = HttpPipeline(client, [RetryMiddleware(max_attempts=3, base_delay=1.0, sleep=sleep)])

        result = asyncio.run(pipeline.get(URL))

        assert result.success
        assert result.value == {"ok": True}
        assert len(client.calls) == 3
        assert sleep.delays == [1.0, 2.0]

    def test_does_not_retry_client_errors(self):
        """Test that 4xx responses are not retried."""
        client = FakeHttpClient({URL: api_error(404)})
        sleep = RecordingSleep()
        pipeline = HttpPipeline(client, [RetryMiddleware(sleep=sleep)])

        result = asyncio.run(pipeline.get(URL))

        assert result.error.status_code == 404
        assert len(client.calls) == 1
        assert sleep.delays == []

    def test_does_not_retry_auth_or_rate_limit(self):
        """Test that auth and rate-limit errors are not retried."""
        for error in (AppError.auth_required("no", status_code=401), AppError.rate_limit("slow", retry_after=3)):
            client = FakeHttpClient({URL: Result.fail(error)})
            pipeline = HttpPipeline(client, [RetryMiddleware(sleep=RecordingSleep())])
            asyncio.run(pipeline.get(URL))
            assert len(client.calls) == 1

    def test_exhausted_attempts_return_last_error(self):
        """Test that the last error is returned after the final attempt."""
        client = FakeHttpClient({URL: [api_error(500), api_error(502), api_error(503)]})
        sleep = RecordingSleep()
        pipeline = HttpPipeline(client, [RetryMiddleware(max_attempts=3, base_delay=0.5, sleep=sleep)])

        result = asyncio.run(pipeline.get(URL))

        assert result.error.status_code == 503
        assert len(client.calls) == 3
        assert sleep.delays == [0.5, 1.0]

    def test_rejects_non_positive_attempts(self):
        """Test that max_attempts must be positive."""
        with pytest.raises(ValueError):
            RetryMiddleware(max_attempts=0)


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware."""

    def test_first_request_is_not_delayed(self):
        """Test that the first request is dispatched at once."""
        clock = ManualClock()
        sleep = RecordingSleep(clock)
        limiter = RateLimitMiddleware(min_interval=0.1, clock=clock, sleep=sleep)
        pipeline = HttpPipeline(FakeHttpClient({URL: {}}), [limiter])

        asyncio.run(pipeline.get(URL))

        assert sleep.delays == []
        assert limiter.last_dispatch == 100.0

    def test_waits_for_remaining_interval(self):
        """Test that a fast second request waits for the rest of the interval."""
        clock = ManualClock()
        sleep = RecordingSleep(clock)
        limiter = RateLimitMiddleware(min_interval=0.1, clock=clock, sleep=sleep)
        pipeline = HttpPipeline(FakeHttpClient({URL: {}}), [limiter])

        async def run():
            await pipeline.get(URL)
            clock.now += 0.03
            await pipeline.get(URL)

        asyncio.run(run())

        assert sleep.delays == [pytest.approx(0.07)]

    def test_no_wait_after_interval_elapsed(self):
        """Test that no delay is added once the interval has passed."""
        clock = ManualClock()
        sleep = RecordingSleep(clock)
        limiter = RateLimitMiddleware(min_interval=0.1, clock=clock, sleep=sleep)
        pipeline = HttpPipeline(FakeHttpClient({URL: {}}), [limiter])

        async def run():
            await pipeline.get(URL)
            clock.now += 0.5
            await pipeline.get(URL)

        asyncio.run(run())

        assert sleep.delays == []

    def test_concurrent_requests_share_one_gate(self):
        """Test that concurrent requests are spaced by the interval."""
        dispatched = []

        class StampingClient(FakeHttpClient):
            async def get(self, url, **kwargs):
                dispatched.append(time.monotonic())
                return await super().get(url, **kwargs)

        pipeline = HttpPipeline(StampingClient({URL: {}}), [RateLimitMiddleware(min_interval=0.05)])

        async def run():
            await asyncio.gather(*(pipeline.get(URL) for _ in range(3)))

        asyncio.run(run())

        gaps = [b - a for a, b in zip(dispatched, dispatched[1:])]
        assert len(gaps) == 2
        assert all(gap >= 0.04 for gap in gaps)


class TestHttpPipeline:
    """Tests for middleware composition."""

    def test_first_middleware_is_outermost(self):
        """Test middleware wrapping order."""
        order = []

        class Recorder:
            def __init__(self, name):
                self.name = name

            async def execute(self, call_next):
                order.append(f"{self.name}:before")
                result = await call_next()
                order.append(f"{self.name}:after")
                return result

        class RecordingClient(FakeHttpClient):
            async def get(self, url, **kwargs):
                order.append("client")
                return await super().get(url, **kwargs)

        pipeline = HttpPipeline(RecordingClient({URL: {}}), [Recorder("a"), Recorder("b")])
        asyncio.run(pipeline.get(URL))

        assert order == ["a:before", "b:before", "client", "b:after", "a:after"]

    def test_forwards_request_arguments(self):
        """Test that headers and response type reach the client."""
        client = FakeHttpClient({URL: "text body"})
        pipeline = HttpPipeline(client)

        result = asyncio.run(pipeline.get(URL, headers={"Accept": "text/plain"}, response_type="text"))

        assert result.value == "text body"
        assert client.calls[0]["headers"] == {"Accept": "text/plain"}
        assert client.calls[0]["response_type"] == "text"

    def test_start_and_stop_delegate_to_client(self):
        """Test that start and stop are forwarded to the client."""
        client = FakeHttpClient()
        pipeline = HttpPipeline(client)

        async def run():
            await pipeline.start()
            await pipeline.stop()

        asyncio.run(run())

        assert (client.started, client.stopped) == (1, 1)

    def test_without_middleware_calls_client_directly(self):
        """Test a pipeline with no middleware."""
        client = MagicMock()
        client.get = AsyncMock(return_value=Result.ok({"ok": True}))

        result = asyncio.run(HttpPipeline(client).get(URL))

        assert result.value == {"ok": True}
        client.get.assert_awaited_once_with(URL, headers=None, cancellation=None, response_type="json")

    def test_error_code_preserved(self):
        """Test that non-retryable error codes pass through unchanged."""
        client = FakeHttpClient({URL: Result.fail(AppError.parse("bad"))})
        result = asyncio.run(HttpPipeline(client, [RetryMiddleware()]).get(URL))
        assert result.error.code is ErrorCode.PARSE_ERROR
