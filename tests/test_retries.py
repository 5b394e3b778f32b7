import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock

from aisdk.exceptions import (
    AuthenticationError,
    HttpStatusError,
    InvalidArgumentError,
    NetworkError,
    ProviderError,
    RateLimitError,
    RequestTimeoutError,
    TransportError,
    map_transport_error,
)
from aisdk.resilience import RetryConfig, retry_with_backoff, should_retry
from aisdk.transport import HttpxTransport, TransportConfig


class Flaky:
    """Fails `fail_count` times with `error`, then returns "Success"."""

    def __init__(self, fail_count, error):
        self.fail_count = fail_count
        self.error = error
        self.call_count = 0

    async def __call__(self):
        self.call_count += 1
        if self.call_count <= self.fail_count:
            raise self.error
        return "Success"


@pytest.mark.asyncio
async def test_retry_until_success():
    """Rate limits are retried with exponential delays."""
    op = Flaky(2, RateLimitError())
    sleep = AsyncMock()

    result = await retry_with_backoff(op, RetryConfig(max_retries=3, initial_interval=0.1, max_interval=5.0), sleep=sleep)

    assert result == "Success"
    assert op.call_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [pytest.approx(0.1), pytest.approx(0.2)]


@pytest.mark.asyncio
async def test_retry_fail_max():
    """The last error is raised after max_retries."""
    op = Flaky(10, ProviderError(503, "unavailable"))
    sleep = AsyncMock()

    with pytest.raises(ProviderError):
        await retry_with_backoff(op, RetryConfig(max_retries=2), sleep=sleep)

    assert op.call_count == 3  # Initial + 2 retries
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_no_retry_on_client_errors():
    for error in (AuthenticationError(), InvalidArgumentError("bad"), ProviderError(400, "bad request")):
        op = Flaky(1, error)
        with pytest.raises(type(error)):
            await retry_with_backoff(op, RetryConfig(max_retries=3), sleep=AsyncMock())
        assert op.call_count == 1


@pytest.mark.asyncio
async def test_retry_after_hint_wins_but_is_capped():
    op = Flaky(2, RateLimitError(retry_after_ms=250))
    sleep = AsyncMock()
    await retry_with_backoff(op, RetryConfig(max_retries=3, initial_interval=5.0, max_interval=10.0), sleep=sleep)
    assert [c.args[0] for c in sleep.await_args_list] == [pytest.approx(0.25), pytest.approx(0.25)]

    op = Flaky(1, RateLimitError(retry_after_ms=120_000))
    sleep = AsyncMock()
    await retry_with_backoff(op, RetryConfig(max_retries=3, max_interval=2.0), sleep=sleep)
    assert sleep.await_args.args[0] == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_on_retry_callback():
    op = Flaky(1, RequestTimeoutError())
    on_retry = MagicMock()
    await retry_with_backoff(op, RetryConfig(max_retries=1, initial_interval=0.01), on_retry=on_retry, sleep=AsyncMock())
    attempt, delay, error = on_retry.call_args.args
    assert attempt == 1
    assert delay == pytest.approx(0.01)
    assert isinstance(error, RequestTimeoutError)


def test_backoff_schedule():
    config = RetryConfig(initial_interval=1.0, max_interval=60.0, multiplier=2.0)
    assert [config.calculate_backoff(n) for n in range(1, 8)] == [1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 60.0]


def test_presets():
    assert RetryConfig.quick().max_retries == 3
    assert RetryConfig.network().max_interval == 10.0
    assert RetryConfig.api().initial_interval == 1.0


def test_should_retry_classification():
    assert should_retry(HttpStatusError(500))
    assert should_retry(HttpStatusError(429))
    assert not should_retry(HttpStatusError(404))
    assert should_retry(NetworkError("reset"))
    assert should_retry(RequestTimeoutError())
    assert not should_retry(ValueError("nope"))

    response = MagicMock()
    response.status_code = 502
    assert should_retry(httpx.HTTPStatusError("502", request=MagicMock(), response=response))
    assert should_retry(httpx.ConnectError("refused"))


@pytest.mark.asyncio
async def test_rate_limit_retry_after_header_end_to_end():
    """Two 429s with Retry-After: 3 are waited out before the 200."""
    statuses = [429, 429, 200]
    seen = []

    def handler(request):
        seen.append(request)
        status = statuses[len(seen) - 1]
        if status == 429:
            return httpx.Response(429, json={"error": {"message": "slow down"}}, headers={"Retry-After": "3"})
        return httpx.Response(200, json={"ok": True})

    transport = HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    async def call():
        try:
            data, _ = await transport.post_json("https://api.test/v1/chat", {}, {"q": 1}, TransportConfig())
        except TransportError as e:
            raise map_transport_error(e) from e
        return data

    sleep = AsyncMock()
    result = await retry_with_backoff(call, RetryConfig.api(), sleep=sleep)

    assert result == {"ok": True}
    assert len(seen) == 3
    assert [c.args[0] for c in sleep.await_args_list] == [3.0, 3.0]
