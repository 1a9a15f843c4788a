"""
Tests for the retry/backoff controller.

Sleeps are recorded instead of awaited so backoff timing can be asserted
without slowing the suite down.
"""

import asyncio

import aiohttp
import pytest

from soundprint.api.exceptions import TransportError
from soundprint.api.retry import BackoffController, HTTPResult, RetryPolicy


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class ScriptedSend:
    """Returns (or raises) the scripted outcomes in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def sleep():
    return FakeSleep()


@pytest.fixture
def controller(sleep):
    return BackoffController(RetryPolicy(max_retries=2, backoff_base_ms=500), sleep=sleep, service_name="test")


@pytest.mark.asyncio
async def test_success_returns_immediately(controller, sleep):
    send = ScriptedSend(HTTPResult(status=200, data={"ok": True}))
    result = await controller.execute(send)

    assert result.ok
    assert send.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_persistent_429_returns_last_response(controller, sleep):
    send = ScriptedSend(HTTPResult(status=429))
    result = await controller.execute(send)

    assert result.status == 429
    assert send.calls == 3
    # linear backoff: base * (attempt + 1)
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retry_after_header_is_honoured(controller, sleep):
    send = ScriptedSend(
        HTTPResult(status=429, headers={"Retry-After": "2"}),
        HTTPResult(status=200)
    )
    result = await controller.execute(send)

    assert result.ok
    assert sleep.delays == [2.0]


@pytest.mark.asyncio
async def test_invalid_retry_after_falls_back_to_linear(controller, sleep):
    send = ScriptedSend(HTTPResult(status=429, headers={"Retry-After": "soon"}), HTTPResult(status=200))
    await controller.execute(send)
    assert sleep.delays == [0.5]


@pytest.mark.asyncio
async def test_server_errors_back_off_exponentially(controller, sleep):
    send = ScriptedSend(HTTPResult(status=503))
    result = await controller.execute(send)

    assert result.status == 503
    assert send.calls == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_server_error_then_success(controller, sleep):
    send = ScriptedSend(HTTPResult(status=502), HTTPResult(status=200))
    result = await controller.execute(send)

    assert result.ok
    assert send.calls == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(controller, sleep):
    send = ScriptedSend(HTTPResult(status=404))
    result = await controller.execute(send)

    assert result.status == 404
    assert send.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_transport_errors_raise_after_retries(controller, sleep):
    send = ScriptedSend(aiohttp.ClientConnectionError("reset"))

    with pytest.raises(TransportError) as exc_info:
        await controller.execute(send, description="GET audio-features")

    assert send.calls == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.service == "test"
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_transport_error_then_success(controller):
    send = ScriptedSend(aiohttp.ClientConnectionError("reset"), HTTPResult(status=200))
    result = await controller.execute(send)
    assert result.ok


@pytest.mark.asyncio
async def test_timeout_counts_as_transport_error(sleep):
    async def hang():
        await asyncio.sleep(10)

    controller = BackoffController(
        RetryPolicy(max_retries=1, backoff_base_ms=0, timeout_seconds=0.01),
        sleep=sleep
    )

    with pytest.raises(TransportError):
        await controller.execute(hang)


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt(sleep):
    controller = BackoffController(RetryPolicy(max_retries=0), sleep=sleep)
    send = ScriptedSend(HTTPResult(status=429))

    result = await controller.execute(send)

    assert result.status == 429
    assert send.calls == 1


def test_policy_delays():
    policy = RetryPolicy(backoff_base_ms=100)
    assert policy.rate_limit_delay_ms(0, None) == 100
    assert policy.rate_limit_delay_ms(2, None) == 300
    assert policy.rate_limit_delay_ms(0, "1.5") == 1500
    assert policy.server_error_delay_ms(3) == 800
