"""Tests unitarios para el throttling y reintentos de llamadas a Square."""

import asyncio
import json
from unittest.mock import AsyncMock

import aiohttp
import pytest

from order_sync.core.config import Settings
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.error_handler import (
    CancelledOperationException,
    RateLimitException,
    RemoteAPIException,
    TransportException,
)
from order_sync.utils.mark import Mark
from order_sync.utils.retry_handler import (
    RemoteResponse,
    RequestThrottler,
    RetryPolicy,
    TokenBucket,
    create_square_throttler,
    get_square_throttler,
    translate_error_response,
    with_throttle,
)

ENDPOINT = "/v2/orders/search"
OK = RemoteResponse(status=200, body={"orders": []})


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _throttler(max_attempts: int = 3, bucket: TokenBucket | None = None) -> RequestThrottler:
    return RequestThrottler(
        name="test",
        bucket=bucket or TokenBucket(rate_per_second=1000, burst=1000, sleep=AsyncMock()),
        retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=1.0, max_delay=30.0, jitter=False),
        sleep=AsyncMock(),
    )


def _error_response(status: int, category: str = "INVALID_REQUEST_ERROR", headers=None) -> RemoteResponse:
    return RemoteResponse(
        status=status,
        body={"errors": [{"category": category, "code": "SOME_CODE", "detail": "nope"}]},
        headers=headers or {},
    )


class TestTokenBucket:
    """Tests para el presupuesto de requests."""

    @pytest.mark.asyncio
    async def test_burst_admitted_without_waiting(self):
        sleep = AsyncMock()
        bucket = TokenBucket(rate_per_second=1, burst=2, clock=FakeClock(), sleep=sleep)

        assert await bucket.acquire() == 0
        assert await bucket.acquire() == 0
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_waiters_queue_in_reservation_order(self):
        """Con el bucket vacío, cada reserva espera un intervalo más que la anterior."""
        sleep = AsyncMock()
        bucket = TokenBucket(rate_per_second=2, burst=1, clock=FakeClock(), sleep=sleep)

        waits = [await bucket.acquire() for _ in range(4)]

        assert waits == [0, 0.5, 1.0, 1.5]
        assert [call.args[0] for call in sleep.await_args_list] == [0.5, 1.0, 1.5]
        assert bucket.throttled_waits == 3

    @pytest.mark.asyncio
    async def test_tokens_refill_over_time(self):
        clock = FakeClock()
        bucket = TokenBucket(rate_per_second=1, burst=1, clock=clock, sleep=AsyncMock())

        await bucket.acquire()
        clock.now = 1.0

        assert await bucket.acquire() == 0

    @pytest.mark.asyncio
    async def test_rejects_when_wait_exceeds_max_wait(self):
        """Si la espera supera max_wait se rechaza y se devuelve el token."""
        bucket = TokenBucket(rate_per_second=1, burst=1, max_wait=1.5, clock=FakeClock(), sleep=AsyncMock())
        await bucket.acquire()
        await bucket.acquire()

        with pytest.raises(RateLimitException) as exc_info:
            await bucket.acquire(endpoint=ENDPOINT)

        assert exc_info.value.is_retryable is False
        assert bucket.rejections == 1
        assert bucket.available_tokens == -1.0

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            TokenBucket(rate_per_second=0, burst=1)
        with pytest.raises(ValueError):
            TokenBucket(rate_per_second=1, burst=0)


class TestRetryPolicy:
    """Tests para RetryPolicy."""

    def test_exponential_delay_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0, exponential_base=2.0, jitter=False)

        assert [policy.calculate_delay(attempt) for attempt in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    def test_retry_after_honored(self):
        policy = RetryPolicy(max_delay=30.0, jitter=False)
        error = RateLimitException("slow down", endpoint=ENDPOINT, retry_after=7)

        assert policy.calculate_delay(1, error) == 7

    def test_zero_retry_after_means_no_wait(self):
        policy = RetryPolicy(base_delay=2.0, jitter=False)
        error = RateLimitException("slow down", endpoint=ENDPOINT, retry_after=0)

        assert policy.calculate_delay(3, error) == 0

    def test_only_retryable_app_exceptions(self):
        policy = RetryPolicy(max_attempts=3)

        assert policy.should_retry(TransportException("down", endpoint=ENDPOINT), 1) is True
        assert policy.should_retry(RemoteAPIException("bad", endpoint=ENDPOINT, api_response_code=400), 1) is False
        assert policy.should_retry(ValueError("x"), 1) is False
        assert policy.should_retry(TransportException("down", endpoint=ENDPOINT), 3) is False


class TestTranslateErrorResponse:
    """Tests para la traducción de respuestas con errores."""

    def test_429_is_rate_limit(self):
        error = translate_error_response(
            _error_response(429, "RATE_LIMIT_ERROR", {"Retry-After": "3"}), ENDPOINT, Mark("m-1")
        )

        assert isinstance(error, RateLimitException)
        assert error.retry_after == 3.0
        assert error.is_retryable is True

    def test_rate_limit_category_without_429(self):
        error = translate_error_response(_error_response(400, "RATE_LIMIT_ERROR"), ENDPOINT, Mark("m-1"))

        assert isinstance(error, RateLimitException)

    def test_client_error_not_retryable(self):
        """Un 4xx lleva endpoint, marca y el payload de errores serializado."""
        error = translate_error_response(_error_response(400), ENDPOINT, Mark("m-1"), payload='{"limit": 0}')

        assert type(error) is RemoteAPIException
        assert error.is_retryable is False
        assert error.endpoint == ENDPOINT
        assert error.mark == "m-1"
        assert error.api_response_code == 400
        assert json.loads(error.errors_payload)[0]["code"] == "SOME_CODE"
        assert "m-1" in error.message

    def test_server_error_retryable(self):
        assert translate_error_response(_error_response(503), ENDPOINT, None).is_retryable is True

    def test_non_2xx_without_errors_list(self):
        error = translate_error_response(RemoteResponse(status=502), ENDPOINT, None)

        assert error.api_response_code == 502
        assert error.errors_payload is None


class TestRequestThrottler:
    """Tests para RequestThrottler.execute."""

    @pytest.mark.asyncio
    async def test_success(self):
        throttler = _throttler()
        operation = AsyncMock(return_value=OK)

        response = await throttler.execute(ENDPOINT, operation, mark=Mark("m-1"))

        assert response is OK
        operation.assert_awaited_once()
        assert throttler.get_metrics()["total_successes"] == 1

    @pytest.mark.asyncio
    async def test_pre_cancelled_never_sends(self):
        """Con cancelación previa la operación nunca se invoca."""
        cancellation = CancellationToken()
        cancellation.cancel()
        operation = AsyncMock(return_value=OK)

        with pytest.raises(CancelledOperationException) as exc_info:
            await _throttler().execute(ENDPOINT, operation, mark=Mark("m-1"), cancellation=cancellation)

        operation.assert_not_called()
        assert exc_info.value.endpoint == ENDPOINT
        assert exc_info.value.mark == "m-1"

    @pytest.mark.asyncio
    async def test_cancelled_while_waiting_for_bucket(self):
        """Una cancelación pedida durante la espera del bucket impide el envío."""
        cancellation = CancellationToken()

        async def sleep_and_cancel(seconds):
            cancellation.cancel("shutdown")

        bucket = TokenBucket(rate_per_second=1, burst=1, clock=FakeClock(), sleep=sleep_and_cancel)
        await bucket.acquire()
        operation = AsyncMock(return_value=OK)

        with pytest.raises(CancelledOperationException):
            await _throttler(bucket=bucket).execute(ENDPOINT, operation, cancellation=cancellation)

        operation.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancellation_between_retries(self):
        """Si se cancela durante un intento fallido, no se envía el reintento."""
        cancellation = CancellationToken()

        async def fail_and_cancel():
            cancellation.cancel()
            return _error_response(500)

        operation = AsyncMock(side_effect=fail_and_cancel)

        with pytest.raises(CancelledOperationException):
            await _throttler().execute(ENDPOINT, operation, cancellation=cancellation)

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limited_then_success(self):
        """Un 429 se reintenta esperando lo indicado por Retry-After."""
        throttler = _throttler()
        operation = AsyncMock(side_effect=[_error_response(429, "RATE_LIMIT_ERROR", {"Retry-After": "2"}), OK])

        response = await throttler.execute(ENDPOINT, operation)

        assert response is OK
        assert operation.await_count == 2
        throttler._sleep.assert_awaited_once_with(2.0)
        assert throttler.get_metrics()["total_retries"] == 1

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self):
        throttler = _throttler(max_attempts=3)
        operation = AsyncMock(return_value=_error_response(500))

        with pytest.raises(RemoteAPIException) as exc_info:
            await throttler.execute(ENDPOINT, operation, mark=Mark("m-2"))

        assert operation.await_count == 3
        assert exc_info.value.api_response_code == 500
        assert exc_info.value.mark == "m-2"
        assert [call.args[0] for call in throttler._sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        operation = AsyncMock(return_value=_error_response(400))

        with pytest.raises(RemoteAPIException) as exc_info:
            await _throttler().execute(ENDPOINT, operation)

        assert operation.await_count == 1
        assert exc_info.value.is_retryable is False

    @pytest.mark.asyncio
    async def test_errors_in_2xx_body_are_failures(self):
        """Una respuesta 200 con lista de errores no es un éxito parcial."""
        operation = AsyncMock(return_value=_error_response(200))

        with pytest.raises(RemoteAPIException):
            await _throttler().execute(ENDPOINT, operation)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "transport_error",
        [aiohttp.ClientConnectionError("reset"), asyncio.TimeoutError(), OSError("unreachable")],
    )
    async def test_transport_errors_translated_and_retried(self, transport_error):
        operation = AsyncMock(side_effect=[transport_error, OK])

        response = await _throttler().execute(ENDPOINT, operation)

        assert response is OK
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_transport_error_keeps_cause(self):
        cause = aiohttp.ClientConnectionError("reset")
        operation = AsyncMock(side_effect=cause)

        with pytest.raises(TransportException) as exc_info:
            await _throttler(max_attempts=1).execute(ENDPOINT, operation, mark=Mark("m-3"))

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.endpoint == ENDPOINT
        assert exc_info.value.mark == "m-3"

    @pytest.mark.asyncio
    async def test_budget_rejection_not_sent(self):
        """Si el presupuesto rechaza la llamada, la operación no se invoca."""
        bucket = TokenBucket(rate_per_second=1, burst=1, max_wait=0.1, clock=FakeClock(), sleep=AsyncMock())
        await bucket.acquire()
        operation = AsyncMock(return_value=OK)

        with pytest.raises(RateLimitException):
            await _throttler(bucket=bucket).execute(ENDPOINT, operation)

        operation.assert_not_called()


class TestWithThrottle:
    """Tests para el decorador with_throttle."""

    @pytest.mark.asyncio
    async def test_decorated_method_goes_through_throttler(self):
        class Client:
            def __init__(self, throttler):
                self.throttler = throttler
                self.received = []

            @with_throttle(ENDPOINT)
            async def call(self, body, flag=False):
                self.received.append((body, flag))
                return OK

        client = Client(_throttler())

        response = await client.call({"a": 1}, flag=True, mark=Mark("m-1"), cancellation=CancellationToken.none())

        assert response is OK
        assert client.received == [({"a": 1}, True)]
        assert client.throttler.get_metrics()["total_attempts"] == 1

    @pytest.mark.asyncio
    async def test_decorated_method_honors_cancellation(self):
        class Client:
            def __init__(self, throttler):
                self.throttler = throttler
                self.calls = 0

            @with_throttle(ENDPOINT)
            async def call(self):
                self.calls += 1
                return OK

        cancellation = CancellationToken()
        cancellation.cancel()
        client = Client(_throttler())

        with pytest.raises(CancelledOperationException):
            await client.call(cancellation=cancellation)

        assert client.calls == 0


class TestSquareThrottlerFactory:
    """Tests para la construcción del throttler de Square."""

    def test_built_from_settings(self):
        settings = Settings(SQUARE_ACCESS_TOKEN="t", THROTTLE_BURST=4, MAX_RETRIES=5, RETRY_DELAY_SECONDS=0.5)

        throttler = create_square_throttler(settings)

        assert throttler.name == "square_api"
        assert throttler.bucket.burst == 4
        assert throttler.retry_policy.max_attempts == 5
        assert throttler.retry_policy.base_delay == 0.5

    def test_shared_instance(self):
        assert get_square_throttler() is get_square_throttler()
