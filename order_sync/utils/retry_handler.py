"""
Sistema de throttling y reintentos para llamadas a Square.

Este módulo implementa:
- Presupuesto de requests compartido (token bucket con reservas FIFO)
- Política de reintentos con backoff exponencial y jitter
- Traducción uniforme de respuestas con errores y fallas de transporte
- Decorador `with_throttle` para envolver cualquier llamada saliente
"""

import asyncio
import functools
import json
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type

import aiohttp

from order_sync.core.config import Settings, get_settings
from order_sync.core.logging_config import create_method_call_info, log_trace
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.error_handler import (
    AppException,
    RateLimitException,
    RemoteAPIException,
    TransportException,
    log_error,
)
from order_sync.utils.mark import Mark

logger = logging.getLogger(__name__)

RATE_LIMIT_ERROR_CATEGORY = "RATE_LIMIT_ERROR"

TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


@dataclass(frozen=True)
class RemoteResponse:
    """
    Respuesta HTTP ya decodificada de Square.

    Attributes:
        status: Código HTTP
        body: Cuerpo JSON decodificado
        headers: Headers relevantes de la respuesta
    """

    status: int
    body: Dict[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def errors(self) -> List[Dict[str, Any]]:
        return list(self.body.get("errors") or [])

    @property
    def is_error(self) -> bool:
        return bool(self.errors) or not 200 <= self.status < 300


class RetryPolicy:
    """
    Política de reintentos configurable.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        stop_on: Optional[List[Type[Exception]]] = None,
    ):
        """
        Inicializa la política de reintentos.

        Args:
            max_attempts: Número máximo de intentos
            base_delay: Delay base en segundos
            max_delay: Delay máximo en segundos
            exponential_base: Base para backoff exponencial
            jitter: Si agregar jitter aleatorio
            stop_on: Excepciones que detienen inmediatamente
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.stop_on = stop_on or []

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """
        Determina si debe reintentar la operación.

        Args:
            exception: Excepción que ocurrió
            attempt: Número de intento actual

        Returns:
            bool: True si debe reintentar
        """
        if attempt >= self.max_attempts:
            return False

        for stop_exc in self.stop_on:
            if isinstance(exception, stop_exc):
                return False

        if isinstance(exception, AppException):
            return exception.is_retryable

        return False

    def calculate_delay(self, attempt: int, exception: Optional[Exception] = None) -> float:
        """
        Calcula el delay antes del siguiente intento.

        Args:
            attempt: Número de intento
            exception: Excepción que causó el retry (opcional)

        Returns:
            float: Segundos a esperar
        """
        # Delay específico para rate limiting
        if isinstance(exception, RateLimitException) and exception.retry_after is not None:
            return min(exception.retry_after, self.max_delay)

        delay = self.base_delay * (self.exponential_base ** (attempt - 1))

        if self.jitter:
            jitter_range = delay * 0.1
            delay += random.uniform(-jitter_range, jitter_range)

        delay = min(delay, self.max_delay)

        return max(delay, 0)


class TokenBucket:
    """
    Presupuesto de requests compartido entre todos los llamadores.

    Cada llamada reserva un token; si no hay disponibles, la reserva queda en
    deuda y el llamador espera su turno. Las reservas se otorgan en orden de
    llegada, por lo que ningún llamador espera indefinidamente. El lock nunca
    se mantiene durante un `await`.
    """

    def __init__(
        self,
        rate_per_second: float,
        burst: int,
        max_wait: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Inicializa el bucket.

        Args:
            rate_per_second: Tokens repuestos por segundo
            burst: Capacidad máxima del bucket
            max_wait: Espera máxima aceptable; si se excede, se rechaza la llamada
            clock: Reloj monotónico (inyectable para tests)
            sleep: Función de espera (inyectable para tests)
        """
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")

        self.rate_per_second = rate_per_second
        self.burst = burst
        self.max_wait = max_wait
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(burst)
        self._last_refill = clock()
        self.throttled_waits = 0
        self.rejections = 0

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate_per_second)
        self._last_refill = now

    def _reserve(self, endpoint: str, mark: Optional[Mark]) -> float:
        with self._lock:
            self._refill(self._clock())
            self._tokens -= 1.0
            wait = 0.0 if self._tokens >= 0 else -self._tokens / self.rate_per_second

            if self.max_wait is not None and wait > self.max_wait:
                self._tokens += 1.0
                self.rejections += 1
                raise RateLimitException(
                    f"Request budget exhausted: {wait:.2f}s wait exceeds {self.max_wait:.2f}s "
                    f"{create_method_call_info(mark, endpoint)}",
                    endpoint=endpoint,
                    retry_after=wait,
                    api_response_code=None,
                    is_retryable=False,
                    mark=mark,
                )

            if wait > 0:
                self.throttled_waits += 1

            return wait

    async def acquire(self, endpoint: str = "", mark: Optional[Mark] = None) -> float:
        """
        Espera hasta que la llamada sea admitida.

        Returns:
            float: Segundos esperados

        Raises:
            RateLimitException: Si la espera excede `max_wait`
        """
        wait = self._reserve(endpoint, mark)
        if wait > 0:
            logger.debug(f"Throttling {endpoint or 'request'} for {wait:.2f}s [mark:{mark}]")
            await self._sleep(wait)
        return wait

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill(self._clock())
            return self._tokens


def _parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def translate_error_response(
    response: RemoteResponse, endpoint: str, mark: Optional[Mark], payload: Optional[str] = None
) -> RemoteAPIException:
    """
    Traduce una respuesta con errores a una única excepción tipada.

    Args:
        response: Respuesta de Square con `errors` no vacío o status no 2xx
        endpoint: Endpoint llamado
        mark: Marca de correlación
        payload: Cuerpo enviado, serializado

    Returns:
        RemoteAPIException: `RateLimitException` para 429/RATE_LIMIT_ERROR
    """
    errors = response.errors
    errors_payload = json.dumps(errors, default=str) if errors else None
    info = create_method_call_info(mark, endpoint, payload=payload, errors=errors_payload)

    throttled = response.status == 429 or any(
        isinstance(error, dict) and error.get("category") == RATE_LIMIT_ERROR_CATEGORY for error in errors
    )
    if throttled:
        return RateLimitException(
            f"{info}. Request was throttled",
            endpoint=endpoint,
            retry_after=_parse_retry_after(response.headers),
            errors_payload=errors_payload,
            api_response_code=response.status,
            mark=mark,
        )

    return RemoteAPIException(
        f"{info}. {endpoint} returned errors (HTTP {response.status})",
        endpoint=endpoint,
        errors_payload=errors_payload,
        api_response_code=response.status,
        mark=mark,
    )


class RequestThrottler:
    """
    Envuelve cada llamada saliente con cancelación, admisión y reintentos.

    Una llamada devuelve una respuesta completa o falla por completo.
    """

    def __init__(
        self,
        name: str,
        bucket: TokenBucket,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Inicializa el throttler.

        Args:
            name: Nombre identificativo
            bucket: Presupuesto de requests compartido
            retry_policy: Política de reintentos
            sleep: Función de espera entre reintentos (inyectable para tests)
        """
        self.name = name
        self.bucket = bucket
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

        self.metrics = {
            "total_attempts": 0,
            "total_successes": 0,
            "total_failures": 0,
            "total_retries": 0,
            "avg_duration": 0.0,
        }

    async def execute(
        self,
        endpoint: str,
        operation: Callable[[], Awaitable[RemoteResponse]],
        *,
        mark: Optional[Mark] = None,
        cancellation: Optional[CancellationToken] = None,
        payload: Optional[str] = None,
    ) -> RemoteResponse:
        """
        Ejecuta una llamada con throttling y reintentos.

        Args:
            endpoint: Endpoint de Square (para errores y logs)
            operation: Callable sin argumentos que realiza la llamada
            mark: Marca de correlación
            cancellation: Token de cancelación cooperativa
            payload: Cuerpo enviado, serializado (para diagnóstico)

        Returns:
            RemoteResponse: Respuesta sin errores

        Raises:
            CancelledOperationException: Si se pidió cancelación antes de enviar
            RateLimitException: Si Square sigue limitando tras los reintentos
            RemoteAPIException: Si Square devolvió errores
            TransportException: Si falló la red
        """
        cancellation = cancellation or CancellationToken.none()
        last_exception: Optional[AppException] = None
        attempt = 0

        for attempt in range(1, self.retry_policy.max_attempts + 1):
            cancellation.raise_if_cancelled(f"Call to {endpoint}", mark=mark, endpoint=endpoint)
            await self.bucket.acquire(endpoint=endpoint, mark=mark)
            # Cancelación pedida durante la espera del bucket
            cancellation.raise_if_cancelled(f"Call to {endpoint}", mark=mark, endpoint=endpoint)

            self.metrics["total_attempts"] += 1
            started = time.monotonic()
            log_trace(create_method_call_info(mark, endpoint, payload=payload, attempt=attempt))

            try:
                response = await operation()
            except TRANSPORT_ERRORS as e:
                last_exception = TransportException(
                    f"{create_method_call_info(mark, endpoint)}. Transport error: {type(e).__name__}: {e}",
                    endpoint=endpoint,
                    cause=e,
                    mark=mark,
                )
                last_exception.__cause__ = e
            else:
                if not response.is_error:
                    self._record_success(time.monotonic() - started)
                    return response
                last_exception = translate_error_response(response, endpoint, mark, payload)

            self.metrics["total_failures"] += 1

            if not self.retry_policy.should_retry(last_exception, attempt):
                break

            delay = self.retry_policy.calculate_delay(attempt, last_exception)
            self.metrics["total_retries"] += 1
            logger.info(
                f"Retrying {endpoint} in {delay:.2f}s - "
                f"Attempt {attempt + 1}/{self.retry_policy.max_attempts} [mark:{mark}]",
                extra={"exception_message": str(last_exception), "delay": delay},
            )
            await self._sleep(delay)

        log_error(last_exception, context={"endpoint": endpoint, "attempts": attempt, "throttler": self.name})
        raise last_exception

    def _record_success(self, duration: float) -> None:
        self.metrics["total_successes"] += 1
        total_ops = self.metrics["total_successes"]
        self.metrics["avg_duration"] = (self.metrics["avg_duration"] * (total_ops - 1) + duration) / total_ops

    def get_metrics(self) -> Dict[str, Any]:
        """
        Obtiene métricas del throttler.

        Returns:
            Dict: Métricas actuales
        """
        total = self.metrics["total_attempts"]
        success_rate = (self.metrics["total_successes"] / total * 100) if total > 0 else 0

        return {
            **self.metrics,
            "success_rate": round(success_rate, 2),
            "throttled_waits": self.bucket.throttled_waits,
            "rejections": self.bucket.rejections,
            "handler_name": self.name,
        }


# === DECORADOR ===


def with_throttle(endpoint: str):
    """
    Decorador que envuelve un método async de cliente con `self.throttler`.

    El método decorado debe devolver un `RemoteResponse`. Quien lo llama pasa
    `mark`, `cancellation` y opcionalmente `payload` como keywords.

    Args:
        endpoint: Endpoint de Square que usa el método

    Returns:
        Decorator function
    """

    def decorator(func: Callable[..., Awaitable[RemoteResponse]]) -> Callable[..., Awaitable[RemoteResponse]]:
        @functools.wraps(func)
        async def wrapper(
            self,
            *args,
            mark: Optional[Mark] = None,
            cancellation: Optional[CancellationToken] = None,
            payload: Optional[str] = None,
            **kwargs,
        ) -> RemoteResponse:
            return await self.throttler.execute(
                endpoint,
                lambda: func(self, *args, **kwargs),
                mark=mark,
                cancellation=cancellation,
                payload=payload,
            )

        return wrapper

    return decorator


# === FACTORY FUNCTIONS ===


def create_square_throttler(settings: Optional[Settings] = None) -> RequestThrottler:
    """
    Crea un throttler configurado para la API de Square.

    Returns:
        RequestThrottler: Throttler configurado
    """
    settings = settings or get_settings()

    bucket = TokenBucket(
        rate_per_second=settings.THROTTLE_RATE_PER_SECOND,
        burst=settings.THROTTLE_BURST,
        max_wait=settings.THROTTLE_MAX_WAIT_SECONDS,
    )

    retry_policy = RetryPolicy(
        max_attempts=settings.MAX_RETRIES,
        base_delay=settings.RETRY_DELAY_SECONDS,
        max_delay=settings.RETRY_MAX_DELAY_SECONDS,
        exponential_base=settings.RETRY_BACKOFF_FACTOR,
        jitter=True,
    )

    return RequestThrottler(name="square_api", bucket=bucket, retry_policy=retry_policy)


@lru_cache()
def get_square_throttler() -> RequestThrottler:
    """
    Obtiene el throttler compartido del proceso.

    Es el único estado compartido entre ejecuciones del pipeline.
    """
    return create_square_throttler()
