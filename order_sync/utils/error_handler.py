"""
Jerarquía de excepciones del recolector de pedidos.

Toda falla que cruza el pipeline es una AppException: lleva código,
severidad, marca de correlación y si puede reintentarse.
"""

import logging
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Códigos de error del recolector."""

    # Errores generales
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    OPERATION_CANCELLED = "OPERATION_CANCELLED"

    # Errores de precondición
    NO_ACTIVE_LOCATIONS = "NO_ACTIVE_LOCATIONS"

    # Errores de API
    SQUARE_API_ERROR = "SQUARE_API_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"

    # Errores de sincronización
    SYNC_FAILED = "SYNC_FAILED"


class ErrorSeverity(Enum):
    """Severidad reportada en los logs."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AppException(Exception):
    """
    Raíz de la jerarquía. Solo se reintenta si ``is_retryable`` es verdadero.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        is_retryable: bool = False,
        mark: Optional[Any] = None,
    ):
        """
        Inicializa la excepción.

        Args:
            message: Mensaje de error
            error_code: Código de error estandardizado
            details: Información adicional del error
            severity: Severidad del error
            is_retryable: Si la operación puede reintentarse
            mark: Marca de correlación de la operación
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.severity = severity
        self.is_retryable = is_retryable
        self.mark = str(mark) if mark is not None else None
        self.timestamp = datetime.now(timezone.utc)

        if self.mark:
            self.details.setdefault("mark", self.mark)

    def to_dict(self) -> Dict[str, Any]:
        """Representación serializable, usada por el script en modo JSON."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
            "mark": self.mark,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


class InvalidArgumentException(AppException):
    """
    Excepción para argumentos inválidos (ventana de tiempo, tamaño de página, etc).
    """

    def __init__(self, message: str, field: str, invalid_value: Any = None, **kwargs):
        """
        Args:
            message: Descripción legible
            field: Nombre del argumento rechazado
            invalid_value: Valor recibido
        """
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_ARGUMENT,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )
        self.field = field
        self.invalid_value = invalid_value

        self.details.update(
            {
                "field": field,
                "invalid_value": str(invalid_value) if invalid_value is not None else None,
            }
        )


class CancelledOperationException(AppException):
    """
    Excepción para operaciones canceladas por el llamador.

    Se distingue de las fallas reales para que el llamador pueda ignorarla.
    """

    def __init__(self, message: str, operation: str, endpoint: Optional[str] = None, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.OPERATION_CANCELLED,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )
        self.operation = operation
        self.endpoint = endpoint

        self.details.update({"operation": operation, "endpoint": endpoint})


class NoActiveLocationsException(AppException):
    """
    Excepción fatal: la cuenta no tiene ubicaciones activas.
    """

    def __init__(self, message: str = "No active locations. At least one is required to search orders", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.NO_ACTIVE_LOCATIONS,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )


class RemoteAPIException(AppException):
    """
    Excepción para errores devueltos por la API de Square.
    """

    def __init__(
        self,
        message: str,
        endpoint: str,
        errors_payload: Optional[str] = None,
        api_response_code: Optional[int] = None,
        is_retryable: Optional[bool] = None,
        error_code: ErrorCode = ErrorCode.SQUARE_API_ERROR,
        **kwargs,
    ):
        severity = ErrorSeverity.MEDIUM
        if api_response_code and api_response_code >= 500:
            severity = ErrorSeverity.HIGH

        # Sin valor explícito solo se reintentan los 5xx
        if is_retryable is None:
            is_retryable = bool(api_response_code and api_response_code >= 500)

        super().__init__(
            message=message,
            error_code=error_code,
            severity=severity,
            is_retryable=is_retryable,
            **kwargs,
        )

        self.endpoint = endpoint
        self.errors_payload = errors_payload
        self.api_response_code = api_response_code

        self.details.update(
            {
                "endpoint": endpoint,
                "errors": errors_payload,
                "api_response_code": api_response_code,
            }
        )


class RateLimitException(RemoteAPIException):
    """
    Excepción para errores de rate limiting (HTTP 429 o presupuesto local agotado).
    """

    def __init__(self, message: str, endpoint: str, retry_after: Optional[float] = None, **kwargs):
        kwargs.setdefault("api_response_code", 429)
        kwargs.setdefault("is_retryable", True)
        super().__init__(
            message=message,
            endpoint=endpoint,
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
            **kwargs,
        )
        self.severity = ErrorSeverity.LOW
        self.retry_after = retry_after

        self.details.update({"retry_after": retry_after})


class TransportException(AppException):
    """
    Excepción para fallas de red o transporte hacia Square.
    """

    def __init__(self, message: str, endpoint: str, cause: Optional[BaseException] = None, **kwargs):
        kwargs.setdefault("is_retryable", True)
        super().__init__(
            message=message,
            error_code=ErrorCode.TRANSPORT_ERROR,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.endpoint = endpoint
        self.cause = cause

        self.details.update(
            {
                "endpoint": endpoint,
                "cause": f"{type(cause).__name__}: {cause}" if cause is not None else None,
            }
        )


class SyncException(AppException):
    """
    Excepción para errores inesperados durante la recolección de pedidos.
    """

    def __init__(self, message: str, service: str, operation: str, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.SYNC_FAILED,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )

        self.service = service
        self.operation = operation

        self.details.update({"service": service, "operation": operation})


# === LOGGING DE ERRORES ===


def log_error(
    exception: BaseException,
    context: Optional[Dict[str, Any]] = None,
    level: int = logging.ERROR,
) -> None:
    """
    Registra una excepción con sus metadatos en ``extra``.

    Las AppException se registran sin traceback; el resto lo incluye.
    """
    context = context or {}

    log_data = {
        "exception_type": type(exception).__name__,
        "exception_message": str(exception),
        **context,
    }

    if isinstance(exception, AppException):
        message = f"{exception.error_code.value}: {exception.message}"
        if exception.mark:
            message = f"{message} [mark:{exception.mark}]"
        log_data.update(
            {
                "error_code": exception.error_code.value,
                "severity": exception.severity.value,
                "is_retryable": exception.is_retryable,
                "error_details": exception.details,
            }
        )
    else:
        message = f"Unhandled exception: {type(exception).__name__}: {str(exception)}"
        log_data["traceback"] = "".join(
            traceback.format_exception(type(exception), exception, exception.__traceback__)
        )

    logger.log(level, message, extra=log_data)
