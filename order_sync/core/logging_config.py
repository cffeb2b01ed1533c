"""
Logging del recolector.

Consola siempre; archivo rotativo si LOG_FILE_PATH está definido (JSON en
producción). Cada record lleva la marca de correlación activa. Las trazas de
llamadas a Square van al logger ``order_sync.trace`` en DEBUG y los payloads
muy grandes se parten en páginas.
"""

import json
import logging
import logging.config
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from order_sync.core.config import get_settings

# Líneas más largas se parten en páginas (10 MB)
MAX_LOG_LINE_SIZE = 0xA00000

LOG_CHANNEL = "Square"

correlation_mark: ContextVar[Optional[str]] = ContextVar("correlation_mark", default=None)

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "taskName",
}


class ColoredFormatter(logging.Formatter):
    """Colorea el nivel cuando la salida es una terminal."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Verde
        "WARNING": "\033[33m",  # Amarillo
        "ERROR": "\033[31m",  # Rojo
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record):
        formatted = super().format(record)

        if hasattr(sys.stderr, "isatty") and sys.stderr.isatty():
            color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
            reset = self.COLORS["RESET"]
            formatted = formatted.replace(record.levelname, f"{color}{record.levelname}{reset}")

        return formatted


class StructuredFormatter(logging.Formatter):
    """Un objeto JSON por línea, con la marca y los campos de ``extra``."""

    def format(self, record):
        settings = get_settings()

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "app_name": settings.APP_NAME,
            "app_version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

        if getattr(record, "mark", None):
            log_entry["mark"] = record.mark  # type: ignore

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS and key != "mark"
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class CorrelationFilter(logging.Filter):
    """
    Filtro que agrega la marca de correlación activa a cada record.
    """

    def filter(self, record):
        if not hasattr(record, "mark"):
            record.mark = correlation_mark.get()
        return True


@contextmanager
def mark_context(mark: Any) -> Iterator[None]:
    """
    Context manager que fija la marca de correlación para los logs emitidos dentro.

    Es seguro con asyncio: cada task ve su propia copia del contexto.
    """
    token = correlation_mark.set(str(mark) if mark is not None else None)
    try:
        yield
    finally:
        correlation_mark.reset(token)


def setup_logging() -> None:
    """Aplica la configuración de ``get_logging_configuration``. Lo llama el script de entrada."""
    settings = get_settings()

    if settings.LOG_FILE_PATH:
        Path(settings.LOG_FILE_PATH).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(get_logging_configuration())

    logging.getLogger().setLevel(getattr(logging, settings.LOG_LEVEL))

    configure_specific_loggers()

    logger = logging.getLogger(__name__)
    logger.info(f"Sistema de logging configurado - Nivel: {settings.LOG_LEVEL}")
    if settings.LOG_FILE_PATH:
        logger.info(f"Logs guardándose en: {settings.LOG_FILE_PATH}")


def get_logging_configuration() -> Dict[str, Any]:
    settings = get_settings()

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": settings.LOG_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d"
                    " - [mark:%(mark)s] %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "colored": {
                "()": ColoredFormatter,
                "format": settings.LOG_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {"()": StructuredFormatter},
        },
        "filters": {"correlation": {"()": CorrelationFilter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": "colored" if settings.DEBUG else "standard",
                "filters": ["correlation"],
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": settings.LOG_LEVEL, "handlers": ["console"]},
    }

    if settings.LOG_FILE_PATH:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": settings.LOG_LEVEL,
            "formatter": "json" if settings.is_production else "detailed",
            "filters": ["correlation"],
            "filename": settings.LOG_FILE_PATH,
            "maxBytes": settings.LOG_MAX_SIZE_MB * 1024 * 1024,
            "backupCount": settings.LOG_BACKUP_COUNT,
            "encoding": "utf-8",
        }

        config["root"]["handlers"].append("file")

    return config


def configure_specific_loggers() -> None:
    settings = get_settings()

    logging.getLogger("order_sync.services").setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    logging.getLogger("order_sync.db").setLevel(logging.INFO)

    # Reducir verbosidad de librerías externas
    for logger_name in ["aiohttp.access", "aiohttp.client", "asyncio"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def _split_payload(info: str, chunk_size: int) -> List[str]:
    return [info[i : i + chunk_size] for i in range(0, len(info), chunk_size)]


def _trace_log(call_type: str, info: str, logger_name: str = "order_sync.trace") -> None:
    logger = logging.getLogger(logger_name)

    if len(info) < MAX_LOG_LINE_SIZE:
        logger.debug(f"[{LOG_CHANNEL}] {call_type}: {info}")
        return

    page_id = uuid.uuid4().hex
    for page_number, page in enumerate(_split_payload(info, MAX_LOG_LINE_SIZE), start=1):
        logger.debug(f"[{LOG_CHANNEL}] page:{page_number} pageId:{page_id} {call_type}: {page}")


def create_method_call_info(
    mark: Any,
    endpoint: str = "",
    payload: Optional[str] = None,
    errors: Optional[str] = None,
    **additional_info: Any,
) -> str:
    """
    Construye la línea de contexto estándar de una llamada.

    Returns:
        str: Descripción con marca, endpoint y datos opcionales
    """
    parts = [f"Mark: '{mark}'"]
    if endpoint:
        parts.append(f"Endpoint: '{endpoint}'")
    if payload:
        parts.append(f"Payload: {payload}")
    if errors:
        parts.append(f"Errors: {errors}")
    if additional_info:
        parts.append(f"AdditionalInfo: {json.dumps(additional_info, default=str)}")
    return "{" + ", ".join(parts) + "}"


def log_call_started(info: str) -> None:
    _trace_log("Start call", info)


def log_call_ended(info: str) -> None:
    _trace_log("End call", info)


def log_trace(info: str) -> None:
    _trace_log("Trace info", info)


def log_api_call(method: str, url: str, status_code: int, duration: float, **kwargs):
    """
    Registra una respuesta HTTP de Square. 2xx en DEBUG, 4xx en WARNING y el resto en ERROR.
    """
    logger = logging.getLogger("order_sync.api.call")

    extra_data = {
        "method": method,
        "url": url,
        "status_code": status_code,
        "duration_ms": round(duration * 1000, 2),
        **kwargs,
    }

    if 200 <= status_code < 300:
        level = logging.DEBUG
    elif 400 <= status_code < 500:
        level = logging.WARNING
    else:
        level = logging.ERROR

    logger.log(
        level,
        f"API call: {method} {url} -> {status_code} ({duration * 1000:.1f}ms)",
        extra=extra_data,
    )
