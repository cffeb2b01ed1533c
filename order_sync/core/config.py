"""
Configuración centralizada de la aplicación.

Este módulo maneja todas las variables de entorno y configuraciones
de la aplicación usando Pydantic Settings para validación automática.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

SQUARE_PRODUCTION_URL = "https://connect.squareup.com"
SQUARE_SANDBOX_URL = "https://connect.squareupsandbox.com"

# Límite propio de Square para SearchOrders
MAX_ORDERS_PAGE_SIZE = 1000


class Settings(BaseSettings):
    """
    Configuración de la aplicación usando Pydantic Settings.

    Todas las configuraciones se cargan desde variables de entorno
    con valores por defecto apropiados para desarrollo.
    """

    # === CONFIGURACIÓN BÁSICA DE LA APP ===
    APP_NAME: str = "Square Order Sync"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # === CONFIGURACIÓN DE SQUARE ===
    SQUARE_ACCESS_TOKEN: str = Field(default="your-access-token")
    SQUARE_ENVIRONMENT: str = Field(default="sandbox")
    SQUARE_API_VERSION: str = Field(default="2024-10-17")
    SQUARE_BASE_URL: Optional[str] = Field(default=None)
    SQUARE_REQUEST_TIMEOUT: int = Field(default=30)

    # === CONFIGURACIÓN DE PEDIDOS ===
    ORDERS_PAGE_SIZE: int = Field(default=100)
    ORDER_STATES: str = Field(default="COMPLETED,OPEN,CANCELED")
    # Si False, los line items sin match en catálogo se conservan con SKU vacío
    DROP_UNMATCHED_LINE_ITEMS: bool = Field(default=True)

    # === CONFIGURACIÓN DE RATE LIMITING ===
    THROTTLE_RATE_PER_SECOND: float = Field(default=5.0)
    THROTTLE_BURST: int = Field(default=10)
    THROTTLE_MAX_WAIT_SECONDS: float = Field(default=60.0)

    # === CONFIGURACIÓN DE RETRIES ===
    MAX_RETRIES: int = Field(default=3)
    RETRY_DELAY_SECONDS: float = Field(default=1.0)
    RETRY_BACKOFF_FACTOR: float = Field(default=2.0)
    RETRY_MAX_DELAY_SECONDS: float = Field(default=30.0)

    # === CONFIGURACIÓN DE LOGGING ===
    LOG_FILE_PATH: Optional[str] = Field(default=None)
    LOG_MAX_SIZE_MB: int = Field(default=10)
    LOG_BACKUP_COUNT: int = Field(default=5)
    LOG_FORMAT: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "allow",
    }

    @field_validator("ORDER_STATES")
    @classmethod
    def validate_order_states(cls, v):
        """Valida que ORDER_STATES contenga al menos un estado."""
        if not [state for state in v.split(",") if state.strip()]:
            raise ValueError("ORDER_STATES debe contener al menos un estado")
        return v.upper()

    @field_validator("ORDERS_PAGE_SIZE")
    @classmethod
    def validate_page_size(cls, v):
        """Valida que el tamaño de página esté dentro del límite de Square."""
        if not 1 <= v <= MAX_ORDERS_PAGE_SIZE:
            raise ValueError(f"ORDERS_PAGE_SIZE debe estar entre 1 y {MAX_ORDERS_PAGE_SIZE}")
        return v

    @field_validator("SQUARE_ENVIRONMENT")
    @classmethod
    def validate_square_environment(cls, v):
        """Valida el entorno de Square."""
        valid_envs = ["production", "sandbox"]
        if v.lower() not in valid_envs:
            raise ValueError(f"SQUARE_ENVIRONMENT debe ser uno de: {valid_envs}")
        return v.lower()

    @field_validator("THROTTLE_RATE_PER_SECOND", "THROTTLE_MAX_WAIT_SECONDS")
    @classmethod
    def validate_positive_float(cls, v):
        """Valida que los parámetros del throttler sean positivos."""
        if v <= 0:
            raise ValueError("Los parámetros de throttling deben ser positivos")
        return v

    @field_validator("THROTTLE_BURST", "MAX_RETRIES")
    @classmethod
    def validate_at_least_one(cls, v):
        """Valida que el valor sea al menos 1."""
        if v < 1:
            raise ValueError("El valor debe ser al menos 1")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Valida que el nivel de log sea válido."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL debe ser uno de: {valid_levels}")
        return v.upper()

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Valida que el entorno sea válido."""
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"ENVIRONMENT debe ser uno de: {valid_envs}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Verifica si está en entorno de producción."""
        return self.ENVIRONMENT == "production"

    @property
    def order_states(self) -> List[str]:
        """Parsea ORDER_STATES como lista separada por comas."""
        return [state.strip() for state in self.ORDER_STATES.split(",") if state.strip()]

    @property
    def square_base_url(self) -> str:
        """URL base de la API de Square según el entorno."""
        if self.SQUARE_BASE_URL:
            return self.SQUARE_BASE_URL.rstrip("/")
        if self.SQUARE_ENVIRONMENT == "production":
            return SQUARE_PRODUCTION_URL
        return SQUARE_SANDBOX_URL

    def get_square_headers(self) -> dict:
        """
        Obtiene headers para requests a Square.

        Returns:
            dict: Headers de autenticación
        """
        return {
            "Authorization": f"Bearer {self.SQUARE_ACCESS_TOKEN}",
            "Square-Version": self.SQUARE_API_VERSION,
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"{self.APP_NAME}/{self.APP_VERSION}",
        }


@lru_cache()
def get_settings() -> Settings:
    """
    Obtiene instancia singleton de configuración.

    Usa LRU cache para evitar recrear la configuración
    múltiples veces durante la ejecución.

    Returns:
        Settings: Instancia de configuración
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Recarga la configuración (útil para testing).

    Returns:
        Settings: Nueva instancia de configuración
    """
    get_settings.cache_clear()
    return get_settings()


def validate_required_settings() -> bool:
    """
    Valida que las configuraciones requeridas estén presentes.

    Returns:
        bool: True si todas las configuraciones están presentes

    Raises:
        ValueError: Si alguna configuración requerida falta
    """
    settings = get_settings()

    missing_fields = []
    for field in ["SQUARE_ACCESS_TOKEN", "SQUARE_API_VERSION"]:
        value = getattr(settings, field, None)
        if not value or (isinstance(value, str) and not value.strip()) or value == "your-access-token":
            missing_fields.append(field)

    if missing_fields:
        raise ValueError(f"Configuraciones requeridas faltantes: {missing_fields}")

    return True
