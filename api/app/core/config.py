"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.

Cubre los dos lados del pipeline de sincronizacion:
- Servicio de ingesta (FastAPI + base canonica)
- Cliente de sync (lectura del POS legacy + envio por lotes)
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    - DATABASE_URL se puede especificar completa o por componentes
    - LEGACY_DATABASE_URL apunta a la base del POS (solo lectura)
    - LIVE_SYNC_URL es la base de los endpoints de ingesta que usa el cliente
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="POS Live Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3001)

    # Base de datos canonica - Componentes separados
    DATABASE_HOST: str = Field(default="localhost")
    DATABASE_PORT: int = Field(default=5432)
    DATABASE_USER: str = Field(default="sync_user")
    DATABASE_PASSWORD: str = Field(default="sync_pass")
    DATABASE_NAME: str = Field(default="sync_db")

    # Base de datos canonica - URL completa (override de componentes si se proporciona)
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    # Estado de corridas de sync (filas con TTL en la base canonica)
    SYNC_RUN_TTL_HOURS: int = Field(default=72)

    # Cliente de sync - origen legacy
    LEGACY_DATABASE_URL: str = Field(default="")
    LEGACY_QUERY_TIMEOUT_S: float = Field(default=120.0)
    LEGACY_QUERY_CONCURRENCY: int = Field(default=4)
    LEGACY_IN_CLAUSE_SIZE: int = Field(default=500)

    # Cliente de sync - envio al servicio de ingesta
    LIVE_SYNC_URL: str = Field(default="http://localhost:3001/api/v1/live-sync")
    SYNC_HTTP_TIMEOUT_S: float = Field(default=300.0)
    SYNC_BATCH_SIZE: int = Field(default=2000)
    SYNC_CONCURRENCY: int = Field(default=10)
    SYNC_CACHE_FILE: str = Field(default="sync_cache.json")
    SYNC_START_DATE: str = Field(default="2025-01-01")

    # Exclusiones (lista JSON o separada por comas)
    SYNC_EXCLUDED_NAMES: str = Field(
        default="INTERNAL,ACCOUNTING,VISA,MASTERCARD"
    )
    SYNC_INTERNAL_LINE_MARKERS: str = Field(
        default=(
            "INVENTORY COST,FE TAX RECEIVED,PROFIT / LOSS OFFSET,PAYROLL,"
            "DEPRECIATION,LOAN FOR,BUSINESS USE OF PERSONAL"
        )
    )

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva.
        Si DATABASE_URL esta definida, la usa directamente.
        Si no, construye la URL desde los componentes individuales.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def parse_list_setting(raw: str) -> List[str]:
    """
    Parsea una configuracion de tipo lista.
    Acepta "*", una lista JSON o valores separados por comas.
    """
    if raw == "*":
        return ["*"]
    try:
        parsed = json.loads(raw)
        if isinstance(parsed, list):
            return [str(v) for v in parsed]
    except json.JSONDecodeError:
        pass
    return [item.strip() for item in raw.split(",") if item.strip()]


def get_cors_origins(cors_string: str) -> List[str]:
    """Parsea la configuracion de CORS."""
    return parse_list_setting(cors_string)


# Instancia global de configuracion
settings = Settings()
