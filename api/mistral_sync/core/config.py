"""
Configuracion central del motor de sincronizacion.
Gestiona variables de entorno y configuraciones globales.

Los tiempos del scheduler se expresan en milisegundos para mantener
la misma unidad que usa el frontend (debounce 2000 ms, auto-sync 30000 ms).
Un intervalo de 0 desactiva el loop correspondiente.
"""
import json
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Grupos:
    - Aplicacion / servidor HTTP de control
    - Store remoto (Supabase REST)
    - Cache local (SQLAlchemy, SQLite por defecto)
    - Scheduler de sincronizacion
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignorar campos extra del .env
    )

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Mistral Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/sync.log")

    # Store remoto (Supabase / PostgREST)
    SUPABASE_URL: str = Field(default="")
    SUPABASE_KEY: str = Field(default="")
    REMOTE_TIMEOUT_S: float = Field(default=30.0)
    REMOTE_MAX_RETRIES: int = Field(default=3)

    # Cache local
    CACHE_DATABASE_URL: str = Field(default="sqlite:///mistral_cache.db")
    # Equivalente a la cuota de localStorage (~5 MB por valor). 0 = sin limite.
    CACHE_MAX_VALUE_BYTES: int = Field(default=5 * 1024 * 1024)

    # Scheduler
    SYNC_DEBOUNCE_MS: int = Field(default=2000)
    SYNC_INTERVAL_MS: int = Field(default=30000)
    SYNC_WATCH_INTERVAL_MS: int = Field(default=1000)
    SYNC_INITIAL_PULL: bool = Field(default=True)
    SYNC_STATE_KEY: str = Field(default="mistral_sync_state")

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    @computed_field
    @property
    def remote_configured(self) -> bool:
        """Indica si hay credenciales para el store remoto."""
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuracion
settings = Settings()
