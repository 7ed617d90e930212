"""
Configuracion central del job de sincronizacion.
Gestiona variables de entorno y configuraciones globales.

Las variables se leen del entorno o de un archivo .env en el cwd.
"""
from typing import List

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Clase de configuracion de docsync.
    Lee variables de entorno y proporciona valores por defecto.

    - DATABASE_URL apunta al relational store destino (cualquier dialecto
      soportado por SQLAlchemy).
    - AIRTABLE_* configuran el document store origen.
    - SYNC_* controlan la politica de sincronizacion.
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="docsync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Relational store (destino)
    DATABASE_URL: str = Field(default="sqlite:///./docsync.db")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)

    # Document store (origen)
    AIRTABLE_TOKEN: str = Field(default="")
    AIRTABLE_BASE_ID: str = Field(default="")
    AIRTABLE_LAST_MOD_FIELD: str = Field(default="Last Modified")

    # Politica de sync
    SYNC_STRATEGY: str = Field(default="one_way")
    # Resolvers habilitados; el orden no importa, manda la prioridad de cada uno.
    # version_based con auto-increment solo es seguro si el origen mantiene su
    # propio contador de version (Airtable no lo hace).
    SYNC_CONFLICT_POLICIES: str = Field(default="last_write_wins")
    SYNC_BATCH_SIZE: int = Field(default=100)
    SYNC_TIMEOUT_S: float = Field(default=300.0)
    SYNC_MAX_WORKERS: int = Field(default=4)
    SYNC_COLLECTIONS: str = Field(default="")
    SYNC_MAPPINGS_FILE: str = Field(default="")
    SYNC_TIMESTAMP_FIELD: str = Field(default="updated_at")
    SYNC_VERSION_FIELD: str = Field(default="_version")
    SYNC_VERSION_AUTO_INCREMENT: bool = Field(default=True)
    SYNC_ID_COLUMN: str = Field(default="id")
    SYNC_STATE_ENABLED: bool = Field(default=False)

    # Auditoria de conflictos
    SYNC_AUDIT_ENABLED: bool = Field(default=False)
    SYNC_AUDIT_DIR: str = Field(default="logs/sync_audit")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/docsync.log")

    @computed_field
    @property
    def conflict_policies(self) -> List[str]:
        """Lista normalizada de resolvers habilitados."""
        return parse_csv_list(self.SYNC_CONFLICT_POLICIES)

    @computed_field
    @property
    def default_collections(self) -> List[str]:
        """Colecciones a sincronizar cuando el job no recibe ninguna."""
        return parse_csv_list(self.SYNC_COLLECTIONS)

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


def parse_csv_list(raw: str) -> List[str]:
    """
    Parsea una lista separada por comas.
    Ignora espacios y elementos vacios, conserva el orden.
    """
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


# Instancia global de configuracion
settings = Settings()
