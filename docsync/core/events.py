"""
Manejadores de inicio y cierre del job de sincronizacion.
"""
import sys
from typing import Optional

from loguru import logger
from sqlalchemy.engine import Engine

from docsync.core.config import Settings


def configure_logging(settings: Settings) -> None:
    """
    Configura los sinks de loguru.

    - stderr con el nivel configurado
    - archivo rotativo si LOG_FILE esta definido
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)
    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="500 MB",
            retention="10 days",
            level=settings.LOG_LEVEL
        )


def startup(settings: Settings) -> None:
    """Inicializa logging y valida la configuracion critica."""
    configure_logging(settings)
    logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Entorno: {settings.ENVIRONMENT}")
    _validate_config(settings)


def _validate_config(settings: Settings) -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    if not settings.AIRTABLE_TOKEN or not settings.AIRTABLE_BASE_ID:
        warnings.append("AIRTABLE_TOKEN / AIRTABLE_BASE_ID no configurados - el origen no respondera")

    if not settings.SYNC_MAPPINGS_FILE:
        warnings.append("SYNC_MAPPINGS_FILE no configurado - ninguna coleccion tiene mapeo")

    if not settings.conflict_policies:
        warnings.append("SYNC_CONFLICT_POLICIES vacio - toda diferencia se aplicara sin resolver")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def shutdown(engine: Optional[Engine] = None) -> None:
    """Libera recursos al terminar el job."""
    if engine is not None:
        engine.dispose()
        logger.info("Conexiones de base de datos cerradas")
    logger.success("Sync finalizado")
