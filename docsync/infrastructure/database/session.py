"""
Gestion del engine del relational store.

SQLAlchemy Core sincrono: el job corre fuera de cualquier event loop y
cada escritura abre su propia transaccion (engine.begin()).
"""
from typing import Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from docsync.core.config import Settings, settings as default_settings


def _create_engine_args(settings: Settings) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL usa pool de conexiones, SQLite no lo soporta.
    """
    args = {
        "echo": settings.DEBUG,
        "future": True,
    }

    # Configuracion de pool solo para PostgreSQL
    if "postgresql" in settings.DATABASE_URL:
        args.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,  # Verifica conexion antes de usar
        })

    return args


def build_engine(settings: Optional[Settings] = None) -> Engine:
    """Crea el engine a partir de DATABASE_URL."""
    settings = settings or default_settings
    engine = create_engine(settings.DATABASE_URL, **_create_engine_args(settings))
    logger.debug(f"Engine creado para dialecto '{engine.dialect.name}'")
    return engine
