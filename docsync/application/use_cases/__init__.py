"""
Casos de uso de la aplicacion.
"""
from .one_way_strategy import OneWayStrategy
from .sync_manager import SyncManager

__all__ = ["OneWayStrategy", "SyncManager"]
