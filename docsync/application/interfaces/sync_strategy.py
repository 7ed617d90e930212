"""
Interfaz de las estrategias de sincronizacion.

Este contrato existe para:
- Permitir estrategias futuras (p.ej. bidireccional, que tambien reconcilie
  registros que solo existen en el destino) sin tocar el SyncManager.
- Facilitar tests unitarios con stores falsos.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from docsync.application.dto.sync_dto import SyncOptions
from docsync.domain.entities.sync_result import SyncResult


class SyncStrategy(ABC):
    """
    Estrategia de sync para una coleccion.

    Implementaciones:
    - OneWayStrategy: documento -> relacional.
    """

    name: str = ""

    @abstractmethod
    def sync(
        self,
        collection: str,
        options: Optional[SyncOptions] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        """Sincroniza una coleccion completa (o incremental con `since`)."""

    @abstractmethod
    def sync_document(
        self,
        collection: str,
        document_id: str,
        options: Optional[SyncOptions] = None,
        *,
        document: Optional[Dict[str, Any]] = None,
        result: Optional[SyncResult] = None,
    ) -> SyncResult:
        """Sincroniza un unico documento."""

    def get_name(self) -> str:
        return self.name

    @abstractmethod
    def supports_bidirectional(self) -> bool:
        """Indica si la estrategia reconcilia tambien destino -> origen."""
