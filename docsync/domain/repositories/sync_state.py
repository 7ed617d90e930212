"""
Interfaz del repositorio de estado de sync (cursor incremental por coleccion).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class SyncState:
    """
    Estado persistido por coleccion.

    cursor:
        punto de lectura en el origen (documentos modificados >= cursor).
        None hasta la primera corrida exitosa.
    """

    collection: str
    source: str
    cursor: Optional[datetime]
    last_run_started_at: Optional[datetime]
    last_run_completed_at: Optional[datetime]
    last_run_status: Optional[str]
    last_run_error: Optional[str]
    updated_at: Optional[datetime]


class SyncStateStore(ABC):
    """
    Contrato del estado de sync usado por el SyncManager.
    """

    @abstractmethod
    def get_state(self, collection: str) -> Optional[SyncState]:
        pass

    def get_cursor(self, collection: str) -> Optional[datetime]:
        state = self.get_state(collection)
        return state.cursor if state else None

    @abstractmethod
    def mark_run_started(self, collection: str) -> None:
        pass

    @abstractmethod
    def mark_run_finished(self, collection: str, *, status: str, error: Optional[str]) -> None:
        pass

    @abstractmethod
    def advance_cursor(self, collection: str, cursor: datetime) -> None:
        pass
