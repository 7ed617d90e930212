"""
Acumulador del resultado de una corrida de sincronizacion.

Un SyncResult pertenece a una sola corrida de una coleccion; solo el
orquestador lo modifica mientras la corrida esta activa.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from docsync.shared.utils.datetime_utils import utc_now


@dataclass
class SyncResult:
    """
    Contadores y entradas de conflictos/errores de una corrida.

    Invariantes:
    - synced <= processed
    - los contadores solo crecen (salvo reset())
    """

    collection: Optional[str] = None
    processed: int = 0
    synced: int = 0
    conflict_count: int = 0
    error_count: int = 0
    conflicts: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    timed_out: bool = False
    cancelled: bool = False
    _successful: bool = field(default=True, repr=False)

    def increment_processed(self) -> None:
        self.processed += 1

    def increment_synced(self) -> None:
        self.synced += 1

    def add_error(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.errors.append({
            "message": message,
            "context": dict(context or {}),
            "timestamp": utc_now().isoformat(),
        })
        self.error_count += 1
        self._successful = False

    def add_conflict(self, document_id: str, conflict: Dict[str, Any]) -> None:
        """
        Registra un conflicto para el documento.

        Si el mismo id se registra dos veces en la corrida, la entrada
        se reemplaza pero el contador refleja ambas ocurrencias.
        """
        entry = dict(conflict)
        entry["timestamp"] = utc_now().isoformat()
        self.conflicts[str(document_id)] = entry
        self.conflict_count += 1

    def mark_as_failed(self) -> None:
        self._successful = False

    def mark_finished(self) -> None:
        self.finished_at = utc_now()

    def is_successful(self) -> bool:
        return self._successful and self.error_count == 0

    def pending_manual_review(self) -> List[str]:
        """Ids cuyo conflicto quedo sin aplicar esperando intervencion manual."""
        return [
            doc_id for doc_id, entry in self.conflicts.items()
            if entry.get("requires_manual_intervention")
        ]

    @property
    def success_rate_percent(self) -> float:
        if self.processed <= 0:
            return 0.0
        return round((self.synced / self.processed) * 100, 2)

    def summary(self) -> Dict[str, Any]:
        return {
            "successful": self.is_successful(),
            "processed": self.processed,
            "synced": self.synced,
            "conflicts": self.conflict_count,
            "errors": self.error_count,
            "success_rate_percent": self.success_rate_percent,
        }

    def merge(self, other: "SyncResult") -> "SyncResult":
        """
        Acumula otro resultado en este (p.ej. sync_document sobre un resultado
        parcial, o el total de varias colecciones).
        """
        self.processed += other.processed
        self.synced += other.synced
        self.conflict_count += other.conflict_count
        self.error_count += other.error_count
        self.conflicts.update(other.conflicts)
        self.errors.extend(other.errors)
        self.timed_out = self.timed_out or other.timed_out
        self.cancelled = self.cancelled or other.cancelled
        if not other.is_successful():
            self._successful = False
        return self

    def reset(self) -> None:
        self.processed = 0
        self.synced = 0
        self.conflict_count = 0
        self.error_count = 0
        self.conflicts = {}
        self.errors = []
        self.timed_out = False
        self.cancelled = False
        self.finished_at = None
        self._successful = True

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data.update({
            "collection": self.collection,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "timed_out": self.timed_out,
            "cancelled": self.cancelled,
            "pending_manual_review": self.pending_manual_review(),
            "conflict_entries": dict(self.conflicts),
            "error_entries": list(self.errors),
        })
        return data
