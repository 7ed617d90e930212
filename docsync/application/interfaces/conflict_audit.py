"""
Interfaz para registrar el detalle de cada conflicto detectado.

El reporte completo (todos los resolvers que detectaron conflicto, diff y
severidad) es solo informativo: el orquestador aplica unicamente la
resolucion del resolver de mayor prioridad.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol

from docsync.domain.entities.resolution import Resolution


class ConflictAuditSink(Protocol):
    """
    Destino de auditoria de conflictos.

    Implementaciones:
    - SyncAuditLogger (archivo JSONL por dia).
    - Fake en memoria para tests.
    """

    def record_conflict(
        self,
        *,
        collection: str,
        document_id: str,
        report: Dict[str, Any],
        resolution: Resolution,
        dry_run: bool,
    ) -> None:
        ...
