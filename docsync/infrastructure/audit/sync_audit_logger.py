"""
SyncAuditLogger - traza de auditoria de conflictos en JSON lines.

Un archivo por dia en SYNC_AUDIT_DIR: <YYYY-MM-DD>.jsonl. Cada linea
es un conflicto con el reporte completo del detector y la resolucion
aplicada (o pendiente de intervencion manual).

Uso:
    audit = SyncAuditLogger("logs/sync_audit")
    strategy = OneWayStrategy(..., audit_sink=audit)
    ...
    audit.close()
"""
import json
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

from docsync.domain.entities.resolution import Resolution
from docsync.shared.utils.datetime_utils import utc_now


class SyncAuditLogger:
    """
    Sink de loguru dedicado, filtrado por contexto: los mensajes de
    auditoria no aparecen en stderr ni en el log general.
    """

    FILE_PATTERN = "{time:YYYY-MM-DD}.jsonl"

    def __init__(self, directory: Union[str, Path] = "logs/sync_audit", retention: str = "30 days") -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._audit_id = uuid.uuid4().hex
        self._logger = logger.bind(context="sync_audit", audit_id=self._audit_id)
        self._handler_id: Optional[int] = logger.add(
            str(self.directory / self.FILE_PATTERN),
            format="{message}",
            filter=lambda record, aid=self._audit_id: record["extra"].get("audit_id") == aid,
            rotation="00:00",
            retention=retention,
            level="INFO",
        )
        logger.debug(f"Auditoria de conflictos en {self.directory}")

    def record_conflict(
        self,
        *,
        collection: str,
        document_id: str,
        report: Dict[str, Any],
        resolution: Resolution,
        dry_run: bool,
    ) -> None:
        entry = {
            "type": "CONFLICT",
            "timestamp": utc_now().isoformat(),
            "collection": collection,
            "document_id": document_id,
            "dry_run": dry_run,
            "applied": not dry_run and not resolution.requires_manual_intervention,
            "resolution": resolution.summary(),
            "report": report,
        }
        self._logger.info(json.dumps(entry, default=str, ensure_ascii=False))

    def close(self) -> None:
        """Quita el sink (cierra el archivo)."""
        if self._handler_id is not None:
            logger.remove(self._handler_id)
            self._handler_id = None
