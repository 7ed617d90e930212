"""
Estrategia de sincronizacion one-way: document store -> relational store.

Flujo por coleccion:
- Verifica el mapeo (sin mapeo la corrida aborta sin tocar los stores)
- Pagina los documentos del origen (opcionalmente desde `since`)
- Por documento: mapea -> busca la fila -> inserta | detecta/resuelve/aplica
- Acumula contadores, conflictos y errores en el SyncResult

Los registros de una coleccion se procesan en orden de origen, uno a la
vez; la cancelacion y el timeout solo se evaluan entre registros. Las
escrituras ya confirmadas no se revierten (at-least-once por registro).
"""
from __future__ import annotations

import threading
import time
from itertools import islice
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from loguru import logger

from docsync.application.dto.sync_dto import SyncOptions
from docsync.application.interfaces.conflict_audit import ConflictAuditSink
from docsync.application.interfaces.sync_strategy import SyncStrategy
from docsync.application.services.conflict_detector import ConflictDetector
from docsync.application.services.record_comparison import AUDIT_FIELDS
from docsync.application.services.schema_mapper import SchemaMapper
from docsync.domain.entities.resolution import Resolution, WinningSource
from docsync.domain.entities.sync_result import SyncResult
from docsync.domain.repositories.stores import DocumentStore, RelationalStore
from docsync.shared.exceptions.sync import (
    DocumentNotFoundException,
    SchemaMappingNotFoundException,
)

Document = Tuple[str, Dict[str, Any]]


def _pages(documents: Iterable[Document], size: int) -> Iterator[List[Document]]:
    iterator = iter(documents)
    while True:
        page = list(islice(iterator, size))
        if not page:
            return
        yield page


class OneWayStrategy(SyncStrategy):
    """
    Orquestador del sync one-way para una coleccion.
    """

    name = "one_way"

    def __init__(
        self,
        *,
        document_store: DocumentStore,
        relational_store: RelationalStore,
        schema_mapper: SchemaMapper,
        conflict_detector: ConflictDetector,
        audit_sink: Optional[ConflictAuditSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._documents = document_store
        self._relational = relational_store
        self._mapper = schema_mapper
        self._detector = conflict_detector
        self._audit = audit_sink
        self._clock = clock

    def supports_bidirectional(self) -> bool:
        return False

    # ------------------------------------------------------------------
    # Coleccion
    # ------------------------------------------------------------------

    def sync(
        self,
        collection: str,
        options: Optional[SyncOptions] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        options = options or SyncOptions()
        result = SyncResult(collection=collection)

        logger.info(
            f"Iniciando sync one-way de '{collection}' "
            f"(batch_size={options.batch_size}, since={options.since}, dry_run={options.dry_run})"
        )

        if not self._mapper.has_mapping(collection):
            error = SchemaMappingNotFoundException(collection)
            logger.error(error.message)
            result.add_error(error.message, {"collection": collection, "error_code": error.error_code})
            result.mark_finished()
            return result

        deadline = self._clock() + options.timeout_s if options.timeout_s else None

        try:
            documents = self._documents.list_documents(collection, options.since)
            for page_number, page in enumerate(_pages(documents, options.batch_size), start=1):
                logger.debug(f"'{collection}': pagina {page_number} con {len(page)} documentos")
                for document_id, fields in page:
                    if self._should_stop(collection, result, deadline, cancel_event, options):
                        result.mark_finished()
                        return result
                    self.sync_document(
                        collection,
                        document_id,
                        options,
                        document=fields,
                        result=result,
                    )
        except Exception as e:
            logger.error(f"Sync fallo para la coleccion '{collection}': {e}")
            result.add_error(
                f"Sync failed for collection {collection}: {e}",
                {"collection": collection, "error_type": type(e).__name__},
            )

        result.mark_finished()
        logger.info(f"Sync de '{collection}' completado: {result.summary()}")
        return result

    def _should_stop(
        self,
        collection: str,
        result: SyncResult,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
        options: SyncOptions,
    ) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(f"Sync de '{collection}' cancelado tras {result.processed} documentos")
            result.cancelled = True
            result.add_error(
                f"Sync cancelled for collection {collection}",
                {"collection": collection, "reason": "cancelled"},
            )
            return True

        if deadline is not None and self._clock() >= deadline:
            logger.warning(
                f"Sync de '{collection}' supero el timeout de {options.timeout_s}s "
                f"tras {result.processed} documentos"
            )
            result.timed_out = True
            result.add_error(
                f"Sync timed out for collection {collection} after {options.timeout_s}s",
                {"collection": collection, "reason": "timeout"},
            )
            return True

        return False

    # ------------------------------------------------------------------
    # Documento
    # ------------------------------------------------------------------

    def sync_document(
        self,
        collection: str,
        document_id: str,
        options: Optional[SyncOptions] = None,
        *,
        document: Optional[Dict[str, Any]] = None,
        result: Optional[SyncResult] = None,
    ) -> SyncResult:
        options = options or SyncOptions()
        if result is None:
            result = SyncResult(collection=collection)

        result.increment_processed()
        try:
            self._sync_record(collection, str(document_id), options, document, result)
        except Exception as e:
            logger.error(f"Fallo el sync de {collection}/{document_id}: {e}")
            result.add_error(
                f"Failed to sync document {document_id}: {e}",
                {
                    "document_id": str(document_id),
                    "collection": collection,
                    "error_type": type(e).__name__,
                },
            )
        return result

    def _sync_record(
        self,
        collection: str,
        document_id: str,
        options: SyncOptions,
        document: Optional[Dict[str, Any]],
        result: SyncResult,
    ) -> None:
        if not self._mapper.has_mapping(collection):
            raise SchemaMappingNotFoundException(collection)

        remote = document
        if remote is None:
            remote = self._documents.get_document(collection, document_id)
            if remote is None:
                raise DocumentNotFoundException(collection, document_id)

        local_data = self._mapper.to_local(collection, remote)
        table = self._mapper.table_for(collection)
        row = self._relational.get_row(table, document_id)

        if row is None:
            self._insert(table, document_id, local_data, options)
            result.increment_synced()
            return

        # La columna identidad no es dato de negocio: nunca entra a la comparacion.
        existing = {k: v for k, v in row.items() if k != self._mapper.id_column}
        if remote.get("created_at") is None:
            # Sin created_at en el origen se conserva el almacenado.
            local_data.pop("created_at", None)

        metadata = {"collection": collection, "document_id": document_id, "table": table}
        resolution = self._detector.resolve(local_data, existing, metadata)

        if resolution is None:
            self._update(table, document_id, self._with_cleared_columns(local_data, existing), options)
            result.increment_synced()
            return

        self._record_conflict(collection, document_id, local_data, existing, metadata, resolution, options, result)

        if resolution.requires_manual_intervention:
            logger.warning(
                f"Intervencion manual requerida para {collection}/{document_id}: "
                f"{resolution.description}"
            )
            return

        resolved = resolution.resolved_data
        if resolution.winning_source is WinningSource.REMOTE:
            resolved = self._with_cleared_columns(resolved, existing)
        self._update(table, document_id, resolved, options)
        result.increment_synced()

    def _protected_columns(self) -> Set[str]:
        """Columnas que el origen no controla: identidad, auditoria y campos de politica."""
        protected = set(AUDIT_FIELDS) | {self._mapper.id_column}
        for resolver in self._detector.resolvers:
            for attr in ("version_field", "timestamp_field"):
                value = getattr(resolver, attr, None)
                if value:
                    protected.add(value)
        return protected

    def _with_cleared_columns(self, data: Dict[str, Any], existing: Dict[str, Any]) -> Dict[str, Any]:
        """
        Columnas con valor local que el documento ya no trae se escriben como NULL.

        Airtable omite los campos vacios: un valor borrado en el origen llega
        como clave ausente.
        """
        protected = self._protected_columns()
        cleared = dict(data)
        for column, value in existing.items():
            if column not in cleared and column not in protected and value is not None:
                cleared[column] = None
        return cleared

    def _record_conflict(
        self,
        collection: str,
        document_id: str,
        remote: Dict[str, Any],
        local: Dict[str, Any],
        metadata: Dict[str, Any],
        resolution: Resolution,
        options: SyncOptions,
        result: SyncResult,
    ) -> None:
        result.add_conflict(document_id, {
            "action": resolution.action,
            "winning_source": resolution.winning_source.value,
            "description": resolution.description,
            "resolver": resolution.metadata.get("resolver"),
            "requires_manual_intervention": resolution.requires_manual_intervention,
            "confidence": resolution.confidence,
        })
        logger.info(
            f"Conflicto en {collection}/{document_id}: {resolution.action} "
            f"(gana {resolution.winning_source.value}, confianza {resolution.confidence})"
        )

        if self._audit is not None:
            self._audit.record_conflict(
                collection=collection,
                document_id=document_id,
                report=self._detector.generate_conflict_report(remote, local, metadata),
                resolution=resolution,
                dry_run=options.dry_run,
            )

    # ------------------------------------------------------------------
    # Escrituras
    # ------------------------------------------------------------------

    def _insert(self, table: str, document_id: str, data: Dict[str, Any], options: SyncOptions) -> None:
        row = dict(data)
        row[self._mapper.id_column] = document_id
        if options.dry_run:
            logger.debug(f"[dry-run] Insertaria {table}/{document_id}")
            return
        self._relational.insert_row(table, row)
        logger.debug(f"Insertado {table}/{document_id}")

    def _update(self, table: str, document_id: str, data: Dict[str, Any], options: SyncOptions) -> None:
        columns = {k: v for k, v in data.items() if k != self._mapper.id_column}
        if options.dry_run:
            logger.debug(f"[dry-run] Actualizaria {table}/{document_id}")
            return
        self._relational.update_row(table, document_id, columns)
        logger.debug(f"Actualizado {table}/{document_id}")
