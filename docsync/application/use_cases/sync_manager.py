"""
Casos de uso de sincronizacion.

El SyncManager es la fachada que usan el CLI y el scheduler: elige la
estrategia, maneja el cursor incremental y corre varias colecciones en
paralelo (cada coleccion sigue siendo serial).
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from docsync.application.dto.sync_dto import SyncOptions
from docsync.application.interfaces.sync_strategy import SyncStrategy
from docsync.application.services.conflict_detector import ConflictDetector
from docsync.application.services.schema_mapper import SchemaMapper
from docsync.domain.entities.conflicts import ConflictResolver
from docsync.domain.entities.sync_result import SyncResult
from docsync.domain.repositories.sync_state import SyncStateStore
from docsync.shared.exceptions.base import AppException
from docsync.shared.exceptions.sync import StrategyNotFoundException
from docsync.shared.utils.datetime_utils import utc_now


class SyncManager:
    """
    Registro de estrategias y punto de entrada de las corridas.
    """

    def __init__(
        self,
        *,
        schema_mapper: SchemaMapper,
        conflict_detector: ConflictDetector,
        default_strategy: str = "one_way",
        max_workers: int = 4,
        state_store: Optional[SyncStateStore] = None,
    ) -> None:
        self._mapper = schema_mapper
        self._detector = conflict_detector
        self._default_strategy = default_strategy
        self._max_workers = max(1, max_workers)
        self._state = state_store
        self._strategies: Dict[str, SyncStrategy] = {}

    # ------------------------------------------------------------------
    # Registro
    # ------------------------------------------------------------------

    def register_strategy(self, strategy: SyncStrategy) -> None:
        self._strategies[strategy.get_name()] = strategy
        logger.debug(f"Estrategia registrada: {strategy.get_name()}")

    def register_resolver(self, resolver: ConflictResolver) -> None:
        self._detector.add_resolver(resolver)
        logger.debug(f"Resolver registrado: {resolver.name} (prioridad {resolver.priority})")

    def available_strategies(self) -> List[str]:
        return sorted(self._strategies)

    def available_resolvers(self) -> List[str]:
        return [r.name for r in self._detector.resolvers]

    def get_strategy(self, name: Optional[str] = None) -> SyncStrategy:
        name = name or self._default_strategy
        strategy = self._strategies.get(name)
        if strategy is None:
            raise StrategyNotFoundException(name, self.available_strategies())
        return strategy

    # ------------------------------------------------------------------
    # Corridas
    # ------------------------------------------------------------------

    def sync_collection(
        self,
        collection: str,
        options: Optional[SyncOptions] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        """
        Sincroniza una coleccion completa.

        Con estado persistido y `incremental=True` se usa el cursor guardado
        cuando no se indica `since`; el cursor avanza al inicio de la corrida
        solo si no hubo errores y nunca en dry run.
        """
        options = options or SyncOptions()

        try:
            strategy = self.get_strategy(options.strategy_name)
        except StrategyNotFoundException as e:
            logger.error(e.message)
            return self._failed(collection, e)

        tracked = (
            self._state is not None
            and options.incremental
            and self._mapper.has_mapping(collection)
        )
        run_started_at = utc_now()

        if tracked:
            try:
                if options.since is None:
                    cursor = self._state.get_cursor(collection)
                    if cursor is not None:
                        logger.info(f"'{collection}': cursor incremental {cursor.isoformat()}")
                        options = options.with_overrides(since=cursor)
                if not options.dry_run:
                    self._state.mark_run_started(collection)
            except AppException as e:
                logger.error(f"No se pudo leer/actualizar el estado de '{collection}': {e.message}")
                return self._failed(collection, e)

        logger.info(f"Sync '{collection}' con estrategia '{strategy.get_name()}'")
        result = strategy.sync(collection, options, cancel_event=cancel_event)

        if tracked and not options.dry_run:
            self._finish_state(collection, result, run_started_at)

        level = "SUCCESS" if result.is_successful() else "WARNING"
        logger.log(level, f"Sync '{collection}' finalizado: {result.summary()}")
        return result

    def sync_document(
        self,
        collection: str,
        document_id: str,
        options: Optional[SyncOptions] = None,
    ) -> SyncResult:
        options = options or SyncOptions()
        try:
            strategy = self.get_strategy(options.strategy_name)
        except StrategyNotFoundException as e:
            logger.error(e.message)
            return self._failed(collection, e)

        result = strategy.sync_document(collection, document_id, options)
        result.mark_finished()
        return result

    def sync_collections(
        self,
        collections: Iterable[str],
        options: Optional[SyncOptions] = None,
        *,
        max_workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, SyncResult]:
        """
        Corre colecciones independientes en paralelo.

        Returns:
            Dict[str, SyncResult]: Resultado por coleccion, en el orden recibido
        """
        names = list(dict.fromkeys(collections))
        if not names:
            return {}

        workers = min(max_workers or self._max_workers, len(names))
        logger.info(f"Sincronizando {len(names)} colecciones con {workers} workers")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="docsync-") as executor:
            futures = {
                name: executor.submit(self.sync_collection, name, options, cancel_event=cancel_event)
                for name in names
            }
            return {name: future.result() for name, future in futures.items()}

    def status(self, collections: Iterable[str]) -> List[Dict[str, Any]]:
        """Mapeo, tabla destino y ultimo estado conocido por coleccion."""
        rows = []
        for collection in collections:
            has_mapping = self._mapper.has_mapping(collection)
            entry: Dict[str, Any] = {
                "collection": collection,
                "has_mapping": has_mapping,
                "table": self._mapper.table_for(collection) if has_mapping else None,
                "cursor": None,
                "last_run_status": None,
            }
            if self._state is not None:
                state = self._state.get_state(collection)
                if state is not None:
                    entry["cursor"] = state.cursor.isoformat() if state.cursor else None
                    entry["last_run_status"] = state.last_run_status
            rows.append(entry)
        return rows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _finish_state(self, collection: str, result: SyncResult, run_started_at: datetime) -> None:
        successful = result.is_successful()
        error = None
        if not successful:
            error = result.errors[0]["message"] if result.errors else "failed"
        try:
            self._state.mark_run_finished(
                collection,
                status="success" if successful else "error",
                error=error,
            )
            if successful:
                self._state.advance_cursor(collection, run_started_at)
        except AppException as e:
            logger.error(f"No se pudo persistir el estado de '{collection}': {e.message}")
            result.add_error(e.message, {"collection": collection, "error_code": e.error_code})

    @staticmethod
    def _failed(collection: str, error: AppException) -> SyncResult:
        result = SyncResult(collection=collection)
        result.add_error(error.message, {"collection": collection, "error_code": error.error_code, **error.details})
        result.mark_finished()
        return result
