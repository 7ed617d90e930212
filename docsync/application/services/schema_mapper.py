"""
Traductor entre documentos (origen) y filas relacionales (destino).

Reglas:
- Campos no mapeados viajan con el mismo nombre (identidad).
- Campos EXCLUDED se descartan en ambas direcciones.
- created_at/updated_at/deleted_at en ISO 8601 se parsean a datetime UTC.
- Los valores se transforman por tipo; las transformaciones nunca levantan
  excepciones: un tipo desconocido pasa sin cambios.

Los mapeos se registran en tiempo de configuracion, antes de iniciar
corridas; durante una corrida el mapper es de solo lectura.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

from loguru import logger

from docsync.domain.entities.mapping import CollectionMapping, ColumnTarget, MappingKind
from docsync.shared.exceptions.sync import SyncConfigException
from docsync.shared.utils.datetime_utils import DateTimeUtils, utc_now

TIMESTAMP_COLUMNS = ("created_at", "updated_at", "deleted_at")

# Columnas que por convencion guardan datos estructurados serializados.
JSON_COLUMN_PATTERNS = ("_data", "_meta", "_config", "_settings", "_attributes")

ColumnSpec = Union[ColumnTarget, str]


class SchemaMapper:
    """
    Registro de mapeos coleccion -> tabla y traductor de valores.
    """

    def __init__(self, id_column: str = "id") -> None:
        self._id_column = id_column
        self._mappings: Dict[str, CollectionMapping] = {}
        self._default_columns: Dict[str, ColumnTarget] = {
            column: ColumnTarget.identity() for column in TIMESTAMP_COLUMNS
        }

    @property
    def id_column(self) -> str:
        return self._id_column

    # ------------------------------------------------------------------
    # Configuracion
    # ------------------------------------------------------------------

    def register_mapping(
        self,
        collection: str,
        table: str,
        column_mapping: Optional[Mapping[str, ColumnSpec]] = None,
    ) -> None:
        """
        Registra (o reemplaza) el mapeo de una coleccion.

        Args:
            collection: Nombre de la coleccion en el document store
            table: Tabla destino
            column_mapping: campo -> ColumnTarget o nombre de columna
        """
        columns: Dict[str, ColumnTarget] = {}
        for field_name, spec in (column_mapping or {}).items():
            try:
                columns[field_name] = ColumnTarget.coerce(field_name, spec)
            except ValueError as e:
                raise SyncConfigException(str(e), details={"collection": collection}) from e

        if collection in self._mappings:
            logger.debug(f"Reemplazando mapeo existente de '{collection}'")
        self._mappings[collection] = CollectionMapping(
            collection=collection,
            table=table or collection,
            columns=columns,
        )

    def load_from_config(self, config: Mapping[str, Mapping[str, Any]]) -> None:
        """
        Carga mapeos desde un dict de configuracion:

            {"posts": {"table": "blog_posts", "columns": {"content": "body", "secret": None}}}

        En esta forma serializada, None significa EXCLUDED.
        """
        for collection, mapping in config.items():
            raw_columns = mapping.get("columns") or {}
            columns: Dict[str, ColumnSpec] = {
                field_name: ColumnTarget.excluded() if spec is None else spec
                for field_name, spec in raw_columns.items()
            }
            self.register_mapping(collection, mapping.get("table") or collection, columns)

    def has_mapping(self, collection: str) -> bool:
        return collection in self._mappings

    def table_for(self, collection: str) -> str:
        mapping = self._mappings.get(collection)
        return mapping.table if mapping else collection

    def column_mapping(self, collection: str) -> Dict[str, ColumnTarget]:
        """Mapeo efectivo: defaults de auditoria + mapeo registrado."""
        merged = dict(self._default_columns)
        mapping = self._mappings.get(collection)
        if mapping:
            merged.update(mapping.columns)
        return merged

    def all_mappings(self) -> Dict[str, CollectionMapping]:
        return dict(self._mappings)

    # ------------------------------------------------------------------
    # Traduccion
    # ------------------------------------------------------------------

    def to_local(self, collection: str, remote: Mapping[str, Any]) -> Dict[str, Any]:
        """Documento -> fila relacional."""
        mapping = self.column_mapping(collection)
        local: Dict[str, Any] = {}

        for field_name, value in remote.items():
            target = mapping.get(field_name, ColumnTarget.identity())
            column = target.column_for(field_name)
            if column is None:
                continue
            local[column] = self._transform_to_local(column, value)

        now = utc_now()
        for column in ("created_at", "updated_at"):
            if local.get(column) is None:
                local[column] = now

        return local

    def to_remote(self, collection: str, local: Mapping[str, Any]) -> Dict[str, Any]:
        """Fila relacional -> documento."""
        reverse: Dict[str, Optional[str]] = {}
        for field_name, target in self.column_mapping(collection).items():
            if target.kind is MappingKind.RENAMED:
                reverse[target.column] = field_name
            elif target.kind is MappingKind.EXCLUDED:
                # La columna homonima no vuelve al documento.
                reverse.setdefault(field_name, None)

        remote: Dict[str, Any] = {}
        for column, value in local.items():
            if column == self._id_column:
                continue
            field_name = reverse.get(column, column)
            if field_name is None:
                continue
            remote[field_name] = self._transform_to_remote(column, value)

        return remote

    # ------------------------------------------------------------------
    # Transformaciones por tipo
    # ------------------------------------------------------------------

    def _transform_to_local(self, column: str, value: Any) -> Any:
        if isinstance(value, bool):
            return 1 if value else 0

        if isinstance(value, datetime):
            return DateTimeUtils.ensure_utc(value)

        if column in TIMESTAMP_COLUMNS and isinstance(value, str):
            parsed = DateTimeUtils.from_iso_string(value)
            return DateTimeUtils.ensure_utc(parsed) if parsed else value

        if isinstance(value, (dict, list, tuple)):
            try:
                return json.dumps(value, ensure_ascii=False, default=str)
            except (TypeError, ValueError):
                return value

        native = DateTimeUtils.from_native_timestamp(value)
        if native is not None:
            return native

        return value

    def _transform_to_remote(self, column: str, value: Any) -> Any:
        if column in TIMESTAMP_COLUMNS and value:
            if isinstance(value, datetime):
                return DateTimeUtils.ensure_utc(value)
            if isinstance(value, str):
                parsed = DateTimeUtils.from_iso_string(value)
                return DateTimeUtils.ensure_utc(parsed) if parsed else value

        if isinstance(value, str) and self._is_json_column(column):
            try:
                return json.loads(value)
            except ValueError:
                return value

        if isinstance(value, int) and not isinstance(value, bool) and value in (0, 1):
            return bool(value)

        return value

    @staticmethod
    def _is_json_column(column: str) -> bool:
        return any(pattern in column for pattern in JSON_COLUMN_PATTERNS)
