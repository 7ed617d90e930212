"""
Relational store sobre SQLAlchemy Core (cualquier dialecto).

Las tablas destino no se declaran en codigo: se reflejan la primera vez
que se usan y se cachean. Cada escritura es su propia transaccion.
"""
from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import MetaData, Table, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from docsync.domain.repositories.stores import RelationalStore
from docsync.shared.exceptions.sync import RelationalStoreException


class SqlAlchemyRelationalStore(RelationalStore):
    """
    Implementacion del relational store con tablas reflejadas.
    """

    def __init__(self, engine: Engine, *, id_column: str = "id", schema: Optional[str] = None):
        self._engine = engine
        self._id_column = id_column
        self._schema = schema
        self._metadata = MetaData(schema=schema)
        self._tables: Dict[str, Table] = {}
        self._lock = threading.Lock()

    def get_row(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        target = self._table(table)
        stmt = select(target).where(self._id(target) == row_id)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as e:
            raise RelationalStoreException(
                f"Error leyendo {table}/{row_id}: {e}",
                details={"table": table, "row_id": row_id},
            ) from e
        return dict(row) if row else None

    def insert_row(self, table: str, columns: Dict[str, Any]) -> None:
        target = self._table(table)
        self._check_columns(target, columns)
        try:
            with self._engine.begin() as conn:
                conn.execute(target.insert().values(**columns))
        except SQLAlchemyError as e:
            raise RelationalStoreException(
                f"Error insertando en {table}: {e}",
                details={"table": table, "row_id": columns.get(self._id_column)},
            ) from e

    def update_row(self, table: str, row_id: str, columns: Dict[str, Any]) -> None:
        if not columns:
            return
        target = self._table(table)
        self._check_columns(target, columns)
        stmt = target.update().where(self._id(target) == row_id).values(**columns)
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as e:
            raise RelationalStoreException(
                f"Error actualizando {table}/{row_id}: {e}",
                details={"table": table, "row_id": row_id},
            ) from e

    def _table(self, name: str) -> Table:
        with self._lock:
            cached = self._tables.get(name)
            if cached is not None:
                return cached
            try:
                table = Table(name, self._metadata, autoload_with=self._engine)
            except NoSuchTableError as e:
                raise RelationalStoreException(
                    f"La tabla destino no existe: {name}",
                    details={"table": name, "schema": self._schema},
                ) from e
            except SQLAlchemyError as e:
                raise RelationalStoreException(
                    f"No se pudo reflejar la tabla {name}: {e}",
                    details={"table": name},
                ) from e

            if self._id_column not in table.c:
                raise RelationalStoreException(
                    f"La tabla {name} no tiene la columna identidad '{self._id_column}'",
                    details={"table": name, "id_column": self._id_column},
                )

            logger.debug(f"Tabla reflejada: {name} ({len(table.c)} columnas)")
            self._tables[name] = table
            return table

    def _id(self, table: Table):
        return table.c[self._id_column]

    @staticmethod
    def _check_columns(table: Table, columns: Dict[str, Any]) -> None:
        unknown = sorted(set(columns) - set(table.c.keys()))
        if unknown:
            raise RelationalStoreException(
                f"Columnas desconocidas en {table.name}: {', '.join(unknown)}",
                details={"table": table.name, "unknown_columns": unknown},
            )
