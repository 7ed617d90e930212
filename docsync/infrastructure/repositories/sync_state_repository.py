"""
Repositorio SQLAlchemy para la tabla de cursor/estado de sync.

Una fila por (source, collection). Portable entre dialectos: el "upsert"
se hace con SELECT + INSERT/UPDATE dentro de la misma transaccion.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import Column, DateTime, MetaData, String, Table, Text, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from docsync.domain.repositories.sync_state import SyncState, SyncStateStore
from docsync.shared.exceptions.sync import RelationalStoreException
from docsync.shared.utils.datetime_utils import ensure_utc, utc_now

SYNC_STATE_TABLE = "sync_state"


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite devuelve datetimes naive aunque la columna sea timezone=True
    return ensure_utc(value) if value is not None else None


class SyncStateRepository(SyncStateStore):
    def __init__(self, engine: Engine, *, source: str = "airtable", table_name: str = SYNC_STATE_TABLE) -> None:
        self._engine = engine
        self._source = source
        self._metadata = MetaData()
        self._table = Table(
            table_name,
            self._metadata,
            Column("source", String(64), primary_key=True),
            Column("collection", String(255), primary_key=True),
            Column("cursor", DateTime(timezone=True), nullable=True),
            Column("last_run_started_at", DateTime(timezone=True), nullable=True),
            Column("last_run_completed_at", DateTime(timezone=True), nullable=True),
            Column("last_run_status", String(32), nullable=True),
            Column("last_run_error", Text, nullable=True),
            Column("updated_at", DateTime(timezone=True), nullable=True),
        )

    def ensure_table(self) -> None:
        """CREATE TABLE IF NOT EXISTS sync_state."""
        try:
            self._metadata.create_all(self._engine, tables=[self._table], checkfirst=True)
        except SQLAlchemyError as e:
            raise RelationalStoreException(
                f"No se pudo crear la tabla {self._table.name}: {e}",
                details={"table": self._table.name},
            ) from e

    def get_state(self, collection: str) -> Optional[SyncState]:
        try:
            with self._engine.connect() as conn:
                row = self._select(conn, collection)
        except SQLAlchemyError as e:
            raise RelationalStoreException(
                f"No se pudo leer sync_state de '{collection}': {e}",
                details={"collection": collection},
            ) from e

        if row is None:
            return None

        return SyncState(
            collection=row["collection"],
            source=row["source"],
            cursor=_aware(row["cursor"]),
            last_run_started_at=_aware(row["last_run_started_at"]),
            last_run_completed_at=_aware(row["last_run_completed_at"]),
            last_run_status=row["last_run_status"],
            last_run_error=row["last_run_error"],
            updated_at=_aware(row["updated_at"]),
        )

    def mark_run_started(self, collection: str) -> None:
        now = utc_now()
        self._save(collection, {
            "last_run_started_at": now,
            "last_run_status": "running",
            "last_run_error": None,
            "updated_at": now,
        })

    def mark_run_finished(self, collection: str, *, status: str, error: Optional[str]) -> None:
        now = utc_now()
        self._save(collection, {
            "last_run_completed_at": now,
            "last_run_status": status,
            "last_run_error": error[:2000] if error else None,
            "updated_at": now,
        })

    def advance_cursor(self, collection: str, cursor: datetime) -> None:
        self._save(collection, {"cursor": ensure_utc(cursor), "updated_at": utc_now()})
        logger.debug(f"Cursor de '{collection}' avanzado a {ensure_utc(cursor).isoformat()}")

    def _select(self, conn: Connection, collection: str) -> Optional[Dict[str, Any]]:
        stmt = select(self._table).where(
            self._table.c.source == self._source,
            self._table.c.collection == collection,
        )
        row = conn.execute(stmt).mappings().first()
        return dict(row) if row else None

    def _save(self, collection: str, values: Dict[str, Any]) -> None:
        try:
            with self._engine.begin() as conn:
                if self._select(conn, collection) is None:
                    conn.execute(
                        self._table.insert().values(source=self._source, collection=collection, **values)
                    )
                else:
                    conn.execute(
                        self._table.update()
                        .where(
                            self._table.c.source == self._source,
                            self._table.c.collection == collection,
                        )
                        .values(**values)
                    )
        except SQLAlchemyError as e:
            raise RelationalStoreException(
                f"No se pudo actualizar sync_state de '{collection}': {e}",
                details={"collection": collection},
            ) from e
