"""
Guia de esquema: sugiere la tabla destino a partir de un documento de ejemplo.

No ejecuta DDL; solo construye el `Table` de SQLAlchemy y su CREATE TABLE
para que el operador lo revise (ver scripts/run_sync.py --schema-only).
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Mapping, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects import mssql, mysql, postgresql, sqlite
from sqlalchemy.schema import CreateTable
from sqlalchemy.types import TypeEngine

from docsync.application.services.schema_mapper import SchemaMapper
from docsync.shared.utils.datetime_utils import DateTimeUtils

LONG_TEXT_THRESHOLD = 500
MEDIUM_TEXT_THRESHOLD = 255

_DIALECTS = {
    "postgresql": postgresql.dialect,
    "sqlite": sqlite.dialect,
    "mysql": mysql.dialect,
    "mssql": mssql.dialect,
}


def snake_case(name: str) -> str:
    """'Blog Posts' / 'blogPosts' -> 'blog_posts'."""
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name.strip())
    name = re.sub(r"[^0-9a-zA-Z]+", "_", name)
    return name.strip("_").lower()


def infer_column_type(field_name: str, value: Any) -> TypeEngine:
    """Tipo SQLAlchemy sugerido para un valor de ejemplo."""
    if isinstance(value, bool):
        return Boolean()
    if isinstance(value, int):
        return BigInteger()
    if isinstance(value, float):
        return Numeric(18, 6)
    if isinstance(value, datetime):
        return DateTime(timezone=True)
    if isinstance(value, date):
        return Date()
    if isinstance(value, (dict, list, tuple)):
        return Text()
    if isinstance(value, str):
        if field_name.endswith("_at") or field_name.endswith("_date"):
            if DateTimeUtils.from_iso_string(value) is not None:
                return DateTime(timezone=True)
        if len(value) > LONG_TEXT_THRESHOLD:
            return Text()
        if len(value) > MEDIUM_TEXT_THRESHOLD:
            return String(LONG_TEXT_THRESHOLD)
        return String(MEDIUM_TEXT_THRESHOLD)
    if value is None:
        return String(MEDIUM_TEXT_THRESHOLD)
    if DateTimeUtils.from_native_timestamp(value) is not None:
        return DateTime(timezone=True)
    return Text()


def build_table(
    metadata: MetaData,
    collection: str,
    sample: Mapping[str, Any],
    *,
    mapper: Optional[SchemaMapper] = None,
    id_column: str = "id",
    version_column: Optional[str] = None,
) -> Table:
    """
    Construye la tabla sugerida para la coleccion.

    Si se pasa un mapper, se respetan nombre de tabla y columnas mapeadas
    (los campos excluidos no generan columna). Con `version_column` se agrega
    el contador que necesita la politica version_based.
    """
    if mapper is not None and mapper.has_mapping(collection):
        table_name = mapper.table_for(collection)
        mapping = mapper.column_mapping(collection)
    else:
        table_name = snake_case(collection)
        mapping = {}

    columns = [Column(id_column, String(MEDIUM_TEXT_THRESHOLD), primary_key=True)]
    seen = {id_column}

    for field_name, value in sample.items():
        target = mapping.get(field_name)
        column_name = target.column_for(field_name) if target else field_name
        if column_name is None or column_name in seen:
            continue
        seen.add(column_name)
        columns.append(Column(column_name, infer_column_type(column_name, value), nullable=True))

    for audit_column in ("created_at", "updated_at"):
        if audit_column not in seen:
            columns.append(Column(audit_column, DateTime(timezone=True), nullable=True))

    if version_column and version_column not in seen:
        columns.append(Column(version_column, BigInteger(), nullable=True))

    return Table(table_name, metadata, *columns)


def generate_ddl(table: Table, dialect_name: str = "postgresql") -> str:
    """CREATE TABLE compilado para el dialecto indicado."""
    dialect_cls = _DIALECTS.get(dialect_name)
    if dialect_cls is None:
        raise ValueError(
            f"Dialecto no soportado: {dialect_name}. Opciones: {', '.join(sorted(_DIALECTS))}"
        )
    dialect = dialect_cls()
    return str(CreateTable(table).compile(dialect=dialect)).strip() + ";"
