"""
Configuracion de fixtures para pytest.

Fakes en memoria de los dos stores (registran cada escritura) y un engine
SQLite en memoria para los adaptadores SQLAlchemy.
"""
import copy
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from docsync.application.services.conflict_detector import ConflictDetector
from docsync.application.services.conflict_resolvers import get_default_resolvers
from docsync.application.services.schema_mapper import SchemaMapper
from docsync.application.use_cases.one_way_strategy import OneWayStrategy
from docsync.domain.entities.mapping import ColumnTarget
from docsync.domain.repositories.stores import DocumentStore, RelationalStore
from docsync.shared.exceptions.sync import RelationalStoreException
from docsync.shared.utils.datetime_utils import DateTimeUtils


T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)


class InMemoryDocumentStore(DocumentStore):
    """Document store en memoria; `list_calls` registra cada listado."""

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.list_calls: List[Tuple[str, Optional[datetime]]] = []

    def add(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        self.collections.setdefault(collection, {})[document_id] = fields

    def list_documents(self, collection: str, since: Optional[datetime] = None) -> Iterator[Tuple[str, Dict[str, Any]]]:
        self.list_calls.append((collection, since))
        items = []
        for document_id, fields in self.collections.get(collection, {}).items():
            modified = DateTimeUtils.parse_timestamp(fields.get("updated_at"))
            if since is not None and modified is not None and modified < since:
                continue
            items.append((document_id, copy.deepcopy(fields)))
        return iter(items)

    def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        fields = self.collections.get(collection, {}).get(document_id)
        return copy.deepcopy(fields) if fields is not None else None


class RecordingRelationalStore(RelationalStore):
    """Relational store en memoria que registra inserts y updates."""

    def __init__(self, id_column: str = "id") -> None:
        self.id_column = id_column
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.inserts: List[Tuple[str, Dict[str, Any]]] = []
        self.updates: List[Tuple[str, str, Dict[str, Any]]] = []
        self.failing_ids: set = set()

    def seed(self, table: str, row: Dict[str, Any]) -> None:
        self.tables.setdefault(table, {})[row[self.id_column]] = dict(row)

    def get_row(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        row = self.tables.get(table, {}).get(row_id)
        return copy.deepcopy(row) if row is not None else None

    def insert_row(self, table: str, columns: Dict[str, Any]) -> None:
        row_id = columns[self.id_column]
        if row_id in self.failing_ids:
            raise RelationalStoreException(f"insert fallido para {row_id}")
        self.inserts.append((table, dict(columns)))
        self.tables.setdefault(table, {})[row_id] = dict(columns)

    def update_row(self, table: str, row_id: str, columns: Dict[str, Any]) -> None:
        if row_id in self.failing_ids:
            raise RelationalStoreException(f"update fallido para {row_id}")
        self.updates.append((table, row_id, dict(columns)))
        self.tables.setdefault(table, {}).setdefault(row_id, {self.id_column: row_id}).update(columns)

    @property
    def writes(self) -> int:
        return len(self.inserts) + len(self.updates)


class RecordingAuditSink:
    def __init__(self) -> None:
        self.entries: List[Dict[str, Any]] = []

    def record_conflict(self, **entry: Any) -> None:
        self.entries.append(entry)


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def relational() -> RecordingRelationalStore:
    return RecordingRelationalStore()


@pytest.fixture
def relational_factory():
    """Constructor del store relacional en memoria (p.ej. con otra columna identidad)."""
    return RecordingRelationalStore


@pytest.fixture
def mapper() -> SchemaMapper:
    """Mapeo 'posts' -> 'blog_posts' con un rename y un campo excluido."""
    schema_mapper = SchemaMapper()
    schema_mapper.register_mapping(
        "posts",
        "blog_posts",
        {"Title": "title", "Secret": ColumnTarget.excluded()},
    )
    schema_mapper.register_mapping("authors", "authors")
    return schema_mapper


@pytest.fixture
def detector() -> ConflictDetector:
    return ConflictDetector(get_default_resolvers())


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def strategy(documents, relational, mapper, detector, audit_sink) -> OneWayStrategy:
    return OneWayStrategy(
        document_store=documents,
        relational_store=relational,
        schema_mapper=mapper,
        conflict_detector=detector,
        audit_sink=audit_sink,
    )


@pytest.fixture
def sqlite_engine():
    """Engine SQLite en memoria compartido entre conexiones."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()
