"""
Composicion del job: arma el SyncManager con los adaptadores reales
a partir de Settings.
"""
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy.engine import Engine

from docsync.application.services.conflict_detector import ConflictDetector
from docsync.application.services.conflict_resolvers import (
    LastWriteWinsResolver,
    VersionBasedResolver,
)
from docsync.application.services.schema_mapper import SchemaMapper
from docsync.application.use_cases.one_way_strategy import OneWayStrategy
from docsync.application.use_cases.sync_manager import SyncManager
from docsync.core.config import Settings
from docsync.core.mappings import as_mapper_config, load_mappings_file, source_table_names
from docsync.infrastructure.audit.sync_audit_logger import SyncAuditLogger
from docsync.infrastructure.database.session import build_engine
from docsync.infrastructure.external.airtable.document_store import (
    AirtableCredentials,
    AirtableDocumentStore,
)
from docsync.infrastructure.repositories.relational_store import SqlAlchemyRelationalStore
from docsync.infrastructure.repositories.sync_state_repository import SyncStateRepository
from docsync.shared.exceptions.sync import ResolverNotFoundException


def build_conflict_detector(settings: Settings) -> ConflictDetector:
    """Detector con los resolvers habilitados en SYNC_CONFLICT_POLICIES."""
    factories = {
        "version_based": lambda: VersionBasedResolver(
            version_field=settings.SYNC_VERSION_FIELD,
            auto_increment=settings.SYNC_VERSION_AUTO_INCREMENT,
        ),
        "last_write_wins": lambda: LastWriteWinsResolver(timestamp_field=settings.SYNC_TIMESTAMP_FIELD),
    }
    detector = ConflictDetector()
    for name in settings.conflict_policies:
        factory = factories.get(name)
        if factory is None:
            raise ResolverNotFoundException(name, list(factories))
        detector.add_resolver(factory())
    return detector


@dataclass
class SyncRuntime:
    """Manager listo para usar y los recursos que hay que cerrar al final."""

    manager: SyncManager
    mapper: SchemaMapper
    engine: Engine
    audit: Optional[SyncAuditLogger] = None

    def close(self) -> None:
        if self.audit is not None:
            self.audit.close()
        self.engine.dispose()


def build_sync_runtime(settings: Settings) -> SyncRuntime:
    """
    Arma mapper, detector, stores y estrategia one-way.

    Raises:
        SyncConfigException: archivo de mapeos invalido
        ResolverNotFoundException: politica desconocida en SYNC_CONFLICT_POLICIES
    """
    mapper = SchemaMapper(id_column=settings.SYNC_ID_COLUMN)
    table_names = {}
    if settings.SYNC_MAPPINGS_FILE:
        config = load_mappings_file(settings.SYNC_MAPPINGS_FILE)
        mapper.load_from_config(as_mapper_config(config))
        table_names = source_table_names(config)
        logger.info(f"Mapeos cargados: {', '.join(sorted(config)) or '(ninguno)'}")

    detector = build_conflict_detector(settings)
    engine = build_engine(settings)

    state_store = None
    if settings.SYNC_STATE_ENABLED:
        state_store = SyncStateRepository(engine)
        state_store.ensure_table()

    audit = SyncAuditLogger(settings.SYNC_AUDIT_DIR) if settings.SYNC_AUDIT_ENABLED else None

    documents = AirtableDocumentStore(
        AirtableCredentials(token=settings.AIRTABLE_TOKEN, base_id=settings.AIRTABLE_BASE_ID),
        last_modified_field=settings.AIRTABLE_LAST_MOD_FIELD,
        table_names=table_names,
    )
    relational = SqlAlchemyRelationalStore(engine, id_column=settings.SYNC_ID_COLUMN)

    manager = SyncManager(
        schema_mapper=mapper,
        conflict_detector=detector,
        default_strategy=settings.SYNC_STRATEGY,
        max_workers=settings.SYNC_MAX_WORKERS,
        state_store=state_store,
    )
    manager.register_strategy(OneWayStrategy(
        document_store=documents,
        relational_store=relational,
        schema_mapper=mapper,
        conflict_detector=detector,
        audit_sink=audit,
    ))

    return SyncRuntime(manager=manager, mapper=mapper, engine=engine, audit=audit)
