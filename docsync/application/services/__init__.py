"""
Servicios de aplicacion.

Mapeo de esquema, comparacion de registros y politicas de conflicto
reutilizadas por las estrategias de sync.
"""
from docsync.application.services.schema_mapper import SchemaMapper
from docsync.application.services.conflict_detector import ConflictDetector
from docsync.application.services.conflict_resolvers import (
    LastWriteWinsResolver,
    VersionBasedResolver,
    get_default_resolvers,
)
from docsync.application.services.record_comparison import (
    AUDIT_FIELDS,
    records_differ,
)

__all__ = [
    # Mapeo
    "SchemaMapper",
    # Conflictos
    "ConflictDetector",
    "LastWriteWinsResolver",
    "VersionBasedResolver",
    "get_default_resolvers",
    # Comparacion
    "AUDIT_FIELDS",
    "records_differ",
]
