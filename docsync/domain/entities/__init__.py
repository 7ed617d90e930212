"""
Entidades de dominio del sync.
"""
from docsync.domain.entities.mapping import CollectionMapping, ColumnTarget, MappingKind
from docsync.domain.entities.resolution import Resolution, ResolutionConfidence, WinningSource
from docsync.domain.entities.conflicts import ConflictResolver, ConflictSeverity, DifferenceReport
from docsync.domain.entities.sync_result import SyncResult

__all__ = [
    # Mapeo
    "CollectionMapping",
    "ColumnTarget",
    "MappingKind",
    # Conflictos
    "ConflictResolver",
    "ConflictSeverity",
    "DifferenceReport",
    "Resolution",
    "ResolutionConfidence",
    "WinningSource",
    # Resultado
    "SyncResult",
]
