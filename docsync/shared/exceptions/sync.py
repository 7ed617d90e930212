"""
Excepciones relacionadas con la sincronización documento -> relacional.

Taxonomía:
- Errores de configuración (mapeo/estrategia/resolver inexistente): abortan
  la corrida de la colección completa, sin efectos.
- Errores por registro (fetch/transform/write): se capturan en el
  orquestador y se acumulan en el SyncResult.
- Errores de adaptadores (document store / relational store).
"""
from typing import Any, List

from docsync.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepción base para errores de sincronización."""

    def __init__(self, message: str, error_code: str = "SYNC_ERROR", details=None):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details
        )


class SyncConfigException(SyncException):
    """Error de configuración del pipeline (settings o archivo de mapeos)."""

    def __init__(self, message: str, details=None):
        super().__init__(
            message=message,
            error_code="SYNC_CONFIG_ERROR",
            details=details
        )


class SchemaMappingNotFoundException(SyncException):
    """No existe un mapeo registrado para la colección."""

    def __init__(self, collection: str):
        super().__init__(
            message=f"No local table mapping found for collection: {collection}",
            error_code="SCHEMA_MAPPING_NOT_FOUND",
            details={"collection": collection}
        )
        self.collection = collection


class StrategyNotFoundException(SyncException):
    """La estrategia de sync solicitada no está registrada."""

    def __init__(self, name: str, available: List[str]):
        super().__init__(
            message=f"Sync strategy not found: {name}",
            error_code="STRATEGY_NOT_FOUND",
            details={"strategy": name, "available": sorted(available)}
        )
        self.name = name


class ResolverNotFoundException(SyncException):
    """El resolver de conflictos solicitado no está registrado."""

    def __init__(self, name: str, available: List[str]):
        super().__init__(
            message=f"Conflict resolver not found: {name}",
            error_code="RESOLVER_NOT_FOUND",
            details={"resolver": name, "available": sorted(available)}
        )
        self.name = name


class DocumentNotFoundException(SyncException):
    """El documento no existe en el document store."""

    def __init__(self, collection: str, document_id: Any):
        super().__init__(
            message=f"Document not found in source: {collection}/{document_id}",
            error_code="DOCUMENT_NOT_FOUND",
            details={"collection": collection, "document_id": str(document_id)}
        )


class DocumentStoreException(SyncException):
    """Error de integración con el document store (origen)."""

    def __init__(self, message: str, details=None):
        super().__init__(
            message=message,
            error_code="DOCUMENT_STORE_ERROR",
            details=details
        )


class RelationalStoreException(SyncException):
    """Error de integración con el relational store (destino)."""

    def __init__(self, message: str, details=None):
        super().__init__(
            message=message,
            error_code="RELATIONAL_STORE_ERROR",
            details=details
        )
