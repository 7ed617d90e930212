"""
DTOs de la capa de aplicacion.
"""
from docsync.application.dto.sync_dto import SyncOptions, SyncSummaryDTO

__all__ = ["SyncOptions", "SyncSummaryDTO"]
