"""
DTOs para opciones de corrida y resumenes de sincronizacion.

SyncOptions valida lo que llega del CLI/scheduler antes de tocar los stores.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from docsync.shared.utils.datetime_utils import DateTimeUtils


class SyncOptions(BaseModel):
    """
    Opciones de una corrida de sync para una coleccion.
    """

    since: Optional[datetime] = Field(None, description="Solo documentos modificados desde esta fecha")
    batch_size: int = Field(100, ge=1, description="Documentos por pagina")
    dry_run: bool = Field(False, description="Calcula todo pero no escribe en el destino")
    strategy_name: Optional[str] = Field(None, description="Estrategia de sync (default: configurada)")
    timeout_s: Optional[float] = Field(None, gt=0, description="Limite de tiempo de la corrida completa")
    incremental: bool = Field(False, description="Usa el cursor persistido si no se indica 'since'")

    @field_validator("since", mode="before")
    @classmethod
    def _parse_since(cls, value: Any) -> Any:
        """Acepta datetime, ISO 8601 o epoch; siempre normaliza a UTC."""
        if value is None or value == "":
            return None
        parsed = DateTimeUtils.parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"Timestamp invalido para 'since': {value!r}")
        return parsed

    def with_overrides(self, **changes: Any) -> "SyncOptions":
        """Copia con cambios (las opciones son inmutables durante una corrida)."""
        return self.model_copy(update=changes)


class SyncSummaryDTO(BaseModel):
    """
    Resumen de una corrida para el CLI/scheduler.
    """

    collection: Optional[str] = Field(None, description="Coleccion sincronizada")
    successful: bool = Field(..., description="True si no hubo errores")
    processed: int = Field(0, description="Documentos procesados")
    synced: int = Field(0, description="Documentos aplicados (o que se aplicarian en dry run)")
    conflicts: int = Field(0, description="Conflictos detectados")
    errors: int = Field(0, description="Errores registrados")
    success_rate_percent: float = Field(0.0, description="synced / processed * 100")
    timed_out: bool = Field(False, description="La corrida se corto por timeout")
    cancelled: bool = Field(False, description="La corrida fue cancelada")
    pending_manual_review: list[str] = Field(default_factory=list, description="Ids sin aplicar por conflicto")

    @classmethod
    def from_result(cls, result: Any) -> "SyncSummaryDTO":
        summary: Dict[str, Any] = result.summary()
        return cls(
            collection=result.collection,
            timed_out=result.timed_out,
            cancelled=result.cancelled,
            pending_manual_review=result.pending_manual_review(),
            **summary,
        )
