"""
Resultado de la decision de un resolver de conflictos.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping


class WinningSource(str, Enum):
    """Origen de la version ganadora."""
    REMOTE = "remote"   # document store (fuente de verdad)
    LOCAL = "local"     # relational store
    MERGED = "merged"   # combinacion de ambos


class ResolutionConfidence(str, Enum):
    """
    Confianza de una resolucion automatica.

    LOW marca los desempates deterministas (timestamps iguales o ausentes):
    se aplican igual, pero quedan visibles en el reporte.
    """
    HIGH = "high"
    LOW = "low"


@dataclass
class Resolution:
    """
    Decision de un resolver para un par (remote, local).

    `resolved_data` se copia al construir y no se modifica despues;
    solo la metadata admite agregados.
    """

    resolved_data: Dict[str, Any]
    action: str
    winning_source: WinningSource
    description: str
    requires_manual_intervention: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.resolved_data = copy.deepcopy(dict(self.resolved_data))
        self.winning_source = WinningSource(self.winning_source)
        self.metadata = dict(self.metadata)
        self.metadata.setdefault("confidence", ResolutionConfidence.HIGH.value)

    @property
    def confidence(self) -> str:
        return self.metadata["confidence"]

    def add_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def set_metadata(self, metadata: Mapping[str, Any]) -> None:
        """Mezcla metadata adicional (las claves nuevas pisan las existentes)."""
        self.metadata.update(metadata)

    def summary(self) -> Dict[str, Any]:
        """Resumen sin los datos resueltos, para logs y el SyncResult."""
        return {
            "action": self.action,
            "winning_source": self.winning_source.value,
            "description": self.description,
            "requires_manual_intervention": self.requires_manual_intervention,
            "metadata": dict(self.metadata),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data["resolved_data"] = copy.deepcopy(self.resolved_data)
        return data
