"""
Contrato de los resolvers de conflictos y estructuras del analisis de diferencias.

Define el protocolo ConflictResolver que permite agregar nuevas politicas
sin modificar el orquestador: cualquier clase que lo cumpla puede
registrarse en el ConflictDetector.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol

from docsync.domain.entities.resolution import Resolution


class ConflictSeverity(Enum):
    """
    Severidad de las diferencias entre dos versiones de un registro.
    """
    NONE = "none"
    LOW = "low"         # campos agregados o pocos modificados
    MEDIUM = "medium"   # campos removidos o muchos modificados
    HIGH = "high"       # cambios de tipo


class ConflictResolver(Protocol):
    """
    Protocolo para politicas de resolucion.

    `priority` mas alto se intenta primero al resolver. La deteccion
    (ConflictDetector.detect_conflicts) evalua todos los resolvers sin
    importar la prioridad.

    Ejemplo de implementacion:

    ```python
    @dataclass
    class RemoteAlwaysWins:
        name: str = "remote_always_wins"
        priority: int = 10

        def has_conflict(self, remote, local, metadata=None) -> bool:
            return remote != local

        def resolve(self, remote, local, metadata=None) -> Resolution:
            return Resolution(remote, "remote_forced", "remote", "Remote siempre gana")
    ```
    """

    name: str
    priority: int

    def has_conflict(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        ...

    def resolve(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Resolution:
        ...


@dataclass
class DifferenceReport:
    """Diff estructural entre la version remota y la local."""

    added: Dict[str, Any] = field(default_factory=dict)
    removed: Dict[str, Any] = field(default_factory=dict)
    modified: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    type_changes: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified or self.type_changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": dict(self.added),
            "removed": dict(self.removed),
            "modified": dict(self.modified),
            "type_changes": dict(self.type_changes),
        }
