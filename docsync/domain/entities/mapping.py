"""
Mapeo de campos documento -> columnas relacionales.

Cada campo de una coleccion tiene un destino explicito:
- RENAMED: se guarda en otra columna
- EXCLUDED: no viaja en ninguna direccion
- IDENTITY: misma columna que el nombre del campo (default para no mapeados)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class MappingKind(Enum):
    """Tipo de destino de un campo."""
    RENAMED = "renamed"
    EXCLUDED = "excluded"
    IDENTITY = "identity"


@dataclass(frozen=True)
class ColumnTarget:
    """
    Destino de un campo de documento en la tabla relacional.

    Usar los constructores `renamed`, `excluded` e `identity` en lugar
    de instanciar directamente.
    """

    kind: MappingKind
    column: Optional[str] = None

    @classmethod
    def renamed(cls, column: str) -> "ColumnTarget":
        return cls(kind=MappingKind.RENAMED, column=column)

    @classmethod
    def excluded(cls) -> "ColumnTarget":
        return cls(kind=MappingKind.EXCLUDED)

    @classmethod
    def identity(cls) -> "ColumnTarget":
        return cls(kind=MappingKind.IDENTITY)

    @classmethod
    def coerce(cls, field_name: str, value: Union["ColumnTarget", str]) -> "ColumnTarget":
        """
        Normaliza la forma corta usada en configuracion.

        - ColumnTarget: se usa tal cual
        - str igual al campo: IDENTITY
        - str distinto: RENAMED
        """
        if isinstance(value, ColumnTarget):
            return value
        if isinstance(value, str) and value:
            if value == field_name:
                return cls.identity()
            return cls.renamed(value)
        raise ValueError(f"Destino invalido para el campo '{field_name}': {value!r}")

    @property
    def is_excluded(self) -> bool:
        return self.kind is MappingKind.EXCLUDED

    def column_for(self, field_name: str) -> Optional[str]:
        """Columna efectiva para el campo, o None si esta excluido."""
        if self.kind is MappingKind.EXCLUDED:
            return None
        if self.kind is MappingKind.RENAMED:
            return self.column
        return field_name

    def to_config(self, field_name: str) -> Optional[str]:
        """Forma corta serializable (None = excluido)."""
        return self.column_for(field_name)


@dataclass(frozen=True)
class CollectionMapping:
    """Configuracion de una coleccion -> una tabla."""

    collection: str
    table: str
    columns: Dict[str, ColumnTarget] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "columns": {name: target.to_config(name) for name, target in self.columns.items()},
        }
