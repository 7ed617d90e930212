"""
Regla de comparacion compartida por los resolvers y el detector.

- Se ignoran campos de identidad/auditoria antes de comparar.
- La comparacion es recursiva sobre dicts y listas.
- Numeros comparan con tolerancia (epsilon).
- Datetimes se comparan normalizados a UTC.
- Una clave ausente en un lado equivale a None en el otro: una fila
  relacional trae columnas NULL que el documento nunca tuvo.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping

from docsync.shared.utils.datetime_utils import ensure_utc

NUMERIC_EPSILON = 0.0001

# Campos que nunca participan de la comparacion de datos.
AUDIT_FIELDS = frozenset({
    "id",
    "created_at",
    "updated_at",
    "deleted_at",
    "_document_id",
    "_sync_version",
    "_last_synced_at",
    "_sync_metadata",
    "_conflict_detected",
    "_conflict_timestamp",
})

_MISSING = object()


def prepare_for_comparison(
    data: Mapping[str, Any],
    exclude: Iterable[str] = AUDIT_FIELDS,
) -> Dict[str, Any]:
    """Copia ordenada por clave sin los campos excluidos."""
    excluded = set(exclude)
    return {key: data[key] for key in sorted(data) if key not in excluded}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def values_differ(left: Any, right: Any, epsilon: float = NUMERIC_EPSILON) -> bool:
    """Compara dos valores con la regla compartida."""
    if left is _MISSING:
        left = None
    if right is _MISSING:
        right = None

    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return mappings_differ(left, right, epsilon)

    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return True
        return any(values_differ(a, b, epsilon) for a, b in zip(left, right))

    if left is None or right is None:
        return left is not right

    if _is_number(left) and _is_number(right):
        return abs(float(left) - float(right)) > epsilon

    if isinstance(left, datetime) and isinstance(right, datetime):
        return ensure_utc(left) != ensure_utc(right)

    return left != right


def mappings_differ(
    left: Mapping[str, Any],
    right: Mapping[str, Any],
    epsilon: float = NUMERIC_EPSILON,
) -> bool:
    """Compara dos dicts clave a clave (ausente == None)."""
    for key in set(left) | set(right):
        if values_differ(left.get(key, _MISSING), right.get(key, _MISSING), epsilon):
            return True
    return False


def records_differ(
    remote: Mapping[str, Any],
    local: Mapping[str, Any],
    exclude: Iterable[str] = AUDIT_FIELDS,
) -> bool:
    """True si los datos de negocio de ambos registros difieren."""
    excluded = set(exclude)
    return mappings_differ(
        prepare_for_comparison(remote, excluded),
        prepare_for_comparison(local, excluded),
    )
