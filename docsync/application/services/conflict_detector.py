"""
Registro ordenado de resolvers y analisis de diferencias.

- detect_conflicts evalua TODOS los resolvers (visibilidad para auditoria).
- get_best_resolver elige UNO: el de mayor prioridad que detecta conflicto.
  El orquestador solo usa este ultimo para no aplicar dos resoluciones
  sobre el mismo registro.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from docsync.application.services.record_comparison import values_differ
from docsync.domain.entities.conflicts import ConflictResolver, ConflictSeverity, DifferenceReport
from docsync.domain.entities.resolution import Resolution
from docsync.shared.utils.datetime_utils import utc_now

DEFAULT_IGNORED_FIELDS = (
    "id",
    "created_at",
    "updated_at",
    "_last_synced_at",
    "_sync_metadata",
)

# Mas de este numero de campos modificados eleva la severidad a MEDIUM.
MODIFIED_FIELDS_MEDIUM_THRESHOLD = 5


class ConflictDetector:
    """
    Registro de resolvers ordenado por prioridad descendente.

    Los resolvers se registran una vez en el setup; durante las corridas
    el detector es de solo lectura.
    """

    def __init__(self, resolvers: Optional[List[ConflictResolver]] = None) -> None:
        self._resolvers: List[ConflictResolver] = []
        self._ignored_fields: List[str] = list(DEFAULT_IGNORED_FIELDS)
        for resolver in resolvers or []:
            self.add_resolver(resolver)

    # ------------------------------------------------------------------
    # Registro
    # ------------------------------------------------------------------

    def add_resolver(self, resolver: ConflictResolver) -> None:
        self._resolvers.append(resolver)
        # sort estable: a igual prioridad se respeta el orden de registro
        self._resolvers.sort(key=lambda r: r.priority, reverse=True)

    def remove_resolver(self, name: str) -> bool:
        initial_count = len(self._resolvers)
        self._resolvers = [r for r in self._resolvers if r.name != name]
        return len(self._resolvers) < initial_count

    @property
    def resolvers(self) -> List[ConflictResolver]:
        return list(self._resolvers)

    # ------------------------------------------------------------------
    # Deteccion / seleccion
    # ------------------------------------------------------------------

    def detect_conflicts(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        conflicts = []
        for resolver in self._resolvers:
            if resolver.has_conflict(remote, local, metadata):
                conflicts.append({
                    "resolver": resolver.name,
                    "priority": resolver.priority,
                    "detected_at": utc_now().isoformat(),
                    "metadata": dict(metadata or {}),
                })
        return conflicts

    def get_best_resolver(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[ConflictResolver]:
        for resolver in self._resolvers:
            if resolver.has_conflict(remote, local, metadata):
                return resolver
        return None

    def has_any_conflict(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return self.get_best_resolver(remote, local, metadata) is not None

    def resolve(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Resolution]:
        """Resuelve con el mejor resolver, o None si no hay conflicto."""
        resolver = self.get_best_resolver(remote, local, metadata)
        if resolver is None:
            return None
        resolution = resolver.resolve(remote, local, metadata)
        resolution.add_metadata("resolver", resolver.name)
        return resolution

    # ------------------------------------------------------------------
    # Analisis de diferencias
    # ------------------------------------------------------------------

    def analyze_differences(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
    ) -> DifferenceReport:
        remote_filtered = self._filter(remote)
        local_filtered = self._filter(local)
        report = DifferenceReport()

        for key, value in remote_filtered.items():
            if key not in local_filtered:
                report.added[key] = value

        for key, value in local_filtered.items():
            if key not in remote_filtered:
                report.removed[key] = value

        for key, remote_value in remote_filtered.items():
            if key not in local_filtered:
                continue
            local_value = local_filtered[key]

            if remote_value is None or local_value is None:
                # NULL contra valor es una edicion, no un cambio de tipo
                if values_differ(remote_value, local_value):
                    report.modified[key] = {"remote": remote_value, "local": local_value}
            elif type(remote_value) is not type(local_value):
                report.type_changes[key] = {
                    "remote": {"type": type(remote_value).__name__, "value": remote_value},
                    "local": {"type": type(local_value).__name__, "value": local_value},
                }
            elif values_differ(remote_value, local_value):
                report.modified[key] = {"remote": remote_value, "local": local_value}

        return report

    def severity(self, differences: DifferenceReport) -> ConflictSeverity:
        if differences.type_changes:
            return ConflictSeverity.HIGH
        if differences.removed or len(differences.modified) > MODIFIED_FIELDS_MEDIUM_THRESHOLD:
            return ConflictSeverity.MEDIUM
        if differences.modified or differences.added:
            return ConflictSeverity.LOW
        return ConflictSeverity.NONE

    def generate_conflict_report(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        differences = self.analyze_differences(remote, local)
        conflicts = self.detect_conflicts(remote, local, metadata)
        best = self.get_best_resolver(remote, local, metadata)

        return {
            "has_conflict": bool(conflicts),
            "severity": self.severity(differences).value,
            "differences": differences.to_dict(),
            "conflicts": conflicts,
            "best_resolver": best.name if best else None,
            "resolver_count": len(self._resolvers),
            "generated_at": utc_now().isoformat(),
            "metadata": dict(metadata or {}),
        }

    # ------------------------------------------------------------------
    # Campos ignorados
    # ------------------------------------------------------------------

    def add_ignored_field(self, field_name: str) -> None:
        if field_name not in self._ignored_fields:
            self._ignored_fields.append(field_name)

    def remove_ignored_field(self, field_name: str) -> None:
        self._ignored_fields = [f for f in self._ignored_fields if f != field_name]

    @property
    def ignored_fields(self) -> List[str]:
        return list(self._ignored_fields)

    def _filter(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        ignored = set(self._ignored_fields)
        return {key: value for key, value in data.items() if key not in ignored}
