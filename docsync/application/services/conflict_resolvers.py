"""
Politicas de resolucion de conflictos.

Implementa las politicas base del sistema. Para agregar nuevas politicas,
crear clases que cumplan el protocolo ConflictResolver y registrarlas
en el ConflictDetector (o en el SyncManager).

Ambas politicas son deterministas: el mismo par (remote, local) produce
siempre la misma decision.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from docsync.application.services.record_comparison import AUDIT_FIELDS, records_differ
from docsync.domain.entities.resolution import Resolution, ResolutionConfidence, WinningSource
from docsync.shared.utils.datetime_utils import DateTimeUtils, utc_now


def _low_confidence() -> Dict[str, Any]:
    return {"confidence": ResolutionConfidence.LOW.value, "tie_break": True}


@dataclass
class LastWriteWinsResolver:
    """
    Gana la version con el timestamp mas reciente.

    Ante empate (o ausencia de ambos timestamps) gana el remoto, fuente
    de verdad nominal; esas resoluciones se marcan con confianza baja.
    """

    name: str = "last_write_wins"
    priority: int = 100
    timestamp_field: str = "updated_at"

    def has_conflict(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return records_differ(remote, local, AUDIT_FIELDS | {self.timestamp_field})

    def resolve(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Resolution:
        remote_ts = self._extract_timestamp(remote)
        local_ts = self._extract_timestamp(local)

        if remote_ts is None and local_ts is None:
            return Resolution(
                remote,
                "default_to_remote",
                WinningSource.REMOTE,
                "Unable to determine timestamps, defaulting to remote data",
                metadata=_low_confidence(),
            )

        if local_ts is None:
            return Resolution(
                remote,
                "remote_has_timestamp",
                WinningSource.REMOTE,
                "Local data missing timestamp, using remote data",
            )

        if remote_ts is None:
            return Resolution(
                local,
                "local_has_timestamp",
                WinningSource.LOCAL,
                "Remote data missing timestamp, using local data",
            )

        if remote_ts > local_ts:
            return Resolution(
                remote,
                "remote_newer",
                WinningSource.REMOTE,
                f"Remote data is newer ({remote_ts.isoformat()} > {local_ts.isoformat()})",
            )

        if local_ts > remote_ts:
            return Resolution(
                local,
                "local_newer",
                WinningSource.LOCAL,
                f"Local data is newer ({local_ts.isoformat()} > {remote_ts.isoformat()})",
            )

        return Resolution(
            remote,
            "timestamps_equal",
            WinningSource.REMOTE,
            "Timestamps are equal, defaulting to remote as source of truth",
            metadata=_low_confidence(),
        )

    def _extract_timestamp(self, data: Mapping[str, Any]) -> Optional[datetime]:
        raw = data.get(self.timestamp_field)
        if raw is None or raw == "":
            return None

        parsed = DateTimeUtils.parse_timestamp(raw)
        if parsed is None:
            logger.warning(
                f"[{self.name}] No se pudo parsear '{self.timestamp_field}': {raw!r}. "
                f"Se trata como ausente."
            )
        return parsed


@dataclass
class VersionBasedResolver:
    """
    Gana la version con el contador mas alto.

    Misma version con datos distintos es una colision real: gana el remoto
    pero la resolucion queda pendiente de intervencion manual.
    """

    name: str = "version_based"
    priority: int = 200
    version_field: str = "_version"
    auto_increment: bool = True

    def has_conflict(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if self._extract_version(remote) != self._extract_version(local):
            return True
        return self._has_data_conflict(remote, local)

    def resolve(
        self,
        remote: Mapping[str, Any],
        local: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Resolution:
        remote_version = self._extract_version(remote)
        local_version = self._extract_version(local)

        if remote_version is None and local_version is None:
            return Resolution(
                self._with_version(remote, 1),
                "initialize_version",
                WinningSource.REMOTE,
                "No version found in either source, initialized version to 1 and using remote data",
            )

        if local_version is None:
            return Resolution(
                self._bumped(remote, remote_version),
                "remote_has_version",
                WinningSource.REMOTE,
                f"Local data missing version, using remote data (version {remote_version})",
            )

        if remote_version is None:
            return Resolution(
                self._bumped(local, local_version),
                "local_has_version",
                WinningSource.LOCAL,
                f"Remote data missing version, using local data (version {local_version})",
            )

        if remote_version > local_version:
            return Resolution(
                self._bumped(remote, remote_version),
                "remote_newer_version",
                WinningSource.REMOTE,
                f"Remote has newer version ({remote_version} > {local_version})",
            )

        if local_version > remote_version:
            return Resolution(
                self._bumped(local, local_version),
                "local_newer_version",
                WinningSource.LOCAL,
                f"Local has newer version ({local_version} > {remote_version})",
            )

        if not self._has_data_conflict(remote, local):
            return Resolution(
                remote,
                "same_version_same_data",
                WinningSource.REMOTE,
                f"Same version ({remote_version}) and identical data, no conflict",
            )

        resolved = self._with_version(remote, remote_version + 1)
        resolved["_conflict_detected"] = True
        resolved["_conflict_timestamp"] = utc_now().isoformat()

        return Resolution(
            resolved,
            "version_conflict",
            WinningSource.REMOTE,
            f"Version conflict detected: same version ({remote_version}) but different data",
            requires_manual_intervention=True,
            metadata={
                "remote_version": remote_version,
                "local_version": local_version,
                "conflict_type": "version_mismatch",
            },
        )

    def _extract_version(self, data: Mapping[str, Any]) -> Optional[int]:
        raw = data.get(self.version_field)
        if raw is None or isinstance(raw, bool):
            return None
        try:
            if isinstance(raw, (int, float, Decimal)):
                return int(raw)
            if isinstance(raw, str):
                return int(float(raw.strip()))
        except (ValueError, OverflowError):
            logger.warning(f"[{self.name}] Version invalida en '{self.version_field}': {raw!r}")
        return None

    def _has_data_conflict(self, remote: Mapping[str, Any], local: Mapping[str, Any]) -> bool:
        return records_differ(remote, local, AUDIT_FIELDS | {self.version_field})

    def _with_version(self, data: Mapping[str, Any], version: int) -> Dict[str, Any]:
        resolved = dict(data)
        resolved[self.version_field] = version
        return resolved

    def _bumped(self, data: Mapping[str, Any], version: int) -> Dict[str, Any]:
        if self.auto_increment:
            return self._with_version(data, version + 1)
        return dict(data)


def get_default_resolvers(
    timestamp_field: str = "updated_at",
    version_field: str = "_version",
    auto_increment: bool = True,
) -> list:
    """Instancias de las politicas base con la configuracion indicada."""
    return [
        VersionBasedResolver(version_field=version_field, auto_increment=auto_increment),
        LastWriteWinsResolver(timestamp_field=timestamp_field),
    ]
