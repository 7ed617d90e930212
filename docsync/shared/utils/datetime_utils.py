"""
Utilidades para manejo de fechas y horas.

Todas las comparaciones de timestamps del sync se hacen en UTC (aware).
"""
from datetime import date, datetime, timezone
from typing import Any, Optional

# Epochs mayores a este valor se interpretan como milisegundos.
_EPOCH_MILLIS_THRESHOLD = 1e11


class DateTimeUtils:
    """Clase de utilidades para operaciones con fechas y horas."""

    @staticmethod
    def now_utc() -> datetime:
        """
        Obtiene la fecha y hora actual en UTC.

        Returns:
            datetime: Fecha y hora actual en UTC
        """
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """
        Normaliza datetime a UTC (aware).

        Los datetimes naive se asumen UTC: es lo que devuelven la mayoría de
        drivers relacionales para columnas sin zona horaria.
        """
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """
        Convierte un datetime a string ISO 8601.

        Args:
            dt: Objeto datetime

        Returns:
            str: Fecha en formato ISO 8601
        """
        return dt.isoformat()

    @staticmethod
    def from_iso_string(iso_string: str) -> Optional[datetime]:
        """
        Convierte un string ISO 8601 a datetime.

        Acepta el sufijo 'Z' (Airtable, Firestore REST).

        Args:
            iso_string: String en formato ISO 8601

        Returns:
            Optional[datetime]: Objeto datetime o None si hay error
        """
        try:
            return datetime.fromisoformat(iso_string.strip().replace("Z", "+00:00"))
        except (ValueError, TypeError, AttributeError):
            return None

    @staticmethod
    def from_native_timestamp(value: Any) -> Optional[datetime]:
        """
        Convierte timestamps nativos de document stores a datetime.

        Cubre objetos que exponen `to_datetime()` o `ToDatetime()`
        (p.ej. protobuf Timestamp). Retorna None si el objeto no es
        un timestamp reconocible.
        """
        for attr in ("to_datetime", "ToDatetime"):
            converter = getattr(value, attr, None)
            if callable(converter):
                try:
                    converted = converter()
                except Exception:
                    return None
                if isinstance(converted, datetime):
                    return DateTimeUtils.ensure_utc(converted)
        return None

    @staticmethod
    def parse_timestamp(value: Any) -> Optional[datetime]:
        """
        Interpreta un valor como timestamp UTC.

        Soporta:
        - datetime / date
        - timestamps nativos (ver from_native_timestamp)
        - strings ISO 8601
        - epoch numérico (segundos, o milisegundos si es muy grande)

        Returns:
            Optional[datetime]: datetime aware en UTC, o None si no se puede parsear
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, datetime):
            return DateTimeUtils.ensure_utc(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        if isinstance(value, (int, float)):
            seconds = float(value)
            if abs(seconds) > _EPOCH_MILLIS_THRESHOLD:
                seconds = seconds / 1000.0
            try:
                return datetime.fromtimestamp(seconds, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None
        if isinstance(value, str):
            if not value.strip():
                return None
            parsed = DateTimeUtils.from_iso_string(value)
            if parsed is not None:
                return DateTimeUtils.ensure_utc(parsed)
            try:
                return DateTimeUtils.parse_timestamp(float(value))
            except ValueError:
                return None
        return DateTimeUtils.from_native_timestamp(value)


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return DateTimeUtils.now_utc()


def ensure_utc(dt: datetime) -> datetime:
    """Atajo de DateTimeUtils.ensure_utc."""
    return DateTimeUtils.ensure_utc(dt)
