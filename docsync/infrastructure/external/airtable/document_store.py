"""
Document store sobre Airtable REST API (sin SDKs externos).

Requisitos cubiertos:
- requests
- paginacion por offset
- rate-limit/backoff (429, 5xx)
- incremental fetch usando un campo "Last Modified Time"
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import quote

import requests
from loguru import logger

from docsync.domain.repositories.stores import DocumentStore
from docsync.shared.exceptions.sync import DocumentStoreException
from docsync.shared.utils.datetime_utils import DateTimeUtils, ensure_utc


@dataclass(frozen=True)
class AirtableCredentials:
    token: str
    base_id: str


def _isoformat_z(dt: datetime) -> str:
    """
    Serializa datetime a ISO8601 con 'Z' (UTC) para formulas Airtable.
    """
    dt_utc = ensure_utc(dt)
    return dt_utc.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_incremental_filter_formula(last_modified_field: str, cursor: datetime) -> str:
    """
    Formula Airtable para traer registros modificados desde el cursor (>=).

    Airtable no soporta >= directo con fechas: se usa
    OR(IS_AFTER(...), IS_SAME(...)). Re-leer el borde es seguro porque el
    sync es idempotente.
    """
    cursor_str = _isoformat_z(cursor)
    field_ref = "{" + last_modified_field + "}"
    return (
        f"OR("
        f"IS_AFTER({field_ref}, DATETIME_PARSE('{cursor_str}')), "
        f"IS_SAME({field_ref}, DATETIME_PARSE('{cursor_str}'))"
        f")"
    )


class AirtableDocumentStore(DocumentStore):
    """
    Cliente HTTP de Airtable expuesto como DocumentStore.

    - No hace cast de tipos de campos: eso lo decide el SchemaMapper.
    - `createdTime` del record se expone como `created_at` y el campo
      last-modified como `updated_at` cuando el documento no los trae.
    """

    def __init__(
        self,
        credentials: AirtableCredentials,
        *,
        last_modified_field: str = "Last Modified",
        table_names: Optional[Mapping[str, str]] = None,
        session: Optional[requests.Session] = None,
        base_url: str = "https://api.airtable.com/v0",
        timeout_s: int = 30,
        page_size: int = 100,
        max_retries: int = 6,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._creds = credentials
        self._last_modified_field = last_modified_field
        self._table_names = dict(table_names or {})
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._page_size = page_size
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._sleep = sleep
        self._session = session or requests.Session()

    def list_documents(
        self,
        collection: str,
        since: Optional[datetime] = None,
    ) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """
        Itera los records de la tabla (pagina a pagina, via 'offset').

        Con `since` filtra por el campo last-modified y ordena ascendente.
        """
        url = self._table_url(collection)
        offset: Optional[str] = None

        while True:
            query: List[Tuple[str, Any]] = [("pageSize", self._page_size)]
            if since is not None:
                query.append(("filterByFormula", build_incremental_filter_formula(self._last_modified_field, since)))
                # serializacion manual de 'sort' (requests no anida dicts)
                query.append(("sort[0][field]", self._last_modified_field))
                query.append(("sort[0][direction]", "asc"))
            if offset:
                query.append(("offset", offset))

            payload = self._request_json("GET", url, query=query)
            records = payload.get("records") or []
            logger.debug(f"Airtable '{collection}': {len(records)} records en la pagina")

            for rec in records:
                yield self._to_document(rec)

            offset = payload.get("offset")
            if not offset:
                break

    def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        url = f"{self._table_url(collection)}/{quote(str(document_id), safe='')}"
        payload = self._request_json("GET", url, query=[], allow_not_found=True)
        if payload is None:
            return None
        _, fields = self._to_document(payload)
        return fields

    def _table_url(self, collection: str) -> str:
        table = self._table_names.get(collection, collection)
        return f"{self._base_url}/{self._creds.base_id}/{quote(table, safe='')}"

    def _to_document(self, rec: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        rec_id = rec.get("id")
        if not rec_id:
            # Caso raro; preferimos fallar temprano y visible.
            raise DocumentStoreException("Airtable devolvio un record sin 'id'")

        fields = dict(rec.get("fields") or {})

        if "created_at" not in fields and rec.get("createdTime"):
            created = DateTimeUtils.from_iso_string(rec["createdTime"])
            if created is not None:
                fields["created_at"] = created

        raw_last_modified = fields.get(self._last_modified_field)
        if "updated_at" not in fields and raw_last_modified:
            updated = DateTimeUtils.parse_timestamp(raw_last_modified)
            if updated is not None:
                fields["updated_at"] = updated

        return str(rec_id), fields

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        query: List[Tuple[str, Any]],
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Request HTTP con backoff para 429/5xx.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial con jitter simple.
        - 5xx: exponencial con jitter.
        - 404 con allow_not_found: None.
        - 4xx (no 429): error inmediato (config/auth mal).
        """
        headers = {
            "Authorization": f"Bearer {self._creds.token}",
            "Content-Type": "application/json",
        }

        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    params=query,
                    headers=headers,
                    timeout=self._timeout_s,
                )
            except requests.RequestException as e:
                raise DocumentStoreException(
                    f"Airtable request fallo: {e}", details={"url": url}
                ) from e

            if 200 <= resp.status_code < 300:
                return resp.json()

            if resp.status_code == 404 and allow_not_found:
                return None

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise DocumentStoreException(
                        f"Airtable error {resp.status_code} tras {attempt} reintentos: {resp.text}",
                        details={"url": url, "status_code": resp.status_code},
                    )

                sleep_s = self._backoff(attempt, resp.headers.get("Retry-After"))
                logger.warning(
                    f"Airtable respondio {resp.status_code}; reintento {attempt + 1} en {sleep_s:.2f}s"
                )
                self._sleep(sleep_s)
                continue

            # Errores no recuperables
            raise DocumentStoreException(
                f"Airtable request fallo {resp.status_code}: {resp.text}",
                details={"url": url, "status_code": resp.status_code},
            )

        return None

    def _backoff(self, attempt: int, retry_after: Optional[str]) -> float:
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                return self._min_backoff_s
        # Exponencial simple + jitter proporcional
        base = min(self._max_backoff_s, self._min_backoff_s * (2 ** attempt))
        return base + (0.15 * base)
