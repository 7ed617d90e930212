"""
CLI: document store (Airtable) -> relational store (one-way sync).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer).

Variables de entorno (ver .env.example):
  - AIRTABLE_TOKEN, AIRTABLE_BASE_ID, AIRTABLE_LAST_MOD_FIELD
  - DATABASE_URL
  - SYNC_MAPPINGS_FILE y demas SYNC_*

Ejecucion:
  python scripts/run_sync.py posts
  python scripts/run_sync.py --collections posts,authors --dry-run
  python scripts/run_sync.py posts --document rec123
  python scripts/run_sync.py --since 2024-01-01T00:00:00Z --workers 2
  python scripts/run_sync.py --status
  python scripts/run_sync.py posts --schema-only sample.json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

# Permite ejecutar este script desde cualquier cwd sin instalar el paquete.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

# Settings se instancia al importar docsync.core.config: el .env va antes.
load_dotenv(_ROOT / ".env", override=False)

from pydantic import ValidationError
from sqlalchemy import MetaData
from sqlalchemy.engine import make_url

from docsync.application.dto.sync_dto import SyncOptions, SyncSummaryDTO
from docsync.application.services.schema_guide import build_table, generate_ddl
from docsync.core.config import Settings, parse_csv_list, settings
from docsync.core.events import shutdown, startup
from docsync.infrastructure.factory import build_sync_runtime
from docsync.shared.exceptions.base import AppException


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync one-way document store -> relational store")
    parser.add_argument("collection", nargs="?", help="Coleccion a sincronizar")
    parser.add_argument("--collections", help="Lista separada por comas")
    parser.add_argument("--exclude", help="Colecciones a omitir (separadas por comas)")
    parser.add_argument("--document", help="Sincroniza solo este documento de la coleccion")
    parser.add_argument("--since", help="Solo documentos modificados desde (ISO 8601 o epoch)")
    parser.add_argument("--dry-run", action="store_true", help="Calcula todo sin escribir")
    parser.add_argument("--strategy", help="Estrategia de sync (default: SYNC_STRATEGY)")
    parser.add_argument("--batch-size", type=int, help="Documentos por pagina")
    parser.add_argument("--timeout", type=float, help="Timeout por coleccion, en segundos")
    parser.add_argument("--workers", type=int, help="Colecciones en paralelo")
    parser.add_argument("--incremental", action="store_true", help="Usa el cursor persistido (SYNC_STATE_ENABLED)")
    parser.add_argument("--status", action="store_true", help="Muestra mapeo y cursor por coleccion")
    parser.add_argument(
        "--schema-only",
        metavar="SAMPLE_JSON",
        help="Imprime el CREATE TABLE sugerido a partir de un documento de ejemplo (no ejecuta sync)",
    )
    return parser


def _resolve_collections(args: argparse.Namespace, settings: Settings, mapped: List[str]) -> List[str]:
    if args.collection:
        collections = [args.collection]
    elif args.collections:
        collections = parse_csv_list(args.collections)
    else:
        collections = settings.default_collections or sorted(mapped)

    excluded = set(parse_csv_list(args.exclude or ""))
    return [c for c in collections if c not in excluded]


def _load_sample(path: str) -> dict:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, list):
        data = data[0] if data else {}
    # Acepta un record crudo de Airtable ({"id", "fields", ...})
    if isinstance(data, dict) and isinstance(data.get("fields"), dict):
        data = data["fields"]
    return data


def _print_schema(args: argparse.Namespace, runtime, settings: Settings) -> int:
    if not args.collection:
        logger.error("--schema-only requiere el nombre de la coleccion")
        return 2
    try:
        sample = _load_sample(args.schema_only)
    except (OSError, ValueError) as e:
        logger.error(f"No se pudo leer el documento de ejemplo {args.schema_only}: {e}")
        return 2
    table = build_table(
        MetaData(),
        args.collection,
        sample,
        mapper=runtime.mapper,
        id_column=settings.SYNC_ID_COLUMN,
        version_column=settings.SYNC_VERSION_FIELD if "version_based" in settings.conflict_policies else None,
    )
    dialect = make_url(settings.DATABASE_URL).get_backend_name()
    print(generate_ddl(table, dialect))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    startup(settings)

    try:
        options = SyncOptions(
            since=args.since,
            batch_size=args.batch_size or settings.SYNC_BATCH_SIZE,
            dry_run=args.dry_run,
            strategy_name=args.strategy,
            timeout_s=args.timeout or settings.SYNC_TIMEOUT_S,
            incremental=args.incremental,
        )
    except ValidationError as e:
        logger.error(f"Opciones invalidas: {e}")
        return 2

    try:
        runtime = build_sync_runtime(settings)
    except AppException as e:
        logger.error(f"Configuracion invalida: {e.message}")
        return 2

    try:
        if args.schema_only:
            return _print_schema(args, runtime, settings)

        collections = _resolve_collections(args, settings, list(runtime.mapper.all_mappings()))

        if args.status:
            for entry in runtime.manager.status(collections):
                logger.info(json.dumps(entry, ensure_ascii=False))
            return 0

        if not collections:
            logger.warning("No hay colecciones para sincronizar")
            return 0

        if args.document:
            if not args.collection:
                logger.error("--document requiere el nombre de la coleccion")
                return 2
            results = {args.collection: runtime.manager.sync_document(args.collection, args.document, options)}
        elif len(collections) == 1:
            results = {collections[0]: runtime.manager.sync_collection(collections[0], options)}
        else:
            results = runtime.manager.sync_collections(
                collections,
                options,
                max_workers=args.workers or settings.SYNC_MAX_WORKERS,
            )

        failed = False
        for name, result in results.items():
            summary = SyncSummaryDTO.from_result(result)
            logger.info(f"{name}: {summary.model_dump_json()}")
            for error in result.errors:
                logger.error(f"{name}: {error['message']}")
            failed = failed or not summary.successful

        return 1 if failed else 0
    finally:
        runtime.close()
        shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
