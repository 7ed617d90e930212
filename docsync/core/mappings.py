"""
Carga del archivo de mapeos coleccion -> tabla (SYNC_MAPPINGS_FILE).

Formato (JSON):

    {
      "posts": {
        "table": "blog_posts",
        "source_table": "Blog Posts",
        "columns": {"Title": "title", "Internal Notes": null}
      }
    }

- table: tabla destino (default: el nombre de la coleccion)
- source_table: tabla en Airtable si difiere del nombre de la coleccion
- columns: campo -> columna; null excluye el campo
"""
import json
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from docsync.shared.exceptions.sync import SyncConfigException


class CollectionMappingConfig(BaseModel):
    """Mapeo de una coleccion tal como viene del archivo."""

    table: Optional[str] = Field(None, description="Tabla destino")
    source_table: Optional[str] = Field(None, description="Nombre de la tabla en el origen")
    columns: Dict[str, Optional[str]] = Field(default_factory=dict, description="Campo -> columna (null excluye)")


MappingsConfig = Dict[str, CollectionMappingConfig]

_adapter = TypeAdapter(MappingsConfig)


def load_mappings_file(path: Union[str, Path]) -> MappingsConfig:
    """
    Lee y valida el archivo de mapeos.

    Raises:
        SyncConfigException: si el archivo no existe, no es JSON o no valida
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise SyncConfigException(f"Archivo de mapeos no encontrado: {path}", details={"path": str(path)}) from e
    except (OSError, ValueError) as e:
        raise SyncConfigException(f"Archivo de mapeos invalido ({path}): {e}", details={"path": str(path)}) from e

    try:
        return _adapter.validate_python(raw)
    except ValidationError as e:
        raise SyncConfigException(
            f"Archivo de mapeos invalido ({path}): {e.error_count()} errores",
            details={"path": str(path), "errors": e.errors(include_url=False)},
        ) from e


def as_mapper_config(config: MappingsConfig) -> Dict[str, dict]:
    """Forma que acepta SchemaMapper.load_from_config."""
    return {
        collection: {"table": mapping.table or collection, "columns": dict(mapping.columns)}
        for collection, mapping in config.items()
    }


def source_table_names(config: MappingsConfig) -> Dict[str, str]:
    """Coleccion -> tabla de Airtable, solo donde difieren."""
    return {
        collection: mapping.source_table
        for collection, mapping in config.items()
        if mapping.source_table
    }
