"""
Adaptador del document store sobre la API REST de Airtable.

Cada coleccion es una tabla de Airtable; cada record es un documento
(id del record + fields).
"""
from docsync.infrastructure.external.airtable.document_store import (
    AirtableCredentials,
    AirtableDocumentStore,
    build_incremental_filter_formula,
)

__all__ = ["AirtableCredentials", "AirtableDocumentStore", "build_incremental_filter_formula"]
